"""
Helpers for ``name@range`` dependency patterns.

Patterns are the resolver's keys. A pattern whose specifier is handled by a
non-registry mechanism (local path, URL, VCS reference, protocol prefix) is
called exotic and is never rewritten to a semver range.
"""

import re
from dataclasses import dataclass

from nodesemver import satisfies, valid

_EXOTIC_PREFIXES = (
    "file:",
    "link:",
    "portal:",
    "workspace:",
    "npm:",
    "github:",
    "gitlab:",
    "bitbucket:",
    "gist:",
    "git+",
    "git:",
    "git@",
    "http:",
    "https:",
)
_PATH_PREFIXES = ("./", "../", "/", "~/", ".\\", "..\\")
_TARBALL_SUFFIXES = (".tgz", ".tar.gz", ".tar")
_GITHUB_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+(#.*)?$")
_WINDOWS_PATH_RE = re.compile(r"^[a-zA-Z]:[\\/]")


@dataclass(frozen=True)
class NormalizedPattern:
    name: str
    range: str
    has_version: bool


def normalize_pattern(pattern: str) -> NormalizedPattern:
    """Split a pattern into package name and range.

    Scoped names keep their leading ``@``. A pattern without a range gets
    ``latest``; ``name@`` gets ``*``.
    """
    name = pattern
    is_scoped = name.startswith("@")
    if is_scoped:
        name = name[1:]

    range_ = "latest"
    has_version = False
    if "@" in name:
        name, range_ = name.split("@", 1)
        if range_:
            has_version = True
        else:
            range_ = "*"

    if is_scoped:
        name = f"@{name}"
    return NormalizedPattern(name=name, range=range_, has_version=has_version)


def is_exotic(specifier: str) -> bool:
    """Return True if a specifier is resolved by a non-registry mechanism."""
    if not specifier:
        return False
    if specifier.startswith(_EXOTIC_PREFIXES) or specifier.startswith(_PATH_PREFIXES):
        return True
    if _WINDOWS_PATH_RE.match(specifier):
        return True
    if specifier.endswith(".git") or specifier.endswith(_TARBALL_SUFFIXES):
        return True
    return bool(_GITHUB_SHORTHAND_RE.match(specifier))


def is_exotic_pattern(pattern: str) -> bool:
    """Return True if a whole pattern names an exotic source.

    Besides bare exotic specifiers this accepts ``name@<url>`` patterns,
    whose range is a full URL rather than a version range.
    """
    if is_exotic(pattern):
        return True
    normalized = normalize_pattern(pattern)
    return normalized.has_version and "://" in normalized.range


def is_valid_version(specifier: str) -> bool:
    """Return True if the specifier is a single concrete semver version."""
    try:
        return valid(specifier, loose=False) is not None
    except ValueError:
        return False


def range_satisfied_by(version: str, range_: str) -> bool:
    """Return True if ``version`` satisfies the npm range ``range_``."""
    try:
        return bool(satisfies(version, range_, loose=False))
    except ValueError:
        return False
