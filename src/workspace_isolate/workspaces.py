"""
Workspace membership resolution.

The root manifest's ``workspaces`` field lists globs (optionally negated
with ``!``). Every matched directory holding a ``package.json`` is a member.
Membership order follows the glob order of the root manifest, and the
sorted directory order within one glob, so results are stable across runs.
"""

import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .error_handling import ManifestError
from .manifest import PathLike, normalize_manifest, read_manifest_file
from .models import Workspace, WorkspaceSet

MANIFEST_FILENAME = "package.json"
_IGNORED_DIRS = {"node_modules", ".git"}


def _split_globs(patterns: List[str]) -> Tuple[List[str], List[str]]:
    include: List[str] = []
    exclude: List[str] = []
    for pattern in patterns:
        if pattern.startswith("!"):
            exclude.append(pattern[1:])
        else:
            include.append(pattern)
    return include, exclude


def _strip_dot_slash(pattern: str) -> str:
    return pattern[2:] if pattern.startswith("./") else pattern


def _glob_safe(root: Path, pattern: str) -> List[Path]:
    # pathlib cannot glob "." or patterns with a leading "./"
    pattern = _strip_dot_slash(pattern).rstrip("/")
    if not pattern or pattern == ".":
        return [root]
    return sorted(root.glob(pattern))


def expand_workspace_globs(root: Path, patterns: List[str]) -> List[Path]:
    """Expand workspace globs to member directories, in glob order."""
    include, exclude = _split_globs(patterns)

    excluded = set()
    for pattern in exclude:
        excluded.update(p.resolve() for p in _glob_safe(root, pattern))

    root_resolved = root.resolve()
    found: List[Path] = []
    seen = set()
    for pattern in include:
        for candidate in _glob_safe(root, pattern):
            resolved = candidate.resolve()
            if resolved == root_resolved or resolved in seen or resolved in excluded:
                continue
            if _IGNORED_DIRS.intersection(candidate.relative_to(root).parts):
                continue
            if candidate.is_dir() and (candidate / MANIFEST_FILENAME).is_file():
                seen.add(resolved)
                found.append(candidate)
    return found


async def resolve_workspace_membership(
    root_location: PathLike, root_manifest: Dict[str, Any]
) -> WorkspaceSet:
    """
    Resolve every workspace declared by a normalized root manifest.

    Returns:
        Insertion-ordered mapping of workspace name to Workspace.

    Raises:
        ManifestError: If the root is not private, or a member manifest is
            missing its name or version, or two members share a name.
    """
    globs = root_manifest.get("workspaces") or []
    if not globs:
        return {}

    root = Path(root_location)
    if root_manifest.get("private") is not True:
        raise ManifestError(
            "Workspaces can only be enabled in private projects", str(root)
        )

    workspaces: WorkspaceSet = {}
    for member_dir in expand_workspace_globs(root, globs):
        manifest_path = member_dir / MANIFEST_FILENAME
        raw = await read_manifest_file(manifest_path)
        if raw is None:
            continue
        manifest = normalize_manifest(raw, member_dir, is_root=False)

        name = manifest["name"]
        version = manifest.get("version")
        if not version:
            raise ManifestError(
                f"Missing version in workspace {name}", str(manifest_path)
            )
        if name in workspaces:
            raise ManifestError(
                f"There are more than one workspace with name {name}",
                str(manifest_path),
            )
        workspaces[name] = Workspace(
            name=name, version=version, manifest_location=str(manifest_path)
        )

    return workspaces


async def find_workspace_root(initial: PathLike) -> Optional[Path]:
    """
    Walk up from ``initial`` to the monorepo root that owns it.

    The first ancestor whose manifest declares workspaces decides: it is the
    root if ``initial`` is the ancestor itself or matches one of its globs.
    """
    start = Path(initial).resolve()
    for current in [start, *start.parents]:
        manifest = await read_manifest_file(current / MANIFEST_FILENAME)
        if manifest is None:
            continue
        manifest = normalize_manifest(manifest, current, is_root=True)
        globs = manifest.get("workspaces")
        if not globs:
            continue

        relative = start.relative_to(current).as_posix()
        if relative == ".":
            return current
        include, exclude = _split_globs(globs)
        matched = any(fnmatch.fnmatchcase(relative, _strip_dot_slash(g)) for g in include)
        excluded = any(fnmatch.fnmatchcase(relative, _strip_dot_slash(g)) for g in exclude)
        return current if matched and not excluded else None
    return None
