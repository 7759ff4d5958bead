"""
Version specifier policy for injected dependencies.

An injected sibling is recorded exactly as if a user had added it by hand
with the same --tilde / --exact flags and save-prefix configuration.
"""

from typing import Optional

from .cli_config import FlagsConfig, SaveConfig
from .models import ResolvedPackage
from .patterns import (
    is_exotic,
    is_exotic_pattern,
    is_valid_version,
    normalize_pattern,
    range_satisfied_by,
)


class VersionPolicyResolver:
    """Computes the version specifier recorded for a resolved pattern."""

    def __init__(
        self,
        flags: Optional[FlagsConfig] = None,
        save: Optional[SaveConfig] = None,
    ):
        self.flags = flags or FlagsConfig()
        self.save = save or SaveConfig()

    @property
    def exact(self) -> bool:
        return self.flags.exact or self.save.save_exact or self.save.save_prefix == ""

    def compute_version(self, pattern: str, resolved: ResolvedPackage) -> str:
        """
        Compute the version specifier to record for ``pattern``.

        Exotic patterns are returned unchanged. A range already embedded in
        the pattern is kept verbatim when the resolved version satisfies it
        or when the range is itself exotic. Otherwise the resolved version is
        prefixed according to the tilde / exact / save-prefix settings; a
        verbatim concrete version never gets a prefix.
        """
        if is_exotic_pattern(pattern):
            return pattern

        normalized = normalize_pattern(pattern)
        version = None
        if normalized.has_version and normalized.range and (
            range_satisfied_by(resolved.version, normalized.range)
            or is_exotic(normalized.range)
        ):
            version = normalized.range

        if version is not None and not is_valid_version(version):
            return version

        if version is not None:
            prefix = ""
        elif self.flags.tilde:
            prefix = "~"
        elif self.exact:
            prefix = ""
        else:
            prefix = self.save.save_prefix or "^"
        return f"{prefix}{resolved.version}"
