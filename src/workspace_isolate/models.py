"""Data structures shared by the isolation hooks."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DependencyType(Enum):
    """Manifest buckets a dependency can be recorded in."""

    DEPENDENCIES = "dependencies"
    DEV = "devDependencies"
    OPTIONAL = "optionalDependencies"
    PEER = "peerDependencies"


# Buckets consulted when looking up how a workspace already declares a sibling
DECLARED_DEPENDENCY_TYPES = [
    DependencyType.DEPENDENCIES,
    DependencyType.DEV,
    DependencyType.OPTIONAL,
]


@dataclass(frozen=True)
class Workspace:
    """A named, versioned member of the monorepo."""

    name: str
    version: str
    manifest_location: str

    @property
    def pattern(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass(frozen=True)
class SiblingWorkspace(Workspace):
    """A workspace other than the one being installed.

    ``declared_range`` is the range the current workspace already lists for
    this sibling, if any.
    """

    declared_range: Optional[str] = None

    @property
    def request_pattern(self) -> str:
        """Pattern handed to version policy when recording this sibling."""
        if self.declared_range:
            return f"{self.name}@{self.declared_range}"
        return self.name


@dataclass(frozen=True)
class DependencyRequest:
    """A single request in the installer's resolve queue."""

    pattern: str
    registry: str = "npm"
    optional: bool = False


@dataclass
class DependencyReference:
    """Backlinks used by the linker's dependency walk."""

    registry: str = "npm"
    dependencies: List[str] = field(default_factory=list)
    requests: List[str] = field(default_factory=list)


@dataclass
class ResolvedPackage:
    """Result of resolving a pattern.

    ``manifest`` is the in-memory manifest mapping of the package; folding
    writes sibling entries into its dependency buckets.
    """

    name: str
    version: str
    registry: str = "npm"
    manifest: Dict[str, Any] = field(default_factory=dict)
    reference: DependencyReference = field(default_factory=DependencyReference)

    @property
    def pattern(self) -> str:
        return f"{self.name}@{self.version}"

    def dependency_map(self, dependency_type: str) -> Dict[str, str]:
        """Return (creating if needed) the manifest bucket for a dependency type."""
        bucket = self.manifest.get(dependency_type)
        if not isinstance(bucket, dict):
            bucket = {}
            self.manifest[dependency_type] = bucket
        return bucket


WorkspaceSet = Dict[str, Workspace]
