"""
Resolver contract used by the isolation hooks, and an in-memory
implementation backed by the monorepo's own workspace manifests.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from .error_handling import InvariantViolation
from .models import DependencyRequest, ResolvedPackage, WorkspaceSet
from .patterns import normalize_pattern, range_satisfied_by


class PatternNotFound(LookupError):
    """No package is resolved for a pattern."""


class PackageResolver(ABC):
    """The slice of the dependency resolver the isolation hooks rely on."""

    @abstractmethod
    def get_resolved_pattern(self, pattern: str) -> Optional[ResolvedPackage]:
        """Return the package resolved for a pattern, or None."""

    @abstractmethod
    def get_strict_resolved_pattern(self, pattern: str) -> ResolvedPackage:
        """Return the package resolved for a pattern or raise PatternNotFound."""

    @abstractmethod
    def replace_pattern(self, pattern: str, new_pattern: str) -> None:
        """Make ``new_pattern`` resolve to the package of ``pattern``."""


class PatternTable(PackageResolver):
    """Pattern -> ResolvedPackage table.

    Replacing a pattern aliases it: both the old and new pattern keep
    resolving to the same package object.
    """

    def __init__(self):
        self._patterns: Dict[str, ResolvedPackage] = {}

    def __contains__(self, pattern: str) -> bool:
        return pattern in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def patterns(self) -> List[str]:
        return list(self._patterns)

    def add_pattern(self, pattern: str, package: ResolvedPackage) -> None:
        self._patterns[pattern] = package
        if pattern not in package.reference.requests:
            package.reference.requests.append(pattern)

    def get_resolved_pattern(self, pattern: str) -> Optional[ResolvedPackage]:
        return self._patterns.get(pattern)

    def get_strict_resolved_pattern(self, pattern: str) -> ResolvedPackage:
        package = self._patterns.get(pattern)
        if package is None:
            raise PatternNotFound(pattern)
        return package

    def replace_pattern(self, pattern: str, new_pattern: str) -> None:
        package = self._patterns.get(pattern)
        if package is None:
            raise InvariantViolation(f"Cannot alias unresolved pattern {pattern}")
        self.add_pattern(new_pattern, package)

    def register_manifest(
        self, manifest: Dict[str, Any], registry: str = "npm"
    ) -> ResolvedPackage:
        """Register a manifest under its own ``name@version`` pattern.

        The package keeps a reference to ``manifest`` itself, so rewrites of
        its dependency buckets are visible to the manifest's owner.
        """
        package = ResolvedPackage(
            name=manifest["name"],
            version=manifest.get("version", ""),
            registry=registry,
            manifest=manifest,
        )
        package.reference.registry = registry
        self.add_pattern(package.pattern, package)
        return package

    def resolve_from_workspaces(
        self, requests: Iterable[DependencyRequest], workspaces: WorkspaceSet
    ) -> List[str]:
        """
        Resolve requests against local workspace members.

        Returns:
            Patterns that could not be resolved locally.
        """
        unresolved = []
        for request in requests:
            if request.pattern in self._patterns:
                continue
            normalized = normalize_pattern(request.pattern)
            workspace = workspaces.get(normalized.name)
            if workspace is None or not (
                normalized.range in ("latest", "*")
                or range_satisfied_by(workspace.version, normalized.range)
            ):
                unresolved.append(request.pattern)
                continue

            package = ResolvedPackage(
                name=workspace.name,
                version=workspace.version,
                registry=request.registry,
                manifest={"name": workspace.name, "version": workspace.version},
            )
            package.reference.registry = request.registry
            self.add_pattern(request.pattern, package)
        return unresolved
