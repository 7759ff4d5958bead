"""
Pattern table and manifest rewriting after resolution.

Canonicalization replaces each sibling's provisional ``name@version``
pattern with ``name@<recorded specifier>``. Folding then moves the sibling
patterns out of the top-level pattern list and into the target package's
dependency map, so the linker sees them as declared dependencies.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .error_handling import InvariantViolation, log_unknown_link_target
from .models import DECLARED_DEPENDENCY_TYPES, ResolvedPackage, SiblingWorkspace
from .resolver import PackageResolver
from .structured_logging import log_pattern_aliased, log_sibling_folded
from .version_policy import VersionPolicyResolver


def origin_of(name: str, origin_map: Mapping[str, str], fallback: str) -> str:
    """
    Dependency type a package was already recorded under at the root.

    The last pattern in ``origin_map`` that belongs to ``name`` wins; if
    none does, ``fallback`` is returned.
    """
    origin = None
    prefix = f"{name}@"
    for pattern, pattern_origin in origin_map.items():
        if pattern.startswith(prefix):
            origin = pattern_origin
    return origin or fallback


class GraphRewriter:
    """Rewrites sibling patterns and folds them into the target manifest."""

    def __init__(
        self,
        resolver: PackageResolver,
        siblings: Sequence[SiblingWorkspace],
        version_policy: Optional[VersionPolicyResolver] = None,
        default_origin: str = "dependencies",
        root_patterns_to_origin: Optional[Mapping[str, str]] = None,
    ):
        self.resolver = resolver
        self.siblings = list(siblings)
        self.version_policy = version_policy or VersionPolicyResolver()
        self.default_origin = default_origin
        self.root_patterns_to_origin = dict(root_patterns_to_origin or {})
        # sibling name -> canonical pattern, filled by canonicalize_patterns
        self.canonical_patterns: Dict[str, str] = {}

    def _resolve_sibling(self, sibling: SiblingWorkspace) -> ResolvedPackage:
        package = self.resolver.get_resolved_pattern(sibling.pattern)
        if package is None:
            raise InvariantViolation(f"Missing resolved package for {sibling.pattern}")
        return package

    def _canonical_entry(self, sibling: SiblingWorkspace) -> Tuple[ResolvedPackage, str, str]:
        """
        Resolve a sibling to its canonical pattern and recorded specifier.

        Returns:
            (resolved package, canonical pattern, specifier for the manifest)
        """
        package = self._resolve_sibling(sibling)
        version = self.version_policy.compute_version(sibling.request_pattern, package)
        prefix = f"{package.name}@"
        # Exotic request patterns come back whole, name included
        if version.startswith(prefix):
            return package, version, version[len(prefix):]
        return package, f"{prefix}{version}", version

    @staticmethod
    def _declared_origin(target: ResolvedPackage, name: str) -> Optional[str]:
        for dependency_type in DECLARED_DEPENDENCY_TYPES:
            if name in (target.manifest.get(dependency_type.value) or {}):
                return dependency_type.value
        return None

    def canonicalize_patterns(self, patterns: Sequence[str]) -> List[str]:
        """
        Replace provisional sibling patterns with canonical ones.

        Patterns that are already aliased are left alone, so calling this
        again on its own output changes nothing.
        """
        canonical: List[str] = []
        for sibling in self.siblings:
            package, new_pattern, _ = self._canonical_entry(sibling)
            self.canonical_patterns[sibling.name] = new_pattern
            if new_pattern not in canonical:
                canonical.append(new_pattern)

            if new_pattern == sibling.pattern:
                continue
            if self.resolver.get_resolved_pattern(new_pattern) is package:
                continue
            self.resolver.replace_pattern(sibling.pattern, new_pattern)
            log_pattern_aliased(sibling.pattern, new_pattern)

        replaced = {s.pattern for s in self.siblings} | set(canonical)
        return [p for p in patterns if p not in replaced] + canonical

    def fold_for_linking(
        self,
        patterns: List[str],
        target_manifest: Mapping[str, Any],
        is_root: bool,
    ) -> List[str]:
        """
        Move sibling patterns into the target package's dependency map.

        On the root target the pattern list is returned untouched: siblings
        stay ordinary top-level installs. If the target package itself was
        not resolved, a warning is logged and nothing is folded.

        Raises:
            InvariantViolation: If a sibling pattern is missing from ``patterns``.
        """
        if is_root:
            return patterns

        target_pattern = f"{target_manifest.get('name')}@{target_manifest.get('version')}"
        try:
            target = self.resolver.get_strict_resolved_pattern(target_pattern)
        except LookupError as e:
            log_unknown_link_target(target_pattern, e)
            return patterns

        new_patterns = list(patterns)
        for sibling in self.siblings:
            pattern = self.canonical_patterns.get(sibling.name)
            if pattern is None or pattern not in new_patterns:
                raise InvariantViolation(
                    f"Expected sibling pattern {pattern or sibling.pattern!r} "
                    f"in the pattern list: {patterns}"
                )
            new_patterns = [p for p in new_patterns if p != pattern]

            package, _, version = self._canonical_entry(sibling)
            # A sibling the target already declares keeps its bucket
            fallback = self._declared_origin(target, package.name) or self.default_origin
            dependency_type = origin_of(
                package.name, self.root_patterns_to_origin, fallback
            )

            # The sibling lives in exactly one bucket
            for other in DECLARED_DEPENDENCY_TYPES:
                other_bucket = target.manifest.get(other.value)
                if other.value != dependency_type and other_bucket and package.name in other_bucket:
                    del other_bucket[package.name]

            bucket = target.dependency_map(dependency_type)
            if bucket.get(package.name) == version:
                log_sibling_folded(target_pattern, pattern, dependency_type, version, False)
                continue
            bucket[package.name] = version
            target.reference.dependencies.append(pattern)
            log_sibling_folded(target_pattern, pattern, dependency_type, version, True)

        return new_patterns
