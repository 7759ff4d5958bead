"""
Install lifecycle hooks for installing one workspace in isolation.

The generic installer owns the lifecycle (requests, resolve, fetch, link);
``IsolateHooks`` supplies the hook implementations it calls into, in
order::

    discover_siblings()            before the installer starts
    build_requests(base)           when the request list is built
    canonicalize_patterns(p)       after resolution
    fold_for_linking(p, m, root)   before linking
    mark_linked()                  after linking
"""

from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .cli_config import IsolateConfig, get_config
from .error_handling import IsolateError, InvariantViolation
from .injector import PatternInjector
from .manifest import PathLike
from .models import DependencyRequest, SiblingWorkspace
from .resolver import PackageResolver
from .rewriter import GraphRewriter
from .siblings import SiblingDiscovery
from .structured_logging import log_state_transition, set_run_context
from .version_policy import VersionPolicyResolver


class IsolateState(Enum):
    UNINITIALIZED = "uninitialized"
    SIBLINGS_DISCOVERED = "siblings_discovered"
    REQUESTS_INJECTED = "requests_injected"
    RESOLVED = "resolved"
    PATTERNS_CANONICALIZED = "patterns_canonicalized"
    ROOT_KEPT = "root_kept"
    FOLDED_INTO_MANIFEST = "folded_into_manifest"
    LINKED = "linked"
    FAILED = "failed"


class IsolateHooks:
    """Sibling injection and folding for one isolated install run."""

    def __init__(
        self,
        root_location: PathLike,
        workspace_location: PathLike,
        resolver: PackageResolver,
        config: Optional[IsolateConfig] = None,
        root_patterns_to_origin: Optional[Mapping[str, str]] = None,
    ):
        self.config = config or get_config()
        self.root_location = Path(root_location)
        self.workspace_location = Path(workspace_location)
        self.resolver = resolver
        self.root_patterns_to_origin = dict(root_patterns_to_origin or {})
        self.discovery = SiblingDiscovery(
            self.root_location, self.workspace_location, self.config.registries
        )
        self.version_policy = VersionPolicyResolver(self.config.flags, self.config.save)
        self.siblings: List[SiblingWorkspace] = []
        self.state = IsolateState.UNINITIALIZED
        self._rewriter: Optional[GraphRewriter] = None

    def _transition(self, expected: Sequence[IsolateState], new_state: IsolateState) -> None:
        if self.state not in expected:
            previous = self.state
            self.state = IsolateState.FAILED
            log_state_transition(previous.value, self.state.value)
            raise InvariantViolation(
                f"Cannot move to {new_state.value} from {previous.value}"
            )
        log_state_transition(self.state.value, new_state.value)
        self.state = new_state

    @contextmanager
    def _fail_on_error(self):
        try:
            yield
        except IsolateError:
            if self.state is not IsolateState.FAILED:
                log_state_transition(self.state.value, IsolateState.FAILED.value)
                self.state = IsolateState.FAILED
            raise

    @property
    def rewriter(self) -> GraphRewriter:
        if self._rewriter is None:
            self._rewriter = GraphRewriter(
                self.resolver,
                self.siblings,
                version_policy=self.version_policy,
                default_origin=self.config.save.default_origin,
                root_patterns_to_origin=self.root_patterns_to_origin,
            )
        return self._rewriter

    def install_flags(self, flags: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Flags the generic installer runs with for an isolated install."""
        workspace_root_is_cwd = self.root_location.resolve() == self.workspace_location.resolve()
        return {**(flags or {}), "workspace_root_is_cwd": workspace_root_is_cwd, "isolated": True}

    def should_bailout(self) -> bool:
        # An up-to-date lockfile says nothing about the injected siblings
        return False

    async def discover_siblings(self) -> List[SiblingWorkspace]:
        with self._fail_on_error():
            set_run_context(str(self.workspace_location), str(self.root_location))
            self.siblings = await self.discovery.discover()
            self._transition([IsolateState.UNINITIALIZED], IsolateState.SIBLINGS_DISCOVERED)
        return self.siblings

    def build_requests(
        self, base_requests: Sequence[DependencyRequest]
    ) -> List[DependencyRequest]:
        self._transition([IsolateState.SIBLINGS_DISCOVERED], IsolateState.REQUESTS_INJECTED)
        return PatternInjector(self.siblings).build_requests(base_requests)

    def canonicalize_patterns(self, patterns: Sequence[str]) -> List[str]:
        """Canonicalize sibling patterns once resolution has finished.

        Calling it again after the first time is allowed and changes nothing.
        """
        if self.state is IsolateState.PATTERNS_CANONICALIZED:
            return self.rewriter.canonicalize_patterns(patterns)
        self._transition([IsolateState.REQUESTS_INJECTED], IsolateState.RESOLVED)
        with self._fail_on_error():
            result = self.rewriter.canonicalize_patterns(patterns)
        self._transition([IsolateState.RESOLVED], IsolateState.PATTERNS_CANONICALIZED)
        return result

    def fold_for_linking(
        self, patterns: List[str], target_manifest: Mapping[str, Any], is_root: bool
    ) -> List[str]:
        self._transition(
            [IsolateState.PATTERNS_CANONICALIZED],
            IsolateState.ROOT_KEPT if is_root else IsolateState.FOLDED_INTO_MANIFEST,
        )
        with self._fail_on_error():
            return self.rewriter.fold_for_linking(patterns, target_manifest, is_root)

    def mark_linked(self) -> None:
        self._transition(
            [IsolateState.ROOT_KEPT, IsolateState.FOLDED_INTO_MANIFEST],
            IsolateState.LINKED,
        )
