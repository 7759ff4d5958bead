"""Injection of sibling workspaces into the installer's request list."""

from typing import List, Sequence

from .models import DependencyRequest, SiblingWorkspace
from .structured_logging import log_requests_injected

PACKAGE_REGISTRY = "npm"


class PatternInjector:
    """Appends one registry request per sibling workspace."""

    def __init__(self, siblings: Sequence[SiblingWorkspace], registry: str = PACKAGE_REGISTRY):
        self.siblings = list(siblings)
        self.registry = registry

    def sibling_requests(self) -> List[DependencyRequest]:
        return [
            DependencyRequest(pattern=sibling.pattern, registry=self.registry, optional=False)
            for sibling in self.siblings
        ]

    def build_requests(
        self, base_requests: Sequence[DependencyRequest]
    ) -> List[DependencyRequest]:
        """Return base requests followed by the sibling requests, in discovery order."""
        injected = self.sibling_requests()
        log_requests_injected(len(base_requests), [r.pattern for r in injected])
        return list(base_requests) + injected
