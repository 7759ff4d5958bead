"""
Sibling workspace discovery.

Given the monorepo root and the workspace being installed, find the
registry manifest present at both locations, resolve the full workspace
membership from the root, and return every other member.
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple

from .error_handling import UsageError, log_discovery_miss
from .manifest import (
    REGISTRIES,
    PathLike,
    declared_range,
    manifest_exists,
    manifest_filename,
    normalize_manifest,
    read_manifest_file,
)
from .models import SiblingWorkspace
from .structured_logging import log_siblings_discovered
from .workspaces import resolve_workspace_membership


class SiblingDiscovery:
    """Finds the sibling workspaces of the workspace being installed."""

    def __init__(
        self,
        root_location: PathLike,
        workspace_location: PathLike,
        registries: Optional[List[str]] = None,
    ):
        self.root_location = Path(root_location)
        self.workspace_location = Path(workspace_location)
        self.registries = list(registries) if registries else list(REGISTRIES)

    def check_not_root(self) -> None:
        """Refuse to isolate the monorepo root from itself.

        Paths are compared lexically so the check touches no files; a
        symlinked workspace that points at the root is not detected here.
        """
        if os.path.abspath(self.root_location) == os.path.abspath(self.workspace_location):
            raise UsageError(
                "Cannot isolate the workspace root; run this from inside a workspace"
            )

    async def find_common_manifest(self) -> Optional[Tuple[str, Path, Path]]:
        """
        Find the first registry whose manifest exists at root and workspace.

        Returns:
            (registry, root manifest path, workspace manifest path), or None.
        """
        for registry in self.registries:
            filename = manifest_filename(registry)
            root_loc = self.root_location / filename
            workspace_loc = self.workspace_location / filename
            if await manifest_exists(root_loc) and await manifest_exists(workspace_loc):
                return registry, root_loc, workspace_loc
        return None

    async def discover(self) -> List[SiblingWorkspace]:
        """
        Discover sibling workspaces.

        Returns:
            Every workspace member except the current one, in membership
            order. Empty if no common registry manifest exists.

        Raises:
            UsageError: If invoked on the monorepo root.
            ManifestError: If a manifest is malformed.
        """
        self.check_not_root()

        found = await self.find_common_manifest()
        if found is None:
            log_discovery_miss(
                str(self.root_location), str(self.workspace_location), self.registries
            )
            return []
        registry, root_loc, workspace_loc = found

        root_manifest = normalize_manifest(
            await read_manifest_file(root_loc), self.root_location, is_root=True
        )
        workspace_manifest = normalize_manifest(
            await read_manifest_file(workspace_loc),
            self.workspace_location,
            is_root=False,
        )

        workspace_set = await resolve_workspace_membership(
            self.root_location, root_manifest
        )
        current = workspace_manifest["name"]

        siblings = [
            SiblingWorkspace(
                name=workspace.name,
                version=workspace.version,
                manifest_location=workspace.manifest_location,
                declared_range=declared_range(workspace_manifest, workspace.name),
            )
            for name, workspace in workspace_set.items()
            if name != current
        ]

        log_siblings_discovered(current, registry, [s.pattern for s in siblings])
        return siblings
