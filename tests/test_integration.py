"""
Integration tests for workspace-isolate.
Tests sibling discovery on real directory trees and complete hook runs.
"""

from pathlib import Path

import pytest
from unittest.mock import AsyncMock, patch

from conftest import write_manifest
from workspace_isolate.cli_config import IsolateConfig
from workspace_isolate.error_handling import (
    InvariantViolation,
    ManifestError,
    UsageError,
    get_error_handler,
)
from workspace_isolate.isolate import IsolateHooks, IsolateState
from workspace_isolate.models import DependencyRequest
from workspace_isolate.resolver import PatternTable
from workspace_isolate.siblings import SiblingDiscovery
from workspace_isolate.workspaces import find_workspace_root, resolve_workspace_membership


class TestSiblingDiscovery:
    """Test discovering sibling workspaces from the monorepo root."""

    @pytest.mark.asyncio
    async def test_siblings_exclude_current_workspace(self, monorepo):
        siblings = await SiblingDiscovery(monorepo, monorepo / "packages" / "b").discover()
        assert [s.pattern for s in siblings] == ["a@1.0.0", "c@3.0.0"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("current", ["a", "b", "c"])
    async def test_every_member_sees_all_others(self, monorepo, current):
        siblings = await SiblingDiscovery(monorepo, monorepo / "packages" / current).discover()
        assert {s.name for s in siblings} == {"a", "b", "c"} - {current}

    @pytest.mark.asyncio
    async def test_discovery_is_deterministic(self, monorepo):
        discovery = SiblingDiscovery(monorepo, monorepo / "packages" / "a")
        first = await discovery.discover()
        second = await discovery.discover()
        assert first == second

    @pytest.mark.asyncio
    async def test_declared_range_is_attached(self, monorepo):
        write_manifest(
            monorepo / "packages" / "b",
            {"name": "b", "version": "2.0.0", "devDependencies": {"a": "^1.0.0"}},
        )
        siblings = await SiblingDiscovery(monorepo, monorepo / "packages" / "b").discover()

        by_name = {s.name: s for s in siblings}
        assert by_name["a"].request_pattern == "a@^1.0.0"
        assert by_name["c"].request_pattern == "c"

    @pytest.mark.asyncio
    async def test_missing_workspace_manifest_degrades(self, monorepo):
        bare = monorepo / "packages" / "bare"
        bare.mkdir()

        siblings = await SiblingDiscovery(monorepo, bare).discover()

        assert siblings == []
        assert get_error_handler().get_error_stats().get("DISCOVERY_WARNING") == 1

    @pytest.mark.asyncio
    async def test_root_isolation_fails_before_io(self, monorepo):
        with patch(
            "workspace_isolate.siblings.manifest_exists", new=AsyncMock(return_value=True)
        ) as exists:
            with pytest.raises(UsageError):
                await SiblingDiscovery(monorepo, monorepo).discover()
        exists.assert_not_called()

    def test_root_check_compares_paths_lexically(self, monorepo):
        discovery = SiblingDiscovery(monorepo, monorepo / "packages" / "..")

        with patch.object(Path, "resolve", side_effect=AssertionError("resolve called")):
            with pytest.raises(UsageError):
                discovery.check_not_root()

    @pytest.mark.asyncio
    async def test_malformed_manifest_propagates(self, monorepo):
        write_manifest(
            monorepo / "packages" / "b",
            {"name": "b", "version": "2.0.0", "dependencies": ["a"]},
        )
        with pytest.raises(ManifestError):
            await SiblingDiscovery(monorepo, monorepo / "packages" / "b").discover()


class TestWorkspaceMembership:
    """Test resolving workspace members from the root manifest."""

    @pytest.mark.asyncio
    async def test_glob_order_is_preserved(self, tmp_path):
        root = tmp_path / "repo"
        manifest = {"private": True, "workspaces": ["tools/*", "packages/*"]}
        write_manifest(root, manifest)
        write_manifest(root / "packages" / "a", {"name": "a", "version": "1.0.0"})
        write_manifest(root / "tools" / "z", {"name": "z", "version": "0.1.0"})

        workspaces = await resolve_workspace_membership(root, manifest)
        assert list(workspaces) == ["z", "a"]

    @pytest.mark.asyncio
    async def test_negated_globs_exclude(self, monorepo):
        manifest = {"private": True, "workspaces": ["packages/*", "!packages/c"]}
        workspaces = await resolve_workspace_membership(monorepo, manifest)
        assert list(workspaces) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_root_must_be_private(self, monorepo):
        with pytest.raises(ManifestError):
            await resolve_workspace_membership(monorepo, {"workspaces": ["packages/*"]})

    @pytest.mark.asyncio
    async def test_member_needs_version(self, monorepo):
        write_manifest(monorepo / "packages" / "d", {"name": "d"})
        with pytest.raises(ManifestError):
            await resolve_workspace_membership(
                monorepo, {"private": True, "workspaces": ["packages/*"]}
            )

    @pytest.mark.asyncio
    async def test_duplicate_names_rejected(self, monorepo):
        write_manifest(monorepo / "packages" / "d", {"name": "a", "version": "9.0.0"})
        with pytest.raises(ManifestError):
            await resolve_workspace_membership(
                monorepo, {"private": True, "workspaces": ["packages/*"]}
            )

    @pytest.mark.asyncio
    async def test_find_workspace_root(self, monorepo, tmp_path):
        assert await find_workspace_root(monorepo / "packages" / "b") == monorepo.resolve()
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        assert await find_workspace_root(outside) is None


class TestIsolatedInstall:
    """Test the hook sequence the installer runs for an isolated install."""

    async def _run_until_canonicalized(self, monorepo, hooks, table):
        target_manifest = {
            "name": "b",
            "version": "2.0.0",
            "dependencies": {"left-pad": "^1.3.0"},
        }
        siblings = await hooks.discover_siblings()
        requests = hooks.build_requests([DependencyRequest("left-pad@^1.3.0")])
        assert hooks.state is IsolateState.REQUESTS_INJECTED

        table.register_manifest(target_manifest)
        table.resolve_from_workspaces(requests, {s.name: s for s in siblings})
        patterns = hooks.canonicalize_patterns([r.pattern for r in requests])
        return patterns, target_manifest

    @pytest.mark.asyncio
    async def test_isolating_b_folds_siblings(self, monorepo):
        table = PatternTable()
        hooks = IsolateHooks(monorepo, monorepo / "packages" / "b", table, IsolateConfig())

        patterns, target_manifest = await self._run_until_canonicalized(monorepo, hooks, table)
        assert patterns == ["left-pad@^1.3.0", "a@^1.0.0", "c@^3.0.0"]

        final = hooks.fold_for_linking(patterns, target_manifest, is_root=False)
        hooks.mark_linked()

        assert final == ["left-pad@^1.3.0"]
        assert target_manifest["dependencies"] == {
            "left-pad": "^1.3.0",
            "a": "^1.0.0",
            "c": "^3.0.0",
        }
        assert hooks.state is IsolateState.LINKED

    @pytest.mark.asyncio
    async def test_root_target_keeps_siblings(self, monorepo):
        table = PatternTable()
        hooks = IsolateHooks(monorepo, monorepo / "packages" / "b", table, IsolateConfig())

        patterns, target_manifest = await self._run_until_canonicalized(monorepo, hooks, table)
        final = hooks.fold_for_linking(patterns, target_manifest, is_root=True)

        assert final is patterns
        assert hooks.state is IsolateState.ROOT_KEPT

    @pytest.mark.asyncio
    async def test_root_isolation_marks_run_failed(self, monorepo):
        hooks = IsolateHooks(monorepo, monorepo, PatternTable(), IsolateConfig())

        with pytest.raises(UsageError):
            await hooks.discover_siblings()
        assert hooks.state is IsolateState.FAILED

    def test_hooks_out_of_order(self, monorepo):
        hooks = IsolateHooks(monorepo, monorepo / "packages" / "b", PatternTable(), IsolateConfig())

        with pytest.raises(InvariantViolation):
            hooks.build_requests([])
        assert hooks.state is IsolateState.FAILED

    @pytest.mark.asyncio
    async def test_missing_pattern_marks_run_failed(self, monorepo):
        table = PatternTable()
        hooks = IsolateHooks(monorepo, monorepo / "packages" / "b", table, IsolateConfig())

        patterns, target_manifest = await self._run_until_canonicalized(monorepo, hooks, table)
        with pytest.raises(InvariantViolation):
            hooks.fold_for_linking(patterns[:-1], target_manifest, is_root=False)
        assert hooks.state is IsolateState.FAILED

    def test_install_flags(self, monorepo):
        hooks = IsolateHooks(monorepo, monorepo / "packages" / "b", PatternTable(), IsolateConfig())

        flags = hooks.install_flags({"frozen_lockfile": False})

        assert flags == {
            "frozen_lockfile": False,
            "workspace_root_is_cwd": False,
            "isolated": True,
        }
        assert hooks.should_bailout() is False
