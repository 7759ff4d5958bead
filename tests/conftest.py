"""Shared fixtures: temporary monorepos laid out on disk."""

import json
from pathlib import Path

import pytest

from workspace_isolate.cli_config import reset_config
from workspace_isolate.error_handling import setup_error_handling


def write_manifest(directory: Path, data: dict) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / "package.json"
    path.write_text(json.dumps(data, indent=2))
    return path


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep config files and env vars of the host out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(home)
    for key in (
        "WORKSPACE_ISOLATE_SAVE_PREFIX",
        "WORKSPACE_ISOLATE_SAVE_EXACT",
        "WORKSPACE_ISOLATE_DEFAULT_ORIGIN",
        "WORKSPACE_ISOLATE_TILDE",
        "WORKSPACE_ISOLATE_EXACT",
        "WORKSPACE_ISOLATE_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    setup_error_handling()
    yield
    reset_config()


@pytest.fixture
def monorepo(tmp_path):
    """Root with workspaces a@1.0.0, b@2.0.0, c@3.0.0 under packages/."""
    root = tmp_path / "repo"
    write_manifest(
        root, {"name": "repo", "private": True, "workspaces": ["packages/*"]}
    )
    write_manifest(root / "packages" / "a", {"name": "a", "version": "1.0.0"})
    write_manifest(
        root / "packages" / "b",
        {"name": "b", "version": "2.0.0", "dependencies": {"left-pad": "^1.3.0"}},
    )
    write_manifest(root / "packages" / "c", {"name": "c", "version": "3.0.0"})
    return root
