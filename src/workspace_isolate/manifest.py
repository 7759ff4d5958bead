"""
Registry manifest files: locating, reading and normalizing them.

All reads are async and dispatched through ``aiofiles`` so the install
lifecycle can await them without blocking the event loop.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import aiofiles
import aiofiles.os

from .error_handling import ErrorCategory, ManifestError, get_error_handler
from .models import DECLARED_DEPENDENCY_TYPES, DependencyType
from .patterns import is_valid_version

# Registry name -> manifest filename, in lookup order
REGISTRIES: Dict[str, str] = {
    "npm": "package.json",
    "yarn": "package.json",
}

DEPENDENCY_SECTIONS = [dependency_type.value for dependency_type in DependencyType]

PathLike = Union[str, Path]


def manifest_filename(registry: str) -> str:
    try:
        return REGISTRIES[registry]
    except KeyError:
        raise ManifestError(f"Unknown registry: {registry}")


async def manifest_exists(location: PathLike) -> bool:
    return await aiofiles.os.path.isfile(str(location))


async def read_manifest_file(location: PathLike) -> Optional[Dict[str, Any]]:
    """
    Read a manifest file.

    Returns:
        The parsed JSON object, or None if the file does not exist.

    Raises:
        ManifestError: If the file exists but is not a JSON object.
    """
    path = Path(location)
    try:
        async with aiofiles.open(path, encoding="utf-8") as f:
            text = await f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ManifestError(f"Failed to read {path}: {e}", str(path)) from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        get_error_handler().error(
            ErrorCategory.PARSING,
            f"Invalid JSON in manifest: {e}",
            "manifest",
            "read_manifest_file",
            exception=e,
            details={"file_path": path.name},
        )
        raise ManifestError(f"Invalid JSON in {path}: {e}", str(path)) from e

    if not isinstance(data, dict):
        raise ManifestError(f"{path} must contain a JSON object", str(path))
    return data


def _normalize_workspaces(value: Any, location: str) -> List[str]:
    # "workspaces" is either a glob list or {"packages": [...], "nohoist": [...]}
    if isinstance(value, dict):
        value = value.get("packages", [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ManifestError("workspaces must be a list of glob strings", location)
    return list(value)


def normalize_manifest(
    raw: Dict[str, Any], location: PathLike, is_root: bool
) -> Dict[str, Any]:
    """
    Validate and normalize a raw manifest.

    The input is not modified; a normalized copy is returned.

    Args:
        raw: Parsed manifest object
        location: Folder the manifest lives in
        is_root: Whether this is the monorepo root manifest

    Raises:
        ManifestError: If a field has the wrong type, or a workspace
            manifest has no name.
    """
    loc = str(location)
    if not isinstance(raw, dict):
        raise ManifestError("Manifest must be a JSON object", loc)

    manifest = dict(raw)

    name = manifest.get("name")
    if name is not None:
        if not isinstance(name, str) or not name.strip():
            raise ManifestError("Manifest name must be a non-empty string", loc)
        manifest["name"] = name.strip()
    elif not is_root:
        raise ManifestError("Workspace manifest is missing a name", loc)

    version = manifest.get("version")
    if version is not None:
        if not isinstance(version, str):
            raise ManifestError("Manifest version must be a string", loc)
        manifest["version"] = version.strip()
        if not is_valid_version(manifest["version"]):
            get_error_handler().warning(
                ErrorCategory.PARSING,
                f"Manifest version is not valid semver: {version}",
                "manifest",
                "normalize_manifest",
                details={"location": loc},
            )

    for section in DEPENDENCY_SECTIONS:
        deps = manifest.get(section)
        if deps is None:
            continue
        if not isinstance(deps, dict):
            raise ManifestError(f"{section} must be an object", loc)
        manifest[section] = {
            str(dep_name).strip(): str(spec).strip() for dep_name, spec in deps.items()
        }

    if "workspaces" in manifest:
        manifest["workspaces"] = _normalize_workspaces(manifest["workspaces"], loc)

    return manifest


def declared_range(manifest: Dict[str, Any], dependency_name: str) -> Optional[str]:
    """Return the first range a manifest declares for a dependency, if any."""
    for dependency_type in DECLARED_DEPENDENCY_TYPES:
        deps = manifest.get(dependency_type.value) or {}
        if dependency_name in deps:
            return deps[dependency_name]
    return None
