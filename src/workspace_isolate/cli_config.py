"""
Configuration management for workspace-isolate.

Settings come from defaults, an optional config file, environment
variables and finally command-line flags (applied by the CLI).
"""

import json
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from rich.console import Console

console = Console(stderr=True)

DEPENDENCY_ORIGINS = ("dependencies", "devDependencies", "optionalDependencies")


@dataclass
class SaveConfig:
    """How injected sibling dependencies are recorded."""

    save_prefix: str = "^"
    save_exact: bool = False
    default_origin: str = "dependencies"


@dataclass
class FlagsConfig:
    """Per-run flags mirroring the installer's --tilde / --exact switches."""

    tilde: bool = False
    exact: bool = False


@dataclass
class LoggingConfig:
    """Logging and error handling configuration."""

    log_level: str = "WARNING"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class IsolateConfig:
    """Main configuration containing all subsections."""

    save: SaveConfig = field(default_factory=SaveConfig)
    flags: FlagsConfig = field(default_factory=FlagsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    registries: List[str] = field(default_factory=lambda: ["npm", "yarn"])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# Global configuration instance
_global_config: Optional[IsolateConfig] = None


def validate_config_values(config: IsolateConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.save.save_prefix not in ("", "^", "~"):
        errors.append("save.save_prefix must be one of '', '^', '~'")
    if config.save.default_origin not in DEPENDENCY_ORIGINS:
        errors.append(
            f"save.default_origin must be one of {', '.join(DEPENDENCY_ORIGINS)}"
        )
    if config.flags.tilde and config.flags.exact:
        errors.append("flags.tilde and flags.exact are mutually exclusive")
    if config.logging.log_level.upper() not in (
        "DEBUG",
        "INFO",
        "WARNING",
        "ERROR",
        "CRITICAL",
    ):
        errors.append("logging.log_level is not a valid level name")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".workspace-isolate.json",
        Path.cwd() / ".workspace-isolate.yaml",
        Path.cwd() / ".workspace-isolate.yml",
        Path.home() / ".config" / "workspace-isolate" / "config.json",
        Path.home() / ".config" / "workspace-isolate" / "config.yaml",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: IsolateConfig) -> None:
    """Load WORKSPACE_ISOLATE_* environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    # An empty string is a meaningful prefix (exact versions)
    if "WORKSPACE_ISOLATE_SAVE_PREFIX" in os.environ:
        config.save.save_prefix = os.environ["WORKSPACE_ISOLATE_SAVE_PREFIX"]
    config.save.save_exact = get_env_bool(
        "WORKSPACE_ISOLATE_SAVE_EXACT", config.save.save_exact
    )
    if origin := os.environ.get("WORKSPACE_ISOLATE_DEFAULT_ORIGIN"):
        config.save.default_origin = origin

    config.flags.tilde = get_env_bool("WORKSPACE_ISOLATE_TILDE", config.flags.tilde)
    config.flags.exact = get_env_bool("WORKSPACE_ISOLATE_EXACT", config.flags.exact)

    if log_level := os.environ.get("WORKSPACE_ISOLATE_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if hasattr(config, key):
            setattr(config, key, value)
        else:
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )


def load_config() -> IsolateConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None:
        return _global_config

    config = IsolateConfig()

    config_file = find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section_name in ("save", "flags", "logging"):
                if section_name in file_config:
                    apply_config_section(
                        getattr(config, section_name),
                        file_config[section_name],
                        section_name,
                    )
            if "registries" in file_config:
                config.registries = list(file_config["registries"])

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")

    _global_config = config
    return config


def get_config() -> IsolateConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration file."""
    return json.dumps(IsolateConfig().to_dict(), indent=2)
