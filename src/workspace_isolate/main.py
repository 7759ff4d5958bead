import asyncio
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .cli_config import (
    FlagsConfig,
    IsolateConfig,
    create_sample_config,
    get_config,
    validate_config_values,
)
from .error_handling import IsolateError
from .isolate import IsolateHooks
from .manifest import normalize_manifest, read_manifest_file
from .models import DECLARED_DEPENDENCY_TYPES, DependencyRequest, DependencyType
from .resolver import PatternTable
from .siblings import SiblingDiscovery
from .structured_logging import clear_run_context, configure_logging
from .workspaces import MANIFEST_FILENAME, find_workspace_root

__version__ = "1.0.0"

console = Console()


async def _resolve_root(cwd: Path, root: Optional[str]) -> Path:
    if root:
        return Path(root).resolve()
    found = await find_workspace_root(cwd)
    if found is None:
        raise click.ClickException(f"Could not find a workspace root above {cwd}")
    return found


def base_requests_from_manifest(manifest: Dict[str, Any]) -> List[DependencyRequest]:
    """The requests an ordinary install of this workspace would resolve."""
    requests = []
    for dependency_type in DECLARED_DEPENDENCY_TYPES:
        for name, range_ in (manifest.get(dependency_type.value) or {}).items():
            requests.append(
                DependencyRequest(
                    pattern=f"{name}@{range_}",
                    optional=dependency_type is DependencyType.OPTIONAL,
                )
            )
    return requests


async def async_list_siblings(cwd: Path, root: Optional[str], config: IsolateConfig):
    root_path = await _resolve_root(cwd, root)
    discovery = SiblingDiscovery(root_path, cwd, config.registries)
    return await discovery.discover()


async def async_plan(cwd: Path, root: Optional[str], config: IsolateConfig) -> Dict[str, Any]:
    """
    Run the isolation hooks end to end against the local workspaces.

    Only sibling workspaces and the target itself are resolved; other
    requests are reported as unresolved, as no registry is contacted.
    """
    root_path = await _resolve_root(cwd, root)
    table = PatternTable()
    hooks = IsolateHooks(root_path, cwd, table, config)

    siblings = await hooks.discover_siblings()

    raw = await read_manifest_file(cwd / MANIFEST_FILENAME)
    if raw is None:
        raise click.ClickException(f"No {MANIFEST_FILENAME} found in {cwd}")
    target_manifest = normalize_manifest(raw, cwd, is_root=False)

    requests = hooks.build_requests(base_requests_from_manifest(target_manifest))
    table.register_manifest(target_manifest)
    unresolved = table.resolve_from_workspaces(
        requests, {sibling.name: sibling for sibling in siblings}
    )

    patterns = hooks.canonicalize_patterns([r.pattern for r in requests])
    canonical = dict(hooks.rewriter.canonical_patterns)
    patterns = hooks.fold_for_linking(patterns, target_manifest, is_root=False)

    return {
        "root": str(root_path),
        "workspace": target_manifest["name"],
        "siblings": [
            {"pattern": s.pattern, "canonical": canonical.get(s.name)} for s in siblings
        ],
        "patterns": patterns,
        "unresolved": unresolved,
        "manifest": {
            t.value: target_manifest.get(t.value, {})
            for t in DECLARED_DEPENDENCY_TYPES
            if target_manifest.get(t.value)
        },
        "state": hooks.state.value,
    }


def _run(coro):
    try:
        return asyncio.run(coro)
    except IsolateError as e:
        raise click.ClickException(str(e))
    finally:
        clear_run_context()


def _print_plan(plan: Dict[str, Any]) -> None:
    console.print(
        Panel(
            f"[bold blue]{plan['workspace']}[/bold blue] isolated from {plan['root']}",
            border_style="blue",
        )
    )

    table = Table(title="Sibling workspaces")
    table.add_column("Provisional", style="cyan")
    table.add_column("Recorded as", style="green")
    for sibling in plan["siblings"]:
        table.add_row(sibling["pattern"], sibling["canonical"] or "-")
    console.print(table)

    for dependency_type, deps in plan["manifest"].items():
        console.print(f"\n[bold cyan]{dependency_type}[/bold cyan]")
        for name, range_ in deps.items():
            console.print(f"  {name}: {range_}")

    console.print("\n[bold cyan]Top-level patterns[/bold cyan]")
    for pattern in plan["patterns"]:
        style = "dim" if pattern in plan["unresolved"] else None
        console.print(f"  {pattern}", style=style)


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option("--verbose", "-v", is_flag=True, help="Emit debug events")
@click.pass_context
def cli(ctx, version, verbose):
    """
    Workspace-isolate: install one monorepo workspace in isolation.

    Sibling workspaces are injected as ordinary registry dependencies and
    recorded in the workspace's dependency map.
    """
    if version:
        console.print(f"workspace-isolate version {__version__}", style="bold blue")
        ctx.exit()

    configure_logging("DEBUG" if verbose else get_config().logging.log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace to isolate",
    show_default=True,
)
@click.option("--root", type=click.Path(exists=True, file_okay=False), help="Monorepo root")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
)
def siblings(cwd: str, root: Optional[str], output_format: str):
    """List the sibling workspaces that would be injected."""
    found = _run(async_list_siblings(Path(cwd).resolve(), root, get_config()))

    if output_format == "json":
        print(json.dumps([s.pattern for s in found], indent=2))
        return

    if not found:
        console.print("ℹ️  No sibling workspaces", style="blue")
        return
    table = Table(title="Sibling workspaces")
    table.add_column("Name", style="cyan")
    table.add_column("Version", style="green")
    table.add_column("Manifest", style="dim")
    for sibling in found:
        table.add_row(sibling.name, sibling.version, sibling.manifest_location)
    console.print(table)


@cli.command()
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Workspace to isolate",
    show_default=True,
)
@click.option("--root", type=click.Path(exists=True, file_okay=False), help="Monorepo root")
@click.option("--tilde", "-T", is_flag=True, help="Record siblings with a ~ range")
@click.option("--exact", "-E", is_flag=True, help="Record siblings with exact versions")
@click.option("--save-prefix", help="Prefix for recorded ranges (overrides config)")
@click.option(
    "--dev",
    "-D",
    "origin",
    flag_value="devDependencies",
    help="Record siblings under devDependencies",
)
@click.option(
    "--optional",
    "-O",
    "origin",
    flag_value="optionalDependencies",
    help="Record siblings under optionalDependencies",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["console", "json"]),
    default="console",
    show_default=True,
)
def plan(
    cwd: str,
    root: Optional[str],
    tilde: bool,
    exact: bool,
    save_prefix: Optional[str],
    origin: Optional[str],
    output_format: str,
):
    """
    Show how sibling workspaces would be recorded for an isolated install.

    Examples:

      workspace-isolate plan --cwd packages/b

      workspace-isolate plan --cwd packages/b --exact --format json
    """
    if tilde and exact:
        raise click.ClickException("--tilde and --exact are mutually exclusive")

    config = get_config()
    save = config.save
    if save_prefix is not None:
        save = replace(save, save_prefix=save_prefix)
    if origin:
        save = replace(save, default_origin=origin)
    config = replace(
        config,
        save=save,
        flags=FlagsConfig(tilde=tilde or config.flags.tilde, exact=exact or config.flags.exact),
    )

    result = _run(async_plan(Path(cwd).resolve(), root, config))

    if output_format == "json":
        print(json.dumps(result, indent=2))
    else:
        _print_plan(result)


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".workspace-isolate.json",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        raise click.ClickException(f"Failed to create config file: {e}")

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
def config_show():
    """Show current configuration settings."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]Save Settings:[/bold cyan]")
    console.print(f"  Save Prefix: {current_config.save.save_prefix!r}")
    console.print(f"  Save Exact: {current_config.save.save_exact}")
    console.print(f"  Default Origin: {current_config.save.default_origin}")

    console.print("\n[bold cyan]Flags:[/bold cyan]")
    console.print(f"  Tilde: {current_config.flags.tilde}")
    console.print(f"  Exact: {current_config.flags.exact}")

    console.print("\n[bold cyan]Registries:[/bold cyan]")
    console.print(f"  {', '.join(current_config.registries)}")

    console.print("\n[bold cyan]Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")

    for error in validate_config_values(current_config):
        console.print(f"  • {error}", style="red")


if __name__ == "__main__":
    cli()
