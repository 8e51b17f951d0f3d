from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ..plugins import PluginRegistry
from ..state import StateStore
from .config import _CONFIG_PATH_OPTION, _load_settings_or_exit


def plugins_cmd(
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """List discovered command plugins and any load errors."""
    settings, _ = _load_settings_or_exit(config_path)
    store = StateStore(settings.state_path)
    registry = PluginRegistry(
        store,
        directory=settings.plugins.directory,
        builtin=settings.plugins.builtin,
        allowlist=settings.plugins.enabled,
    )
    summary = registry.load()

    console = Console()
    table = Table(title="command plugins", title_justify="left")
    table.add_column("command", style="cyan")
    table.add_column("category")
    table.add_column("source", style="dim")
    table.add_column("description")
    for name, plugin in registry.available_commands().items():
        table.add_row(
            f"{settings.help_prefix}{name}",
            plugin.category,
            store.commands[name].source_file,
            plugin.description,
        )
    console.print(table)
    typer.echo(
        f"loaded {summary.loaded} of {summary.total} candidates"
        f" ({summary.failed} failed)"
    )
    if registry.load_errors:
        typer.echo("errors:")
        for err in registry.load_errors:
            dist = f" ({err.distribution})" if err.distribution else ""
            typer.echo(f"  {err.name}{dist} [{err.source}]: {err.error}")
