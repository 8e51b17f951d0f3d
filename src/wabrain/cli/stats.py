from __future__ import annotations

from pathlib import Path

import anyio
import typer
from rich.console import Console

from ..state import StateStore
from ..stats import collect_stats, render_stats
from .config import _CONFIG_PATH_OPTION, _config_path_display, _load_settings_or_exit


def stats_cmd(
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Print counters from the persisted state file."""
    settings, _ = _load_settings_or_exit(config_path)
    path = settings.state_path
    if not path.is_file():
        typer.echo(f"error: no state file at {_config_path_display(path)}", err=True)
        raise typer.Exit(code=1)
    store = StateStore(path)
    state = anyio.run(store.load)
    stats = collect_stats(state, plugin_count=len(state.commands))
    Console().print(render_stats(stats))
