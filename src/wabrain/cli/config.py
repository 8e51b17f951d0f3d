from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from ..config import ConfigError
from ..logging import setup_logging
from ..settings import WabrainSettings, load_settings

_CONFIG_PATH_OPTION = typer.Option(
    None,
    "--config",
    help="Override the default config path.",
)


def _config_path_display(path: Path) -> str:
    home = Path.home()
    try:
        return f"~/{path.relative_to(home)}"
    except ValueError:
        return str(path)


def _exit_config_error(exc: ConfigError, *, code: int = 1) -> NoReturn:
    typer.echo(f"error: {exc}", err=True)
    raise typer.Exit(code=code) from exc


def _load_settings_or_exit(
    config_path: Path | None,
) -> tuple[WabrainSettings, Path]:
    try:
        settings, path = load_settings(config_path)
    except ConfigError as exc:
        _exit_config_error(exc)
    setup_logging(
        settings.logging.level,
        json_logs=settings.logging.format == "json",
    )
    return settings, path
