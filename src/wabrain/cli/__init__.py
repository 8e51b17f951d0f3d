from __future__ import annotations

import typer

from .. import __version__
from .plugins import plugins_cmd
from .replay import replay_cmd
from .stats import stats_cmd


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Command router for chat automation."""


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        no_args_is_help=True,
        help="Command router for chat automation.",
    )
    app.callback()(app_main)
    app.command(name="replay")(replay_cmd)
    app.command(name="plugins")(plugins_cmd)
    app.command(name="stats")(stats_cmd)
    return app


def main() -> None:
    app = create_app()
    app()
