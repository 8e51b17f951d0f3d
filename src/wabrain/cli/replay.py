from __future__ import annotations

from collections.abc import Iterator
from functools import partial
from pathlib import Path
from typing import Any

import anyio
import msgspec
import typer
from rich.console import Console

from ..bot import Bot, open_inbox
from ..logging import get_logger
from ..schemas import decode_batch
from ..settings import WabrainSettings
from ..stats import render_stats
from ..transport import ConsoleTransport
from .config import _CONFIG_PATH_OPTION, _load_settings_or_exit

logger = get_logger(__name__)


def iter_batches(path: Path) -> Iterator[list[Any]]:
    """Yield one batch per non-blank JSON Lines row; unparsable rows are skipped."""
    with path.open("rb") as handle:
        for lineno, line in enumerate(handle, start=1):
            if not line.strip():
                continue
            try:
                yield decode_batch(line)
            except msgspec.DecodeError as exc:
                logger.warning("replay.bad_line", line=lineno, error=str(exc))


async def replay_events(
    settings: WabrainSettings,
    path: Path,
    *,
    console: Console,
) -> Bot:
    transport = ConsoleTransport(console)
    bot = Bot.from_settings(settings, transport)
    await bot.start()
    send, receive = open_inbox()
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(bot.run, receive)
            async with send:
                for batch in iter_batches(path):
                    await send.send(batch)
    finally:
        await bot.close()
    return bot


def replay_cmd(
    events: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="JSON Lines file with one event (or one array of events) per line.",
    ),
    config_path: Path | None = _CONFIG_PATH_OPTION,
) -> None:
    """Run recorded events through the full pipeline, printing replies."""
    settings, _ = _load_settings_or_exit(config_path)
    console = Console()
    bot = anyio.run(partial(replay_events, settings, events, console=console))
    console.print(render_stats(bot.stats()))
