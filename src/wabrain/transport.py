from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .normalize import jid_user


class SendFailure(RuntimeError):
    pass


class Transport(Protocol):
    async def send(self, destination_id: str, text: str) -> None: ...


class ConsoleTransport:
    """Prints outbound messages instead of delivering them."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        label: Callable[[str], str] = jid_user,
    ) -> None:
        self._console = console or Console()
        self._label = label
        self.sent = 0

    async def send(self, destination_id: str, text: str) -> None:
        self.sent += 1
        self._console.print(
            Panel(
                Text(text),
                title=f"→ {self._label(destination_id)}",
                title_align="left",
                border_style="cyan",
            )
        )
