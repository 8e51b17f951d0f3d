from __future__ import annotations

import inspect
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

import anyio

from .logging import get_logger
from .model import MessageRecord, ParsedCommand
from .plugins import CommandPlugin, PluginRegistry
from .state import StateStore
from .transport import Transport

logger = get_logger(__name__)

NOT_FOUND_TEMPLATE = (
    "⚠ *Command not recognized*\n"
    "─────────────────────────────\n"
    "→ Send *{prefix}menu* to see the full list of available commands"
)
ERROR_TEMPLATE = '❌ Error running command "{name}": {error}'


def not_found_text(help_prefix: str = "#") -> str:
    return NOT_FOUND_TEMPLATE.format(prefix=help_prefix)


def error_text(name: str, error: str) -> str:
    return ERROR_TEMPLATE.format(name=name, error=error)


class HandlerExecutionError(RuntimeError):
    def __init__(self, command: str, message: str) -> None:
        super().__init__(f"command {command!r} failed: {message}")
        self.command = command
        self.message = message


class DispatchStatus(StrEnum):
    HANDLED = "handled"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    command: str
    status: DispatchStatus
    elapsed_ms: float = 0.0
    error: HandlerExecutionError | None = None


@dataclass(frozen=True, slots=True)
class CommandContext:
    send: Callable[[str, str], Awaitable[bool]]
    message: MessageRecord
    command: ParsedCommand
    state: StateStore
    dispatcher: Dispatcher

    @property
    def args(self) -> tuple[str, ...]:
        return self.command.args

    @property
    def registry(self) -> PluginRegistry:
        return self.dispatcher.registry

    async def reply(self, text: str) -> bool:
        return await self.send(self.message.from_id, text)


class Dispatcher:
    def __init__(
        self,
        registry: PluginRegistry,
        store: StateStore,
        transport: Transport,
        *,
        help_prefix: str = "#",
        handler_timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if handler_timeout is not None and handler_timeout <= 0:
            raise ValueError("handler_timeout must be positive")
        self.registry = registry
        self.store = store
        self.transport = transport
        self.help_prefix = help_prefix
        self.handler_timeout = handler_timeout
        self._clock = clock

    async def send_message(self, destination_id: str, text: str) -> bool:
        try:
            await self.transport.send(destination_id, text)
        except Exception as exc:  # noqa: BLE001
            logger.error(
                "send.failed",
                destination=destination_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            return False
        return True

    async def dispatch(
        self, command: ParsedCommand, record: MessageRecord
    ) -> DispatchResult:
        plugin = self.registry.get(command.name)
        if plugin is None:
            logger.info("command.not_found", command=command.name)
            await self.send_message(record.from_id, not_found_text(self.help_prefix))
            return DispatchResult(command=command.name, status=DispatchStatus.NOT_FOUND)

        self.store.record_command()
        context = CommandContext(
            send=self.send_message,
            message=record,
            command=command,
            state=self.store,
            dispatcher=self,
        )
        started = self._clock()
        try:
            await self._invoke(plugin, context)
        except Exception as exc:  # noqa: BLE001
            error = HandlerExecutionError(plugin.command, self._describe(exc))
            error.__cause__ = exc
        else:
            elapsed_ms = (self._clock() - started) * 1000
            logger.info(
                "command.completed",
                command=plugin.command,
                elapsed_ms=round(elapsed_ms, 2),
            )
            return DispatchResult(
                command=plugin.command,
                status=DispatchStatus.HANDLED,
                elapsed_ms=elapsed_ms,
            )

        elapsed_ms = (self._clock() - started) * 1000
        logger.error(
            "command.failed",
            command=plugin.command,
            error=error.message,
            elapsed_ms=round(elapsed_ms, 2),
            exc_info=error.__cause__,
        )
        await self.send_message(record.from_id, error_text(plugin.command, error.message))
        return DispatchResult(
            command=plugin.command,
            status=DispatchStatus.FAILED,
            elapsed_ms=elapsed_ms,
            error=error,
        )

    def _describe(self, exc: Exception) -> str:
        message = str(exc)
        if message:
            return message
        if isinstance(exc, TimeoutError) and self.handler_timeout is not None:
            return f"timed out after {self.handler_timeout:g}s"
        return exc.__class__.__name__

    async def _invoke(self, plugin: CommandPlugin, context: CommandContext) -> None:
        if self.handler_timeout is None:
            await _call_handler(plugin, context)
            return
        with anyio.fail_after(self.handler_timeout):
            await _call_handler(plugin, context)


async def _call_handler(plugin: CommandPlugin, context: CommandContext) -> None:
    result = plugin.handler(context)
    if inspect.isawaitable(result):
        await result
