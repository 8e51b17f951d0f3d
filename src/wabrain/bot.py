"""The message pipeline: ear -> state -> dispatcher -> checkpoint.

Batches from the transport are consumed by a single worker, and the events of
a batch are handled one at a time, so the state store never sees two messages
interleave.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeAlias

import anyio
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream

from .dispatch import Dispatcher
from .logging import get_logger, message_context
from .model import MessageRecord
from .normalize import Ear, jid_user
from .plugins import LoadSummary, PluginRegistry
from .settings import WabrainSettings
from .state import CheckpointPolicy, StateStore
from .stats import BotStats, collect_stats
from .transport import Transport

logger = get_logger(__name__)

DEFAULT_INBOX_SIZE = 64

Batch: TypeAlias = list[Any]


def open_inbox(
    max_buffer_size: int = DEFAULT_INBOX_SIZE,
) -> tuple[MemoryObjectSendStream[Batch], MemoryObjectReceiveStream[Batch]]:
    return anyio.create_memory_object_stream[Batch](max_buffer_size)


class Bot:
    def __init__(
        self,
        *,
        ear: Ear,
        store: StateStore,
        registry: PluginRegistry,
        dispatcher: Dispatcher,
    ) -> None:
        self.ear = ear
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher

    @classmethod
    def from_settings(cls, settings: WabrainSettings, transport: Transport) -> Bot:
        store = StateStore(
            settings.state_path,
            checkpoint=CheckpointPolicy(settings.checkpoint_interval),
        )
        registry = PluginRegistry(
            store,
            directory=settings.plugins.directory,
            builtin=settings.plugins.builtin,
            allowlist=settings.plugins.enabled,
        )
        dispatcher = Dispatcher(
            registry,
            store,
            transport,
            help_prefix=settings.help_prefix,
            handler_timeout=settings.handler_timeout,
        )
        return cls(
            ear=Ear(settings.prefixes),
            store=store,
            registry=registry,
            dispatcher=dispatcher,
        )

    async def start(self) -> LoadSummary:
        await self.store.load()
        summary = await self.reload_plugins()
        stats = self.stats()
        logger.info(
            "bot.started",
            plugins=stats.total_plugins,
            users=stats.total_users,
            groups=stats.total_groups,
            total_messages=stats.total_messages,
            total_commands=stats.total_commands,
        )
        return summary

    async def reload_plugins(self) -> LoadSummary:
        logger.info("plugins.reloading")
        summary = self.registry.load()
        await self.store.flush()
        return summary

    def stats(self) -> BotStats:
        return collect_stats(self.store.state, plugin_count=len(self.registry))

    async def handle_event(self, raw: Any) -> MessageRecord | None:
        record = self.ear.process(raw)
        if record is None:
            return None
        with message_context(chat=record.from_id, message_id=record.id):
            if record.command is not None:
                logger.info(
                    "command.received",
                    command=record.command.name,
                    args=len(record.command.args),
                    sender=jid_user(record.participant),
                    chat_kind=record.chat_kind.value,
                )
            else:
                logger.info(
                    "message.received",
                    message_type=record.message_type.value,
                    sender=jid_user(record.participant),
                    chat_kind=record.chat_kind.value,
                )
            self.store.record_message(record)
            if record.command is not None:
                await self.dispatcher.dispatch(record.command, record)
            await self.store.checkpoint()
        return record

    async def handle_batch(self, events: Iterable[Any]) -> int:
        handled = 0
        for raw in events:
            try:
                record = await self.handle_event(raw)
            except Exception:  # noqa: BLE001
                logger.exception("bot.event_failed")
                continue
            if record is not None:
                handled += 1
        return handled

    async def run(self, receive: MemoryObjectReceiveStream[Batch]) -> None:
        async with receive:
            async for batch in receive:
                await self.handle_batch(batch)

    async def close(self) -> bool:
        flushed = await self.store.flush()
        logger.info("bot.closed", flushed=flushed)
        return flushed
