"""Persisted bot memory: users, groups, the command registry and counters.

The store is only mutated from the sequential message pipeline, so counters
are updated without locking. Flushes snapshot the state synchronously and
write it atomically in a worker thread.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import anyio
import msgspec

from .logging import get_logger
from .model import MessageRecord
from .utils.json_state import atomic_write_json

logger = get_logger(__name__)

DEFAULT_CHECKPOINT_INTERVAL = 10


class PersistenceError(RuntimeError):
    pass


def _utc_now() -> datetime:
    return datetime.now(UTC)


class UserRecord(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    id: str
    first_seen: datetime
    last_seen: datetime
    message_count: int = 0
    command_count: int = 0


class GroupRecord(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    id: str
    first_seen: datetime
    last_activity: datetime | None = None
    message_count: int = 0
    # grows monotonically; leave events are not tracked
    participants: set[str] = msgspec.field(default_factory=set)


class CommandRegistryEntry(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    source_file: str = ""
    description: str = "No description"
    category: str = "general"
    usage: str = ""
    loaded_at: datetime | None = None


class Stats(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    total_messages: int = 0
    total_commands: int = 0
    start_time: datetime = msgspec.field(default_factory=_utc_now)


class BotState(msgspec.Struct, forbid_unknown_fields=False):
    commands: dict[str, CommandRegistryEntry] = msgspec.field(default_factory=dict)
    users: dict[str, UserRecord] = msgspec.field(default_factory=dict)
    groups: dict[str, GroupRecord] = msgspec.field(default_factory=dict)
    settings: dict[str, Any] = msgspec.field(default_factory=dict)
    stats: Stats = msgspec.field(default_factory=Stats)


@dataclass(frozen=True, slots=True)
class CheckpointPolicy:
    interval: int = DEFAULT_CHECKPOINT_INTERVAL

    def __post_init__(self) -> None:
        if isinstance(self.interval, bool) or self.interval < 1:
            raise ValueError("checkpoint interval must be a positive integer")

    def should_flush(self, total_messages: int) -> bool:
        return total_messages > 0 and total_messages % self.interval == 0


def _migrate_participants(raw: dict[str, Any]) -> int:
    """Convert legacy ``participants`` mappings into id lists, in place.

    Older snapshots serialized the participant set as an object keyed by id
    (or as an empty object). Returns the number of groups rewritten.

    Their command entries (``file``, ``loadTime``) are not migrated; the
    registry is rebuilt from the plugins on every start.
    """
    groups = raw.get("groups")
    if not isinstance(groups, dict):
        return 0
    migrated = 0
    for group in groups.values():
        if not isinstance(group, dict):
            continue
        participants = group.get("participants")
        if participants is None:
            group["participants"] = []
        elif isinstance(participants, dict):
            group["participants"] = list(participants.keys())
            migrated += 1
    return migrated


def decode_state(payload: bytes) -> BotState:
    try:
        raw = msgspec.json.decode(payload)
    except msgspec.DecodeError as exc:
        raise PersistenceError(f"state file is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise PersistenceError("state file must contain a JSON object")
    migrated = _migrate_participants(raw)
    if migrated:
        logger.info("state.participants_migrated", groups=migrated)
    try:
        state = msgspec.convert(raw, type=BotState)
    except msgspec.ValidationError as exc:
        raise PersistenceError(f"invalid state file: {exc}") from exc
    _assume_utc(state)
    return state


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _assume_utc(state: BotState) -> None:
    """Treat timestamps written without an offset as UTC, in place."""
    state.stats.start_time = _as_utc(state.stats.start_time)
    for user in state.users.values():
        user.first_seen = _as_utc(user.first_seen)
        user.last_seen = _as_utc(user.last_seen)
    for group in state.groups.values():
        group.first_seen = _as_utc(group.first_seen)
        if group.last_activity is not None:
            group.last_activity = _as_utc(group.last_activity)
    for entry in state.commands.values():
        if entry.loaded_at is not None:
            entry.loaded_at = _as_utc(entry.loaded_at)


def encode_state(state: BotState) -> dict[str, Any]:
    payload = msgspec.to_builtins(state)
    for group_id, group in state.groups.items():
        payload["groups"][group_id]["participants"] = sorted(group.participants)
    return payload


class StateStore:
    def __init__(
        self,
        path: Path,
        *,
        checkpoint: CheckpointPolicy | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.path = path
        self.checkpoint_policy = checkpoint or CheckpointPolicy()
        self._now = now
        self._lock = anyio.Lock()
        self._state = BotState(stats=Stats(start_time=now()))

    @property
    def state(self) -> BotState:
        return self._state

    @property
    def users(self) -> dict[str, UserRecord]:
        return self._state.users

    @property
    def groups(self) -> dict[str, GroupRecord]:
        return self._state.groups

    @property
    def commands(self) -> dict[str, CommandRegistryEntry]:
        return self._state.commands

    @property
    def settings(self) -> dict[str, Any]:
        return self._state.settings

    @property
    def stats(self) -> Stats:
        return self._state.stats

    def _new_state(self) -> BotState:
        return BotState(stats=Stats(start_time=self._now()))

    async def load(self) -> BotState:
        async with self._lock:
            try:
                payload = await anyio.to_thread.run_sync(self._read_snapshot)
                loaded = decode_state(payload) if payload is not None else None
            except PersistenceError as exc:
                logger.error("state.load_failed", path=str(self.path), error=str(exc))
                self._state = self._new_state()
                return self._state
            fresh = loaded is None
            if loaded is None:
                self._state = self._new_state()
                logger.info("state.initialized", path=str(self.path))
            else:
                self._state = loaded
        if fresh:
            await self.flush()
        else:
            logger.info(
                "state.loaded",
                path=str(self.path),
                users=len(self.users),
                groups=len(self.groups),
                commands=len(self.commands),
            )
        return self._state

    def _read_snapshot(self) -> bytes | None:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"failed to read {self.path}: {exc}") from exc

    def record_message(self, record: MessageRecord) -> UserRecord:
        now = self._now()
        stats = self._state.stats
        stats.total_messages += 1

        user = self._state.users.get(record.participant)
        if user is None:
            user = UserRecord(id=record.participant, first_seen=now, last_seen=now)
            self._state.users[record.participant] = user
        user.message_count += 1
        user.last_seen = now
        if record.is_command:
            user.command_count += 1

        if record.is_group:
            group = self._state.groups.get(record.from_id)
            if group is None:
                group = GroupRecord(id=record.from_id, first_seen=now)
                self._state.groups[record.from_id] = group
            group.message_count += 1
            group.participants.add(record.participant)
            group.last_activity = now
        return user

    def record_command(self) -> int:
        self._state.stats.total_commands += 1
        return self._state.stats.total_commands

    def replace_commands(self, entries: Mapping[str, CommandRegistryEntry]) -> None:
        commands = self._state.commands
        commands.clear()
        commands.update(entries)

    async def flush(self) -> bool:
        async with self._lock:
            try:
                payload = encode_state(self._state)
                await anyio.to_thread.run_sync(atomic_write_json, self.path, payload)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "state.flush_failed",
                    path=str(self.path),
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                return False
        logger.debug(
            "state.flushed",
            path=str(self.path),
            total_messages=self._state.stats.total_messages,
        )
        return True

    async def checkpoint(self) -> bool:
        if not self.checkpoint_policy.should_flush(self._state.stats.total_messages):
            return False
        return await self.flush()

