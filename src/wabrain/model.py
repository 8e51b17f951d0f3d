"""Normalized message types shared by the ear, the brain and plugins."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class MessageType(StrEnum):
    TEXT = "text"
    EXTENDED_TEXT = "extendedText"
    IMAGE = "image"
    VIDEO = "video"
    DOCUMENT = "document"
    AUDIO = "audio"
    STICKER = "sticker"
    UNKNOWN = "unknown"


class ChatKind(StrEnum):
    GROUP = "group"
    CHANNEL = "channel"
    DIRECT = "direct"
    UNKNOWN = "unknown"


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    prefix: str
    name: str
    args: tuple[str, ...] = ()
    full_text: str = ""


@dataclass(frozen=True, slots=True)
class MessageRecord:
    id: str
    from_id: str
    participant: str
    text: str
    message_type: MessageType
    chat_kind: ChatKind
    timestamp: datetime
    command: ParsedCommand | None = None
    raw: Any | None = field(default=None, compare=False, hash=False, repr=False)

    @property
    def is_command(self) -> bool:
        return self.command is not None

    @property
    def is_group(self) -> bool:
        return self.chat_kind is ChatKind.GROUP

    @property
    def is_channel(self) -> bool:
        return self.chat_kind is ChatKind.CHANNEL

    @property
    def is_direct(self) -> bool:
        return self.chat_kind is ChatKind.DIRECT
