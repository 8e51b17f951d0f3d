"""Turn raw inbound events into normalized message records.

Payload detection follows a fixed priority: plain text, extended text, image,
video and document captions, then audio and stickers (which never carry text).
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, TypeAlias

import msgspec

from .logging import get_logger
from .model import ChatKind, MessageRecord, MessageType
from .parse import DEFAULT_PREFIXES, extract_command
from .schemas import RawContent, RawEvent, decode_event

logger = get_logger(__name__)

GROUP_SUFFIX = "@g.us"
CHANNEL_SUFFIX = "@newsletter"
DIRECT_SUFFIX = "@s.whatsapp.net"


class MalformedEvent(ValueError):
    pass


@dataclass(frozen=True, slots=True)
class TextPayload:
    text: str


@dataclass(frozen=True, slots=True)
class ExtendedTextPayload:
    text: str


@dataclass(frozen=True, slots=True)
class ImagePayload:
    caption: str


@dataclass(frozen=True, slots=True)
class VideoPayload:
    caption: str


@dataclass(frozen=True, slots=True)
class DocumentPayload:
    caption: str


@dataclass(frozen=True, slots=True)
class AudioPayload:
    pass


@dataclass(frozen=True, slots=True)
class StickerPayload:
    pass


@dataclass(frozen=True, slots=True)
class UnknownPayload:
    pass


Payload: TypeAlias = (
    TextPayload
    | ExtendedTextPayload
    | ImagePayload
    | VideoPayload
    | DocumentPayload
    | AudioPayload
    | StickerPayload
    | UnknownPayload
)


def chat_kind_for(jid: str) -> ChatKind:
    if jid.endswith(GROUP_SUFFIX):
        return ChatKind.GROUP
    if jid.endswith(CHANNEL_SUFFIX):
        return ChatKind.CHANNEL
    if jid.endswith(DIRECT_SUFFIX):
        return ChatKind.DIRECT
    return ChatKind.UNKNOWN


def jid_user(jid: str) -> str:
    """Return the user part of a JID (``"123:4@s.whatsapp.net"`` -> ``"123"``)."""
    user, sep, _ = jid.partition("@")
    if not sep or not user:
        return jid
    return user.split(":", 1)[0] or jid


def classify_payload(content: RawContent | None) -> Payload:
    if content is None:
        return UnknownPayload()
    if content.conversation:
        return TextPayload(content.conversation)
    if content.extended_text_message is not None:
        return ExtendedTextPayload(content.extended_text_message.text or "")
    if content.image_message is not None:
        return ImagePayload(content.image_message.caption or "")
    if content.video_message is not None:
        return VideoPayload(content.video_message.caption or "")
    if content.document_message is not None:
        return DocumentPayload(content.document_message.caption or "")
    if content.audio_message is not None:
        return AudioPayload()
    if content.sticker_message is not None:
        return StickerPayload()
    return UnknownPayload()


def payload_text(payload: Payload) -> tuple[str, MessageType]:
    match payload:
        case TextPayload(text=text):
            return text, MessageType.TEXT
        case ExtendedTextPayload(text=text):
            return text, MessageType.EXTENDED_TEXT
        case ImagePayload(caption=caption):
            return caption, MessageType.IMAGE
        case VideoPayload(caption=caption):
            return caption, MessageType.VIDEO
        case DocumentPayload(caption=caption):
            return caption, MessageType.DOCUMENT
        case AudioPayload():
            return "", MessageType.AUDIO
        case StickerPayload():
            return "", MessageType.STICKER
        case UnknownPayload():
            return "", MessageType.UNKNOWN
    raise MalformedEvent(f"unsupported payload {payload!r}")


def parse_event(raw: Any) -> RawEvent:
    try:
        event = decode_event(raw)
    except (msgspec.ValidationError, msgspec.DecodeError) as exc:
        raise MalformedEvent(str(exc)) from exc
    if not event.key.remote_jid:
        raise MalformedEvent("event key has an empty remoteJid")
    return event


def _timestamp_seconds(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    if isinstance(value, Mapping):
        low, high = value.get("low"), value.get("high", 0)
        if isinstance(low, int) and isinstance(high, int):
            return float((high << 32) | (low & 0xFFFFFFFF))
    return None


def _event_timestamp(event: RawEvent, now: Callable[[], datetime]) -> datetime:
    seconds = _timestamp_seconds(event.message_timestamp)
    if seconds is None:
        return now()
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (ValueError, OverflowError, OSError):
        return now()


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _build_record(
    event: RawEvent,
    raw: Any,
    prefixes: Sequence[str],
    now: Callable[[], datetime],
) -> MessageRecord:
    from_id = event.key.remote_jid
    text, message_type = payload_text(classify_payload(event.message))
    return MessageRecord(
        id=event.key.id,
        from_id=from_id,
        participant=event.key.participant or from_id,
        text=text,
        message_type=message_type,
        chat_kind=chat_kind_for(from_id),
        timestamp=_event_timestamp(event, now),
        command=extract_command(text, prefixes),
        raw=raw,
    )


def normalize_event(
    raw: Any,
    prefixes: Sequence[str] = DEFAULT_PREFIXES,
    *,
    now: Callable[[], datetime] = _utc_now,
) -> MessageRecord:
    return _build_record(parse_event(raw), raw, prefixes, now)


class Ear:
    """Classifies inbound events; malformed ones are logged and dropped."""

    def __init__(
        self,
        prefixes: Sequence[str] = DEFAULT_PREFIXES,
        *,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.prefixes = tuple(prefixes)
        self._now = now

    def process(self, raw: Any) -> MessageRecord | None:
        try:
            event = parse_event(raw)
        except MalformedEvent as exc:
            logger.warning("ear.malformed_event", error=str(exc))
            return None
        # own echoes and receipts/protocol stubs without content
        if event.key.from_me or event.message is None:
            logger.debug(
                "ear.ignored",
                chat=event.key.remote_jid,
                message_id=event.key.id,
                from_me=event.key.from_me,
            )
            return None
        return _build_record(event, raw, self.prefixes, self._now)
