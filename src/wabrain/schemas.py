"""Msgspec models for the inbound WhatsApp web message payloads (subset used by wabrain)."""

from __future__ import annotations

from typing import Any

import msgspec

__all__ = [
    "MediaBody",
    "RawContent",
    "RawEvent",
    "RawKey",
    "TextBody",
    "decode_batch",
    "decode_event",
]


class RawKey(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    remote_jid: str
    id: str = ""
    participant: str | None = None
    from_me: bool = False


class TextBody(msgspec.Struct, forbid_unknown_fields=False):
    text: str | None = None


class MediaBody(msgspec.Struct, forbid_unknown_fields=False):
    caption: str | None = None


class RawContent(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    conversation: str | None = None
    extended_text_message: TextBody | None = None
    image_message: MediaBody | None = None
    video_message: MediaBody | None = None
    document_message: MediaBody | None = None
    audio_message: MediaBody | None = None
    sticker_message: MediaBody | None = None


class RawEvent(msgspec.Struct, rename="camel", forbid_unknown_fields=False):
    key: RawKey
    message: RawContent | None = None
    # seconds since epoch; some transports send a {low, high, unsigned} long
    message_timestamp: Any = None


def decode_event(payload: Any) -> RawEvent:
    if isinstance(payload, RawEvent):
        return payload
    if isinstance(payload, (bytes, str)):
        return msgspec.json.decode(payload, type=RawEvent)
    return msgspec.convert(payload, type=RawEvent)


def decode_batch(payload: bytes | str) -> list[Any]:
    """Split one JSON document (a single event or an array of events) into raw events.

    Events are left undecoded so that one malformed entry does not poison the batch.
    """
    decoded = msgspec.json.decode(payload)
    if isinstance(decoded, list):
        return decoded
    return [decoded]
