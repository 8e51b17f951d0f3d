from datetime import UTC, datetime

import pytest

from tests.fakes import ALICE, BOB, CHANNEL_JID, GROUP_JID, T0, FakeClock, make_event
from wabrain.model import ChatKind, MessageType
from wabrain.normalize import (
    AudioPayload,
    Ear,
    MalformedEvent,
    TextPayload,
    UnknownPayload,
    chat_kind_for,
    classify_payload,
    jid_user,
    normalize_event,
)
from wabrain.schemas import RawContent, decode_batch


@pytest.mark.parametrize(
    ("jid", "kind"),
    [
        (GROUP_JID, ChatKind.GROUP),
        (CHANNEL_JID, ChatKind.CHANNEL),
        (ALICE, ChatKind.DIRECT),
        ("status@broadcast", ChatKind.UNKNOWN),
    ],
)
def test_chat_kind_by_suffix(jid: str, kind: ChatKind) -> None:
    assert chat_kind_for(jid) is kind


@pytest.mark.parametrize(
    ("message", "text", "message_type"),
    [
        ({"conversation": "hi"}, "hi", MessageType.TEXT),
        ({"extendedTextMessage": {"text": "link"}}, "link", MessageType.EXTENDED_TEXT),
        ({"imageMessage": {"caption": "pic"}}, "pic", MessageType.IMAGE),
        ({"videoMessage": {"caption": "clip"}}, "clip", MessageType.VIDEO),
        ({"documentMessage": {"caption": "doc"}}, "doc", MessageType.DOCUMENT),
        ({"documentMessage": {}}, "", MessageType.DOCUMENT),
        ({"audioMessage": {"seconds": 3}}, "", MessageType.AUDIO),
        ({"stickerMessage": {}}, "", MessageType.STICKER),
        ({"reactionMessage": {"text": "+1"}}, "", MessageType.UNKNOWN),
    ],
)
def test_payload_variants(message: dict, text: str, message_type: MessageType) -> None:
    record = normalize_event(make_event(message=message), now=FakeClock())

    assert record.text == text
    assert record.message_type is message_type


def test_payload_priority_prefers_conversation() -> None:
    content = RawContent(conversation="first", audio_message=None)
    assert classify_payload(content) == TextPayload("first")


def test_empty_conversation_falls_through_to_next_variant() -> None:
    record = normalize_event(
        make_event(message={"conversation": "", "audioMessage": {}}),
        now=FakeClock(),
    )
    assert record.message_type is MessageType.AUDIO


def test_missing_content_is_unknown() -> None:
    assert classify_payload(None) == UnknownPayload()
    assert classify_payload(RawContent(audio_message=None)) == UnknownPayload()
    assert AudioPayload() == AudioPayload()


def test_group_image_with_command_caption() -> None:
    raw = make_event(
        GROUP_JID,
        message={"imageMessage": {"caption": "#ping now"}},
        participant=BOB,
    )
    record = normalize_event(raw, now=FakeClock())

    assert record.is_group
    assert record.participant == BOB
    assert record.message_type is MessageType.IMAGE
    assert record.is_command
    assert record.command is not None
    assert record.command.name == "ping"
    assert record.command.args == ("now",)
    assert record.raw is raw


def test_participant_defaults_to_chat() -> None:
    record = normalize_event(make_event(ALICE, text="hello"), now=FakeClock())

    assert record.participant == ALICE
    assert record.from_id == ALICE
    assert record.is_direct
    assert not record.is_command
    assert record.command is None


def test_timestamp_from_event_or_clock() -> None:
    with_ts = normalize_event(make_event(timestamp=1714564800), now=FakeClock())
    without_ts = normalize_event(make_event(), now=FakeClock())

    assert with_ts.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    assert without_ts.timestamp == T0


def test_string_timestamp_is_accepted() -> None:
    raw = make_event()
    raw["messageTimestamp"] = "1714564800"
    assert normalize_event(raw, now=FakeClock()).timestamp.year == 2024


def test_long_object_timestamp_is_accepted() -> None:
    raw = make_event(ALICE, text="#ping")
    raw["messageTimestamp"] = {"low": 1714564800, "high": 0, "unsigned": True}

    record = Ear(now=FakeClock()).process(raw)

    assert record is not None
    assert record.command is not None
    assert record.timestamp == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize("value", [{"unsigned": True}, [1, 2], "soon", True, float("inf")])
def test_unreadable_timestamp_falls_back_to_clock(value) -> None:
    raw = make_event()
    raw["messageTimestamp"] = value

    record = Ear(now=FakeClock()).process(raw)

    assert record is not None
    assert record.timestamp == T0


def test_custom_prefixes_are_applied() -> None:
    record = normalize_event(make_event(text=".menu"), prefixes=["."], now=FakeClock())
    assert record.is_command

    record = normalize_event(make_event(text="#menu"), prefixes=["."], now=FakeClock())
    assert not record.is_command


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"key": {}},
        {"key": {"remoteJid": ""}},
        {"key": {"remoteJid": 42}},
        "not json",
        b"[1, 2",
    ],
)
def test_malformed_events_raise(raw) -> None:
    with pytest.raises(MalformedEvent):
        normalize_event(raw)


def test_normalize_accepts_json_bytes() -> None:
    record = normalize_event(
        b'{"key": {"remoteJid": "1@s.whatsapp.net"}, "message": {"conversation": "-ping"}}',
        now=FakeClock(),
    )
    assert record.command is not None
    assert record.command.prefix == "-"


def test_ear_drops_malformed_own_and_empty_events() -> None:
    ear = Ear(now=FakeClock())

    assert ear.process({"nope": True}) is None
    assert ear.process(make_event(text="#ping", from_me=True)) is None
    assert ear.process(make_event(text=None)) is None

    record = ear.process(make_event(text="#ping"))
    assert record is not None
    assert record.command is not None


def test_jid_user() -> None:
    assert jid_user("5511999990001:12@s.whatsapp.net") == "5511999990001"
    assert jid_user(GROUP_JID) == "120363041234567890"
    assert jid_user("plain") == "plain"


def test_decode_batch_wraps_single_event() -> None:
    assert decode_batch('{"key": {"remoteJid": "a"}}') == [{"key": {"remoteJid": "a"}}]
    assert decode_batch("[1, 2]") == [1, 2]
