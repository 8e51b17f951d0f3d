import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from wabrain.logging import (
    bind_message_context,
    clear_context,
    get_logger,
    message_context,
    setup_logging,
)


@pytest.fixture
def _restore_logging() -> Iterator[None]:
    yield
    structlog.reset_defaults()
    clear_context()
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)


def test_message_context_binds_and_clears() -> None:
    with message_context(chat="g@g.us", message_id="M1"):
        assert structlog.contextvars.get_contextvars() == {
            "chat": "g@g.us",
            "message_id": "M1",
        }
    assert structlog.contextvars.get_contextvars() == {}


def test_bind_message_context_accumulates() -> None:
    bind_message_context(chat="a")
    bind_message_context(message_id="b")
    try:
        assert structlog.contextvars.get_contextvars() == {"chat": "a", "message_id": "b"}
    finally:
        clear_context()


@pytest.mark.usefixtures("_restore_logging")
def test_json_logs_include_bound_context(capsys) -> None:
    setup_logging("debug", json_logs=True)
    logger = get_logger("wabrain.test")

    with message_context(chat="g@g.us"):
        logger.info("command.completed", command="ping", elapsed_ms=1.5)

    line = capsys.readouterr().err.strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["event"] == "command.completed"
    assert payload["chat"] == "g@g.us"
    assert payload["command"] == "ping"
    assert payload["level"] == "info"
    assert payload["logger"] == "wabrain.test"


@pytest.mark.usefixtures("_restore_logging")
def test_level_filters_debug(capsys) -> None:
    setup_logging("warning", json_logs=True)
    logger = get_logger("wabrain.test")

    logger.info("state.flushed")
    logger.warning("plugins.load_failed", plugin="x")

    err = capsys.readouterr().err
    assert "state.flushed" not in err
    assert "plugins.load_failed" in err
