from collections.abc import Iterator
import os

import pytest

from tests.fakes import FakeTransport


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch) -> Iterator[None]:
    for key in list(os.environ):
        if key.startswith("WABRAIN__"):
            monkeypatch.delenv(key)
    yield


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()
