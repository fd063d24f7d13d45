from __future__ import annotations

from typing import Any

import pytest

from lobbyd.codec import decode, encode
from lobbyd.config import HubRuntimeConfig
from lobbyd.service import HubService


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    def __init__(self) -> None:
        self.messages: list[Any] = []
        self.closed = False

    def send(self, payload: bytes) -> None:
        self.messages.append(decode(payload))

    def close(self) -> None:
        self.closed = True

    def of_type(self, t: str) -> list[dict]:
        return [m for m in self.messages if m.get("type") == t]

    def last(self) -> dict:
        return self.messages[-1]

    def clear(self) -> None:
        self.messages.clear()


class BrokenSink(RecordingSink):
    def send(self, payload: bytes) -> None:
        raise OSError("link closed")


class Client:
    """A connected test client: its id, its sink and a send helper."""

    def __init__(self, hub: HubService, sink: RecordingSink | None = None) -> None:
        self.hub = hub
        self.sink = sink if sink is not None else RecordingSink()
        self.client_id = hub.on_connect(self.sink)

    def send(self, **msg: Any) -> None:
        self.hub.on_message(self.client_id, encode(msg))

    def send_raw(self, data: bytes) -> None:
        self.hub.on_message(self.client_id, data)

    def create(self, display_name: str = "X", game_version: str = "1.0") -> str:
        self.send(type="create_lobby", display_name=display_name, game_version=game_version)
        return self.sink.of_type("joined_lobby")[-1]["lobby"]["lobby_id"]

    def disconnect(self) -> None:
        self.hub.on_disconnect(self.client_id)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def hub(clock: FakeClock) -> HubService:
    return HubService(HubRuntimeConfig(), clock=clock)


@pytest.fixture
def connect(hub: HubService):
    def _connect(sink: RecordingSink | None = None) -> Client:
        return Client(hub, sink)

    return _connect
