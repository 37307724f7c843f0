from __future__ import annotations

from typing import Any

import pytest
from registry import RoomRegistry
from relay import SignalingRelay


class RecordingSink:
    """Stands in for a connection's outbound queue."""

    def __init__(self) -> None:
        self.frames: list[dict[str, Any]] = []

    def __call__(self, frame: dict[str, Any]) -> None:
        self.frames.append(frame)

    def events(self, name: str) -> list[Any]:
        return [frame["data"] for frame in self.frames if frame["event"] == name]

    def clear(self) -> None:
        self.frames.clear()


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def signaling_relay(registry: RoomRegistry) -> SignalingRelay:
    return SignalingRelay(registry)


@pytest.fixture
def connect(signaling_relay: SignalingRelay):
    """Open a relay connection; returns (handle, sink) with the greeting cleared."""

    def _connect() -> tuple[str, RecordingSink]:
        sink = RecordingSink()
        handle = signaling_relay.on_connect(sink)
        sink.clear()
        return handle, sink

    return _connect
