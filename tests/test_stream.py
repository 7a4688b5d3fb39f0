from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any

import aiohttp
import pytest

from pylivemap._stream import Backoff, PositionStream, WebSocketPositionStream
from pylivemap.models.position import PositionSnapshot
from pylivemap.state.events import ConnectionHealth


def _frame(tick: int, *identities: str) -> str:
    return json.dumps(
        {
            "event": "playerLocations",
            "tick": tick,
            "data": {
                "type": "FeatureCollection",
                "features": [
                    {
                        "type": "Feature",
                        "properties": {"uuid": identity, "username": identity},
                        "geometry": {"type": "Point", "coordinates": [1.0, 2.0]},
                    }
                    for identity in identities
                ],
            },
        }
    )


@dataclass
class _Msg:
    type: aiohttp.WSMsgType
    data: Any = None


class _FakeWebSocket:
    def __init__(self, messages: list[_Msg]) -> None:
        self._messages = messages

    def __aiter__(self) -> _FakeWebSocket:
        return self

    async def __anext__(self) -> _Msg:
        await asyncio.sleep(0)
        if not self._messages:
            raise StopAsyncIteration
        return self._messages.pop(0)

    def exception(self) -> Exception | None:
        return RuntimeError("boom")

    async def __aenter__(self) -> _FakeWebSocket:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None


class _FakeSession:
    """Scripted ``ws_connect``: each entry is a message list or an exception."""

    def __init__(self, script: list[list[_Msg] | Exception]) -> None:
        self._script = script
        self.connects = 0
        self.exhausted = asyncio.Event()

    def ws_connect(self, url: str, *, heartbeat: float | None = None) -> _FakeWebSocket:
        self.connects += 1
        if not self._script:
            self.exhausted.set()
            raise aiohttp.ClientConnectionError("no more scripted connections")
        step = self._script.pop(0)
        if isinstance(step, Exception):
            raise step
        return _FakeWebSocket(step)


def test_backoff_doubles_and_caps() -> None:
    backoff = Backoff(1.0, 5.0)
    assert [backoff.next_delay() for _ in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]
    backoff.reset()
    assert backoff.next_delay() == 1.0


def test_health_reported_on_transitions_only() -> None:
    health: list[ConnectionHealth] = []
    stream = PositionStream(on_snapshot=lambda _s: None, on_health=health.append)

    stream._set_health(ConnectionHealth.DISCONNECTED)
    stream._set_health(ConnectionHealth.CONNECTED)
    stream._set_health(ConnectionHealth.CONNECTED)
    stream._set_health(ConnectionHealth.DISCONNECTED)

    assert health == [ConnectionHealth.CONNECTED, ConnectionHealth.DISCONNECTED]


def test_frames_are_parsed_and_junk_ignored() -> None:
    snapshots: list[PositionSnapshot] = []
    stream = PositionStream(on_snapshot=snapshots.append)

    stream._handle_frame(_frame(7, "a", "b"))
    stream._handle_frame("{not json")
    stream._handle_frame(json.dumps({"event": "somethingElse"}))
    stream._handle_frame(_frame(8).encode())

    assert [s.sequence for s in snapshots] == [7, 8]
    assert [p.identity for p in snapshots[0].positions] == ["a", "b"]


def test_consumer_failure_does_not_escape() -> None:
    def consumer(_snapshot: PositionSnapshot) -> None:
        raise RuntimeError("consumer bug")

    stream = PositionStream(on_snapshot=consumer)
    stream._handle_frame(_frame(1, "a"))


@pytest.mark.asyncio
async def test_websocket_stream_reconnects_and_reports_health() -> None:
    session = _FakeSession(
        [
            [_Msg(aiohttp.WSMsgType.TEXT, _frame(1, "a")), _Msg(aiohttp.WSMsgType.CLOSE)],
            aiohttp.ClientConnectionError("refused"),
            [_Msg(aiohttp.WSMsgType.BINARY, _frame(1, "b").encode()), _Msg(aiohttp.WSMsgType.ERROR)],
        ]
    )
    snapshots: list[PositionSnapshot] = []
    health: list[ConnectionHealth] = []
    stream = WebSocketPositionStream(
        url="ws://test",
        http_session=session,  # type: ignore[arg-type]
        on_snapshot=snapshots.append,
        on_health=health.append,
        reconnect_initial_delay=0.001,
        reconnect_max_delay=0.002,
    )

    stream.start()
    await asyncio.wait_for(session.exhausted.wait(), timeout=2.0)
    await stream.stop()

    assert [[p.identity for p in s.positions] for s in snapshots] == [["a"], ["b"]]
    assert health == [
        ConnectionHealth.CONNECTED,
        ConnectionHealth.DISCONNECTED,
        ConnectionHealth.CONNECTED,
        ConnectionHealth.DISCONNECTED,
    ]
    assert stream.health == ConnectionHealth.DISCONNECTED
    assert stream.last_error is not None
    assert not stream.is_running


@pytest.mark.asyncio
async def test_stop_while_connected_reports_disconnect() -> None:
    class _HangingWebSocket(_FakeWebSocket):
        async def __anext__(self) -> _Msg:
            await asyncio.Event().wait()
            raise StopAsyncIteration

    class _Session:
        def ws_connect(self, url: str, *, heartbeat: float | None = None) -> _FakeWebSocket:
            return _HangingWebSocket([])

    health: list[ConnectionHealth] = []
    stream = WebSocketPositionStream(
        url="ws://test",
        http_session=_Session(),  # type: ignore[arg-type]
        on_snapshot=lambda _s: None,
        on_health=health.append,
    )
    stream.start()
    for _ in range(5):
        await asyncio.sleep(0)

    await stream.stop()

    assert health == [ConnectionHealth.CONNECTED, ConnectionHealth.DISCONNECTED]
