from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, ClassVar

import pytest

from pylivemap._mqtt import MqttPositionStream, build_client_id
from pylivemap.config import MqttSettings
from pylivemap.models.position import PositionSnapshot
from pylivemap.state.events import ConnectionHealth


@dataclass
class _Reason:
    is_failure: bool = False


@dataclass
class _Message:
    payload: bytes


class FakePahoClient:
    instances: ClassVar[list[FakePahoClient]] = []

    def __init__(self, **kwargs: Any) -> None:
        self.kwargs = kwargs
        self.subscriptions: list[str] = []
        self.connected_to: tuple[str, int] | None = None
        self.credentials: tuple[str, str | None] | None = None
        self.loop_running = False
        self.on_connect: Any = None
        self.on_message: Any = None
        self.on_disconnect: Any = None
        FakePahoClient.instances.append(self)

    def enable_logger(self, _logger: Any) -> None:
        return None

    def username_pw_set(self, username: str, password: str | None) -> None:
        self.credentials = (username, password)

    def tls_set(self) -> None:
        return None

    def reconnect_delay_set(self, *, min_delay: int, max_delay: int) -> None:
        self.delays = (min_delay, max_delay)

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connected_to = (host, port)

    def subscribe(self, topic: str, qos: int = 0) -> None:
        self.subscriptions.append(topic)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def disconnect(self) -> None:
        return None


@pytest.fixture
def paho(monkeypatch: pytest.MonkeyPatch) -> type[FakePahoClient]:
    FakePahoClient.instances = []
    monkeypatch.setattr("pylivemap._mqtt.mqtt.Client", FakePahoClient)
    return FakePahoClient


def test_build_client_id() -> None:
    assert build_client_id(MqttSettings(client_id=" fixed ")) == "fixed"
    generated = build_client_id(MqttSettings())
    assert generated.startswith("livemap_")
    assert generated != build_client_id(MqttSettings())


@pytest.mark.asyncio
async def test_mqtt_stream_forwards_frames_and_health(paho: type[FakePahoClient]) -> None:
    snapshots: list[PositionSnapshot] = []
    health: list[ConnectionHealth] = []
    stream = MqttPositionStream(
        settings=MqttSettings(host="broker", port=1884, topic="map/positions", username="u", password="p"),
        on_snapshot=snapshots.append,
        on_health=health.append,
    )

    stream.start()
    for _ in range(200):
        if paho.instances and paho.instances[0].loop_running:
            break
        await asyncio.sleep(0.01)
    client = paho.instances[0]
    assert client.connected_to == ("broker", 1884)
    assert client.credentials == ("u", "p")

    client.on_connect(client, None, None, _Reason(), None)
    frame = {
        "event": "playerLocations",
        "tick": 3,
        "data": {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"uuid": "u-1", "username": "Steve"},
                    "geometry": {"type": "Point", "coordinates": [5.0, 6.0]},
                }
            ],
        },
    }
    client.on_message(client, None, _Message(json.dumps(frame).encode()))
    await asyncio.sleep(0.01)

    assert client.subscriptions == ["map/positions"]
    assert health == [ConnectionHealth.CONNECTED]
    assert [s.sequence for s in snapshots] == [3]

    await stream.stop()

    assert health == [ConnectionHealth.CONNECTED, ConnectionHealth.DISCONNECTED]
    assert client.loop_running is False


@pytest.mark.asyncio
async def test_failed_connect_does_not_report_connected(paho: type[FakePahoClient]) -> None:
    health: list[ConnectionHealth] = []
    stream = MqttPositionStream(settings=MqttSettings(), on_snapshot=lambda _s: None, on_health=health.append)

    stream.start()
    for _ in range(200):
        if paho.instances and paho.instances[0].loop_running:
            break
        await asyncio.sleep(0.01)
    client = paho.instances[0]

    client.on_connect(client, None, None, _Reason(is_failure=True), None)
    await asyncio.sleep(0.01)
    await stream.stop()

    assert health == []
    assert client.subscriptions == []
