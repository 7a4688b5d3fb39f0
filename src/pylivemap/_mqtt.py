"""MQTT position transport.

A threaded paho-mqtt runtime subscribes to the position topic and hands
every frame and lifecycle change to the asyncio loop with
``call_soon_threadsafe``; all state is mutated on the loop thread only.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
from collections.abc import Callable
from typing import Any, cast

import paho.mqtt.client as mqtt

from pylivemap._stream import HealthCallback, PositionStream, SnapshotCallback
from pylivemap.config import MqttSettings
from pylivemap.exceptions import LiveMapTransportError
from pylivemap.state.events import ConnectionHealth


def build_client_id(settings: MqttSettings) -> str:
    client_id = settings.client_id.strip()
    if client_id:
        return client_id
    return f"livemap_{secrets.token_hex(6)}"


class PositionMqttRuntime:
    """Threaded paho-mqtt runtime that emits frames and health onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        on_frame: Callable[[bytes], None],
        on_health: Callable[[ConnectionHealth], None],
        reconnect_min_delay: int = 1,
        reconnect_max_delay: int = 30,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._on_frame = on_frame
        self._on_health = on_health
        self._reconnect_min_delay = reconnect_min_delay
        self._reconnect_max_delay = reconnect_max_delay
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._topic: str | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, settings: MqttSettings) -> None:
        """Connect (asynchronously, with paho's own reconnect) and subscribe."""
        self.stop()
        client_id = build_client_id(settings)
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s topic=%s client_id=%s",
            settings.host,
            settings.port,
            settings.topic,
            client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if settings.username:
            client.username_pw_set(settings.username, settings.password)
        if settings.tls:
            client.tls_set()
        client.reconnect_delay_set(min_delay=self._reconnect_min_delay, max_delay=self._reconnect_max_delay)

        self._topic = settings.topic

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.is_failure:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._logger.debug("MQTT connected reason=%s", reason_code)
            if self._topic:
                c.subscribe(self._topic, qos=0)
            self._loop.call_soon_threadsafe(self._on_health, ConnectionHealth.CONNECTED)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._loop.call_soon_threadsafe(self._on_frame, bytes(msg.payload))

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._logger.debug("MQTT disconnected: %s", reason_code)
            if not self._loop.is_closed():
                self._loop.call_soon_threadsafe(self._on_health, ConnectionHealth.DISCONNECTED)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect_async(settings.host, settings.port, keepalive=settings.keepalive)
        except (OSError, ValueError) as exc:
            raise LiveMapTransportError(
                f"MQTT connect to {settings.host}:{settings.port} failed: {exc!r}",
                endpoint=settings.topic,
            ) from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._topic = None

        if client is None:
            return
        try:
            if was_running:
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")


class MqttPositionStream(PositionStream):
    """Position stream over an MQTT topic."""

    def __init__(
        self,
        *,
        settings: MqttSettings,
        on_snapshot: SnapshotCallback,
        on_health: HealthCallback | None = None,
        reconnect_initial_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(on_snapshot=on_snapshot, on_health=on_health, logger=logger)
        self._settings = settings
        self._reconnect_min = max(1, int(reconnect_initial_delay))
        self._reconnect_max = max(self._reconnect_min, int(reconnect_max_delay))

    async def run(self) -> None:
        loop = asyncio.get_running_loop()
        runtime = PositionMqttRuntime(
            loop=loop,
            on_frame=self._handle_frame,
            on_health=self._set_health,
            reconnect_min_delay=self._reconnect_min,
            reconnect_max_delay=self._reconnect_max,
            logger=self._logger,
        )
        try:
            try:
                await loop.run_in_executor(None, runtime.start, self._settings)
            except LiveMapTransportError as exc:
                self.last_error = exc
                self._logger.warning("MQTT position stream could not start: %s", exc)
                return
            # paho owns the connection; this task only marks the stream's lifetime
            await asyncio.Event().wait()
        finally:
            await loop.run_in_executor(None, runtime.stop)
