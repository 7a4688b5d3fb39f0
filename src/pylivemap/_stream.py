"""Position push stream.

Owns one persistent connection to the position push service, converts each
frame into a :class:`PositionSnapshot`, and reports connection health on
every transition. A dropped connection is surfaced immediately and retried
with exponential backoff; nothing is buffered while disconnected.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

import aiohttp

from pylivemap.exceptions import LiveMapTransportError
from pylivemap.ingestion.positions import parse_position_message
from pylivemap.models.position import PositionSnapshot
from pylivemap.state.events import ConnectionHealth

_logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[PositionSnapshot], None]
HealthCallback = Callable[[ConnectionHealth], None]


class Backoff:
    """Exponential reconnect delay: initial, doubling, capped; reset on success."""

    def __init__(self, initial: float, maximum: float) -> None:
        self._initial = initial
        self._maximum = maximum
        self._next = initial

    def next_delay(self) -> float:
        delay = self._next
        self._next = min(self._next * 2, self._maximum)
        return delay

    def reset(self) -> None:
        self._next = self._initial


class PositionStream:
    """Common health and frame handling for position transports.

    Subclasses implement :meth:`run`; they call :meth:`_set_health` from their
    lifecycle hooks and :meth:`_handle_frame` for each received frame.
    """

    def __init__(
        self,
        *,
        on_snapshot: SnapshotCallback,
        on_health: HealthCallback | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._on_snapshot = on_snapshot
        self._on_health = on_health
        self._logger = logger or _logger
        self._health = ConnectionHealth.DISCONNECTED
        self._task: asyncio.Task[None] | None = None
        self._stopping = False
        self.last_error: LiveMapTransportError | None = None

    @property
    def health(self) -> ConnectionHealth:
        return self._health

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _set_health(self, health: ConnectionHealth) -> None:
        if health == self._health:
            return
        self._health = health
        self._logger.debug("Position stream health=%s", health)
        if self._on_health is None:
            return
        try:
            self._on_health(health)
        except Exception:
            self._logger.debug("Health callback failed", exc_info=True)

    def _handle_frame(self, raw: Any) -> None:
        try:
            snapshot = parse_position_message(raw)
        except Exception:
            self._logger.debug("Position frame parse failure", exc_info=True)
            return
        if snapshot is None:
            return
        try:
            self._on_snapshot(snapshot)
        except Exception:
            self._logger.warning("Snapshot consumer failed", exc_info=True)

    async def run(self) -> None:
        raise NotImplementedError

    def start(self) -> asyncio.Task[None]:
        if self._task is not None and not self._task.done():
            return self._task
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(self.run(), name=type(self).__name__)
        return self._task

    async def stop(self) -> None:
        self._stopping = True
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._set_health(ConnectionHealth.DISCONNECTED)


class WebSocketPositionStream(PositionStream):
    """Position stream over a WebSocket (``aiohttp`` client)."""

    def __init__(
        self,
        *,
        url: str,
        http_session: aiohttp.ClientSession,
        on_snapshot: SnapshotCallback,
        on_health: HealthCallback | None = None,
        reconnect_initial_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        heartbeat: float | None = 25.0,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(on_snapshot=on_snapshot, on_health=on_health, logger=logger)
        self._url = url
        self._http = http_session
        self._heartbeat = heartbeat
        self._backoff = Backoff(reconnect_initial_delay, reconnect_max_delay)

    async def _read(self, ws: Any) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_frame(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                self._handle_frame(bytes(msg.data))
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise LiveMapTransportError(f"WebSocket error: {ws.exception()!r}", endpoint=self._url)
            elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED):
                break

    async def run(self) -> None:
        """Connect, read until the connection drops, back off, repeat until stopped."""
        while not self._stopping:
            try:
                async with self._http.ws_connect(self._url, heartbeat=self._heartbeat) as ws:
                    self._logger.debug("Position stream connected url=%s", self._url)
                    self._backoff.reset()
                    self.last_error = None
                    self._set_health(ConnectionHealth.CONNECTED)
                    await self._read(ws)
                self._logger.debug("Position stream closed by server")
            except LiveMapTransportError as exc:
                self.last_error = exc
                self._logger.debug("Position stream failed: %s", exc)
            except (aiohttp.ClientError, OSError, TimeoutError) as exc:
                self.last_error = LiveMapTransportError(f"Connection to {self._url} failed: {exc!r}", endpoint=self._url)
                self._logger.debug("Position stream connection failed", exc_info=True)
            finally:
                self._set_health(ConnectionHealth.DISCONNECTED)

            if self._stopping:
                break
            delay = self._backoff.next_delay()
            self._logger.debug("Position stream reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)
