"""Typed view events and the single-consumer channel that carries them.

Every component (stream, reconciler, overlay store, search, deep link,
viewport) publishes onto one :class:`EventChannel` owned by the view
controller. Only the shell consumes it.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pylivemap.models.region import Overlay
    from pylivemap.models.search import SearchResult
    from pylivemap.state.markers import DisplayedMarker


class ConnectionHealth(enum.StrEnum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class MarkerDelta:
    """Minimal marker changes produced by one reconcile cycle."""

    to_remove: frozenset[str]
    to_upsert: tuple[DisplayedMarker, ...]
    sequence: int | None = None

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_upsert


@dataclass(frozen=True, slots=True)
class OverlayReplaced:
    overlay: Overlay


@dataclass(frozen=True, slots=True)
class SearchResults:
    """Merged result set for ``query``; ``generation`` is its issuance order."""

    query: str
    results: tuple[SearchResult, ...]
    generation: int
    failed_sources: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class ViewportChange:
    lat: float
    lon: float
    zoom: float


@dataclass(frozen=True, slots=True)
class ConnectionHealthChanged:
    health: ConnectionHealth
    observed_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True, slots=True)
class DetailViewRequested:
    region_id: str
    owner_uuid: str | None
    owner_name: str


ViewEvent = (
    MarkerDelta | OverlayReplaced | SearchResults | ViewportChange | ConnectionHealthChanged | DetailViewRequested
)


class EventChannel:
    """Unbounded single-consumer queue of :data:`ViewEvent`.

    Publishing never blocks. After :meth:`close`, further publishes are
    dropped and the consumer drains what is left, then stops.
    """

    _CLOSED = object()

    def __init__(self) -> None:
        self._queue: asyncio.Queue[object] = asyncio.Queue()
        self._closed = False
        self._consuming = False

    @property
    def closed(self) -> bool:
        return self._closed

    def publish(self, event: ViewEvent) -> bool:
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    def pending(self) -> list[ViewEvent]:
        """Drain and return whatever is queued without waiting."""
        drained: list[ViewEvent] = []
        while not self._queue.empty():
            item = self._queue.get_nowait()
            if item is self._CLOSED:
                # keep the sentinel so a consumer still terminates
                self._queue.put_nowait(item)
                break
            drained.append(item)  # type: ignore[arg-type]
        return drained

    async def __aiter__(self) -> AsyncIterator[ViewEvent]:
        if self._consuming:
            raise RuntimeError("EventChannel supports a single consumer")
        self._consuming = True
        try:
            while True:
                item = await self._queue.get()
                if item is self._CLOSED:
                    return
                yield item  # type: ignore[misc]
        finally:
            self._consuming = False
