"""Live map view controller."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp

from pylivemap._api import regions as _regions_api
from pylivemap._api.geocoding import Geocoder, NominatimGeocoder
from pylivemap._constants import PLAYER_FOCUS_ZOOM
from pylivemap._mqtt import MqttPositionStream
from pylivemap._redact import redact_for_log
from pylivemap._stream import PositionStream, WebSocketPositionStream
from pylivemap._transport import HttpTransport, Transport
from pylivemap.config import LiveMapConfig
from pylivemap.deeplink import DeepLink
from pylivemap.exceptions import LiveMapError
from pylivemap.models.position import EntityPosition, PositionSnapshot
from pylivemap.models.region import Overlay, RegionFeature, RegionPage
from pylivemap.models.search import SearchResult
from pylivemap.search import HybridSearch
from pylivemap.state.events import (
    ConnectionHealth,
    ConnectionHealthChanged,
    DetailViewRequested,
    EventChannel,
    MarkerDelta,
    OverlayReplaced,
    SearchResults,
    ViewEvent,
    ViewportChange,
)
from pylivemap.state.markers import DisplayedMarker, MarkerReconciler
from pylivemap.state.overlay import OverlayStore
from pylivemap.viewport import ViewportController

_logger = logging.getLogger(__name__)


class ViewShell(Protocol):
    """What the UI shell implements to receive view events."""

    def on_marker_delta(self, delta: MarkerDelta) -> None: ...

    def on_overlay_replaced(self, overlay: Overlay) -> None: ...

    def on_search_results(self, results: SearchResults) -> None: ...

    def request_viewport_change(self, change: ViewportChange) -> None: ...

    def on_connection_health_change(self, health: ConnectionHealth) -> None: ...

    def open_region_details(self, request: DetailViewRequested) -> None: ...


def dispatch_event(shell: ViewShell, event: ViewEvent) -> None:
    """Forward one event to the matching shell hook."""
    if isinstance(event, MarkerDelta):
        shell.on_marker_delta(event)
    elif isinstance(event, OverlayReplaced):
        shell.on_overlay_replaced(event.overlay)
    elif isinstance(event, SearchResults):
        shell.on_search_results(event)
    elif isinstance(event, ViewportChange):
        shell.request_viewport_change(event)
    elif isinstance(event, ConnectionHealthChanged):
        shell.on_connection_health_change(event.health)
    elif isinstance(event, DetailViewRequested):
        shell.open_region_details(event)


class LiveMapClient:
    """Owns the live map view state for one mounted view.

    Usage::

        async with LiveMapClient(config) as client:
            async for event in client.events():
                ...

    Entering mounts the view (HTTP session, initial overlay, position
    stream); exiting tears it down (stream released, pending searches
    cancelled, channel closed). Markers, overlay and connection health each
    have exactly one writer inside this object.
    """

    def __init__(
        self,
        config: LiveMapConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        geocoder: Geocoder | None = None,
        shell: ViewShell | None = None,
        stream_enabled: bool = True,
        handle_factory: Callable[[EntityPosition], Any] | None = None,
        on_marker_release: Callable[[DisplayedMarker], None] | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._geocoder = geocoder
        self._shell = shell
        self._stream_enabled = stream_enabled

        self._channel = EventChannel()
        self._health = ConnectionHealth.DISCONNECTED
        self._viewport = ViewportController(self._channel.publish)
        self._reconciler = (
            MarkerReconciler(handle_factory=handle_factory, on_release=on_marker_release)
            if handle_factory is not None
            else MarkerReconciler(on_release=on_marker_release)
        )
        self._overlay_store = OverlayStore(self._fetch_features, on_replaced=self._on_overlay_replaced)
        self._deep_link = DeepLink(
            find_local=self._overlay_store.find,
            fetch_remote=self._fetch_region,
            viewport=self._viewport,
            publish_details=self._channel.publish,
        )
        self._search: HybridSearch | None = None
        self._stream: PositionStream | None = None
        self._pump: asyncio.Task[None] | None = None
        self._last_query_string: str | None = None
        self._unmounting = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> LiveMapClient:
        _logger.debug("Mounting live map view config=%s", redact_for_log(self._config))
        self._unmounting = False
        try:
            await self._mount()
        except BaseException:
            await self.__aexit__(None, None, None)
            raise
        return self

    async def _mount(self) -> None:
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._transport is None:
            self._transport = HttpTransport(
                self._config.base_url,
                self._http_session,
                timeout=self._config.request_timeout,
            )
        if self._geocoder is None:
            geocoder_transport = HttpTransport(
                self._config.geocoder_url,
                self._http_session,
                timeout=self._config.request_timeout,
                user_agent=self._config.geocoder_user_agent,
            )
            self._geocoder = NominatimGeocoder(geocoder_transport, limit=self._config.geocoder_limit)

        self._search = HybridSearch(
            overlay=self._overlay_store.get,
            geocoder=self._geocoder,
            viewport=self._viewport,
            publish=self._channel.publish,
            debounce=self._config.search_debounce,
            limit=self._config.search_limit,
        )

        if self._shell is not None:
            self._pump = asyncio.get_running_loop().create_task(self._pump_events(self._shell))

        if self._config.load_overlay_on_start:
            try:
                await self._overlay_store.refresh()
            except LiveMapError as exc:
                _logger.warning("Initial overlay load failed; continuing with an empty overlay: %s", exc)

        if self._stream_enabled:
            self._stream = self._build_stream()
            self._stream.start()

    async def __aexit__(self, *exc: Any) -> None:
        self._unmounting = True
        if self._search is not None:
            await self._search.close()
        if self._stream is not None:
            await self._stream.stop()
            self._stream = None
        self._reconciler.clear()
        self._channel.close()
        if self._pump is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump
            self._pump = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    def _build_stream(self) -> PositionStream:
        if self._config.position_transport == "mqtt":
            return MqttPositionStream(
                settings=self._config.mqtt,
                on_snapshot=self._on_snapshot,
                on_health=self._on_health,
                reconnect_initial_delay=self._config.reconnect_initial_delay,
                reconnect_max_delay=self._config.reconnect_max_delay,
            )
        assert self._http_session is not None  # noqa: S101
        return WebSocketPositionStream(
            url=self._config.ws_url,
            http_session=self._http_session,
            on_snapshot=self._on_snapshot,
            on_health=self._on_health,
            reconnect_initial_delay=self._config.reconnect_initial_delay,
            reconnect_max_delay=self._config.reconnect_max_delay,
            heartbeat=self._config.ws_heartbeat,
        )

    async def _pump_events(self, shell: ViewShell) -> None:
        async for event in self._channel:
            try:
                dispatch_event(shell, event)
            except Exception:
                _logger.warning("View shell failed to handle %s", type(event).__name__, exc_info=True)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise LiveMapError("Client not initialized. Use 'async with LiveMapClient(...) as client:'")
        return self._transport

    def _require_search(self) -> HybridSearch:
        if self._search is None:
            raise LiveMapError("Client not initialized. Use 'async with LiveMapClient(...) as client:'")
        return self._search

    async def _fetch_features(self) -> list[RegionFeature]:
        return await _regions_api.fetch_region_features(self._require_transport())

    async def _fetch_region(self, region_id: str) -> RegionFeature:
        return await _regions_api.fetch_region(self._require_transport(), region_id)

    def _on_overlay_replaced(self, overlay: Overlay) -> None:
        self._channel.publish(OverlayReplaced(overlay))

    def _on_snapshot(self, snapshot: PositionSnapshot) -> None:
        delta = self._reconciler.apply(snapshot)
        if delta is not None and not delta.is_empty:
            self._channel.publish(delta)

    def _on_health(self, health: ConnectionHealth) -> None:
        self._health = health
        if health == ConnectionHealth.CONNECTED:
            self._reconciler.reset_sequence()
        elif not self._unmounting:
            _logger.warning("Lost connection to the position service; live positions are paused")
        self._channel.publish(ConnectionHealthChanged(health))

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def events(self) -> EventChannel:
        """The single-consumer event channel (not available when a shell is attached)."""
        if self._shell is not None:
            raise LiveMapError("Events are forwarded to the attached shell")
        return self._channel

    @property
    def connection_health(self) -> ConnectionHealth:
        return self._health

    @property
    def overlay(self) -> Overlay:
        return self._overlay_store.get()

    @property
    def markers(self) -> Mapping[str, DisplayedMarker]:
        return self._reconciler.markers

    @property
    def latest_search(self) -> SearchResults | None:
        return self._search.latest if self._search is not None else None

    def players(self) -> list[DisplayedMarker]:
        """Tracked players ordered by display name."""
        return self._reconciler.players()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def fly_to(self, lat: float, lon: float, zoom: float | None = None) -> None:
        if zoom is None:
            self._viewport.fly_to(lat, lon)
        else:
            self._viewport.fly_to(lat, lon, zoom)

    def focus_player(self, identity: str) -> bool:
        """Fly to a tracked player. Returns ``False`` if the player is not displayed."""
        marker = self._reconciler.markers.get(identity)
        if marker is None:
            return False
        lon, lat = marker.last_coordinates
        self._viewport.fly_to(lat, lon, PLAYER_FOCUS_ZOOM)
        return True

    def submit_search(self, raw_query: str) -> asyncio.Task[list[SearchResult] | None]:
        """Debounced search; the task resolves to ``None`` if superseded."""
        return self._require_search().submit(raw_query)

    async def search(self, raw_query: str) -> list[SearchResult] | None:
        return await self._require_search().search(raw_query)

    async def navigate(self, query_string: str) -> RegionFeature | None:
        """Apply the page query string; deep links resolve once per change."""
        if query_string == self._last_query_string:
            return None
        self._last_query_string = query_string
        return await self._deep_link.resolve(query_string)

    async def refresh_overlay(self) -> Overlay:
        """Re-fetch the overlay (call when regions changed elsewhere)."""
        return await self._overlay_store.refresh()

    async def list_regions(
        self,
        *,
        page: int = 1,
        size: int = 25,
        sort: str = "id",
        direction: str = "asc",
    ) -> RegionPage:
        return await _regions_api.fetch_region_page(
            self._require_transport(),
            page=page,
            size=size,
            sort=sort,
            direction=direction,
            bearer=self._config.access_token,
        )

    async def delete_region(self, region_id: str) -> Overlay:
        """Delete a region and refresh the overlay."""
        await _regions_api.delete_region(self._require_transport(), region_id, bearer=self._config.access_token)
        return await self._overlay_store.refresh()
