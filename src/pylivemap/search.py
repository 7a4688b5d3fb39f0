"""Debounced hybrid search over local regions and an external geocoder.

Each call to :meth:`HybridSearch.submit` is numbered. After the debounce
delay a call only proceeds if no newer call was made in the meantime, and
its merged results are only published if it is still the newest call when
both lookups have settled. Results are therefore ordered by issuance, never
by completion: a slow, superseded query can finish last without ever
overwriting a newer result set.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from pylivemap._api.geocoding import Geocoder
from pylivemap._constants import COORDINATE_PAIR_RE, FOCUS_ZOOM, SEARCH_DEBOUNCE_SECONDS, SEARCH_RESULT_LIMIT
from pylivemap.exceptions import SearchSourceError
from pylivemap.models.region import Overlay, RegionFeature
from pylivemap.models.search import ResultSource, SearchResult
from pylivemap.state.events import SearchResults
from pylivemap.viewport import ViewportController

_logger = logging.getLogger(__name__)


def parse_coordinate_query(raw_query: str) -> tuple[float, float] | None:
    """Return ``(lat, lon)`` if *raw_query* is a strict ``lat,lon`` pair."""
    query = raw_query.strip()
    if not COORDINATE_PAIR_RE.fullmatch(query):
        return None
    lat_text, lon_text = query.split(",", 1)
    return float(lat_text.strip()), float(lon_text.strip())


def _region_matches(feature: RegionFeature, needle: str) -> tuple[bool, bool]:
    """``(matched, exact)`` for a case-insensitive search on name, owner and id."""
    fields = [feature.name or "", feature.owner_name, str(feature.id)]
    folded = [field.casefold() for field in fields if field]
    exact = any(field == needle for field in folded)
    return exact or any(needle in field for field in folded), exact


class HybridSearch:
    """Debounced two-source search publishing one ordered result set per query."""

    def __init__(
        self,
        *,
        overlay: Callable[[], Overlay],
        geocoder: Geocoder,
        viewport: ViewportController,
        publish: Callable[[SearchResults], Any],
        debounce: float = SEARCH_DEBOUNCE_SECONDS,
        limit: int = SEARCH_RESULT_LIMIT,
        focus_zoom: float = FOCUS_ZOOM,
    ) -> None:
        self._overlay = overlay
        self._geocoder = geocoder
        self._viewport = viewport
        self._publish = publish
        self._debounce = debounce
        self._limit = limit
        self._focus_zoom = focus_zoom
        self._generation = 0
        self._tasks: set[asyncio.Task[list[SearchResult] | None]] = set()
        self._latest: SearchResults | None = None
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> SearchResults | None:
        """The active (most recently published) result set."""
        return self._latest

    def submit(self, raw_query: str) -> asyncio.Task[list[SearchResult] | None]:
        """Register a keystroke-equivalent query change.

        Supersedes every earlier call. The returned task resolves to the
        published results, or ``None`` if this call was superseded.
        """
        if self._closed:
            raise RuntimeError("HybridSearch is closed")
        self._generation += 1
        task = asyncio.get_running_loop().create_task(self._run(self._generation, raw_query))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def search(self, raw_query: str) -> list[SearchResult] | None:
        return await self.submit(raw_query)

    async def close(self) -> None:
        """Cancel pending work; nothing is published afterwards."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    async def _run(self, generation: int, raw_query: str) -> list[SearchResult] | None:
        if self._debounce > 0:
            await asyncio.sleep(self._debounce)
        if not self._is_current(generation):
            return None

        query = raw_query.strip()
        failed: frozenset[str] = frozenset()
        if not query:
            results: list[SearchResult] = []
        elif (coordinates := parse_coordinate_query(query)) is not None:
            results = [self._coordinate_result(query, *coordinates)]
        else:
            results, failed = await self._fan_out(query)

        if not self._is_current(generation):
            _logger.debug("Discarding results of superseded query generation=%d latest=%d", generation, self._generation)
            return None

        published = SearchResults(
            query=raw_query,
            results=tuple(results),
            generation=generation,
            failed_sources=failed,
        )
        self._latest = published
        self._publish(published)
        return results

    async def _fan_out(self, query: str) -> tuple[list[SearchResult], frozenset[str]]:
        local, external = await asyncio.gather(
            self._lookup_local(query),
            self._lookup_external(query),
            return_exceptions=True,
        )

        merged: list[SearchResult] = []
        failed: set[str] = set()
        for source, outcome in ((ResultSource.LOCAL, local), (ResultSource.EXTERNAL, external)):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                error = SearchSourceError(f"{source} lookup failed: {outcome!r}", source=source.value)
                _logger.warning("Partial search failure for %r: %s", query, error)
                failed.add(source.value)
                continue
            merged.extend(outcome)
        return merged[: self._limit], frozenset(failed)

    def _fly(self, lat: float, lon: float) -> Callable[[], None]:
        def trigger() -> None:
            self._viewport.fly_to(lat, lon, self._focus_zoom)

        return trigger

    def _coordinate_result(self, query: str, lat: float, lon: float) -> SearchResult:
        return SearchResult(
            title="Go to coordinates",
            description=query,
            coordinates=(lon, lat),
            source=ResultSource.LOCAL,
            trigger=self._fly(lat, lon),
        )

    async def _lookup_local(self, query: str) -> list[SearchResult]:
        needle = query.casefold()
        exact: list[SearchResult] = []
        partial: list[SearchResult] = []
        for feature in self._overlay().features:
            matched, is_exact = _region_matches(feature, needle)
            if not matched:
                continue
            lon, lat = feature.centroid()
            result = SearchResult(
                title=feature.label,
                description=f"{feature.kind.value.capitalize()} region by {feature.owner_name or 'unknown'}",
                coordinates=(lon, lat),
                source=ResultSource.LOCAL,
                trigger=self._fly(lat, lon),
            )
            (exact if is_exact else partial).append(result)
        return exact + partial

    async def _lookup_external(self, query: str) -> list[SearchResult]:
        hits = await self._geocoder.search(query)
        return [
            SearchResult(
                title=hit.name,
                description="OpenStreetMap",
                coordinates=(hit.lon, hit.lat),
                source=ResultSource.EXTERNAL,
                trigger=self._fly(hit.lat, hit.lon),
            )
            for hit in hits
        ]
