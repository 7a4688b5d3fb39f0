"""Region overlay store.

Single writer (``refresh``), many readers (``get``). The overlay is always
replaced wholesale; there is no incremental update path.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from pylivemap.models.region import EMPTY_OVERLAY, Overlay, RegionFeature

_logger = logging.getLogger(__name__)

FeatureFetcher = Callable[[], Awaitable[list[RegionFeature]]]


class OverlayStore:
    """Holds the current region overlay.

    Refreshes are numbered when issued. A refresh that completes after a
    more recently issued one has already been applied is discarded, so an
    older fetch can never overwrite newer data.
    """

    def __init__(
        self,
        fetch: FeatureFetcher,
        *,
        on_replaced: Callable[[Overlay], None] | None = None,
    ) -> None:
        self._fetch = fetch
        self._on_replaced = on_replaced
        self._overlay: Overlay = EMPTY_OVERLAY
        self._issued = 0
        self._applied = 0

    def get(self) -> Overlay:
        return self._overlay

    def find(self, region_id: str) -> RegionFeature | None:
        return self._overlay.find(region_id)

    async def refresh(self) -> Overlay:
        """Fetch all regions and replace the overlay.

        Fetch errors propagate and leave the current overlay untouched.
        Returns the overlay current after this call (which is a newer one if
        this fetch was superseded).
        """
        self._issued += 1
        ticket = self._issued
        features = await self._fetch()

        if ticket < self._applied:
            _logger.debug("Discarding superseded overlay refresh ticket=%d applied=%d", ticket, self._applied)
            return self._overlay

        self._applied = ticket
        self._overlay = Overlay(
            features=tuple(features),
            revision=self._overlay.revision + 1,
            fetched_at=datetime.now(UTC),
        )
        _logger.debug("Overlay replaced revision=%d regions=%d", self._overlay.revision, len(self._overlay))
        if self._on_replaced is not None:
            self._on_replaced(self._overlay)
        return self._overlay
