"""Deep-link resolution (``?region=<uuid>&details=true``)."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import parse_qs

from pylivemap._api.regions import validate_region_id
from pylivemap._constants import FOCUS_ZOOM
from pylivemap.exceptions import LiveMapError, LiveMapValidationError
from pylivemap.models.region import RegionFeature
from pylivemap.state.events import DetailViewRequested
from pylivemap.viewport import ViewportController

_logger = logging.getLogger(__name__)

RegionFetcher = Callable[[str], Awaitable[RegionFeature]]


def parse_deep_link(query_string: str) -> tuple[str | None, bool]:
    """Extract ``(region, details)`` from a raw query string (leading ``?`` allowed)."""
    params = parse_qs(query_string.lstrip("?"), keep_blank_values=True)
    regions = params.get("region")
    region = regions[0] if regions else None
    details = params.get("details", [""])[0] == "true"
    return region, details


class DeepLink:
    """Resolves a deep link to a region and drives the camera there.

    Identifiers are checked against the UUID grammar before any lookup;
    anything else is logged and dropped.
    """

    def __init__(
        self,
        *,
        find_local: Callable[[str], RegionFeature | None],
        fetch_remote: RegionFetcher,
        viewport: ViewportController,
        publish_details: Callable[[DetailViewRequested], Any],
        zoom: float = FOCUS_ZOOM,
    ) -> None:
        self._find_local = find_local
        self._fetch_remote = fetch_remote
        self._viewport = viewport
        self._publish_details = publish_details
        self._zoom = zoom

    async def resolve(self, query_string: str) -> RegionFeature | None:
        candidate, details = parse_deep_link(query_string)
        if candidate is None:
            return None

        try:
            region_id = validate_region_id(candidate)
        except LiveMapValidationError:
            _logger.warning(
                "Rejected region deep link %r: not a valid UUID (possible path traversal or injection attempt)",
                candidate[:64],
            )
            return None

        feature = self._find_local(region_id)
        if feature is None:
            try:
                feature = await self._fetch_remote(region_id)
            except LiveMapError as exc:
                _logger.warning("Region deep link %s could not be resolved: %s", region_id, exc)
                return None

        lon, lat = feature.centroid()
        self._viewport.fly_to(lat, lon, self._zoom)

        if details:
            self._publish_details(
                DetailViewRequested(
                    region_id=str(feature.id),
                    owner_uuid=feature.owner_uuid,
                    owner_name=feature.owner_name,
                )
            )
        return feature
