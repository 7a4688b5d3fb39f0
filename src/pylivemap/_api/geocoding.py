"""External geocoding provider (OpenStreetMap Nominatim)."""

from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError

from pylivemap._transport import Transport
from pylivemap.exceptions import LiveMapApiError
from pylivemap.models.search import GeocodeHit

_logger = logging.getLogger(__name__)


class Geocoder(Protocol):
    async def search(self, text: str) -> list[GeocodeHit]: ...


class NominatimGeocoder:
    """Free-text search against a Nominatim ``/search`` endpoint.

    *transport* must be bound to the search URL itself.
    """

    def __init__(self, transport: Transport, *, limit: int = 10) -> None:
        self._transport = transport
        self._limit = limit

    async def search(self, text: str) -> list[GeocodeHit]:
        payload = await self._transport.get_json(
            "",
            params={"q": text, "format": "jsonv2", "limit": self._limit},
        )
        if not isinstance(payload, list):
            raise LiveMapApiError("Geocoder response is not a list")

        hits: list[GeocodeHit] = []
        for item in payload:
            try:
                hits.append(GeocodeHit.model_validate(item))
            except ValidationError:
                _logger.debug("Dropping malformed geocoder hit")
        return hits
