"""Region service endpoints.

``/api/v1/region/all/geojson`` feeds the overlay, ``/api/v1/region/{id}``
feeds deep links, and the paged listing and deletion back the admin flows.
Identifiers are validated before they are interpolated into a path.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pylivemap._constants import REGION_ALL_ENDPOINT, REGION_ENDPOINT, REGION_GEOJSON_ENDPOINT, UUID_RE
from pylivemap._transport import Transport
from pylivemap.exceptions import LiveMapApiError, LiveMapAuthenticationError, LiveMapValidationError
from pylivemap.ingestion.normalize import safe_int
from pylivemap.ingestion.regions import parse_region_collection, parse_region_document
from pylivemap.models.region import RegionFeature, RegionPage, RegionSummary

_logger = logging.getLogger(__name__)

SORT_FIELDS: frozenset[str] = frozenset({"id", "city", "area", "username", "createdAt"})
SORT_DIRECTIONS: frozenset[str] = frozenset({"asc", "desc"})


def validate_region_id(region_id: str) -> str:
    """Return *region_id* if it is a canonical UUID string, else raise."""
    candidate = region_id.strip() if isinstance(region_id, str) else ""
    if not UUID_RE.fullmatch(candidate):
        raise LiveMapValidationError(f"not a valid region id: {region_id!r}", value=str(region_id))
    return candidate


def region_endpoint(region_id: str) -> str:
    return REGION_ENDPOINT.format(region_id=validate_region_id(region_id))


async def fetch_region_features(transport: Transport) -> list[RegionFeature]:
    """Fetch every region as a geometry collection."""
    payload = await transport.get_json(REGION_GEOJSON_ENDPOINT)
    try:
        return parse_region_collection(payload)
    except ValueError as exc:
        raise LiveMapApiError(str(exc), endpoint=REGION_GEOJSON_ENDPOINT) from exc


async def fetch_region(transport: Transport, region_id: str) -> RegionFeature:
    """Fetch one region by id."""
    endpoint = region_endpoint(region_id)
    payload = await transport.get_json(endpoint)
    feature = parse_region_document(payload)
    if feature is None:
        raise LiveMapApiError(f"Malformed region document from {endpoint}", endpoint=endpoint)
    return feature


async def fetch_region_page(
    transport: Transport,
    *,
    page: int = 1,
    size: int = 25,
    sort: str = "id",
    direction: str = "asc",
    bearer: str | None = None,
) -> RegionPage:
    """Fetch one page of the sorted region listing."""
    if page < 1 or size < 1:
        raise ValueError("page and size must be >= 1")
    if sort not in SORT_FIELDS:
        raise ValueError(f"sort must be one of {sorted(SORT_FIELDS)}, got {sort!r}")
    if direction not in SORT_DIRECTIONS:
        raise ValueError(f"direction must be one of {sorted(SORT_DIRECTIONS)}, got {direction!r}")

    payload = await transport.get_json(
        REGION_ALL_ENDPOINT,
        params={"page": page, "size": size, "sort": sort, "direction": direction},
        bearer=bearer,
    )
    if not isinstance(payload, dict):
        raise LiveMapApiError("Region listing is not an object", endpoint=REGION_ALL_ENDPOINT)

    rows: Any = payload.get("data")
    items: list[RegionSummary] = []
    for row in rows if isinstance(rows, list) else []:
        try:
            items.append(RegionSummary.model_validate(row))
        except ValidationError:
            _logger.debug("Dropping malformed region row")
    return RegionPage(
        items=tuple(items),
        page=page,
        size=size,
        total_pages=safe_int(payload.get("totalPages")) or 0,
    )


async def delete_region(transport: Transport, region_id: str, *, bearer: str | None) -> None:
    """Delete a region. Requires a bearer credential."""
    endpoint = region_endpoint(region_id)
    if not bearer:
        raise LiveMapAuthenticationError("Deleting a region requires an access token", endpoint=endpoint)
    await transport.delete(endpoint, bearer=bearer)
