"""Region payload ingestion.

Parses the region service's GeoJSON collection and single-region documents
into :class:`RegionFeature` objects, dropping malformed entries.
"""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from pylivemap.ingestion.normalize import maybe_json, parse_lon_lat, safe_str
from pylivemap.models._base import parse_timestamp
from pylivemap.models.region import LonLat, RegionFeature, RegionKind

_logger = logging.getLogger(__name__)


def _parse_uuid(value: Any) -> UUID | None:
    text = safe_str(value)
    if text is None:
        return None
    try:
        return UUID(text)
    except ValueError:
        return None


def _parse_ring(points: Any, *, lat_first: bool = False) -> tuple[LonLat, ...] | None:
    if not isinstance(points, list) or not points:
        return None
    ring: list[LonLat] = []
    for point in points:
        if lat_first and isinstance(point, (list, tuple)) and len(point) >= 2:
            point = [point[1], point[0]]
        parsed = parse_lon_lat(point)
        if parsed is None:
            return None
        ring.append(parsed)
    return tuple(ring)


def _outer_ring(geometry: Any) -> tuple[LonLat, ...] | None:
    if not isinstance(geometry, dict):
        return None
    kind = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if not isinstance(coordinates, list) or not coordinates:
        return None
    if kind == "Polygon":
        return _parse_ring(coordinates[0])
    if kind == "MultiPolygon" and isinstance(coordinates[0], list) and coordinates[0]:
        return _parse_ring(coordinates[0][0])
    return None


def _build_feature(region_id: UUID, ring: tuple[LonLat, ...], props: dict[str, Any]) -> RegionFeature | None:
    try:
        return RegionFeature(
            id=region_id,
            kind=RegionKind(props.get("regionType") or props.get("type") or RegionKind.NORMAL.value),
            ring=ring,
            owner_name=safe_str(props.get("username")) or "",
            owner_uuid=safe_str(props.get("userUUID") or props.get("userUuid")),
            name=safe_str(props.get("osmDisplayName") or props.get("city") or props.get("name")),
            created_at=parse_timestamp(props.get("createdAt")),
        )
    except (ValidationError, ValueError):
        return None


def parse_region_feature(feature: Any) -> RegionFeature | None:
    """Parse one GeoJSON polygon feature of the overlay collection."""
    if not isinstance(feature, dict):
        return None
    props = feature.get("properties")
    if not isinstance(props, dict):
        return None
    region_id = _parse_uuid(props.get("id", feature.get("id")))
    if region_id is None:
        return None
    ring = _outer_ring(feature.get("geometry"))
    if ring is None:
        return None
    return _build_feature(region_id, ring, props)


def parse_region_collection(payload: Any) -> list[RegionFeature]:
    """Parse the ``/region/all/geojson`` FeatureCollection."""
    collection = maybe_json(payload)
    if not isinstance(collection, dict):
        raise ValueError("region collection is not a JSON object")
    features = collection.get("features")
    if not isinstance(features, list):
        raise ValueError("region collection has no 'features' list")

    parsed: list[RegionFeature] = []
    for feature in features:
        region = parse_region_feature(feature)
        if region is None:
            _logger.debug("Dropping malformed region feature")
            continue
        parsed.append(region)
    return parsed


def parse_region_document(payload: Any) -> RegionFeature | None:
    """Parse a ``/region/{id}`` document.

    The boundary is stored in ``data`` as a JSON string of ``[lat, lon]``
    pairs; it is converted to ``(lon, lat)`` here.
    """
    document = maybe_json(payload)
    if not isinstance(document, dict):
        return None
    region_id = _parse_uuid(document.get("id"))
    if region_id is None:
        return None
    ring = _parse_ring(maybe_json(document.get("data")), lat_first=True)
    if ring is None:
        return None
    return _build_feature(region_id, ring, document)
