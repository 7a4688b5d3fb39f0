"""Position push ingestion.

Turns raw push frames into :class:`PositionSnapshot` objects. Malformed
records and placeholder records (empty identity) are dropped here so
consumers only ever see typed, valid positions.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from pylivemap._constants import POSITION_EVENT
from pylivemap.ingestion.normalize import maybe_json, parse_lon_lat, safe_int
from pylivemap.models.position import EntityPosition, PositionSnapshot

_logger = logging.getLogger(__name__)

_SEQUENCE_KEYS = ("tick", "sequence", "seq")


def _sequence_of(*candidates: Any) -> int | None:
    for candidate in candidates:
        if not isinstance(candidate, dict):
            continue
        for key in _SEQUENCE_KEYS:
            value = safe_int(candidate.get(key))
            if value is not None:
                return value
    return None


def parse_position_feature(feature: Any) -> EntityPosition | None:
    """Parse one GeoJSON point feature; ``None`` if it is malformed or a placeholder."""
    if not isinstance(feature, dict):
        return None
    properties = feature.get("properties")
    geometry = feature.get("geometry")
    if not isinstance(properties, dict) or not isinstance(geometry, dict):
        return None

    identity = properties.get("uuid", properties.get("identity"))
    if not isinstance(identity, str) or not identity.strip():
        return None

    coordinates = parse_lon_lat(geometry.get("coordinates"))
    if coordinates is None:
        return None

    name = properties.get("username", properties.get("displayName", ""))
    try:
        return EntityPosition(
            identity=identity,
            display_name=name if isinstance(name, str) else str(name),
            coordinates=coordinates,
        )
    except ValidationError:
        return None


def parse_position_snapshot(payload: Any, *, sequence: int | None = None) -> PositionSnapshot | None:
    """Parse a FeatureCollection (dict or JSON string) into a snapshot.

    Returns ``None`` when *payload* is not a FeatureCollection at all.
    """
    collection = maybe_json(payload)
    if not isinstance(collection, dict):
        return None
    features = collection.get("features")
    if features is None:
        features = []
    if not isinstance(features, list):
        return None

    positions: list[EntityPosition] = []
    dropped = 0
    for feature in features:
        position = parse_position_feature(feature)
        if position is None:
            dropped += 1
            continue
        positions.append(position)

    if dropped:
        _logger.debug("Dropped %d invalid position record(s)", dropped)

    return PositionSnapshot(
        positions=tuple(positions),
        sequence=sequence if sequence is not None else _sequence_of(collection),
    )


def parse_position_message(message: Any) -> PositionSnapshot | None:
    """Parse one push frame.

    Accepted shapes:

    * ``{"event": "playerLocations", "data": <FeatureCollection | str>, "tick": n}``
    * a bare FeatureCollection (optionally with ``tick``)

    Frames for other events return ``None``.
    """
    decoded = maybe_json(message)
    if not isinstance(decoded, dict):
        return None

    if "event" in decoded:
        if decoded.get("event") != POSITION_EVENT:
            return None
        data = maybe_json(decoded.get("data"))
        return parse_position_snapshot(data, sequence=_sequence_of(decoded, data))

    if decoded.get("type") == "FeatureCollection" or "features" in decoded:
        return parse_position_snapshot(decoded)
    return None
