"""Normalization helpers.

Centralizes defensive parsing of loosely-typed push and REST payloads.
"""

from __future__ import annotations

import json
import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def maybe_json(value: Any) -> Any:
    """Decode *value* when it is a JSON document embedded in a string.

    The push service and the region endpoint both ship nested JSON as strings
    (e.g. ``"data": "[[1,2],[3,4]]"``). Non-strings and undecodable strings are
    returned unchanged.
    """
    if isinstance(value, (bytes, bytearray)):
        value = value.decode("utf-8", errors="replace")
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped or stripped[0] not in "[{":
        return value
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        return value


def parse_lon_lat(value: Any) -> tuple[float, float] | None:
    """Parse a ``[lon, lat]`` pair, rejecting anything out of range."""
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    lon = safe_float(value[0])
    lat = safe_float(value[1])
    if lon is None or lat is None:
        return None
    if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
        return None
    return lon, lat


def normalize_timestamp_seconds(value: Any) -> float | None:
    """Normalize API timestamps to epoch seconds.

    - Empty/missing -> None
    - <= 0 -> None
    - Milliseconds (> 1e11) -> seconds
    """

    ts = safe_float(value)
    if ts is None or ts <= 0:
        return None
    if ts > 1e11:
        ts /= 1000.0
    return ts
