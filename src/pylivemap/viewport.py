"""Camera transitions."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any

from pylivemap._constants import FOCUS_ZOOM
from pylivemap.ingestion.normalize import safe_float
from pylivemap.state.events import ViewportChange

_logger = logging.getLogger(__name__)

MIN_ZOOM = 0.0
MAX_ZOOM = 24.0


def _fixed(value: float) -> str:
    text = f"{value:.7f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def format_coordinates(lat: float, lon: float) -> str:
    """Render coordinates the way the map's "copy coordinates" action does.

    Fixed-point with at most seven decimals, so the text always parses back
    as a coordinate search.
    """
    return f"{_fixed(lat)}, {_fixed(lon)}"


class ViewportController:
    """Issues fire-and-forget camera transitions.

    Invalid requests are logged and dropped; they never raise into the
    caller's flow.
    """

    def __init__(self, publish: Callable[[ViewportChange], Any]) -> None:
        self._publish = publish
        self._last: ViewportChange | None = None

    @property
    def last(self) -> ViewportChange | None:
        return self._last

    def fly_to(self, lat: Any, lon: Any, zoom: Any = FOCUS_ZOOM) -> None:
        lat_f = safe_float(lat)
        lon_f = safe_float(lon)
        zoom_f = safe_float(zoom)
        if lat_f is None or lon_f is None or zoom_f is None:
            _logger.warning("Ignoring camera transition with non-numeric input lat=%r lon=%r zoom=%r", lat, lon, zoom)
            return
        if not -90.0 <= lat_f <= 90.0 or not -180.0 <= lon_f <= 180.0:
            _logger.warning("Ignoring camera transition to out-of-range coordinates lat=%s lon=%s", lat_f, lon_f)
            return
        if not math.isfinite(zoom_f):
            _logger.warning("Ignoring camera transition with invalid zoom=%r", zoom)
            return

        change = ViewportChange(lat=lat_f, lon=lon_f, zoom=min(max(zoom_f, MIN_ZOOM), MAX_ZOOM))
        self._last = change
        try:
            self._publish(change)
        except Exception:
            _logger.warning("Camera transition could not be published", exc_info=True)
