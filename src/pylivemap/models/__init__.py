"""Data models for live map positions, regions and search results."""

from pylivemap.models._base import LiveMapBaseModel, Timestamp, parse_timestamp
from pylivemap.models.position import EntityPosition, PositionSnapshot
from pylivemap.models.region import (
    EMPTY_OVERLAY,
    Overlay,
    RegionFeature,
    RegionKind,
    RegionPage,
    RegionSummary,
    close_ring,
    ring_centroid,
)
from pylivemap.models.search import GeocodeHit, ResultSource, SearchResult

__all__ = [
    "EMPTY_OVERLAY",
    "EntityPosition",
    "GeocodeHit",
    "LiveMapBaseModel",
    "Overlay",
    "PositionSnapshot",
    "RegionFeature",
    "RegionKind",
    "RegionPage",
    "RegionSummary",
    "ResultSource",
    "SearchResult",
    "Timestamp",
    "close_ring",
    "parse_timestamp",
    "ring_centroid",
]
