"""Region overlay models and ring geometry."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from datetime import UTC, datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from shapely.geometry import MultiPoint, Polygon

from pylivemap.models._base import LiveMapBaseModel, Timestamp

LonLat = tuple[float, float]


class RegionKind(enum.StrEnum):
    """Region category. Unmapped values resolve to ``OTHER``."""

    NORMAL = "normal"
    EVENT = "event"
    PLOT = "plot"
    OTHER = "other"

    @classmethod
    def _missing_(cls, value: object) -> RegionKind:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.OTHER


def close_ring(ring: Sequence[LonLat]) -> list[LonLat]:
    """Return *ring* with its first point repeated at the end, if not already closed."""
    points = [(float(lon), float(lat)) for lon, lat in ring]
    if points and points[0] != points[-1]:
        points.append(points[0])
    return points


def ring_centroid(ring: Sequence[LonLat]) -> LonLat:
    """Center of mass of the polygon bounded by *ring*, as ``(lon, lat)``.

    The ring is closed first. Degenerate rings (fewer than three distinct
    points, or zero area) fall back to the mean of their vertices.
    """
    closed = close_ring(ring)
    if not closed:
        raise ValueError("cannot compute the centroid of an empty ring")
    if len(closed) >= 4:
        polygon = Polygon(closed)
        if polygon.area > 0:
            point = polygon.centroid
            return point.x, point.y
    point = MultiPoint(closed[:-1] or closed).centroid
    return point.x, point.y


class RegionFeature(BaseModel):
    """One labeled polygon of the overlay.

    Parameters
    ----------
    id : UUID
        Region identifier.
    kind : RegionKind
        Category used for styling.
    ring : tuple of (lon, lat)
        Outer boundary as received; may or may not be closed.
    owner_name : str
        Display name of the owning user.
    owner_uuid : str or None
        Identity of the owning user.
    name : str or None
        Place name (city / OSM display name) when known.
    created_at : datetime or None
        Creation time.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: UUID
    kind: RegionKind = RegionKind.NORMAL
    ring: tuple[LonLat, ...]
    owner_name: str = ""
    owner_uuid: str | None = None
    name: str | None = None
    created_at: datetime | None = None

    @field_validator("ring")
    @classmethod
    def _non_empty(cls, value: tuple[LonLat, ...]) -> tuple[LonLat, ...]:
        if not value:
            raise ValueError("ring must contain at least one point")
        return value

    def closed_ring(self) -> list[LonLat]:
        return close_ring(self.ring)

    def centroid(self) -> LonLat:
        """Center of mass as ``(lon, lat)``."""
        return ring_centroid(self.ring)

    @property
    def label(self) -> str:
        return self.name or f"Region of {self.owner_name or 'unknown'}"


class Overlay(BaseModel):
    """The full set of rendered regions. Replaced wholesale, never patched."""

    model_config = ConfigDict(frozen=True)

    features: tuple[RegionFeature, ...] = ()
    revision: int = 0
    fetched_at: datetime | None = None

    def find(self, region_id: UUID | str) -> RegionFeature | None:
        wanted = str(region_id).lower()
        for feature in self.features:
            if str(feature.id) == wanted:
                return feature
        return None

    def __len__(self) -> int:
        return len(self.features)


EMPTY_OVERLAY = Overlay(features=(), revision=0, fetched_at=None)


class RegionSummary(LiveMapBaseModel):
    """Row of the paged region listing (``GET /api/v1/region/all``)."""

    id: UUID
    city: str | None = None
    area: float | None = None
    username: str | None = None
    user_uuid: str | None = Field(default=None, validation_alias=AliasChoices("userUUID", "userUuid", "user_uuid"))
    created_at: Timestamp = None


class RegionPage(BaseModel):
    """One page of :class:`RegionSummary` rows."""

    model_config = ConfigDict(frozen=True)

    items: tuple[RegionSummary, ...] = ()
    page: int = 1
    size: int = 25
    total_pages: int = 0
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
