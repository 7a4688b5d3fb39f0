"""Search result models."""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass, field

from pydantic import AliasChoices, Field, field_validator

from pylivemap.ingestion.normalize import safe_float
from pylivemap.models._base import LiveMapBaseModel


class ResultSource(enum.StrEnum):
    LOCAL = "local"
    EXTERNAL = "external"


def _noop() -> None:
    return None


@dataclass(frozen=True, slots=True)
class SearchResult:
    """One entry of the merged search list.

    ``trigger`` performs the result's action (a camera transition); it is
    excluded from equality so results compare by content.
    """

    title: str
    description: str
    coordinates: tuple[float, float]
    source: ResultSource
    trigger: Callable[[], None] = field(default=_noop, compare=False, repr=False)

    @property
    def lon(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    def activate(self) -> None:
        self.trigger()


class GeocodeHit(LiveMapBaseModel):
    """One hit from the external geocoding provider (Nominatim ``jsonv2``)."""

    name: str = Field(validation_alias=AliasChoices("display_name", "displayName", "name"))
    lat: float
    lon: float = Field(validation_alias=AliasChoices("lon", "lng"))
    category: str | None = None
    type: str | None = None

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _coerce_float(cls, value: object) -> float | None:
        return safe_float(value)

    @field_validator("lat")
    @classmethod
    def _lat_range(cls, value: float) -> float:
        if not -90.0 <= value <= 90.0:
            raise ValueError("latitude out of range")
        return value

    @field_validator("lon")
    @classmethod
    def _lon_range(cls, value: float) -> float:
        if not -180.0 <= value <= 180.0:
            raise ValueError("longitude out of range")
        return value
