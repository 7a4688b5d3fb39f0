"""Entity position models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from pylivemap._constants import AVATAR_URL


class EntityPosition(BaseModel):
    """Current position of one tracked entity (player).

    Parameters
    ----------
    identity : str
        Opaque identity, stable across snapshots.
    display_name : str
        Human readable name.
    coordinates : tuple[float, float]
        ``(lon, lat)`` in degrees.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    identity: str = Field(validation_alias=AliasChoices("identity", "uuid"))
    display_name: str = Field(default="", validation_alias=AliasChoices("display_name", "displayName", "username"))
    coordinates: tuple[float, float]

    @field_validator("identity", "display_name", mode="before")
    @classmethod
    def _strip(cls, value: object) -> object:
        return value.strip() if isinstance(value, str) else value

    @field_validator("coordinates")
    @classmethod
    def _check_range(cls, value: tuple[float, float]) -> tuple[float, float]:
        lon, lat = value
        if not -180.0 <= lon <= 180.0 or not -90.0 <= lat <= 90.0:
            raise ValueError(f"coordinates out of range: {value}")
        return value

    @property
    def lon(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]

    @property
    def avatar_url(self) -> str:
        return AVATAR_URL.format(identity=self.identity)


class PositionSnapshot(BaseModel):
    """Complete set of tracked positions at one tick.

    Always a full replacement of the previous snapshot, never a delta.
    ``sequence`` is the server tick when the push carries one.
    """

    model_config = ConfigDict(frozen=True)

    positions: tuple[EntityPosition, ...] = ()
    sequence: int | None = None
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    def by_identity(self) -> dict[str, EntityPosition]:
        """Identity-keyed view; a repeated identity keeps its last occurrence."""
        return {position.identity: position for position in self.positions}

    def __len__(self) -> int:
        return len(self.positions)
