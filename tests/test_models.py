from __future__ import annotations

import json
from datetime import UTC, datetime
from uuid import UUID

import pytest
from pydantic import ValidationError

from pylivemap.ingestion.positions import parse_position_message, parse_position_snapshot
from pylivemap.ingestion.regions import parse_region_collection, parse_region_document, parse_region_feature
from pylivemap.models import (
    EntityPosition,
    GeocodeHit,
    RegionFeature,
    RegionKind,
    RegionSummary,
    close_ring,
    parse_timestamp,
    ring_centroid,
)

REGION_ID = "550e8400-e29b-41d4-a716-446655440000"


def _point(uuid: str, lon: float, lat: float, name: str = "Steve") -> dict:
    return {
        "type": "Feature",
        "properties": {"uuid": uuid, "username": name},
        "geometry": {"type": "Point", "coordinates": [lon, lat]},
    }


class TestRing:
    def test_open_ring_is_closed(self) -> None:
        assert close_ring([(0, 0), (0, 1), (1, 1), (1, 0)]) == [(0, 0), (0, 1), (1, 1), (1, 0), (0, 0)]

    def test_closed_ring_is_unchanged(self) -> None:
        ring = [(0.0, 0.0), (0.0, 1.0), (1.0, 1.0), (0.0, 0.0)]
        assert close_ring(ring) == ring

    def test_square_centroid(self) -> None:
        lon, lat = ring_centroid([(0, 0), (0, 1), (1, 1), (1, 0)])
        assert lon == pytest.approx(0.5)
        assert lat == pytest.approx(0.5)

    def test_degenerate_ring_falls_back_to_vertex_mean(self) -> None:
        lon, lat = ring_centroid([(2, 2), (4, 4)])
        assert (lon, lat) == (pytest.approx(3.0), pytest.approx(3.0))

    def test_single_point(self) -> None:
        assert ring_centroid([(7.5, -3.0)]) == (pytest.approx(7.5), pytest.approx(-3.0))

    def test_empty_ring_rejected_by_feature(self) -> None:
        with pytest.raises(ValidationError):
            RegionFeature(id=UUID(REGION_ID), ring=())


class TestRegionKind:
    def test_known_values_case_insensitive(self) -> None:
        assert RegionKind("EVENT") is RegionKind.EVENT
        assert RegionKind("plot") is RegionKind.PLOT

    def test_unknown_value_maps_to_other(self) -> None:
        assert RegionKind("castle") is RegionKind.OTHER


class TestPositions:
    def test_envelope_with_tick(self) -> None:
        frame = json.dumps(
            {
                "event": "playerLocations",
                "tick": 42,
                "data": {"type": "FeatureCollection", "features": [_point("u-1", 10.0, 20.0)]},
            }
        )
        snapshot = parse_position_message(frame)
        assert snapshot is not None
        assert snapshot.sequence == 42
        assert snapshot.positions == (EntityPosition(identity="u-1", display_name="Steve", coordinates=(10.0, 20.0)),)

    def test_envelope_with_string_data(self) -> None:
        data = json.dumps({"type": "FeatureCollection", "features": [_point("u-1", 1, 2)]})
        snapshot = parse_position_message({"event": "playerLocations", "data": data})
        assert snapshot is not None
        assert len(snapshot) == 1

    def test_bare_feature_collection(self) -> None:
        snapshot = parse_position_message({"type": "FeatureCollection", "features": []})
        assert snapshot is not None
        assert len(snapshot) == 0

    def test_other_events_are_ignored(self) -> None:
        assert parse_position_message({"event": "chat", "data": {}}) is None
        assert parse_position_message("not json") is None

    def test_placeholder_and_malformed_records_dropped(self) -> None:
        payload = {
            "type": "FeatureCollection",
            "features": [
                _point("", 1, 1),
                _point("   ", 1, 1),
                _point("u-ok", 1, 1),
                _point("u-far", 500, 1),
                {"properties": {"uuid": "u-nogeo"}},
                "garbage",
            ],
        }
        snapshot = parse_position_snapshot(payload)
        assert snapshot is not None
        assert [p.identity for p in snapshot.positions] == ["u-ok"]

    def test_duplicate_identity_keeps_last(self) -> None:
        snapshot = parse_position_snapshot(
            {"features": [_point("u-1", 1, 1), _point("u-1", 2, 2)]},
        )
        assert snapshot is not None
        assert snapshot.by_identity()["u-1"].coordinates == (2, 2)

    def test_avatar_url(self) -> None:
        position = EntityPosition(identity="abc", coordinates=(0, 0))
        assert position.avatar_url == "https://mc-heads.net/avatar/abc"

    def test_coordinates_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            EntityPosition(identity="abc", coordinates=(0, 95))


class TestRegions:
    def _feature(self, **props: object) -> dict:
        properties = {
            "id": REGION_ID,
            "regionType": "normal",
            "username": "Alex",
            "userUUID": "owner-1",
            "city": "Springfield",
            "createdAt": "2024-05-01T12:00:00Z",
        }
        properties.update(props)
        return {
            "type": "Feature",
            "properties": properties,
            "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [0, 1], [1, 1], [1, 0]]]},
        }

    def test_feature_parsed(self) -> None:
        feature = parse_region_feature(self._feature())
        assert feature is not None
        assert str(feature.id) == REGION_ID
        assert feature.kind is RegionKind.NORMAL
        assert feature.owner_name == "Alex"
        assert feature.owner_uuid == "owner-1"
        assert feature.label == "Springfield"
        assert feature.created_at == datetime(2024, 5, 1, 12, tzinfo=UTC)
        assert feature.closed_ring()[-1] == (0, 0)

    def test_osm_display_name_preferred(self) -> None:
        feature = parse_region_feature(self._feature(osmDisplayName="Springfield, USA"))
        assert feature is not None
        assert feature.name == "Springfield, USA"

    def test_multipolygon_uses_first_outer_ring(self) -> None:
        raw = self._feature()
        raw["geometry"] = {"type": "MultiPolygon", "coordinates": [[[[5, 5], [5, 6], [6, 6]]], [[[9, 9]]]]}
        feature = parse_region_feature(raw)
        assert feature is not None
        assert feature.ring == ((5, 5), (5, 6), (6, 6))

    def test_collection_drops_malformed_features(self) -> None:
        bad_id = self._feature(id="nope")
        no_geometry = self._feature()
        no_geometry["geometry"] = None
        regions = parse_region_collection({"type": "FeatureCollection", "features": [self._feature(), bad_id, no_geometry]})
        assert len(regions) == 1

    def test_collection_requires_features_list(self) -> None:
        with pytest.raises(ValueError):
            parse_region_collection({"type": "FeatureCollection"})
        with pytest.raises(ValueError):
            parse_region_collection([1, 2, 3])

    def test_document_boundary_is_lat_first(self) -> None:
        document = {
            "id": REGION_ID,
            "username": "Alex",
            "regionType": "event",
            "data": json.dumps([[10.0, 20.0], [11.0, 20.0], [11.0, 21.0]]),
        }
        feature = parse_region_document(document)
        assert feature is not None
        assert feature.kind is RegionKind.EVENT
        assert feature.ring == ((20.0, 10.0), (20.0, 11.0), (21.0, 11.0))

    def test_document_with_malformed_boundary(self) -> None:
        assert parse_region_document({"id": REGION_ID, "data": "not-json"}) is None


class TestPayloadModels:
    def test_region_summary_camel_case(self) -> None:
        summary = RegionSummary.model_validate(
            {"id": REGION_ID, "city": "", "area": 12.5, "username": "Alex", "userUUID": "owner-1", "createdAt": 1714564800000}
        )
        assert summary.city is None
        assert summary.user_uuid == "owner-1"
        assert summary.created_at == datetime(2024, 5, 1, 12, tzinfo=UTC)
        assert summary.raw["city"] == ""

    def test_geocode_hit_parses_string_coordinates(self) -> None:
        hit = GeocodeHit.model_validate({"display_name": "Paris, France", "lat": "48.85", "lon": "2.35"})
        assert hit.name == "Paris, France"
        assert hit.lat == pytest.approx(48.85)
        assert hit.lon == pytest.approx(2.35)

    def test_geocode_hit_rejects_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            GeocodeHit.model_validate({"display_name": "x", "lat": "91", "lon": "0"})

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (1714564800, datetime(2024, 5, 1, 12, tzinfo=UTC)),
            (1714564800000, datetime(2024, 5, 1, 12, tzinfo=UTC)),
            ("2024-05-01T12:00:00", datetime(2024, 5, 1, 12, tzinfo=UTC)),
            (None, None),
            (0, None),
        ],
    )
    def test_parse_timestamp(self, value: object, expected: datetime | None) -> None:
        assert parse_timestamp(value) == expected
