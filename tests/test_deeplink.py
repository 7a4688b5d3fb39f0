from __future__ import annotations

import logging
from uuid import UUID

import pytest

from pylivemap.deeplink import DeepLink, parse_deep_link
from pylivemap.exceptions import LiveMapTransportError
from pylivemap.models.region import RegionFeature, RegionKind
from pylivemap.state.events import DetailViewRequested, ViewportChange
from pylivemap.viewport import ViewportController

REGION_ID = "550e8400-e29b-41d4-a716-446655440000"


def _region(region_id: str = REGION_ID) -> RegionFeature:
    return RegionFeature(
        id=UUID(region_id),
        kind=RegionKind.EVENT,
        ring=((10, 20), (10, 22), (12, 22), (12, 20)),
        owner_name="Alex",
        owner_uuid="owner-1",
    )


class Harness:
    def __init__(self, local: dict[str, RegionFeature] | None = None, remote_error: Exception | None = None) -> None:
        self.local = local or {}
        self.remote_error = remote_error
        self.remote_calls: list[str] = []
        self.camera: list[ViewportChange] = []
        self.details: list[DetailViewRequested] = []
        self.link = DeepLink(
            find_local=self.local.get,
            fetch_remote=self._fetch,
            viewport=ViewportController(self.camera.append),
            publish_details=self.details.append,
        )

    async def _fetch(self, region_id: str) -> RegionFeature:
        self.remote_calls.append(region_id)
        if self.remote_error is not None:
            raise self.remote_error
        return _region(region_id)


def test_parse_deep_link() -> None:
    assert parse_deep_link(f"?region={REGION_ID}&details=true") == (REGION_ID, True)
    assert parse_deep_link(f"region={REGION_ID}") == (REGION_ID, False)
    assert parse_deep_link(f"region={REGION_ID}&details=yes") == (REGION_ID, False)
    assert parse_deep_link("") == (None, False)


@pytest.mark.asyncio
@pytest.mark.parametrize("candidate", ["../etc/passwd", "1234", "not-a-uuid", f"{REGION_ID}/../x", ""])
async def test_invalid_identifiers_never_reach_a_lookup(candidate: str, caplog: pytest.LogCaptureFixture) -> None:
    harness = Harness()

    with caplog.at_level(logging.WARNING, logger="pylivemap.deeplink"):
        result = await harness.link.resolve(f"?region={candidate}&details=true")

    assert result is None
    assert harness.remote_calls == []
    assert harness.camera == []
    assert harness.details == []
    assert any("Rejected region deep link" in record.message for record in caplog.records)


@pytest.mark.asyncio
async def test_valid_identifier_fetches_and_flies_to_centroid() -> None:
    harness = Harness()

    result = await harness.link.resolve(f"?region={REGION_ID}")

    assert result is not None
    assert harness.remote_calls == [REGION_ID]
    assert len(harness.camera) == 1
    change = harness.camera[0]
    assert change.lat == pytest.approx(21.0)
    assert change.lon == pytest.approx(11.0)
    assert change.zoom == 16.0
    assert harness.details == []


@pytest.mark.asyncio
async def test_region_in_overlay_is_used_without_fetch() -> None:
    harness = Harness(local={REGION_ID: _region()})

    result = await harness.link.resolve(f"region={REGION_ID}")

    assert result is not None
    assert harness.remote_calls == []
    assert len(harness.camera) == 1


@pytest.mark.asyncio
async def test_details_flag_opens_detail_view() -> None:
    harness = Harness()

    await harness.link.resolve(f"region={REGION_ID}&details=true")

    assert harness.details == [DetailViewRequested(region_id=REGION_ID, owner_uuid="owner-1", owner_name="Alex")]


@pytest.mark.asyncio
async def test_remote_failure_is_logged_not_raised() -> None:
    harness = Harness(remote_error=LiveMapTransportError("HTTP 404", status_code=404))

    assert await harness.link.resolve(f"region={REGION_ID}&details=true") is None
    assert harness.camera == []
    assert harness.details == []
