import httpx
import pytest

from redwood.errors import FetchError
from redwood.ingestors.opensky import (
    OpenSkyProvider,
    bounding_box,
    bounding_boxes,
    normalize_state,
)
from redwood.models.geo import Coordinate

REFERENCE = Coordinate(latitude=10.0, longitude=20.0)


def _state(**overrides):
    row = [
        "abc123",  # icao24
        "TEST123 ",  # callsign with trailing space
        "United States",
        1714765198,  # time_position
        1714765200,  # last_contact
        20.0,  # longitude
        10.0,  # latitude
        3657.6,  # baro_altitude meters
        False,  # on_ground
        164.6,  # velocity m/s
        90.0,  # true_track
        2.0,  # vertical_rate m/s
        None,  # sensors
        3700.0,  # geo_altitude meters
        "7000",  # squawk
        False,  # spi
        0,  # position_source
    ]
    index = {"icao24": 0, "callsign": 1, "lon": 5, "lat": 6, "baro": 7, "geo": 13, "track": 10}
    for key, value in overrides.items():
        row[index[key]] = value
    return row


@pytest.mark.anyio
async def test_opensky_provider_parses_states():
    payload = {"time": 1714765200, "states": [_state()]}

    def handler(request: httpx.Request):
        assert "lamin" in request.url.params
        assert "lomax" in request.url.params
        return httpx.Response(200, json=payload)

    transport = httpx.MockTransport(handler)
    provider = OpenSkyProvider(base_url="https://example.test", transport=transport)

    records = await provider.fetch_states(REFERENCE, 50.0)

    assert len(records) == 1
    record = records[0]
    assert record.icao24 == "abc123"
    assert record.callsign == "TEST123"
    assert record.origin_country == "United States"
    assert record.position == Coordinate(latitude=10.0, longitude=20.0)
    assert record.altitude_m == pytest.approx(3700.0)
    assert record.velocity_ms == pytest.approx(164.6)
    assert record.heading_deg == 90
    assert record.vertical_rate_ms == pytest.approx(2.0)
    assert record.on_ground is False


@pytest.mark.anyio
async def test_opensky_provider_treats_null_states_as_empty():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"time": 1, "states": None})
    )
    provider = OpenSkyProvider(base_url="https://example.test", transport=transport)

    assert await provider.fetch_states(REFERENCE, 10.0) == []


@pytest.mark.anyio
async def test_opensky_provider_raises_on_rate_limit():
    def handler(request: httpx.Request):
        return httpx.Response(429, text="rate limited")

    transport = httpx.MockTransport(handler)
    provider = OpenSkyProvider(base_url="https://example.test", transport=transport)

    with pytest.raises(FetchError, match="429"):
        await provider.fetch_states(REFERENCE, 10.0)


@pytest.mark.anyio
async def test_opensky_provider_raises_on_error_response():
    def handler(request: httpx.Request):
        return httpx.Response(503, text="unavailable")

    transport = httpx.MockTransport(handler)
    provider = OpenSkyProvider(base_url="https://example.test", transport=transport)

    with pytest.raises(FetchError, match="503"):
        await provider.fetch_states(REFERENCE, 10.0)


@pytest.mark.anyio
async def test_opensky_provider_raises_on_malformed_json():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
    provider = OpenSkyProvider(base_url="https://example.test", transport=transport)

    with pytest.raises(FetchError, match="malformed"):
        await provider.fetch_states(REFERENCE, 10.0)


@pytest.mark.anyio
async def test_opensky_provider_raises_on_timeout():
    def handler(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = OpenSkyProvider(
        base_url="https://example.test", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(FetchError, match="timed out"):
        await provider.fetch_states(REFERENCE, 10.0)


@pytest.mark.anyio
async def test_opensky_provider_raises_on_connection_error():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = OpenSkyProvider(
        base_url="https://example.test", transport=httpx.MockTransport(handler)
    )

    with pytest.raises(FetchError, match="unreachable"):
        await provider.fetch_states(REFERENCE, 10.0)


def test_normalize_state_keeps_record_without_position():
    record = normalize_state(_state(lat=None, lon=None))

    assert record is not None
    assert record.position is None


def test_normalize_state_drops_out_of_range_position():
    record = normalize_state(_state(lat=95.0))

    assert record is not None
    assert record.position is None


def test_normalize_state_falls_back_to_barometric_altitude():
    record = normalize_state(_state(geo=None))

    assert record.altitude_m == pytest.approx(3657.6)


def test_normalize_state_missing_optional_fields_are_none():
    record = normalize_state(["def456", None, None, None, None, 1.0, 2.0])

    assert record.callsign is None
    assert record.altitude_m is None
    assert record.heading_deg is None
    assert record.velocity_ms is None


def test_normalize_state_rejects_garbage():
    assert normalize_state("not a state") is None
    assert normalize_state([None, None, None, None, None, 1.0, 2.0]) is None
    assert normalize_state([1, 2]) is None


def test_bounding_box_encloses_radius():
    box = bounding_box(Coordinate(latitude=0.0, longitude=0.0), 111.32)

    assert box["lamin"] == pytest.approx(-1.0)
    assert box["lamax"] == pytest.approx(1.0)
    assert box["lomin"] == pytest.approx(-1.0)
    assert box["lomax"] == pytest.approx(1.0)


def test_bounding_box_is_clamped_near_the_pole():
    box = bounding_box(Coordinate(latitude=89.9, longitude=179.9), 100.0)

    assert box["lamax"] == 90.0
    assert box["lomax"] == 180.0


def test_bounding_boxes_single_box_away_from_antimeridian():
    reference = Coordinate(latitude=10.0, longitude=20.0)

    assert bounding_boxes(reference, 50.0) == [bounding_box(reference, 50.0)]


def test_bounding_boxes_wrap_across_antimeridian():
    boxes = bounding_boxes(Coordinate(latitude=0.0, longitude=179.5), 111.32)

    assert len(boxes) == 2
    assert boxes[0]["lomin"] == pytest.approx(178.5)
    assert boxes[0]["lomax"] == 180.0
    assert boxes[1]["lomin"] == -180.0
    assert boxes[1]["lomax"] == pytest.approx(-179.5)
    assert boxes[1]["lamin"] == boxes[0]["lamin"]

    west = bounding_boxes(Coordinate(latitude=0.0, longitude=-179.5), 111.32)
    assert west[1]["lomin"] == pytest.approx(179.5)
    assert west[1]["lomax"] == 180.0


def test_bounding_boxes_cover_every_meridian_near_the_pole():
    boxes = bounding_boxes(Coordinate(latitude=89.9, longitude=10.0), 100.0)

    assert len(boxes) == 1
    assert boxes[0]["lomin"] == -180.0
    assert boxes[0]["lomax"] == 180.0


@pytest.mark.anyio
async def test_opensky_provider_queries_both_sides_of_antimeridian():
    requests: list[httpx.Request] = []
    east = _state(icao24="aaa001", lon=179.8, lat=0.0)
    west = _state(icao24="bbb002", lon=-179.9, lat=0.0)

    def handler(request: httpx.Request):
        requests.append(request)
        if float(request.url.params["lomin"]) < 0:
            return httpx.Response(200, json={"time": 1, "states": [west, east]})
        return httpx.Response(200, json={"time": 1, "states": [east]})

    provider = OpenSkyProvider(
        base_url="https://example.test", transport=httpx.MockTransport(handler)
    )

    records = await provider.fetch_states(Coordinate(latitude=0.0, longitude=179.5), 111.32)

    assert len(requests) == 2
    assert [record.icao24 for record in records] == ["aaa001", "bbb002"]
