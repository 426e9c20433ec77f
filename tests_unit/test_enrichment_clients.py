"""
Enrichment Client Tests (Unit)
==============================

WHAT: Unit tests for the Nominatim and Open-Meteo clients and response parsers.
WHY: Every upstream failure has to surface as UpstreamDegraded so the
     enrichment pipeline can store the scan without those fields.

NOTE:
HTTP is served by `httpx.MockTransport`; async calls are driven with
`asyncio.run`, so no event-loop plugin is needed.

REFERENCES:
- glasscart/services/geocoding_client.py
- glasscart/services/weather_client.py
"""

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from glasscart.errors import UpstreamDegraded
from glasscart.services.geocoding_client import NominatimClient, parse_reverse_response
from glasscart.services.weather_client import (
    OpenMeteoClient,
    condition_for_code,
    parse_hourly_response,
)

GEOCODER_URL = "https://geo.test/reverse"
FORECAST_URL = "https://weather.test/v1/forecast"
ARCHIVE_URL = "https://archive.test/v1/archive"


def _geocoder(handler) -> NominatimClient:
    return NominatimClient(
        base_url=GEOCODER_URL,
        user_agent="glasscart-tests/1.0",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def _weather(handler) -> OpenMeteoClient:
    return OpenMeteoClient(
        forecast_url=FORECAST_URL,
        archive_url=ARCHIVE_URL,
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def _hourly(day: str, temps, codes) -> dict:
    return {
        "hourly": {
            "time": [f"{day}T{h:02d}:00" for h in range(24)],
            "temperature_2m": temps,
            "weather_code": codes,
        }
    }


# =============================================================================
# Geocoder
# =============================================================================

def test_parse_reverse_prefers_city_then_town() -> None:
    places = parse_reverse_response({
        "address": {"town": "Lower Hutt", "suburb": "Petone", "state": "Wellington"},
    })

    assert places.city == "Lower Hutt"
    assert places.suburb == "Petone"
    assert places.region == "Wellington"


def test_parse_reverse_error_body_means_no_address() -> None:
    places = parse_reverse_response({"error": "Unable to geocode"})

    assert places.city is None and places.suburb is None and places.region is None


def test_parse_reverse_rejects_unexpected_shape() -> None:
    with pytest.raises(UpstreamDegraded):
        parse_reverse_response(["not", "an", "object"])
    with pytest.raises(UpstreamDegraded):
        parse_reverse_response({"display_name": "somewhere"})


def test_reverse_sends_coordinates_and_user_agent() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["user_agent"] = request.headers["user-agent"]
        return httpx.Response(200, json={
            "address": {"city": "Wellington", "suburb": "Te Aro", "state": "Wellington"},
        })

    places = asyncio.run(_geocoder(handler).reverse(-41.2865, 174.7762))

    assert places.city == "Wellington"
    assert seen["params"]["lat"] == "-41.286500"
    assert seen["params"]["format"] == "jsonv2"
    assert seen["user_agent"] == "glasscart-tests/1.0"


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(503, text="overloaded"),
        lambda request: httpx.Response(200, text="<html>not json</html>"),
    ],
)
def test_reverse_degrades_on_bad_responses(handler) -> None:
    with pytest.raises(UpstreamDegraded) as exc_info:
        asyncio.run(_geocoder(handler).reverse(-41.2865, 174.7762))

    assert exc_info.value.service == "geocoder"


def test_reverse_degrades_on_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(UpstreamDegraded):
        asyncio.run(_geocoder(handler).reverse(-41.2865, 174.7762))


def test_reverse_degrades_on_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamDegraded):
        asyncio.run(_geocoder(handler).reverse(-41.2865, 174.7762))


# =============================================================================
# Weather
# =============================================================================

def test_parse_hourly_picks_scan_hour() -> None:
    temps = [float(h) for h in range(24)]
    codes = [0] * 24
    codes[9] = 3
    payload = _hourly("2025-07-01", temps, codes)

    snapshot = parse_hourly_response(payload, datetime(2025, 7, 1, 9, 45, tzinfo=timezone.utc))

    assert snapshot["temp"] == 9.0
    assert snapshot["condition"] == "Cloudy"
    assert snapshot["observed_at"] == "2025-07-01T09:00"


def test_parse_hourly_converts_to_utc() -> None:
    payload = _hourly("2025-07-01", [float(h) for h in range(24)], [0] * 24)
    nz = timezone(timedelta(hours=12))

    snapshot = parse_hourly_response(payload, datetime(2025, 7, 1, 21, 30, tzinfo=nz))

    assert snapshot["observed_at"] == "2025-07-01T09:00"


def test_parse_hourly_missing_slot_degrades() -> None:
    payload = _hourly("2025-06-30", [1.0] * 24, [0] * 24)

    with pytest.raises(UpstreamDegraded):
        parse_hourly_response(payload, datetime(2025, 7, 1, 9, 0, tzinfo=timezone.utc))


def test_parse_hourly_malformed_values_degrade() -> None:
    payload = _hourly("2025-07-01", [None] * 24, [0] * 24)

    with pytest.raises(UpstreamDegraded):
        parse_hourly_response(payload, datetime(2025, 7, 1, 9, 0, tzinfo=timezone.utc))


def test_condition_for_unknown_code() -> None:
    assert condition_for_code(42) == "Unknown"
    assert condition_for_code(None) is None


def test_recent_scan_uses_forecast_endpoint() -> None:
    seen = {}
    at = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
    day = at.date().isoformat()

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json=_hourly(day, [13.0] * 24, [61] * 24))

    snapshot = asyncio.run(_weather(handler).snapshot(-41.2865, 174.7762, at))

    assert seen["url"] == FORECAST_URL
    assert seen["params"]["start_date"] == day
    assert seen["params"]["hourly"] == "temperature_2m,weather_code"
    assert snapshot["condition"] == "Rain"


def test_old_scan_uses_archive_endpoint() -> None:
    seen = {}
    at = datetime(2023, 1, 15, 6, 0, tzinfo=timezone.utc)

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = f"{request.url.scheme}://{request.url.host}{request.url.path}"
        return httpx.Response(200, json=_hourly("2023-01-15", [20.5] * 24, [1] * 24))

    snapshot = asyncio.run(_weather(handler).snapshot(-36.8485, 174.7633, at))

    assert seen["url"] == ARCHIVE_URL
    assert snapshot["temp"] == 20.5


def test_weather_degrades_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"reason": "rate limited"})

    with pytest.raises(UpstreamDegraded) as exc_info:
        asyncio.run(_weather(handler).snapshot(0.0, 0.0, datetime.now(timezone.utc)))

    assert exc_info.value.service == "weather"
