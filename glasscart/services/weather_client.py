"""Weather snapshot client (Open-Meteo).

WHAT:
    Fetches the temperature and conditions at a scan's position for the hour
    the scan happened.

HOW:
    1. Recent scans (within FORECAST_HISTORY_DAYS) use the forecast API, which
       also serves the recent past; older scans use the historical archive
    2. Request one UTC day of hourly `temperature_2m` + `weather_code`
    3. Pick the slot for the scan's hour and map the WMO code to a label

REFERENCES:
    - https://open-meteo.com/en/docs
    - https://open-meteo.com/en/docs/historical-weather-api
    - glasscart/services/scan_enrichment.py (consumer)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx

from ..errors import UpstreamDegraded

logger = logging.getLogger(__name__)

SERVICE = "weather"

# The forecast endpoint keeps roughly three months of past data
FORECAST_HISTORY_DAYS = 90

# WMO weather interpretation codes, grouped the way the dashboard shows them
WMO_CONDITIONS = {
    0: "Clear",
    1: "Mostly Clear",
    2: "Partly Cloudy",
    3: "Cloudy",
    45: "Fog",
    48: "Fog",
    51: "Drizzle",
    53: "Drizzle",
    55: "Drizzle",
    56: "Freezing Drizzle",
    57: "Freezing Drizzle",
    61: "Rain",
    63: "Rain",
    65: "Heavy Rain",
    66: "Freezing Rain",
    67: "Freezing Rain",
    71: "Snow",
    73: "Snow",
    75: "Heavy Snow",
    77: "Snow",
    80: "Showers",
    81: "Showers",
    82: "Heavy Showers",
    85: "Snow Showers",
    86: "Snow Showers",
    95: "Thunderstorm",
    96: "Thunderstorm",
    99: "Thunderstorm",
}


def condition_for_code(code: Optional[int]) -> Optional[str]:
    if code is None:
        return None
    return WMO_CONDITIONS.get(int(code), "Unknown")


def _as_utc(at: datetime) -> datetime:
    if at.tzinfo is None:
        return at.replace(tzinfo=timezone.utc)
    return at.astimezone(timezone.utc)


def parse_hourly_response(payload: Any, at: datetime) -> Dict[str, Any]:
    """Pick the scan-hour slot out of an Open-Meteo hourly response.

    Returns:
        {"temp": float, "condition": str, "weather_code": int, "observed_at": str, "source": "open-meteo"}

    Raises:
        UpstreamDegraded: Body missing the hourly arrays or the scan hour
    """
    try:
        hourly = payload["hourly"]
        times = hourly["time"]
        temps = hourly["temperature_2m"]
        codes = hourly["weather_code"]
    except (KeyError, TypeError):
        raise UpstreamDegraded("Weather response missing hourly data", service=SERVICE)

    slot = _as_utc(at).strftime("%Y-%m-%dT%H:00")
    try:
        index = times.index(slot)
        temp = temps[index]
        code = codes[index]
    except (ValueError, IndexError, AttributeError):
        raise UpstreamDegraded(f"Weather response has no slot for {slot}", service=SERVICE)

    try:
        temp = float(temp)
        condition = condition_for_code(code)
    except (TypeError, ValueError):
        raise UpstreamDegraded(f"Weather slot {slot} is malformed", service=SERVICE)

    return {
        "temp": temp,
        "condition": condition,
        "weather_code": code,
        "observed_at": slot,
        "source": "open-meteo",
    }


class OpenMeteoClient:
    """Async client for hourly weather at a point in time.

    Usage:
        ```python
        client = OpenMeteoClient(forecast_url, archive_url, timeout=2.5)
        snapshot = await client.snapshot(-41.2865, 174.7762, scanned_at)
        # {"temp": 13.1, "condition": "Cloudy", ...}
        ```
    """

    def __init__(
        self,
        forecast_url: str,
        archive_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.forecast_url = forecast_url
        self.archive_url = archive_url
        self.timeout = timeout
        self._transport = transport

    def _url_for(self, at: datetime) -> str:
        age = datetime.now(timezone.utc) - _as_utc(at)
        if age > timedelta(days=FORECAST_HISTORY_DAYS):
            return self.archive_url
        return self.forecast_url

    async def snapshot(self, lat: float, lon: float, at: datetime) -> Dict[str, Any]:
        """Weather at (lat, lon) for the hour containing `at`.

        Raises:
            UpstreamDegraded: Timeout, network error, non-2xx or malformed body
        """
        day = _as_utc(at).date().isoformat()
        params = {
            "latitude": f"{lat:.4f}",
            "longitude": f"{lon:.4f}",
            "hourly": "temperature_2m,weather_code",
            "start_date": day,
            "end_date": day,
            "timezone": "UTC",
        }
        url = self._url_for(at)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamDegraded(f"Weather service timed out: {e}", service=SERVICE)
        except httpx.HTTPStatusError as e:
            raise UpstreamDegraded(
                f"Weather service returned HTTP {e.response.status_code}", service=SERVICE
            )
        except httpx.RequestError as e:
            raise UpstreamDegraded(f"Network error calling weather service: {e}", service=SERVICE)
        except ValueError as e:
            raise UpstreamDegraded(f"Weather service returned invalid JSON: {e}", service=SERVICE)

        return parse_hourly_response(payload, at)
