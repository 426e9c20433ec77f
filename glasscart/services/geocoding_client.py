"""Reverse geocoding client (OpenStreetMap Nominatim).

WHAT:
    Resolves scan coordinates to city / suburb / region names.

WHY:
    Landing pages only send raw GPS coordinates; place names make the city
    and placement reports readable.

CONSTRAINTS:
    - Nominatim's usage policy requires an identifying User-Agent
    - Every failure mode is raised as UpstreamDegraded; callers decide to
      store the scan without place names

REFERENCES:
    - https://nominatim.org/release-docs/latest/api/Reverse/
    - glasscart/services/scan_enrichment.py (consumer)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..errors import UpstreamDegraded

logger = logging.getLogger(__name__)

SERVICE = "geocoder"

# Nominatim returns whichever settlement tag OSM has; first hit wins
CITY_KEYS = ("city", "town", "village", "municipality", "hamlet")
SUBURB_KEYS = ("suburb", "neighbourhood", "city_district", "quarter")
REGION_KEYS = ("state", "region", "province", "county")


@dataclass
class PlaceNames:
    """Place names resolved for a coordinate pair (any may be missing)."""
    city: Optional[str] = None
    suburb: Optional[str] = None
    region: Optional[str] = None


def _first(address: Dict[str, Any], keys) -> Optional[str]:
    for key in keys:
        value = address.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def parse_reverse_response(payload: Any) -> PlaceNames:
    """Extract place names from a Nominatim `jsonv2` reverse response.

    Raises:
        UpstreamDegraded: Body is not the documented shape
    """
    if not isinstance(payload, dict):
        raise UpstreamDegraded("Geocoder returned a non-object body", service=SERVICE)

    if "error" in payload:
        # e.g. "Unable to geocode" for points at sea; a valid, empty answer
        logger.info(f"[GEOCODER] No address for point: {payload.get('error')}")
        return PlaceNames()

    address = payload.get("address")
    if not isinstance(address, dict):
        raise UpstreamDegraded("Geocoder response has no address object", service=SERVICE)

    return PlaceNames(
        city=_first(address, CITY_KEYS),
        suburb=_first(address, SUBURB_KEYS),
        region=_first(address, REGION_KEYS),
    )


class NominatimClient:
    """Async client for Nominatim reverse geocoding.

    Usage:
        ```python
        client = NominatimClient(base_url, user_agent="glasscart-api/1.0", timeout=2.5)
        places = await client.reverse(-41.2865, 174.7762)
        print(places.city)  # "Wellington"
        ```
    """

    def __init__(
        self,
        base_url: str,
        user_agent: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    async def reverse(self, lat: float, lon: float) -> PlaceNames:
        """Look up place names for a coordinate pair.

        Raises:
            UpstreamDegraded: Timeout, network error, non-2xx or malformed body
        """
        params = {
            "format": "jsonv2",
            "lat": f"{lat:.6f}",
            "lon": f"{lon:.6f}",
            "zoom": 16,
            "addressdetails": 1,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"User-Agent": self.user_agent, "Accept": "application/json"},
            ) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamDegraded(f"Geocoder timed out: {e}", service=SERVICE)
        except httpx.HTTPStatusError as e:
            raise UpstreamDegraded(
                f"Geocoder returned HTTP {e.response.status_code}", service=SERVICE
            )
        except httpx.RequestError as e:
            raise UpstreamDegraded(f"Network error calling geocoder: {e}", service=SERVICE)
        except ValueError as e:
            raise UpstreamDegraded(f"Geocoder returned invalid JSON: {e}", service=SERVICE)

        return parse_reverse_response(payload)
