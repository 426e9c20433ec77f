"""Scan ingestion with best-effort enrichment.

WHAT:
    Validates a raw scan against its campaign, fills missing place names and
    weather from external lookups, and persists the result.

WHY:
    Scans are the analytics record for offline placements. A geocoder or
    weather outage must degrade the record, never lose it: once the required
    fields validate, ingestion always stores the scan.

HOW:
    ┌──────────────┐
    │  ScanCreate  │ (validated body)
    └──────┬───────┘
           │ gaps?
    ┌──────▼───────────────────────────┐
    │ asyncio.gather(                  │
    │   geocoder.reverse  (≤ timeout), │  each call is independent; a failure
    │   weather.snapshot  (≤ timeout)) │  leaves only its own fields unset
    └──────┬───────────────────────────┘
           │ merge (client values win)
    ┌──────▼───────┐
    │  repo.add_scan │ single persist
    └──────────────┘

    Enrichment is attempted exactly once per scan; nothing is retried or
    scheduled for later.

REFERENCES:
    - glasscart/services/geocoding_client.py
    - glasscart/services/weather_client.py
    - glasscart/routers/scans.py (POST /scans)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import timezone
from typing import Any, Awaitable, Dict, Optional

from ..errors import NotFound, UpstreamDegraded
from ..models import Scan
from ..repository import LedgerRepository
from ..schemas import ScanCreate
from ..telemetry import capture_exception
from .geocoding_client import NominatimClient, PlaceNames
from .weather_client import OpenMeteoClient

logger = logging.getLogger(__name__)


@dataclass
class Enrichment:
    """Whatever the external lookups produced for one scan."""
    places: Optional[PlaceNames] = None
    weather: Optional[Dict[str, Any]] = None


def _needs_places(payload: ScanCreate) -> bool:
    return any(v is None for v in (payload.city, payload.suburb, payload.region))


def _client_or(client_value, looked_up):
    """Anything the client sent, even an empty string, is kept as is."""
    return client_value if client_value is not None else looked_up


def _require_campaign(repo: LedgerRepository, campaign_id) -> None:
    try:
        if not repo.get_campaign(campaign_id):
            raise NotFound(f"Campaign {campaign_id} not found")
    finally:
        repo.release()


def _to_naive_utc(value):
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class ScanEnrichmentPipeline:
    """Ingests scans, enriching them from a geocoder and a weather service.

    Usage:
        ```python
        pipeline = ScanEnrichmentPipeline.from_settings(get_settings())
        scan = await pipeline.ingest(repo, payload, user_agent="Mozilla/5.0")
        ```
    """

    def __init__(
        self,
        geocoder,
        weather,
        timeout: float,
        enabled: bool = True,
    ):
        """
        Args:
            geocoder: Object with `async reverse(lat, lon) -> PlaceNames`
            weather: Object with `async snapshot(lat, lon, at) -> dict`
            timeout: Hard cap in seconds for each external call
            enabled: False skips enrichment entirely (local dev, load tests)
        """
        self.geocoder = geocoder
        self.weather = weather
        self.timeout = timeout
        self.enabled = enabled

    @classmethod
    def from_settings(cls, settings) -> "ScanEnrichmentPipeline":
        timeout = settings.ENRICHMENT_TIMEOUT_SECONDS
        return cls(
            geocoder=NominatimClient(
                base_url=settings.GEOCODER_URL,
                user_agent=settings.GEOCODER_USER_AGENT,
                timeout=timeout,
            ),
            weather=OpenMeteoClient(
                forecast_url=settings.WEATHER_URL,
                archive_url=settings.WEATHER_ARCHIVE_URL,
                timeout=timeout,
            ),
            timeout=timeout,
            enabled=settings.ENRICHMENT_ENABLED,
        )

    async def _bounded(self, call: Awaitable, service: str, context: Dict[str, Any]):
        """Await one external lookup; any failure becomes None.

        Timeouts and UpstreamDegraded are expected outages and logged as
        warnings. Anything else is a bug in a client, so it is reported to
        Sentry, but the scan is still stored.
        """
        try:
            return await asyncio.wait_for(call, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"[ENRICH] {service} lookup exceeded {self.timeout}s, storing scan without it",
                extra={**context, "service": service},
            )
        except UpstreamDegraded as e:
            logger.warning(
                f"[ENRICH] {service} lookup degraded: {e.message}",
                extra={**context, "service": service},
            )
        except Exception as e:
            logger.exception(
                f"[ENRICH] Unexpected {service} lookup failure",
                extra={**context, "service": service},
            )
            capture_exception(e, extra={**context, "service": service})
        return None

    async def enrich(self, payload: ScanCreate) -> Enrichment:
        """Run the lookups the payload needs, concurrently."""
        if not self.enabled:
            return Enrichment()

        lat, lon = payload.coords.lat, payload.coords.lon
        context = {"campaign_id": str(payload.campaign_id), "lat": lat, "lon": lon}

        async def _none():
            return None

        places_call = (
            self._bounded(self.geocoder.reverse(lat, lon), "geocoder", context)
            if _needs_places(payload) else _none()
        )
        weather_call = (
            self._bounded(self.weather.snapshot(lat, lon, payload.scanned_at), "weather", context)
            if payload.weather is None else _none()
        )

        places, weather = await asyncio.gather(places_call, weather_call)
        return Enrichment(places=places, weather=weather)

    async def ingest(
        self,
        repo: LedgerRepository,
        payload: ScanCreate,
        user_agent: Optional[str] = None,
    ) -> Scan:
        """Validate, enrich and store one scan.

        Args:
            repo: Storage access
            payload: Validated scan body
            user_agent: Inbound User-Agent header, used when the body has none

        Returns:
            The persisted Scan

        Raises:
            NotFound: campaign_id does not exist
        """
        # Storage calls run off the event loop and hold no connection across
        # the lookups, so a slow geocoder never starves concurrent scans
        await asyncio.to_thread(_require_campaign, repo, payload.campaign_id)

        enrichment = await self.enrich(payload)
        places = enrichment.places or PlaceNames()

        # Enrichment only fills gaps; client values always win
        scan = Scan(
            campaign_id=payload.campaign_id,
            scanned_at=_to_naive_utc(payload.scanned_at),
            lat=payload.coords.lat,
            lon=payload.coords.lon,
            city=_client_or(payload.city, places.city),
            suburb=_client_or(payload.suburb, places.suburb),
            region=_client_or(payload.region, places.region),
            weather=payload.weather if payload.weather is not None else enrichment.weather,
            distance_to_store_m=payload.distance_to_store_m,
            nearest_poi=payload.nearest_poi,
            distance_to_poi_m=payload.distance_to_poi_m,
            user_agent=payload.user_agent or user_agent,
            device_type=payload.device_type,
            referrer=payload.referrer,
            scan_source=payload.scan_source,
        )
        scan = await asyncio.to_thread(repo.add_scan, scan)

        logger.info(
            f"[SCANS] Stored scan",
            extra={
                "scan_id": str(scan.id),
                "campaign_id": str(payload.campaign_id),
                "city": scan.city,
                "weather_enriched": enrichment.weather is not None,
                "places_enriched": enrichment.places is not None,
            },
        )
        return scan
