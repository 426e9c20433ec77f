"""Read-only scan reports for the dashboard.

WHAT:
    - city_summary: scan counts and centroids per resolved city (map view)
    - campaign_summary: scans, conversions and context for one campaign
    - placement_summary: scans and conversions per physical placement label

WHY:
    Advertisers choose where to print codes next; they need to see which
    places, devices and weather actually produced scans and orders.

HOW:
    Counts and centroids are aggregated in SQL. The campaign summary loads the
    campaign's scans once and folds them in Python because it needs distinct
    sets across several columns plus the JSON weather field.

REFERENCES:
    - glasscart/routers/scans.py (GET /scans/summary/*)
    - glasscart/repository.py:city_rows, placement_rows
"""

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from ..errors import NotFound
from ..repository import LedgerRepository
from ..schemas import CampaignScanSummary, CitySummary, GeoPoint, PlacementSummary

logger = logging.getLogger(__name__)


def _rate(conversions: int, scans: int) -> float:
    return conversions / scans if scans else 0.0


def _distinct(values: Iterable[Optional[str]]) -> List[str]:
    return sorted({v for v in values if v})


def _numeric_temp(weather) -> Optional[float]:
    if not isinstance(weather, dict):
        return None
    temp = weather.get("temp")
    # bool is an int subclass; "true" degrees is not a temperature
    if isinstance(temp, bool) or not isinstance(temp, (int, float)):
        return None
    return float(temp)


def city_summary(repo: LedgerRepository) -> List[CitySummary]:
    """Scans grouped by resolved city, busiest first.

    Scans whose city could not be resolved are left out.
    """
    return [
        CitySummary(city=city, lat=float(lat), lon=float(lon), scan_count=count)
        for city, count, lat, lon in repo.city_rows()
    ]


def campaign_summary(repo: LedgerRepository, campaign_id: UUID) -> CampaignScanSummary:
    """Aggregate view of one campaign's scans.

    Raises:
        NotFound: Unknown campaign
    """
    campaign = repo.get_campaign(campaign_id)
    if not campaign:
        raise NotFound(f"Campaign {campaign_id} not found")

    scans = repo.scans_for_campaign(campaign_id)
    scan_count = len(scans)
    conversion_count = sum(1 for s in scans if s.converted_order_id is not None)

    temps = [t for t in (_numeric_temp(s.weather) for s in scans) if t is not None]
    conditions = (
        s.weather.get("condition") if isinstance(s.weather, dict) else None
        for s in scans
    )

    return CampaignScanSummary(
        campaign_id=campaign.id,
        campaign_name=campaign.campaign_name,
        code_identifier=campaign.code_identifier,
        scan_count=scan_count,
        conversion_count=conversion_count,
        conversion_rate=_rate(conversion_count, scan_count),
        first_scan_at=scans[0].scanned_at if scans else None,
        last_scan_at=scans[-1].scanned_at if scans else None,
        cities=_distinct(s.city for s in scans),
        regions=_distinct(s.region for s in scans),
        device_types=_distinct(s.device_type for s in scans),
        scan_sources=_distinct(s.scan_source for s in scans),
        referrers=_distinct(s.referrer for s in scans),
        points=[GeoPoint(lat=s.lat, lon=s.lon) for s in scans],
        avg_temperature=round(sum(temps) / len(temps), 2) if temps else None,
        weather_conditions=_distinct(c for c in conditions if isinstance(c, str)),
    )


def placement_summary(repo: LedgerRepository) -> List[PlacementSummary]:
    """Scans and conversions per campaign `location` label.

    Campaigns without a label are grouped under `location: null`.
    """
    return [
        PlacementSummary(
            location=location,
            campaign_count=campaigns,
            scan_count=scans,
            conversion_count=conversions,
            conversion_rate=_rate(conversions, scans),
        )
        for location, campaigns, scans, conversions in repo.placement_rows()
    ]
