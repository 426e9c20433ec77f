"""Scan ingestion and scan reports.

WHAT:
    POST /scans stores one scan event (enriched best-effort); the summary
    endpoints aggregate stored scans for the dashboard.

WHY:
    Landing pages post a scan as soon as a printed code is opened, before the
    visitor decides to buy. Ingestion must succeed even when the geocoder or
    the weather service is down.

REFERENCES:
    - glasscart/services/scan_enrichment.py
    - glasscart/services/scan_reporting.py
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, status

from ..deps import get_enrichment_pipeline, get_repository
from ..repository import LedgerRepository
from ..schemas import (
    CampaignScanSummary,
    CitySummary,
    PlacementSummary,
    ScanCreate,
    ScanOut,
)
from ..services import scan_reporting
from ..services.scan_enrichment import ScanEnrichmentPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scans", tags=["Scans"])


@router.post(
    "",
    response_model=ScanOut,
    status_code=status.HTTP_201_CREATED,
    summary="Record a scan",
    description="""
    Store a QR scan. `campaign_id`, `scanned_at` and numeric `coords.lat` /
    `coords.lon` are required.

    Missing place names and weather are looked up once, each within a hard
    timeout. If a lookup fails the scan is still stored with those fields
    empty. Values sent by the client are never overwritten.
    """,
)
async def create_scan(
    payload: ScanCreate,
    user_agent: Optional[str] = Header(None),
    repo: LedgerRepository = Depends(get_repository),
    pipeline: ScanEnrichmentPipeline = Depends(get_enrichment_pipeline),
):
    return await pipeline.ingest(repo, payload, user_agent=user_agent)


@router.get(
    "/summary/city",
    response_model=List[CitySummary],
    summary="Scans per city",
    description="Scan counts and centroids for scans with a resolved city, busiest first.",
)
def get_city_summary(repo: LedgerRepository = Depends(get_repository)):
    return scan_reporting.city_summary(repo)


@router.get(
    "/summary/campaign/{campaign_id}",
    response_model=CampaignScanSummary,
    summary="Scan summary for one campaign",
)
def get_campaign_summary(
    campaign_id: UUID,
    repo: LedgerRepository = Depends(get_repository),
):
    return scan_reporting.campaign_summary(repo, campaign_id)


@router.get(
    "/summary/placement",
    response_model=List[PlacementSummary],
    summary="Scans and conversions per placement",
)
def get_placement_summary(repo: LedgerRepository = Depends(get_repository)):
    return scan_reporting.placement_summary(repo)
