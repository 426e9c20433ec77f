"""Campaign endpoints.

WHAT:
    Create, read and administratively edit campaigns, and list the derived
    QR assets (image URLs, short link, embed snippet) for one campaign.

WHY:
    A campaign is the unit advertisers print: one product, one public
    identifier, one commission rate.

REFERENCES:
    - glasscart/services/campaigns.py
    - glasscart/services/qr_assets.py:asset_urls
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from ..deps import Settings, get_repository, get_settings
from ..repository import LedgerRepository
from ..schemas import CampaignAssets, CampaignCreate, CampaignOut, CampaignUpdate
from ..services import campaigns as campaign_service
from ..services.qr_assets import asset_urls

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/campaigns", tags=["Campaigns"])


@router.post(
    "",
    response_model=CampaignOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a campaign",
    description="""
    Register a QR campaign for a product.

    `code_identifier` (alias `qr_code_identifier`) is globally unique and
    permanent; reusing one returns 409 and writes nothing.
    """,
)
def create_campaign(
    payload: CampaignCreate,
    repo: LedgerRepository = Depends(get_repository),
):
    return campaign_service.create_campaign(repo, payload)


@router.get(
    "/{campaign_id}",
    response_model=CampaignOut,
    summary="Get a campaign",
)
def get_campaign(
    campaign_id: UUID,
    repo: LedgerRepository = Depends(get_repository),
):
    return campaign_service.get_campaign(repo, campaign_id)


@router.patch(
    "/{campaign_id}",
    response_model=CampaignOut,
    summary="Edit a campaign",
    description="""
    Administrative edit. Omitted fields are unchanged.

    A new commission rate applies to orders created afterwards only.
    """,
)
def update_campaign(
    campaign_id: UUID,
    payload: CampaignUpdate,
    repo: LedgerRepository = Depends(get_repository),
):
    return campaign_service.update_campaign(repo, campaign_id, payload)


@router.post(
    "/{campaign_id}/generate-assets",
    response_model=CampaignAssets,
    response_model_by_alias=True,
    summary="Get QR asset links",
    description="""
    Returns `qrPngUrl`, `qrSvgUrl`, `shortLink` and `embedCode` for the
    campaign. Assets are derived on demand; nothing is stored.
    """,
)
def generate_assets(
    campaign_id: UUID,
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    campaign = campaign_service.get_campaign(repo, campaign_id)
    logger.info(f"[QR] Asset links requested for campaign {campaign.id}")
    return asset_urls(settings.QR_BASE_URL, campaign)
