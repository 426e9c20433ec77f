"""Campaign registry.

WHAT: Creates and edits campaigns (product + advertiser + public identifier + rate)
WHY: The identifier is printed into physical QR codes, so it is unique for
     good; the database's unique index is the arbiter, not a pre-check
REFERENCES:
  - glasscart/routers/campaigns.py
  - glasscart/repository.py:add_campaign (insert-if-absent)
"""

import logging
from uuid import UUID

from ..errors import NotFound, ValidationError
from ..models import Campaign
from ..repository import LedgerRepository
from ..schemas import CampaignCreate, CampaignUpdate

logger = logging.getLogger(__name__)


def _require_references(repo: LedgerRepository, product_id: UUID, advertiser_id) -> None:
    if not repo.get_product(product_id):
        raise NotFound(f"Product {product_id} not found")
    if advertiser_id is not None and not repo.get_user(advertiser_id):
        raise NotFound(f"Advertiser {advertiser_id} not found")


def create_campaign(repo: LedgerRepository, payload: CampaignCreate) -> Campaign:
    """Register a campaign.

    Raises:
        NotFound: Unknown product or advertiser
        Conflict: code_identifier already taken (nothing is written)
    """
    _require_references(repo, payload.product_id, payload.advertiser_id)

    campaign = repo.add_campaign(Campaign(**payload.model_dump()))
    logger.info(
        f"[CAMPAIGNS] Created campaign",
        extra={
            "campaign_id": str(campaign.id),
            "code_identifier": campaign.code_identifier,
            "commission_percent": campaign.commission_percent,
        },
    )
    return campaign


def get_campaign(repo: LedgerRepository, campaign_id: UUID) -> Campaign:
    campaign = repo.get_campaign(campaign_id)
    if not campaign:
        raise NotFound(f"Campaign {campaign_id} not found")
    return campaign


def update_campaign(repo: LedgerRepository, campaign_id: UUID, payload: CampaignUpdate) -> Campaign:
    """Administrative edit of an existing campaign.

    Rate changes only affect orders created afterwards; settled orders keep
    the rate they were created with.

    Raises:
        NotFound: Unknown campaign
        ValidationError: Resulting window ends before it starts
        Conflict: New code_identifier already taken (nothing is written)
    """
    campaign = get_campaign(repo, campaign_id)
    changes = payload.model_dump(exclude_unset=True)

    start = changes.get("start_date", campaign.start_date)
    end = changes.get("end_date", campaign.end_date)
    if start and end and end < start:
        raise ValidationError("end_date must not be before start_date")

    for field in ("campaign_name", "code_identifier", "commission_percent"):
        if field in changes and changes[field] is None:
            raise ValidationError(f"{field} cannot be cleared")

    for field, value in changes.items():
        setattr(campaign, field, value)

    repo.commit_unique(f"code_identifier '{campaign.code_identifier}' is already in use")
    repo.refresh(campaign)

    logger.info(
        f"[CAMPAIGNS] Updated campaign",
        extra={"campaign_id": str(campaign.id), "fields": sorted(changes)},
    )
    return campaign
