"""Short-link resolution for printed QR codes.

The highest-traffic path in the system: one indexed lookup, no writes.
Unknown identifiers are terminal (no fuzzy match, no fallback campaign).
"""

import logging

from ..errors import NotFound
from ..models import Campaign
from ..repository import LedgerRepository

logger = logging.getLogger(__name__)


def resolve(repo: LedgerRepository, identifier: str) -> Campaign:
    """Find the campaign whose `code_identifier` is exactly `identifier`."""
    campaign = repo.get_campaign_by_identifier(identifier)
    if not campaign:
        logger.info(f"[SHORTLINK] Unknown identifier: {identifier}")
        raise NotFound(f"Unknown code identifier '{identifier}'")
    return campaign


def product_url(frontend_base_url: str, campaign: Campaign) -> str:
    """Storefront page a scan lands on."""
    return f"{frontend_base_url.rstrip('/')}/products/{campaign.product_id}"
