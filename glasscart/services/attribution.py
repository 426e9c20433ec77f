"""Scan → order attribution.

WHAT:
    Records which order a scan converted into, at most once per scan.

WHY:
    The campaign on an order is declared by the client (the scanning session
    carries it to checkout). The scan pointer is an optional, one-directional
    refinement: many scans may exist for a campaign, and zero or one of them
    ever points at a given order.

HOW:
    A single conditional UPDATE (`... WHERE converted_order_id IS NULL`).
    If it touches no row, the scan is re-read to tell the three cases apart:
        missing           -> NotFound
        same order        -> no-op (re-submission)
        different order   -> Conflict

REFERENCES:
    - glasscart/services/checkout.py (only caller; runs inside order creation)
"""

import logging
from typing import Optional
from uuid import UUID

from ..errors import Conflict, NotFound, ValidationError
from ..models import Order, Scan
from ..repository import LedgerRepository

logger = logging.getLogger(__name__)


def campaign_for_scan(repo: LedgerRepository, scan_id: UUID) -> UUID:
    """Campaign a scan belongs to; used when an order names only the scan."""
    scan = repo.get_scan(scan_id)
    if not scan:
        raise NotFound(f"Scan {scan_id} not found")
    return scan.campaign_id


def attribute_scan(repo: LedgerRepository, scan_id: UUID, order: Order) -> Scan:
    """Point `scan_id` at `order` if it has not converted yet.

    Args:
        repo: Storage access (caller owns the transaction)
        scan_id: Scan the customer came from
        order: Freshly created order (must already have an id)

    Returns:
        The scan, now carrying `converted_order_id == order.id`

    Raises:
        NotFound: Unknown scan
        ValidationError: Scan belongs to a different campaign than the order
        Conflict: Scan already converted into another order
    """
    scan: Optional[Scan] = repo.get_scan(scan_id)
    if not scan:
        raise NotFound(f"Scan {scan_id} not found")

    if order.campaign_id is None or scan.campaign_id != order.campaign_id:
        raise ValidationError(
            f"Scan {scan_id} belongs to campaign {scan.campaign_id}, "
            f"order is attributed to {order.campaign_id}"
        )

    if repo.set_scan_conversion(scan_id, order.id):
        repo.refresh(scan)
        logger.info(
            f"[ATTRIBUTION] Scan converted",
            extra={"scan_id": str(scan_id), "order_id": str(order.id)},
        )
        return scan

    # Lost the conditional write: someone already set the pointer
    repo.refresh(scan)
    if scan.converted_order_id == order.id:
        logger.debug(f"[ATTRIBUTION] Scan {scan_id} already points at order {order.id}")
        return scan

    logger.info(
        f"[ATTRIBUTION] Rejected re-attribution of converted scan",
        extra={
            "scan_id": str(scan_id),
            "existing_order_id": str(scan.converted_order_id),
            "order_id": str(order.id),
        },
    )
    raise Conflict(
        f"Scan {scan_id} already converted into order {scan.converted_order_id}"
    )
