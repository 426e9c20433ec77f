"""Order creation.

WHAT: Persists an order, attributes its scan and settles its payouts in one transaction
WHY: An order without its payouts (or a scan pointing at an order that was
     rolled back) would break the ledger's conservation guarantee
REFERENCES:
  - glasscart/services/attribution.py: scan -> order pointer
  - glasscart/services/commission_ledger.py: payouts
  - glasscart/routers/orders.py: POST /orders
"""

import logging
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, LedgerError, NotFound, ValidationError
from ..models import Order, Payout
from ..repository import LedgerRepository
from ..schemas import OrderCreate
from .attribution import attribute_scan, campaign_for_scan
from .commission_ledger import settle_order, to_money

logger = logging.getLogger(__name__)


def _matches(repo: LedgerRepository, existing: Order, payload: OrderCreate) -> bool:
    """A re-submission must describe the same purchase, field for field."""
    converted = repo.scan_for_order(existing.id)
    return (
        existing.customer_id == payload.customer_id
        and existing.product_id == payload.product_id
        and existing.campaign_id == payload.campaign_id
        and existing.quantity == payload.quantity
        and to_money(existing.total_amount) == to_money(payload.total_amount)
        and existing.shipping_address == payload.shipping_address
        and (converted.id if converted else None) == payload.scan_id
    )


def create_order(repo: LedgerRepository, payload: OrderCreate) -> Tuple[Order, List[Payout], bool]:
    """Create and settle an order.

    A client-supplied `id` that already exists returns the stored order and
    its payouts unchanged (nothing is settled twice).

    Args:
        repo: Storage access
        payload: Validated checkout body

    Returns:
        (order, payouts, created); `created` is False for a re-submission

    Raises:
        NotFound: Unknown product, campaign or scan
        ValidationError: Scan from another campaign, or an id reused for a different purchase
        Conflict: Scan already converted into another order
        IntegrityViolation: Product or campaign owner missing
    """
    if payload.scan_id is not None and payload.campaign_id is None:
        # Landing pages that only remember the scan still get attribution
        payload = payload.model_copy(
            update={"campaign_id": campaign_for_scan(repo, payload.scan_id)}
        )

    if payload.id is not None:
        existing = repo.get_order(payload.id)
        if existing:
            if not _matches(repo, existing, payload):
                raise ValidationError(f"Order {payload.id} already exists with different contents")
            logger.info(f"[ORDERS] Re-submission of order {existing.id}, returning stored payouts")
            return existing, repo.payouts_for_order(existing.id), False

    if not repo.get_product(payload.product_id):
        raise NotFound(f"Product {payload.product_id} not found")

    commission_percent = None
    if payload.campaign_id is not None:
        campaign = repo.get_campaign(payload.campaign_id)
        if not campaign:
            raise NotFound(f"Campaign {payload.campaign_id} not found")
        if campaign.product_id != payload.product_id:
            logger.warning(
                f"[ORDERS] Campaign product differs from ordered product",
                extra={
                    "campaign_id": str(campaign.id),
                    "campaign_product_id": str(campaign.product_id),
                    "product_id": str(payload.product_id),
                },
            )
        commission_percent = campaign.commission_percent

    order_kwargs = dict(
        customer_id=payload.customer_id,
        product_id=payload.product_id,
        campaign_id=payload.campaign_id,
        quantity=payload.quantity,
        total_amount=to_money(payload.total_amount),
        commission_percent=commission_percent,
        shipping_address=payload.shipping_address,
    )
    if payload.id is not None:
        order_kwargs["id"] = payload.id
    order = Order(**order_kwargs)

    try:
        repo.add_order(order)
        if payload.scan_id is not None:
            attribute_scan(repo, payload.scan_id, order)
        payouts = settle_order(repo, order)
        repo.commit()
    except LedgerError:
        repo.rollback()
        raise
    except IntegrityError:
        # Concurrent submission of the same client id
        repo.rollback()
        raise Conflict(f"Order {order.id} was created concurrently")
    except Exception:
        repo.rollback()
        logger.exception(f"[ORDERS] Unexpected failure creating order", extra={"product_id": str(payload.product_id)})
        raise

    repo.refresh(order)
    logger.info(
        f"[ORDERS] Created order",
        extra={
            "order_id": str(order.id),
            "campaign_id": str(order.campaign_id) if order.campaign_id else None,
            "scan_id": str(payload.scan_id) if payload.scan_id else None,
            "total_amount": str(order.total_amount),
        },
    )
    return order, payouts, True


def get_order(repo: LedgerRepository, order_id) -> Tuple[Order, List[Payout]]:
    """Stored order with its payouts.

    Raises:
        NotFound: Unknown order
    """
    order = repo.get_order(order_id)
    if not order:
        raise NotFound(f"Order {order_id} not found")
    return order, repo.payouts_for_order(order.id)
