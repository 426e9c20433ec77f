"""Commission ledger.

WHAT: Splits a completed order into immutable payout entries
WHY: Advertisers are paid a percentage of the orders their placements drive;
     the product owner keeps the rest
REFERENCES:
  - glasscart/services/checkout.py: settles every new order
  - glasscart/models.py:Payout: ledger entry
  - tests_unit/test_commission_math.py: rounding/conservation unit tests

Settlement rules:
  - no campaign: one distributor_revenue payout for the full total
  - campaign:    advertiser_commission = round_half_up(total * rate / 100)
                 distributor_revenue   = total - advertiser_commission
  - the revenue leg absorbs rounding, so the legs always sum to the total
  - the rate is the order's snapshot (copied from the campaign at creation)
"""

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from ..errors import IntegrityViolation
from ..models import Order, Payout, PayoutTypeEnum
from ..repository import LedgerRepository

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Quantize to the currency's minor unit, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def split_amount(total_amount, commission_percent: int) -> Tuple[Decimal, Decimal]:
    """Split an order total into (commission, revenue).

    Examples:
        split_amount("100.00", 10) -> (Decimal("10.00"), Decimal("90.00"))
        split_amount("79.98", 10)  -> (Decimal("8.00"),  Decimal("71.98"))   # 7.998 rounds up
        split_amount("0.05", 50)   -> (Decimal("0.03"),  Decimal("0.02"))    # 0.025 rounds half-up
    """
    if not 0 <= commission_percent <= 100:
        raise ValueError(f"commission_percent must be within 0..100, got {commission_percent}")

    total = to_money(total_amount)
    commission = (total * Decimal(commission_percent) / Decimal(100)).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    return commission, total - commission


def _integrity_violation(message: str, order: Order, **context) -> IntegrityViolation:
    details = {
        "order_id": str(order.id),
        "product_id": str(order.product_id),
        "campaign_id": str(order.campaign_id) if order.campaign_id else None,
        "total_amount": str(order.total_amount),
        **{k: str(v) if v is not None else None for k, v in context.items()},
    }
    return IntegrityViolation(message, context=details)


def settle_order(repo: LedgerRepository, order: Order) -> List[Payout]:
    """Emit the payouts for an order.

    Idempotent: an order that already has payouts gets them back unchanged.
    The caller owns the transaction (checkout commits order, scan pointer and
    payouts together).

    Args:
        repo: Storage access
        order: Persisted (flushed) order

    Returns:
        One payout (no campaign) or two (advertiser + distributor), ordered by type

    Raises:
        IntegrityViolation: Product, product owner, campaign or campaign owner missing
    """
    existing = repo.payouts_for_order(order.id)
    if existing:
        logger.debug(f"[LEDGER] Order {order.id} already settled ({len(existing)} payouts)")
        return existing

    product = repo.get_product(order.product_id)
    if not product:
        raise _integrity_violation("Order references a missing product", order)
    if not product.distributor_id or not repo.get_user(product.distributor_id):
        raise _integrity_violation(
            "Product owner cannot be resolved for payout",
            order,
            distributor_id=product.distributor_id,
        )

    total = to_money(order.total_amount)

    if order.campaign_id is None:
        order.commission_amount = Decimal("0.00")
        payouts = [
            Payout(
                recipient_id=product.distributor_id,
                order_id=order.id,
                amount=total,
                type=PayoutTypeEnum.distributor_revenue,
            )
        ]
    else:
        campaign = repo.get_campaign(order.campaign_id)
        if not campaign:
            raise _integrity_violation("Order references a missing campaign", order)
        if not campaign.advertiser_id or not repo.get_user(campaign.advertiser_id):
            raise _integrity_violation(
                "Campaign owner cannot be resolved for payout",
                order,
                advertiser_id=campaign.advertiser_id,
            )

        rate = order.commission_percent
        if rate is None:
            # Orders created before rates were snapshotted
            rate = campaign.commission_percent
            order.commission_percent = rate

        commission, revenue = split_amount(total, rate)
        order.commission_amount = commission
        payouts = [
            Payout(
                recipient_id=campaign.advertiser_id,
                order_id=order.id,
                amount=commission,
                type=PayoutTypeEnum.advertiser_commission,
            ),
            Payout(
                recipient_id=product.distributor_id,
                order_id=order.id,
                amount=revenue,
                type=PayoutTypeEnum.distributor_revenue,
            ),
        ]

    # Holds by construction; a failure here means split_amount is broken
    if sum((p.amount for p in payouts), Decimal("0.00")) != total:
        raise _integrity_violation("Payouts do not sum to order total", order)

    repo.add_payouts(payouts)
    logger.info(
        f"[LEDGER] Settled order",
        extra={
            "order_id": str(order.id),
            "total_amount": str(total),
            "commission_amount": str(order.commission_amount),
            "payout_count": len(payouts),
        },
    )
    return payouts
