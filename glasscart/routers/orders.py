"""Order and payout endpoints.

WHAT:
    POST /orders creates an order, attributes its scan and settles its
    payouts in one transaction. Payouts are read-only to clients.

REFERENCES:
    - glasscart/services/checkout.py
    - glasscart/services/commission_ledger.py
"""

import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from ..deps import get_repository
from ..repository import LedgerRepository
from ..schemas import OrderCreate, OrderOut, PayoutOut, SettledOrder
from ..services import checkout

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Orders"])


def _settled(order, payouts) -> SettledOrder:
    return SettledOrder(
        order=OrderOut.model_validate(order),
        payouts=[PayoutOut.model_validate(p) for p in payouts],
    )


@router.post(
    "/orders",
    response_model=SettledOrder,
    status_code=status.HTTP_201_CREATED,
    summary="Create an order",
    description="""
    Create an order and settle its payouts.

    - With a campaign: advertiser commission (rounded half-up to the cent)
      plus distributor revenue, summing exactly to `total_amount`
    - Without a campaign: one distributor revenue payout
    - `scan_id` marks that scan as converted (once; 409 if it already
      converted into another order)

    Re-submitting an existing client `id` returns the stored order with 200.
    """,
)
def create_order(
    payload: OrderCreate,
    response: Response,
    repo: LedgerRepository = Depends(get_repository),
):
    order, payouts, created = checkout.create_order(repo, payload)
    if not created:
        response.status_code = status.HTTP_200_OK
    return _settled(order, payouts)


@router.get(
    "/orders/{order_id}",
    response_model=SettledOrder,
    summary="Get an order with its payouts",
)
def get_order(
    order_id: UUID,
    repo: LedgerRepository = Depends(get_repository),
):
    order, payouts = checkout.get_order(repo, order_id)
    return _settled(order, payouts)


@router.get(
    "/payouts",
    response_model=List[PayoutOut],
    summary="List ledger entries",
    description="Newest first. Filter by `recipient_id` to see one account's earnings.",
)
def list_payouts(
    recipient_id: Optional[UUID] = Query(None),
    repo: LedgerRepository = Depends(get_repository),
):
    return repo.payouts_for_recipient(recipient_id)
