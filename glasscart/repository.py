"""Storage contract used by every ledger service.

WHAT:
    Thin wrapper around a SQLAlchemy Session exposing exactly the reads and
    writes the core needs, including the two conditional writes
    (insert-if-absent for campaign identifiers, update-if-null for a scan's
    conversion pointer).

WHY:
    Services receive the repository explicitly instead of reaching for a
    global pool, so tests can hand them an in-memory SQLite session.

REFERENCES:
    - glasscart/deps.py:get_repository (FastAPI wiring)
    - glasscart/tests/conftest.py (test wiring)
"""

import logging
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .errors import Conflict
from .models import Campaign, Order, Payout, Product, Scan, User

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Read/write access to campaigns, scans, orders and payouts."""

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def commit_unique(self, conflict_message: str) -> None:
        """Commit, translating a unique-index violation into Conflict.

        The database decides the race: two concurrent inserts of the same
        identifier both pass any pre-check, exactly one commit succeeds.
        """
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.info(f"[REPO] Unique constraint rejected write: {e.orig}")
            raise Conflict(conflict_message)

    def refresh(self, instance) -> None:
        self.db.refresh(instance)

    # ------------------------------------------------------------------
    # Accounts & products (read only)
    # ------------------------------------------------------------------

    def get_user(self, user_id: Optional[UUID]) -> Optional[User]:
        if user_id is None:
            return None
        return self.db.get(User, user_id)

    def get_product(self, product_id: Optional[UUID]) -> Optional[Product]:
        if product_id is None:
            return None
        return self.db.get(Product, product_id)

    # ------------------------------------------------------------------
    # Campaigns
    # ------------------------------------------------------------------

    def get_campaign(self, campaign_id: UUID) -> Optional[Campaign]:
        return self.db.get(Campaign, campaign_id)

    def get_campaign_by_identifier(self, identifier: str) -> Optional[Campaign]:
        """Exact, case-sensitive lookup through the unique index."""
        return (
            self.db.query(Campaign)
            .filter(Campaign.code_identifier == identifier)
            .first()
        )

    def add_campaign(self, campaign: Campaign) -> Campaign:
        self.db.add(campaign)
        self.commit_unique(
            f"code_identifier '{campaign.code_identifier}' is already in use"
        )
        self.db.refresh(campaign)
        return campaign

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def release(self) -> None:
        """End the current read transaction and return its pooled connection."""
        self.db.rollback()

    def add_scan(self, scan: Scan) -> Scan:
        """Insert a scan and return it fully loaded and detached.

        No pooled connection stays checked out afterwards, so the async
        ingestion path can serialize the response without holding one.
        """
        self.db.add(scan)
        self.db.commit()
        self.db.refresh(scan)
        self.db.expunge(scan)
        self.release()
        return scan

    def get_scan(self, scan_id: UUID) -> Optional[Scan]:
        return self.db.get(Scan, scan_id)

    def set_scan_conversion(self, scan_id: UUID, order_id: UUID) -> bool:
        """Point a scan at its converting order if it has none yet.

        Returns:
            True if this call set the pointer, False if the scan is missing
            or was already converted.
        """
        result = self.db.execute(
            update(Scan)
            .where(Scan.id == scan_id, Scan.converted_order_id.is_(None))
            .values(converted_order_id=order_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def scan_for_order(self, order_id: UUID) -> Optional[Scan]:
        """The scan that converted into this order, if any."""
        return (
            self.db.query(Scan)
            .filter(Scan.converted_order_id == order_id)
            .first()
        )

    def scans_for_campaign(self, campaign_id: UUID) -> List[Scan]:
        return (
            self.db.query(Scan)
            .filter(Scan.campaign_id == campaign_id)
            .order_by(Scan.scanned_at)
            .all()
        )

    def city_rows(self) -> Sequence[Tuple[str, int, float, float]]:
        """(city, scan_count, mean_lat, mean_lon) for scans with a resolved city."""
        scan_count = func.count(Scan.id)
        return (
            self.db.query(
                Scan.city,
                scan_count.label("scan_count"),
                func.avg(Scan.lat).label("lat"),
                func.avg(Scan.lon).label("lon"),
            )
            .filter(Scan.city.isnot(None))
            .group_by(Scan.city)
            .order_by(scan_count.desc(), Scan.city)
            .all()
        )

    def placement_rows(self) -> Sequence[Tuple[Optional[str], int, int, int]]:
        """(location, campaign_count, scan_count, conversion_count) per placement label."""
        return (
            self.db.query(
                Campaign.location,
                func.count(func.distinct(Campaign.id)).label("campaign_count"),
                func.count(Scan.id).label("scan_count"),
                func.count(Scan.converted_order_id).label("conversion_count"),
            )
            .outerjoin(Scan, Scan.campaign_id == Campaign.id)
            .group_by(Campaign.location)
            .order_by(func.count(Scan.id).desc(), Campaign.location)
            .all()
        )

    # ------------------------------------------------------------------
    # Orders & payouts
    # ------------------------------------------------------------------

    def get_order(self, order_id: UUID) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def add_order(self, order: Order) -> Order:
        self.db.add(order)
        self.db.flush()  # Assign id for payouts and the scan pointer
        return order

    def add_payouts(self, payouts: List[Payout]) -> List[Payout]:
        self.db.add_all(payouts)
        self.db.flush()
        return payouts

    def payouts_for_order(self, order_id: UUID) -> List[Payout]:
        return (
            self.db.query(Payout)
            .filter(Payout.order_id == order_id)
            .order_by(Payout.type)
            .all()
        )

    def payouts_for_recipient(self, recipient_id: Optional[UUID] = None) -> List[Payout]:
        query = self.db.query(Payout)
        if recipient_id is not None:
            query = query.filter(Payout.recipient_id == recipient_id)
        return query.order_by(Payout.created_at.desc()).all()
