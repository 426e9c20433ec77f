"""SQLAlchemy ORM models and enums.

This module defines the ledger schema using UUID primary keys and explicit
relationships. Users and products are owned by external services; the core
only reads them as campaign owners and payout recipients.
"""

import uuid
from datetime import datetime
import enum

from sqlalchemy import (
    Column, String, DateTime, Enum, Integer, ForeignKey, Numeric, JSON, Text,
    Float, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship, declarative_base


# Single Base used by the entire application
Base = declarative_base()


# Enums ---------------------------------------------------------

class RoleEnum(str, enum.Enum):
    distributor = "distributor"
    advertiser = "advertiser"
    customer = "customer"
    retailer = "retailer"


class PayoutTypeEnum(str, enum.Enum):
    """Closed set of ledger entry types.

    - advertiser_commission: the campaign owner's cut of an attributed order
    - distributor_revenue: what the product owner keeps (absorbs rounding)
    """
    advertiser_commission = "advertiser_commission"
    distributor_revenue = "distributor_revenue"


# Externally managed records ---------------------------------------

class User(Base):
    """Account that can own products, run campaigns, buy, or receive payouts."""
    __tablename__ = "users"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    role = Column(Enum(RoleEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __str__(self):
        return f"{self.name} ({self.role})"


class Product(Base):
    """Sellable item. `distributor_id` is the owner that receives revenue payouts."""
    __tablename__ = "products"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    distributor_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    name = Column(String, nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    stock_quantity = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    distributor = relationship("User")

    def __str__(self):
        return self.name


# Core models ----------------------------------------------------

class Campaign(Base):
    """A tracked QR placement for one product.

    WHAT: Binds a public `code_identifier` to a product, an advertiser and a
          commission rate.
    WHY: The identifier is what the printed QR code encodes, so it must never
         be reused; the unique index is the only guard needed.
    """
    __tablename__ = "campaigns"
    __table_args__ = (
        UniqueConstraint("code_identifier", name="uq_campaign_code_identifier"),
        CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_campaign_commission_percent",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    advertiser_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    campaign_name = Column(String, nullable=False)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    code_identifier = Column(String, nullable=False)
    commission_percent = Column(Integer, nullable=False, default=0)
    location = Column(String, nullable=True)  # Placement label, e.g. "Wellington Bus Stop"
    created_at = Column(DateTime, default=datetime.utcnow)

    advertiser = relationship("User")
    product = relationship("Product")
    scans = relationship("Scan", back_populates="campaign")

    def __str__(self):
        return f"{self.campaign_name} ({self.code_identifier})"


class Scan(Base):
    """Immutable record of one QR resolution.

    Only `converted_order_id` changes after insert, and only once.
    """
    __tablename__ = "scans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=False, index=True)
    scanned_at = Column(DateTime, nullable=False)
    lat = Column(Float, nullable=False)
    lon = Column(Float, nullable=False)

    # Place names (client supplied or reverse geocoded)
    city = Column(String, nullable=True, index=True)
    suburb = Column(String, nullable=True)
    region = Column(String, nullable=True)

    # {"temp": 13.0, "condition": "Cloudy", ...}
    weather = Column(JSON, nullable=True)

    # Proximity metrics
    distance_to_store_m = Column(Integer, nullable=True)
    nearest_poi = Column(String, nullable=True)
    distance_to_poi_m = Column(Integer, nullable=True)

    # Client metadata
    user_agent = Column(String, nullable=True)
    device_type = Column(String, nullable=True)
    referrer = Column(String, nullable=True)
    scan_source = Column(String, nullable=True)

    converted_order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    campaign = relationship("Campaign", back_populates="scans")
    converted_order = relationship("Order")

    def __str__(self):
        return f"Scan {self.id} - {self.city or 'unknown'} - {self.scanned_at}"


class Order(Base):
    """Checkout record. Immutable once created.

    `commission_percent` is copied from the campaign at creation so later
    rate edits never change how this order settles.
    """
    __tablename__ = "orders"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    customer_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=True)
    product_id = Column(UUID(as_uuid=True), ForeignKey("products.id"), nullable=False)
    campaign_id = Column(UUID(as_uuid=True), ForeignKey("campaigns.id"), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    total_amount = Column(Numeric(12, 2), nullable=False)
    commission_percent = Column(Integer, nullable=True)
    commission_amount = Column(Numeric(12, 2), nullable=True)
    shipping_address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")
    campaign = relationship("Campaign")
    payouts = relationship("Payout", back_populates="order", order_by="Payout.type")

    def __str__(self):
        return f"Order {self.id} - {self.total_amount}"


class Payout(Base):
    """Immutable ledger entry splitting an order's value."""
    __tablename__ = "payouts"
    __table_args__ = (
        # One entry per leg per order, so a re-settlement can never double-pay
        UniqueConstraint("order_id", "type", name="uq_payout_order_type"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id = Column(UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    order_id = Column(UUID(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(Enum(PayoutTypeEnum, values_callable=lambda obj: [e.value for e in obj]), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    order = relationship("Order", back_populates="payouts")
    recipient = relationship("User")

    def __str__(self):
        return f"{self.type.value if self.type else 'payout'} {self.amount} for order {self.order_id}"
