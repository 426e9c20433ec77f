"""Pydantic schemas for request/response payloads.

Every inbound body is validated here before it is mapped onto the ORM
entities in `glasscart.models`; coordinates and amounts are strictly typed.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator

from .models import PayoutTypeEnum


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stored timestamps are naive UTC."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


# Public identifiers end up in URL paths (/w/{identifier}) and inside QR codes
CODE_IDENTIFIER_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service status")


# =============================================================================
# CAMPAIGNS
# =============================================================================

class CampaignCreate(BaseModel):
    """Payload for creating a campaign.

    `qr_code_identifier` is accepted as an alias of `code_identifier` for
    clients built against the first API version.
    """

    advertiser_id: Optional[UUID] = Field(None, description="Advertiser (campaign owner) user ID")
    product_id: UUID = Field(description="Product the QR code sells")
    campaign_name: str = Field(min_length=1, max_length=200, description="Display name")
    start_date: Optional[datetime] = Field(None, description="Start of validity window")
    end_date: Optional[datetime] = Field(None, description="End of validity window")
    code_identifier: str = Field(
        pattern=CODE_IDENTIFIER_PATTERN,
        validation_alias=AliasChoices("code_identifier", "qr_code_identifier"),
        description="Globally unique public identifier encoded in the QR code",
    )
    commission_percent: int = Field(0, ge=0, le=100, description="Advertiser commission, percent of order total")
    location: Optional[str] = Field(None, description="Placement label, e.g. 'Wellington Bus Stop'")

    model_config = {
        "json_schema_extra": {
            "example": {
                "advertiser_id": "9c5e2d0e-4b7e-4f55-9b8f-0d6a3c1f2e11",
                "product_id": "1b3f7f0a-6a55-4bd5-8f51-7c6e3c0b9d42",
                "campaign_name": "Winter QR Campaign",
                "code_identifier": "winter_qr_2025",
                "commission_percent": 10,
                "location": "Wellington Bus Stop",
            }
        }
    }

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_window(cls, value):
        return _naive_utc(value)

    @model_validator(mode="after")
    def _check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class CampaignUpdate(BaseModel):
    """Administrative edit. Omitted fields are left unchanged."""

    campaign_name: Optional[str] = Field(None, min_length=1, max_length=200)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    code_identifier: Optional[str] = Field(None, pattern=CODE_IDENTIFIER_PATTERN)
    commission_percent: Optional[int] = Field(None, ge=0, le=100)
    location: Optional[str] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def _normalize_window(cls, value):
        return _naive_utc(value)


class CampaignOut(BaseModel):
    """Public representation of a campaign."""

    id: UUID
    advertiser_id: Optional[UUID] = None
    product_id: UUID
    campaign_name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    code_identifier: str
    commission_percent: int
    location: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CampaignAssets(BaseModel):
    """Every derived asset for a campaign in one response (no state written)."""

    qr_png_url: str = Field(alias="qrPngUrl")
    qr_svg_url: str = Field(alias="qrSvgUrl")
    short_link: str = Field(alias="shortLink")
    embed_code: str = Field(alias="embedCode")

    model_config = {"populate_by_name": True}


class EmbedResponse(BaseModel):
    """Embeddable HTML snippet for a campaign's QR code."""

    embed_code: str = Field(alias="embedCode")

    model_config = {"populate_by_name": True}


# =============================================================================
# SCANS
# =============================================================================

class Coords(BaseModel):
    """Scan position. Both values are required and must be JSON numbers."""

    lat: float = Field(strict=True, ge=-90, le=90, description="Latitude (WGS84)")
    lon: float = Field(strict=True, ge=-180, le=180, description="Longitude (WGS84)")


class ScanCreate(BaseModel):
    """Raw scan event as posted by the landing page.

    Place names and weather are optional; whatever is missing is filled by
    best-effort enrichment. Client-supplied values are never overwritten.
    """

    campaign_id: UUID = Field(description="Campaign whose code was scanned")
    scanned_at: datetime = Field(description="When the code was scanned (ISO 8601)")
    coords: Coords

    city: Optional[str] = None
    suburb: Optional[str] = None
    region: Optional[str] = None
    weather: Optional[Dict[str, Any]] = Field(None, description="e.g. {\"temp\": 13, \"condition\": \"Cloudy\"}")

    distance_to_store_m: Optional[int] = Field(None, ge=0)
    nearest_poi: Optional[str] = None
    distance_to_poi_m: Optional[int] = Field(None, ge=0)

    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    referrer: Optional[str] = None
    scan_source: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "campaign_id": "3f0c1a8e-2f4b-4a8c-9f1e-5b2d7c6a9e10",
                "scanned_at": "2025-07-01T09:30:00Z",
                "coords": {"lat": -41.2865, "lon": 174.7762},
                "device_type": "mobile",
                "scan_source": "poster",
            }
        }
    }


class ScanOut(BaseModel):
    """Stored scan, including whatever enrichment succeeded."""

    id: UUID
    campaign_id: UUID
    scanned_at: datetime
    lat: float
    lon: float
    city: Optional[str] = None
    suburb: Optional[str] = None
    region: Optional[str] = None
    weather: Optional[Dict[str, Any]] = None
    distance_to_store_m: Optional[int] = None
    nearest_poi: Optional[str] = None
    distance_to_poi_m: Optional[int] = None
    user_agent: Optional[str] = None
    device_type: Optional[str] = None
    referrer: Optional[str] = None
    scan_source: Optional[str] = None
    converted_order_id: Optional[UUID] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CitySummary(BaseModel):
    """Scan count and centroid for one resolved city."""

    city: str
    lat: float
    lon: float
    scan_count: int


class GeoPoint(BaseModel):
    lat: float
    lon: float


class CampaignScanSummary(BaseModel):
    """Aggregate scan/conversion picture for one campaign."""

    campaign_id: UUID
    campaign_name: str
    code_identifier: str
    scan_count: int
    conversion_count: int
    conversion_rate: float = Field(description="Converted scans / total scans, 0.0 when no scans")
    first_scan_at: Optional[datetime] = None
    last_scan_at: Optional[datetime] = None
    cities: List[str] = Field(default_factory=list)
    regions: List[str] = Field(default_factory=list)
    device_types: List[str] = Field(default_factory=list)
    scan_sources: List[str] = Field(default_factory=list)
    referrers: List[str] = Field(default_factory=list)
    points: List[GeoPoint] = Field(default_factory=list)
    avg_temperature: Optional[float] = None
    weather_conditions: List[str] = Field(default_factory=list)


class PlacementSummary(BaseModel):
    """Scans and conversions per physical placement label."""

    location: Optional[str] = None
    campaign_count: int
    scan_count: int
    conversion_count: int
    conversion_rate: float


# =============================================================================
# ORDERS & PAYOUTS
# =============================================================================

class OrderCreate(BaseModel):
    """Checkout payload.

    `scan_id` optionally names the scan that led to this purchase; its
    conversion pointer is set once. `id` may be supplied by the client so a
    re-submitted checkout is recognised instead of settled twice.
    """

    id: Optional[UUID] = Field(None, description="Client-generated order ID (idempotency)")
    customer_id: Optional[UUID] = None
    product_id: UUID
    campaign_id: Optional[UUID] = Field(None, description="Attributed campaign, if any")
    scan_id: Optional[UUID] = Field(None, description="Scan that converted, if known")
    quantity: int = Field(1, ge=1)
    total_amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2, description="Order total in currency units")
    shipping_address: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "customer_id": "5d1f3b7a-0e2c-4d8b-a6f9-2c4e8b1a7d33",
                "product_id": "1b3f7f0a-6a55-4bd5-8f51-7c6e3c0b9d42",
                "campaign_id": "3f0c1a8e-2f4b-4a8c-9f1e-5b2d7c6a9e10",
                "quantity": 2,
                "total_amount": "79.98",
                "shipping_address": "123 Queen Street, Auckland",
            }
        }
    }

    @field_validator("total_amount", mode="before")
    @classmethod
    def _reject_bool(cls, value):
        if isinstance(value, bool):
            raise ValueError("total_amount must be a number")
        return value


class PayoutOut(BaseModel):
    """Ledger entry."""

    id: UUID
    recipient_id: UUID
    order_id: UUID
    amount: Decimal
    type: PayoutTypeEnum
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OrderOut(BaseModel):
    """Stored order."""

    id: UUID
    customer_id: Optional[UUID] = None
    product_id: UUID
    campaign_id: Optional[UUID] = None
    quantity: int
    total_amount: Decimal
    commission_percent: Optional[int] = None
    commission_amount: Optional[Decimal] = None
    shipping_address: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SettledOrder(BaseModel):
    """An order together with the payouts it produced."""

    order: OrderOut
    payouts: List[PayoutOut]
