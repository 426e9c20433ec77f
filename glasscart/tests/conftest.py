"""Pytest configuration for API integration tests

WHAT: Provides shared fixtures for HTTP endpoint and service-level tests
WHY: Ensures consistent test setup, database isolation, and offline enrichment
REFERENCES:
    - glasscart/main.py: FastAPI application
    - glasscart/database.py: Database configuration
    - glasscart/deps.py: Dependency injection (get_db, get_settings, get_enrichment_pipeline)
"""

import asyncio
import os
from datetime import datetime
from decimal import Decimal
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is in path
import sys
from pathlib import Path
PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Set test environment (glasscart.database reads DATABASE_URL at import time)
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENRICHMENT_ENABLED", "true")

from glasscart.services.geocoding_client import PlaceNames  # noqa: E402

QR_BASE_URL = "https://qr.glasscart.test"
FRONTEND_BASE_URL = "https://shop.glasscart.test"
ENRICHMENT_TIMEOUT = 0.2


# ============================================================================
# Fake enrichment clients
# ============================================================================

class FakeGeocoder:
    """Stands in for NominatimClient.

    Set `error` to raise, `delay` to exceed the pipeline timeout.
    """

    def __init__(self, places=None, error=None, delay=0.0):
        self.places = places or PlaceNames(city="Wellington", suburb="Te Aro", region="Wellington")
        self.error = error
        self.delay = delay
        self.calls = []

    async def reverse(self, lat, lon):
        self.calls.append((lat, lon))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.places


class FakeWeather:
    """Stands in for OpenMeteoClient."""

    def __init__(self, snapshot=None, error=None, delay=0.0):
        self.snapshot_value = snapshot or {"temp": 13.0, "condition": "Cloudy", "source": "open-meteo"}
        self.error = error
        self.delay = delay
        self.calls = []

    async def snapshot(self, lat, lon, at):
        self.calls.append((lat, lon, at))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.snapshot_value


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def test_db_engine():
    """Create in-memory test database engine."""
    # One shared connection, otherwise each session sees an empty database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    from glasscart.database import Base
    Base.metadata.create_all(bind=engine)

    yield engine

    # Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def test_db_session(test_db_engine) -> Generator[Session, None, None]:
    """Create test database session with rollback."""
    SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=test_db_engine
    )

    session = SessionLocal()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def repo(test_db_session):
    """LedgerRepository over the test session."""
    from glasscart.repository import LedgerRepository

    return LedgerRepository(test_db_session)


# ============================================================================
# Enrichment Fixtures
# ============================================================================

@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def weather():
    return FakeWeather()


@pytest.fixture
def pipeline(geocoder, weather):
    """Enrichment pipeline wired to the fake clients."""
    from glasscart.services.scan_enrichment import ScanEnrichmentPipeline

    return ScanEnrichmentPipeline(geocoder=geocoder, weather=weather, timeout=ENRICHMENT_TIMEOUT)


# ============================================================================
# Application & Client Fixtures
# ============================================================================

@pytest.fixture
def app(test_db_session, pipeline):
    """Create FastAPI test application."""
    from glasscart.main import create_app
    from glasscart.database import get_db
    from glasscart.deps import Settings, get_enrichment_pipeline, get_settings

    test_app = create_app()

    # Override database dependency; the session stays open for the whole
    # test so fixtures and requests share one identity map
    def override_get_db():
        yield test_db_session

    test_settings = Settings(QR_BASE_URL=QR_BASE_URL, FRONTEND_BASE_URL=FRONTEND_BASE_URL)

    test_app.dependency_overrides[get_db] = override_get_db
    test_app.dependency_overrides[get_settings] = lambda: test_settings
    test_app.dependency_overrides[get_enrichment_pipeline] = lambda: pipeline

    return test_app


@pytest.fixture
def client(app) -> TestClient:
    """Create TestClient for HTTP testing."""
    return TestClient(app)


# ============================================================================
# Model Fixtures
# ============================================================================

def _persist(session, instance):
    session.add(instance)
    session.commit()
    session.refresh(instance)
    return instance


@pytest.fixture
def distributor(test_db_session):
    """Product owner; receives distributor_revenue."""
    from glasscart.models import RoleEnum, User

    return _persist(test_db_session, User(
        name="Kathmandu",
        email="distributor@kathmandu.co.nz",
        role=RoleEnum.distributor,
    ))


@pytest.fixture
def advertiser(test_db_session):
    """Campaign owner; receives advertiser_commission."""
    from glasscart.models import RoleEnum, User

    return _persist(test_db_session, User(
        name="Go Media",
        email="ads@gomedia.nz",
        role=RoleEnum.advertiser,
    ))


@pytest.fixture
def customer(test_db_session):
    from glasscart.models import RoleEnum, User

    return _persist(test_db_session, User(
        name="Jane Doe",
        email="jane@example.com",
        role=RoleEnum.customer,
    ))


@pytest.fixture
def product(test_db_session, distributor):
    from glasscart.models import Product

    return _persist(test_db_session, Product(
        distributor_id=distributor.id,
        name="GlassCart QR T-Shirt",
        price=Decimal("39.99"),
        stock_quantity=50,
    ))


@pytest.fixture
def campaign(test_db_session, advertiser, product):
    """10% campaign at a Wellington bus stop."""
    from glasscart.models import Campaign

    return _persist(test_db_session, Campaign(
        advertiser_id=advertiser.id,
        product_id=product.id,
        campaign_name="Winter QR Campaign",
        code_identifier="winter_qr_2025",
        commission_percent=10,
        location="Wellington Bus Stop",
    ))


@pytest.fixture
def make_scan(test_db_session):
    """Factory for stored scans (bypasses enrichment)."""
    from glasscart.models import Scan

    def _make(campaign, **overrides):
        fields = dict(
            campaign_id=campaign.id,
            scanned_at=datetime(2025, 7, 1, 9, 30),
            lat=-41.2865,
            lon=174.7762,
        )
        fields.update(overrides)
        return _persist(test_db_session, Scan(**fields))

    return _make
