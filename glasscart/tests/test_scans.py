"""Tests for scan ingestion.

WHAT: POST /scans validation, best-effort enrichment, degraded storage
WHY: A geocoder or weather outage must never lose a scan, and enrichment
     must never overwrite what the landing page sent

REFERENCES:
  - glasscart/routers/scans.py
  - glasscart/services/scan_enrichment.py
"""

import asyncio
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import QueuePool

from glasscart.errors import UpstreamDegraded
from glasscart.models import Campaign, Product, RoleEnum, Scan, User
from glasscart.services.geocoding_client import PlaceNames


class FakeSlowGeocoder:
    def __init__(self, delay):
        self.delay = delay
        self.calls = []

    async def reverse(self, lat, lon):
        self.calls.append((lat, lon))
        await asyncio.sleep(self.delay)
        return PlaceNames(city="Wellington", suburb="Te Aro", region="Wellington")


class FakeFixedWeather:
    async def snapshot(self, lat, lon, at):
        return {"temp": 13.0, "condition": "Cloudy"}


def _scan_body(campaign, **overrides):
    body = {
        "campaign_id": str(campaign.id),
        "scanned_at": "2025-07-01T09:30:00Z",
        "coords": {"lat": -41.2865, "lon": 174.7762},
        "device_type": "mobile",
        "scan_source": "poster",
    }
    body.update(overrides)
    return body


class TestScanValidation:

    def test_missing_lat_is_rejected(self, client, test_db_session, campaign):
        body = _scan_body(campaign, coords={"lon": 174.7762})

        response = client.post("/scans", json=body)

        assert response.status_code == 400
        assert test_db_session.query(Scan).count() == 0

    def test_string_coordinates_are_rejected(self, client, campaign):
        body = _scan_body(campaign, coords={"lat": "-41.2865", "lon": "174.7762"})

        response = client.post("/scans", json=body)

        assert response.status_code == 400

    def test_boolean_coordinates_are_rejected(self, client, campaign):
        body = _scan_body(campaign, coords={"lat": True, "lon": 174.7762})

        response = client.post("/scans", json=body)

        assert response.status_code == 400

    def test_out_of_range_latitude_is_rejected(self, client, campaign):
        body = _scan_body(campaign, coords={"lat": 91.0, "lon": 174.7762})

        response = client.post("/scans", json=body)

        assert response.status_code == 400

    def test_missing_timestamp_is_rejected(self, client, campaign):
        body = _scan_body(campaign)
        del body["scanned_at"]

        response = client.post("/scans", json=body)

        assert response.status_code == 400

    def test_unknown_campaign_is_not_found(self, client, campaign):
        body = _scan_body(campaign, campaign_id=str(uuid4()))

        response = client.post("/scans", json=body)

        assert response.status_code == 404


class TestScanEnrichment:

    def test_fills_missing_places_and_weather(self, client, campaign, geocoder, weather):
        response = client.post("/scans", json=_scan_body(campaign))

        assert response.status_code == 201
        data = response.json()
        assert data["city"] == "Wellington"
        assert data["suburb"] == "Te Aro"
        assert data["region"] == "Wellington"
        assert data["weather"]["temp"] == 13.0
        assert data["weather"]["condition"] == "Cloudy"
        assert data["converted_order_id"] is None
        assert len(geocoder.calls) == 1
        assert len(weather.calls) == 1

    def test_client_values_are_never_overwritten(self, client, campaign, geocoder, weather):
        body = _scan_body(
            campaign,
            city="Lower Hutt",
            weather={"temp": 9, "condition": "Windy"},
        )

        response = client.post("/scans", json=body)

        assert response.status_code == 201
        data = response.json()
        assert data["city"] == "Lower Hutt"
        assert data["suburb"] == "Te Aro"  # gap filled
        assert data["weather"] == {"temp": 9, "condition": "Windy"}
        assert weather.calls == []

    def test_complete_scan_skips_lookups(self, client, campaign, geocoder, weather):
        body = _scan_body(
            campaign,
            city="Wellington",
            suburb="Kelburn",
            region="Wellington",
            weather={"temp": 11, "condition": "Clear"},
        )

        response = client.post("/scans", json=body)

        assert response.status_code == 201
        assert geocoder.calls == []
        assert weather.calls == []

    def test_geocoder_failure_still_stores_scan(self, client, test_db_session, campaign, geocoder):
        geocoder.error = UpstreamDegraded("Geocoder returned HTTP 503", service="geocoder")

        response = client.post("/scans", json=_scan_body(campaign))

        assert response.status_code == 201
        data = response.json()
        assert data["city"] is None
        assert data["suburb"] is None
        assert data["weather"]["condition"] == "Cloudy"
        assert test_db_session.query(Scan).count() == 1

    def test_geocoder_timeout_still_stores_scan(self, client, campaign, geocoder):
        geocoder.delay = 1.0  # pipeline timeout is 0.2s

        response = client.post("/scans", json=_scan_body(campaign))

        assert response.status_code == 201
        assert response.json()["city"] is None
        assert response.json()["weather"] is not None

    def test_weather_bug_still_stores_scan(self, client, campaign, weather):
        weather.error = RuntimeError("unexpected payload shape")

        response = client.post("/scans", json=_scan_body(campaign))

        assert response.status_code == 201
        assert response.json()["weather"] is None
        assert response.json()["city"] == "Wellington"

    def test_both_lookups_down(self, client, campaign, geocoder, weather):
        geocoder.delay = 1.0
        weather.error = UpstreamDegraded("Weather service timed out", service="weather")

        response = client.post("/scans", json=_scan_body(campaign))

        assert response.status_code == 201
        data = response.json()
        assert data["city"] is None
        assert data["weather"] is None
        assert data["lat"] == pytest.approx(-41.2865)


class TestScanMetadata:

    def test_user_agent_header_is_used_when_body_has_none(self, client, campaign):
        response = client.post(
            "/scans",
            json=_scan_body(campaign),
            headers={"User-Agent": "Mozilla/5.0 (iPhone)"},
        )

        assert response.status_code == 201
        assert response.json()["user_agent"] == "Mozilla/5.0 (iPhone)"

    def test_body_user_agent_wins(self, client, campaign):
        response = client.post(
            "/scans",
            json=_scan_body(campaign, user_agent="LandingPage/2.1"),
            headers={"User-Agent": "Mozilla/5.0"},
        )

        assert response.json()["user_agent"] == "LandingPage/2.1"

    def test_stores_timestamp_as_utc(self, client, campaign):
        body = _scan_body(campaign, scanned_at="2025-07-01T21:30:00+12:00")

        response = client.post("/scans", json=body)

        assert response.json()["scanned_at"].startswith("2025-07-01T09:30:00")

    def test_metadata_stored_verbatim(self, client, campaign):
        body = _scan_body(
            campaign,
            referrer="instagram",
            distance_to_store_m=50,
            nearest_poi="Bus Stop",
            distance_to_poi_m=10,
        )

        data = client.post("/scans", json=body).json()

        assert data["device_type"] == "mobile"
        assert data["scan_source"] == "poster"
        assert data["referrer"] == "instagram"
        assert data["nearest_poi"] == "Bus Stop"
        assert data["distance_to_store_m"] == 50

    def test_empty_string_from_client_is_kept(self, client, campaign, geocoder):
        body = _scan_body(campaign, city="")

        response = client.post("/scans", json=body)

        assert response.status_code == 201
        data = response.json()
        assert data["city"] == ""
        assert data["suburb"] == "Te Aro"
        assert len(geocoder.calls) == 1


class TestConcurrentIngestion:
    """Scans arriving together while the geocoder is slow all get stored."""

    @pytest.fixture
    def small_pool_engine(self, tmp_path):
        # One pooled connection: a request holding it across the lookups
        # would make the next request's checkout time out
        engine = create_engine(
            f"sqlite:///{tmp_path / 'scans.db'}",
            connect_args={"check_same_thread": False},
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=1,
        )
        from glasscart.database import Base
        Base.metadata.create_all(bind=engine)
        yield engine
        engine.dispose()

    @pytest.fixture
    def small_pool_campaign_id(self, small_pool_engine):
        SessionLocal = sessionmaker(bind=small_pool_engine, autoflush=False)
        with SessionLocal() as db:
            owner = User(name="Kathmandu", email="distributor@kathmandu.co.nz", role=RoleEnum.distributor)
            advertiser = User(name="Go Media", email="ads@gomedia.nz", role=RoleEnum.advertiser)
            db.add_all([owner, advertiser])
            db.flush()
            product = Product(distributor_id=owner.id, name="GlassCart QR T-Shirt", price=Decimal("39.99"))
            db.add(product)
            db.flush()
            campaign = Campaign(
                advertiser_id=advertiser.id,
                product_id=product.id,
                campaign_name="Winter QR Campaign",
                code_identifier="winter_qr_2025",
                commission_percent=10,
            )
            db.add(campaign)
            db.commit()
            return campaign.id

    def test_slow_geocoder_does_not_starve_other_scans(self, small_pool_engine, small_pool_campaign_id):
        from glasscart.database import get_db
        from glasscart.deps import get_enrichment_pipeline
        from glasscart.main import create_app
        from glasscart.services.scan_enrichment import ScanEnrichmentPipeline

        SessionLocal = sessionmaker(bind=small_pool_engine, autoflush=False)

        def override_get_db():
            db = SessionLocal()
            try:
                yield db
            finally:
                db.close()

        geocoder = FakeSlowGeocoder(delay=0.5)
        pipeline = ScanEnrichmentPipeline(geocoder=geocoder, weather=FakeFixedWeather(), timeout=2.0)

        test_app = create_app()
        test_app.dependency_overrides[get_db] = override_get_db
        test_app.dependency_overrides[get_enrichment_pipeline] = lambda: pipeline

        body = {
            "campaign_id": str(small_pool_campaign_id),
            "scanned_at": "2025-07-01T09:30:00Z",
            "coords": {"lat": -41.2865, "lon": 174.7762},
        }

        async def _post_together():
            transport = httpx.ASGITransport(app=test_app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                return await asyncio.gather(*(http.post("/scans", json=body) for _ in range(2)))

        responses = asyncio.run(_post_together())

        assert [r.status_code for r in responses] == [201, 201]
        assert len(geocoder.calls) == 2
        with SessionLocal() as db:
            assert db.query(Scan).count() == 2
