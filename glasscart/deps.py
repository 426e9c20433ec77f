"""Dependency providers and settings management."""

from functools import lru_cache
from typing import Optional

from fastapi import Depends
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.orm import Session

from .database import get_db
from .repository import LedgerRepository


class Settings(BaseSettings):
    """Application settings loaded from environment or .env."""

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"

    # Public base of this API; QR codes encode f"{QR_BASE_URL}/w/{code_identifier}"
    QR_BASE_URL: str = "http://localhost:8000"
    # Storefront that short links redirect to
    FRONTEND_BASE_URL: str = "http://localhost:3000"

    # Scan enrichment (best effort, attempt-once)
    ENRICHMENT_ENABLED: bool = True
    ENRICHMENT_TIMEOUT_SECONDS: float = 2.5
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/reverse"
    # Nominatim usage policy requires an identifying User-Agent
    GEOCODER_USER_AGENT: str = "glasscart-api/1.0 (+https://glasscart.nz)"
    WEATHER_URL: str = "https://api.open-meteo.com/v1/forecast"
    WEATHER_ARCHIVE_URL: str = "https://archive-api.open-meteo.com/v1/archive"

    SENTRY_DSN: Optional[str] = None
    ENVIRONMENT: str = "development"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()  # type: ignore[call-arg]


def get_repository(db: Session = Depends(get_db)) -> LedgerRepository:
    """Wrap the request's session in the repository the services expect."""
    return LedgerRepository(db)


def get_enrichment_pipeline():
    """Build the scan enrichment pipeline from settings.

    Overridden in tests with fake geocoder/weather clients.
    """
    from .services.scan_enrichment import ScanEnrichmentPipeline

    return ScanEnrichmentPipeline.from_settings(get_settings())
