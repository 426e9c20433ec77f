"""
Sentry Error Tracking
=====================

Centralized error tracking for the ledger API.

Related files:
- glasscart/main.py: Initializes Sentry on app startup, reports IntegrityViolation
- glasscart/services/commission_ledger.py: Reports unresolvable payout recipients
- glasscart/services/scan_enrichment.py: Reports unexpected enrichment failures

Setup:
1. Create a project with the "FastAPI" platform
2. Copy DSN to SENTRY_DSN environment variable

Environment Variables:
- SENTRY_DSN: Sentry project DSN (Sentry stays disabled without it)
- ENVIRONMENT: Environment name (production, staging, development)
"""

from __future__ import annotations

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

logger = logging.getLogger(__name__)

_enabled = False


def init_sentry(dsn: Optional[str], environment: str = "development") -> bool:
    """
    Initialize Sentry SDK for FastAPI.

    Should be called once during application startup.

    Args:
        dsn: Project DSN; None or empty disables Sentry
        environment: Reported environment name

    Returns:
        True if Sentry was initialized, False otherwise.

    Example:
        settings = get_settings()
        init_sentry(settings.SENTRY_DSN, settings.ENVIRONMENT)
    """
    global _enabled

    if not dsn:
        logger.info("[SENTRY] No DSN configured - error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            integrations=[
                FastApiIntegration(transaction_style="endpoint"),
                SqlalchemyIntegration(),
                LoggingIntegration(
                    level=logging.INFO,        # Capture INFO+ as breadcrumbs
                    event_level=logging.ERROR,  # Send ERROR+ as events
                ),
            ],
            traces_sample_rate=0.1,
            send_default_pii=False,  # Scans carry user agents and coordinates
        )
    except Exception as e:
        logger.error(f"[SENTRY] Failed to initialize: {e}")
        return False

    _enabled = True
    logger.debug(f"[SENTRY] Initialized for {environment} environment")
    return True


def capture_exception(exception: Exception, extra: Optional[dict] = None) -> None:
    """
    Manually capture an exception to Sentry.

    Use this for exceptions that are caught and handled but should still
    be tracked, e.g. an order whose payout recipient cannot be resolved.

    Args:
        exception: The exception to capture
        extra: Additional context to attach to the event
    """
    if not _enabled:
        logger.debug(f"[SENTRY] Disabled, not reporting {type(exception).__name__}")
        return

    try:
        with sentry_sdk.new_scope() as scope:
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            sentry_sdk.capture_exception(exception)
    except Exception as e:
        logger.error(f"[SENTRY] Failed to capture exception: {e}")
