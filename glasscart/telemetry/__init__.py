"""
Telemetry Module
================

Error tracking for the ledger API (Sentry). Logging itself is plain
`logging.getLogger(__name__)` with bracketed tags, configured in main.py.

Usage:
    from glasscart.telemetry import init_sentry, capture_exception
"""

from glasscart.telemetry.sentry import capture_exception, init_sentry

__all__ = [
    "init_sentry",
    "capture_exception",
]
