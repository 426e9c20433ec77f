"""
Ledger Errors
=============

Domain exception types for the QR attribution and commission pipeline.

WHY THIS FILE EXISTS
--------------------
Services must not know about HTTP, but every failure still has to land on a
precise status code. Each exception carries its status; `glasscart/main.py`
registers one handler that turns any `LedgerError` into `{"detail": message}`.

    ValidationError     400  missing/malformed input, user-correctable
    NotFound            404  unknown campaign, identifier, scan or order
    Conflict            409  duplicate code_identifier, scan already converted
    UpstreamDegraded    ---  enrichment lookup failed; never leaves the pipeline
    IntegrityViolation  500  corrupted state (e.g. order whose owner is missing)

RELATED FILES
-------------
- glasscart/services/*: raise these
- glasscart/services/scan_enrichment.py: swallows UpstreamDegraded
- glasscart/main.py: maps them to responses
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """
    Base exception for all domain errors.

    Allows catching every domain failure with a single except clause
    while still being able to handle specific error types.
    """

    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(LedgerError):
    """Required input missing or malformed."""

    status_code = 400


class NotFound(LedgerError):
    """Referenced campaign, identifier, scan or order does not exist."""

    status_code = 404


class Conflict(LedgerError):
    """
    A set-once or unique value is already taken.

    Raised for a reused `code_identifier` and for re-attributing a converted
    scan to a different order.
    """

    status_code = 409


class UpstreamDegraded(LedgerError):
    """
    An external enrichment lookup failed or timed out.

    Only raised by the geocoding/weather clients and always caught by the
    enrichment pipeline; the scan is stored without the affected fields.
    """

    status_code = 502

    def __init__(self, message: str, service: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.service = service


class IntegrityViolation(LedgerError):
    """
    Stored data contradicts an invariant the ledger relies on.

    This is a bug or corrupted state elsewhere, never a user error. Callers
    log it with full context and report it to Sentry.
    """

    status_code = 500
