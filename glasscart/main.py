"""FastAPI application entrypoint.

Configures logging, Sentry, CORS, maps domain errors to HTTP responses,
includes routers, and exposes a healthcheck endpoint.
"""

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from .deps import get_settings
from .errors import IntegrityViolation, LedgerError
from .routers import campaigns as campaigns_router
from .routers import orders as orders_router
from .routers import qr_codes as qr_codes_router
from .routers import scans as scans_router
from .telemetry import capture_exception, init_sentry
from . import schemas

# Import models so Alembic can discover metadata
from . import models  # noqa: F401


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    """Map domain exceptions onto their HTTP status with `{"detail": message}`."""
    if isinstance(exc, IntegrityViolation):
        # Corrupted state, not a client mistake
        logger.error(
            f"[API] Integrity violation on {request.method} {request.url.path}: {exc.message}",
            extra=exc.context,
        )
        capture_exception(exc, extra={"path": request.url.path, **exc.context})
    elif exc.status_code >= 500:
        logger.error(f"[API] {type(exc).__name__} on {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters are client errors (400), not 422."""
    logger.info(f"[API] Rejected request to {request.url.path}: {len(exc.errors())} validation error(s)")
    return JSONResponse(
        status_code=400,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    init_sentry(settings.SENTRY_DSN, settings.ENVIRONMENT)

    app = FastAPI(
        title="GlassCart API",
        description="""
        GlassCart turns printed QR codes into attributable sales.

        This API provides endpoints for:
        - Campaign registration and QR asset generation (PNG/SVG, embed snippets)
        - Short-link resolution for printed codes
        - Scan ingestion with best-effort location and weather enrichment
        - Order creation with scan attribution and commission settlement
        - Scan and placement reports

        ## Ledger
        Every order produces immutable payouts that sum exactly to its total:
        an advertiser commission (when a campaign is attributed) and the
        distributor's revenue.
        """,
        version="1.0.0",
        servers=[
            {
                "url": "http://localhost:8000",
                "description": "Development server"
            },
        ]
    )

    # Trust X-Forwarded-Proto from the load balancer so generated URLs use https
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

    # BACKEND_CORS_ORIGINS can be a comma-separated list: "https://shop.glasscart.nz,http://localhost:3000"
    allowed_origins = [o.strip() for o in settings.BACKEND_CORS_ORIGINS.split(",") if o.strip()]
    logger.info(f"[CORS] Allowed origins: {allowed_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LedgerError, ledger_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(campaigns_router.router)
    app.include_router(qr_codes_router.router)
    app.include_router(scans_router.router)
    app.include_router(orders_router.router)

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.

        This endpoint:
        - Does not require authentication
        - Returns basic service status
        - Can be used for load balancer health checks
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    return app


app = create_app()
