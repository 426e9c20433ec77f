"""QR image, short-link redirect and embed endpoints.

WHAT:
    - GET /qrcode/{campaign_id}?format=png|svg  image download
    - GET /w/{identifier}                       what a printed code opens (302)
    - GET /embed/{identifier}                   iframe snippet for websites

REFERENCES:
    - glasscart/services/qr_assets.py
    - glasscart/services/short_links.py
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import RedirectResponse

from ..deps import Settings, get_repository, get_settings
from ..repository import LedgerRepository
from ..schemas import EmbedResponse
from ..services import qr_assets, short_links

logger = logging.getLogger(__name__)

router = APIRouter(tags=["QR Codes"])


@router.get(
    "/qrcode/{campaign_id}",
    summary="Download a campaign QR code",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}, "image/svg+xml": {}}},
        400: {"description": "Unsupported format"},
        404: {"description": "Unknown campaign"},
    },
)
def get_qr_code(
    campaign_id: UUID,
    format: Optional[str] = Query(None, description="png (default) or svg"),
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    fmt = qr_assets.normalize_format(format)
    body = qr_assets.generate_asset(repo, campaign_id, fmt, settings.QR_BASE_URL)
    media_type, ext = qr_assets.FORMATS[fmt]
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="qr-{campaign_id}.{ext}"'},
    )


@router.get(
    "/w/{identifier}",
    summary="Resolve a printed QR code",
    status_code=status.HTTP_302_FOUND,
    response_class=RedirectResponse,
    responses={404: {"description": "Unknown identifier"}},
)
def resolve_short_link(
    identifier: str,
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    campaign = short_links.resolve(repo, identifier)
    return RedirectResponse(
        url=short_links.product_url(settings.FRONTEND_BASE_URL, campaign),
        status_code=status.HTTP_302_FOUND,
    )


@router.get(
    "/embed/{identifier}",
    response_model=EmbedResponse,
    response_model_by_alias=True,
    summary="Get the embed snippet for a campaign",
)
def get_embed(
    identifier: str,
    repo: LedgerRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    campaign = short_links.resolve(repo, identifier)
    return EmbedResponse(embed_code=qr_assets.embed_snippet(settings.QR_BASE_URL, campaign))
