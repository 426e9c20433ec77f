"""QR code asset generation.

WHAT:
    Turns a campaign's `code_identifier` into a scannable PNG or SVG that
    encodes `<QR_BASE_URL>/w/<code_identifier>`, plus the derived URLs and
    embed snippet the dashboard shows next to it.

WHY:
    The printed code must keep working from a bus shelter poster to a sticker,
    so PNGs use error-correction level H and SVGs are path based (scale-free).

HOW:
    Rendering is a pure function of (url, format) and is memoised in-process;
    repeat requests for the same campaign return byte-identical images.

REFERENCES:
    - glasscart/routers/qr_codes.py (endpoints)
    - https://github.com/lincolnloop/python-qrcode
"""

import io
from functools import lru_cache
from typing import Optional
from uuid import UUID

import qrcode
import qrcode.image.svg
from qrcode.constants import ERROR_CORRECT_H
from qrcode.exceptions import DataOverflowError

from ..errors import IntegrityViolation, NotFound, ValidationError
from ..models import Campaign
from ..repository import LedgerRepository

# format -> (media type, file extension)
FORMATS = {
    "png": ("image/png", "png"),
    "svg": ("image/svg+xml", "svg"),
}
DEFAULT_FORMAT = "png"

BOX_SIZE = 10
BORDER = 4
EMBED_SIZE_PX = 200


def build_redirect_url(base_url: str, code_identifier: str) -> str:
    """Canonical short link a QR code encodes."""
    return f"{base_url.rstrip('/')}/w/{code_identifier}"


def build_qr(url: str) -> qrcode.QRCode:
    """QR symbol for `url` with the fixed print-safe settings."""
    qr = qrcode.QRCode(
        error_correction=ERROR_CORRECT_H,
        box_size=BOX_SIZE,
        border=BORDER,
    )
    qr.add_data(url)
    qr.make(fit=True)
    return qr


@lru_cache(maxsize=1024)
def render_qr(url: str, fmt: str) -> bytes:
    """Encode `url` as image bytes in `fmt` ("png" or "svg")."""
    qr = build_qr(url)
    if fmt == "svg":
        img = qr.make_image(image_factory=qrcode.image.svg.SvgPathImage)
    else:
        img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer)
    return buffer.getvalue()


def normalize_format(fmt: Optional[str]) -> str:
    """Map a requested format onto a supported one (raster by default)."""
    if fmt is None or fmt == "":
        return DEFAULT_FORMAT
    fmt = fmt.lower()
    if fmt not in FORMATS:
        raise ValidationError(
            f"Unsupported format '{fmt}'. Use one of: {', '.join(sorted(FORMATS))}"
        )
    return fmt


def generate_asset(
    repo: LedgerRepository,
    campaign_id: UUID,
    fmt: Optional[str],
    base_url: str,
) -> bytes:
    """Render the QR image for a campaign.

    Args:
        repo: Storage access
        campaign_id: Campaign to render
        fmt: "png" (raster, default) or "svg" (vector)
        base_url: Public API base the short link lives on

    Returns:
        Image bytes

    Raises:
        ValidationError: Unsupported format
        NotFound: Unknown campaign
        IntegrityViolation: Encoder rejected the URL
    """
    fmt = normalize_format(fmt)
    campaign = repo.get_campaign(campaign_id)
    if not campaign:
        raise NotFound(f"Campaign {campaign_id} not found")

    url = build_redirect_url(base_url, campaign.code_identifier)
    try:
        return render_qr(url, fmt)
    except (ValueError, DataOverflowError) as e:
        raise IntegrityViolation(
            f"QR encoding failed for campaign {campaign_id}",
            context={"campaign_id": str(campaign_id), "url": url, "format": fmt, "error": str(e)},
        )


def asset_url(base_url: str, campaign_id: UUID, fmt: str) -> str:
    return f"{base_url.rstrip('/')}/qrcode/{campaign_id}?format={fmt}"


def embed_snippet(base_url: str, campaign: Campaign) -> str:
    """Fixed-template iframe referencing the campaign's PNG asset."""
    src = asset_url(base_url, campaign.id, "png")
    return (
        f'<iframe src="{src}" width="{EMBED_SIZE_PX}" height="{EMBED_SIZE_PX}" '
        f'frameborder="0" title="{campaign.code_identifier} QR code"></iframe>'
    )


def asset_urls(base_url: str, campaign: Campaign) -> dict:
    """All derived asset URLs/snippets for a campaign (no state written)."""
    return {
        "qrPngUrl": asset_url(base_url, campaign.id, "png"),
        "qrSvgUrl": asset_url(base_url, campaign.id, "svg"),
        "shortLink": build_redirect_url(base_url, campaign.code_identifier),
        "embedCode": embed_snippet(base_url, campaign),
    }
