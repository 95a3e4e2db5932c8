from __future__ import annotations

import logging
from urllib.parse import quote

import qrcode
from PIL import Image

logger = logging.getLogger("eventcerts.qr")

VERIFY_PATH = "/verify-certificate/"
QR_BORDER = 1
# Smallest module width, in pixels, a scanner reads reliably.
MIN_BOX_SIZE = 2
# Characters encodeURIComponent leaves alone on top of quote()'s defaults.
_URI_COMPONENT_SAFE = "!*'()"


def build_verification_url(certificate_number: str, base_url: str) -> str:
    encoded = quote(certificate_number, safe=_URI_COMPONENT_SAFE)
    return f"{(base_url or '').rstrip('/')}{VERIFY_PATH}{encoded}"


def build_qr(data: str) -> qrcode.QRCode:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=1,
        border=QR_BORDER,
    )
    qr.add_data(data)
    qr.make(fit=True)
    return qr


def box_size_for(modules: int, size: float) -> int:
    """Whole pixels per module so the symbol lands as close to ``size`` as possible."""
    return max(MIN_BOX_SIZE, int(round(size / modules)))


def generate_qr_image(data: str, size: float) -> Image.Image:
    """Black-on-white QR whose modules are all exactly the same pixel width.

    The side is a whole multiple of the module count, so it can differ a few
    pixels from ``size``; renderers place the image at its real size.
    """
    qr = build_qr(data)
    modules = qr.modules_count + 2 * QR_BORDER
    qr.box_size = box_size_for(modules, size)
    image = qr.make_image(fill_color="black", back_color="white")
    if hasattr(image, "get_image"):
        image = image.get_image()
    return image.convert("RGB")


def embed(certificate_number: str, base_url: str, size: float) -> Image.Image | None:
    """QR raster for the certificate's verification URL, or ``None`` on failure."""
    url = build_verification_url(certificate_number, base_url)
    try:
        return generate_qr_image(url, size)
    except Exception:  # qr is best-effort; the number is drawn regardless
        logger.exception("[CERT-QR] number=%s url=%s generation failed", certificate_number, url)
        return None
