from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, Iterable

from PIL import ImageFont

logger = logging.getLogger("eventcerts.fonts")

SERIF = "serif"
MONOSPACE = "monospace"
SANS_SERIF = "sans-serif"
DECORATIVE = "decorative"

_SERIF_HINTS = (
    "times",
    "serif",
    "garamond",
    "baskerville",
    "georgia",
    "playfair",
    "lora",
    "merriweather",
    "crimson",
)
_MONO_HINTS = ("courier", "mono", "consolas", "menlo")

PDF_FONTS = {
    (SERIF, False): "Times-Roman",
    (SERIF, True): "Times-Bold",
    (MONOSPACE, False): "Courier",
    (MONOSPACE, True): "Courier-Bold",
    (SANS_SERIF, False): "Helvetica",
    (SANS_SERIF, True): "Helvetica-Bold",
}

_DEJAVU_DIR = "/usr/share/fonts/truetype/dejavu"
RASTER_FONT_PATHS = {
    "Helvetica": f"{_DEJAVU_DIR}/DejaVuSans.ttf",
    "Helvetica-Bold": f"{_DEJAVU_DIR}/DejaVuSans-Bold.ttf",
    "Times-Roman": f"{_DEJAVU_DIR}/DejaVuSerif.ttf",
    "Times-Bold": f"{_DEJAVU_DIR}/DejaVuSerif-Bold.ttf",
    "Courier": f"{_DEJAVU_DIR}/DejaVuSansMono.ttf",
    "Courier-Bold": f"{_DEJAVU_DIR}/DejaVuSansMono-Bold.ttf",
}
DEFAULT_RASTER_FONT_PATH = RASTER_FONT_PATHS["Helvetica"]


@dataclass(frozen=True)
class DecorativeFont:
    key: str
    pdf_name: str
    filename: str
    urls: tuple[str, ...]


DECORATIVE_FONTS: tuple[DecorativeFont, ...] = (
    DecorativeFont(
        key="montecarlo",
        pdf_name="MonteCarlo",
        filename="MonteCarlo-Regular.ttf",
        urls=(
            "https://fonts.gstatic.com/s/montecarlo/v1/MonteCarlo-Regular.ttf",
            "https://cdn.jsdelivr.net/gh/google/fonts@main/ofl/montecarlo/MonteCarlo-Regular.ttf",
            "https://raw.githubusercontent.com/google/fonts/main/ofl/montecarlo/MonteCarlo-Regular.ttf",
        ),
    ),
)


@dataclass(frozen=True)
class FontHandle:
    """A resolved font usable by both renderers.

    ``pdf_font`` is a base-14 name, or the name the vector backend registers
    ``ttf_data`` under. ``raster_path`` points at the TrueType twin of a
    base-14 font; decorative handles carry their bytes instead.
    """

    family: str
    category: str
    bold: bool
    pdf_font: str
    raster_path: str | None = None
    ttf_data: bytes | None = field(default=None, repr=False, compare=False)

    @property
    def decorative(self) -> bool:
        return self.ttf_data is not None


def classify_font(family: str | None) -> str:
    """Bucket a CSS-style family list into serif, monospace or sans-serif."""
    lowered = (family or "").lower()
    if any(hint in lowered for hint in _MONO_HINTS):
        return MONOSPACE
    # "sans-serif" contains "serif"; sans names are settled before serif hints.
    if "sans" in lowered:
        return SANS_SERIF
    if any(hint in lowered for hint in _SERIF_HINTS):
        return SERIF
    return SANS_SERIF


def fallback_font(family: str | None, bold: bool) -> FontHandle:
    category = classify_font(family)
    pdf_font = PDF_FONTS[(category, bool(bold))]
    return FontHandle(
        family=family or "",
        category=category,
        bold=bool(bold),
        pdf_font=pdf_font,
        raster_path=RASTER_FONT_PATHS.get(pdf_font, DEFAULT_RASTER_FONT_PATH),
    )


def _is_truetype(data: bytes) -> bool:
    try:
        ImageFont.truetype(BytesIO(data), 12)
    except (OSError, ValueError):
        return False
    return True


class FontResolver:
    """Resolve requested families through the decorative-then-fallback chain.

    Both renderers receive the handles this returns, so the classification
    rules and candidate order are applied once per family.
    """

    def __init__(
        self,
        fetch_bytes: Callable[[str], bytes | None] | None = None,
        *,
        font_dir: str | None = None,
        remote: bool = True,
        decorative_fonts: Iterable[DecorativeFont] = DECORATIVE_FONTS,
    ):
        self._fetch_bytes = fetch_bytes
        self.font_dir = font_dir
        self.remote = remote
        self.decorative_fonts = tuple(decorative_fonts)
        self._loaded: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def match_decorative(self, family: str | None) -> DecorativeFont | None:
        lowered = (family or "").lower()
        for font in self.decorative_fonts:
            if font.key in lowered:
                return font
        return None

    def candidates(self, font: DecorativeFont) -> list[str]:
        sources: list[str] = []
        if self.font_dir:
            sources.append(os.path.join(self.font_dir, font.filename))
        if self.remote:
            sources.extend(font.urls)
        return sources

    def _load(self, font: DecorativeFont) -> bytes | None:
        with self._lock:
            cached = self._loaded.get(font.key)
        if cached is not None:
            return cached
        for source in self.candidates(font):
            data = self._read(source)
            if data and _is_truetype(data):
                logger.info("[CERT-FONT] loaded %s from %s", font.pdf_name, source)
                with self._lock:
                    self._loaded[font.key] = data
                return data
            logger.info("[CERT-FONT] %s unavailable at %s", font.pdf_name, source)
        return None

    def _read(self, source: str) -> bytes | None:
        if source.startswith(("http://", "https://")):
            if self._fetch_bytes is None:
                return None
            return self._fetch_bytes(source)
        # local candidates only ever come from font_dir
        try:
            with open(source, "rb") as fh:
                return fh.read()
        except OSError:
            return None

    def resolve(self, family: str | None, bold: bool = False) -> FontHandle:
        font = self.match_decorative(family)
        if font is None:
            return fallback_font(family, bold)
        data = self._load(font)
        if data is not None:
            return FontHandle(
                family=family or "",
                category=DECORATIVE,
                bold=bool(bold),
                pdf_font=font.pdf_name,
                ttf_data=data,
            )
        handle = fallback_font(family, bold)
        logger.warning(
            "[CERT-FONT] family=%s %s→%s (all sources failed)",
            family,
            font.pdf_name,
            handle.pdf_font,
        )
        return handle
