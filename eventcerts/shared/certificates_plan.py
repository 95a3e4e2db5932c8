from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from PIL import Image

from . import qr
from .assets import AssetFetcher
from .certificates_coords import Canvas
from .certificates_fonts import FontHandle, FontResolver
from .certificates_layout import LayoutConfig, TextStyle
from .certificates_text import CertificateData, expand_lines

TITLE_RAISE_PCT = 4.0
SUBTITLE_DROP_PCT = 2.0
SUBTITLE_SCALE = 0.4
SIGNATURE_IMAGE_GAP = 20.0
SIGNATURE_ROLE_DROP = 20.0


@dataclass(frozen=True)
class TextElement:
    kind: str
    text: str
    x_pct: float
    y_pct: float
    font: FontHandle
    size: float
    color: str
    dy: float = 0.0


@dataclass(frozen=True)
class ImageElement:
    """An image placed by its design-space top-left corner, in design units."""

    kind: str
    image: Image.Image | None = field(compare=False, repr=False)
    left: float
    top: float
    width: float
    height: float


@dataclass(frozen=True)
class LineElement:
    kind: str
    x1_pct: float
    x2_pct: float
    y_pct: float
    thickness: float
    color: str


@dataclass(frozen=True)
class CertificateNumberElement:
    text: str
    x_pct: float
    y_pct: float
    font: FontHandle
    size: float
    color: str
    verification_url: str | None = None
    qr: Image.Image | None = field(default=None, compare=False, repr=False)
    qr_size: float = 0.0
    qr_gap: float = 0.0
    kind: str = "certificate_number"


PlanElement = Union[TextElement, ImageElement, LineElement, CertificateNumberElement]


@dataclass(frozen=True)
class LayoutPlan:
    canvas: Canvas
    background_color: str
    border_color: str
    border_width: float
    elements: tuple[PlanElement, ...]
    background: Image.Image | None = field(default=None, compare=False, repr=False)

    def element_kinds(self) -> list[str]:
        return [element.kind for element in self.elements]


@dataclass(frozen=True)
class DrawnElement:
    kind: str
    text: str = ""


@dataclass(frozen=True)
class RenderedCertificate:
    data: bytes
    elements: tuple[DrawnElement, ...]
    media_type: str

    def kinds(self) -> list[str]:
        return [element.kind for element in self.elements]


class _FontCache:
    def __init__(self, resolver: FontResolver):
        self._resolver = resolver
        self._handles: dict[tuple[str, bool], FontHandle] = {}

    def get(self, family: str, bold: bool) -> FontHandle:
        key = (family, bool(bold))
        if key not in self._handles:
            self._handles[key] = self._resolver.resolve(family, bold)
        return self._handles[key]


def _text(
    kind: str,
    text: str,
    style: TextStyle,
    fonts: _FontCache,
    *,
    y_pct: float | None = None,
    size: float | None = None,
    bold: bool | None = None,
    dy: float = 0.0,
) -> TextElement:
    return TextElement(
        kind=kind,
        text=text,
        x_pct=style.position.x,
        y_pct=style.position.y if y_pct is None else y_pct,
        font=fonts.get(style.font_family, style.bold if bold is None else bold),
        size=style.font_size if size is None else size,
        color=style.color,
        dy=dy,
    )


def _image_sources(layout: LayoutConfig) -> list[str]:
    sources = [layout.background_image_url]
    sources.extend(logo.url for logo in layout.logo_config.logos)
    sources.extend(layout.logo_config.sponsor_logos)
    sources.extend(block.signature_image_url for block in layout.signature_blocks)
    return [source for source in sources if source]


def build_plan(
    layout: LayoutConfig,
    data: CertificateData,
    certificate_number: str,
    *,
    fonts: FontResolver,
    fetcher: AssetFetcher | None = None,
    verify_base_url: str | None = None,
) -> LayoutPlan:
    """Resolve fonts, text, images and QR for one certificate.

    Elements are emitted in drawing order; both renderers walk them as-is.
    """
    canvas = Canvas(layout.width, layout.height)
    font_cache = _FontCache(fonts)
    images = fetcher.fetch_all(_image_sources(layout)) if fetcher else {}
    elements: list[PlanElement] = []

    for logo in layout.logo_config.logos:
        elements.append(
            ImageElement(
                kind="logo",
                image=images.get(logo.url),
                left=canvas.width * logo.position.x / 100.0,
                top=canvas.height * logo.position.y / 100.0,
                width=logo.size.width,
                height=logo.size.height,
            )
        )
    sponsor = layout.logo_config
    for index, url in enumerate(sponsor.sponsor_logos):
        elements.append(
            ImageElement(
                kind="sponsor_logo",
                image=images.get(url),
                left=canvas.width * sponsor.sponsor_logo_position.x / 100.0,
                top=canvas.height * sponsor.sponsor_logo_position.y / 100.0
                + index * (sponsor.sponsor_logo_size.height + sponsor.sponsor_logo_spacing),
                width=sponsor.sponsor_logo_size.width,
                height=sponsor.sponsor_logo_size.height,
            )
        )

    for line in layout.header_config.lines():
        if line.text:
            elements.append(_text("header", line.text, line, font_cache))

    title = layout.title_config
    if title.text:
        elements.append(
            _text("title", title.text, title, font_cache, y_pct=title.position.y - TITLE_RAISE_PCT)
        )
    if title.subtitle:
        elements.append(
            _text(
                "subtitle",
                title.subtitle,
                title,
                font_cache,
                y_pct=title.position.y + SUBTITLE_DROP_PCT,
                size=title.font_size * SUBTITLE_SCALE,
                bold=False,
            )
        )

    given = layout.is_given_to_config
    if given.text:
        elements.append(_text("is_given_to", given.text, given, font_cache))

    name = layout.name_config
    elements.append(_text("name", data.participant_name, name, font_cache))

    separator = layout.separator_config
    if separator.enabled:
        elements.append(
            LineElement(
                kind="separator",
                x1_pct=separator.start_x,
                x2_pct=separator.end_x,
                y_pct=name.position.y + separator.offset,
                thickness=separator.thickness,
                color=separator.color,
            )
        )

    participation = layout.participation_text_config
    lines = expand_lines(participation.text_template, data, participation.date_format)
    line_step = participation.font_size * participation.line_height
    first_offset = -(len(lines) - 1) * line_step / 2.0
    for index, text in enumerate(lines):
        if not text.strip():
            continue
        elements.append(
            _text(
                "participation_text",
                text,
                participation,
                font_cache,
                dy=first_offset + index * line_step,
            )
        )

    for block in layout.signature_blocks:
        x = canvas.width * block.position_config.x / 100.0
        y = canvas.height * block.position_config.y / 100.0
        if block.signature_image_url:
            elements.append(
                ImageElement(
                    kind="signature_image",
                    image=images.get(block.signature_image_url),
                    left=x - block.image_size.width / 2.0,
                    top=y - block.image_size.height - SIGNATURE_IMAGE_GAP,
                    width=block.image_size.width,
                    height=block.image_size.height,
                )
            )
        if block.name:
            elements.append(
                TextElement(
                    kind="signature_name",
                    text=block.name,
                    x_pct=block.position_config.x,
                    y_pct=block.position_config.y,
                    font=font_cache.get(block.font_family, True),
                    size=block.name_font_size,
                    color=block.color,
                )
            )
        if block.position:
            elements.append(
                TextElement(
                    kind="signature_role",
                    text=block.position,
                    x_pct=block.position_config.x,
                    y_pct=block.position_config.y,
                    font=font_cache.get(block.font_family, False),
                    size=block.position_font_size,
                    color=block.color,
                    dy=SIGNATURE_ROLE_DROP,
                )
            )

    cert_id = layout.cert_id_config
    qr_config = layout.qr_config
    verification_url = None
    qr_image = None
    if qr_config.enabled and verify_base_url:
        verification_url = qr.build_verification_url(certificate_number, verify_base_url)
        qr_image = qr.embed(certificate_number, verify_base_url, qr_config.size)
    elements.append(
        CertificateNumberElement(
            text=certificate_number,
            x_pct=cert_id.position.x,
            y_pct=cert_id.position.y,
            font=font_cache.get(cert_id.font_family, cert_id.bold),
            size=cert_id.font_size,
            color=cert_id.color,
            verification_url=verification_url,
            qr=qr_image,
            qr_size=float(qr_image.width) if qr_image is not None else qr_config.size,
            qr_gap=qr_config.gap,
        )
    )

    return LayoutPlan(
        canvas=canvas,
        background_color=layout.background_color,
        border_color=layout.border_color,
        border_width=layout.border_width,
        elements=tuple(elements),
        background=images.get(layout.background_image_url) if layout.background_image_url else None,
    )
