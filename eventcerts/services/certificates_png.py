from io import BytesIO

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..shared.certificates_coords import box_origin, centered_x, middle_baseline, to_raster
from ..shared.certificates_fonts import DEFAULT_RASTER_FONT_PATH, FontHandle
from ..shared.certificates_plan import (
    CertificateNumberElement,
    DrawnElement,
    ImageElement,
    LayoutPlan,
    LineElement,
    RenderedCertificate,
    TextElement,
)

PNG_MEDIA_TYPE = "image/png"


def _load_font(handle: FontHandle, size: float) -> ImageFont.FreeTypeFont:
    size_px = max(int(round(size)), 1)
    if handle.ttf_data is not None:
        try:
            return ImageFont.truetype(BytesIO(handle.ttf_data), size_px)
        except OSError:
            pass
    for path in (handle.raster_path, DEFAULT_RASTER_FONT_PATH):
        if not path:
            continue
        try:
            return ImageFont.truetype(path, size_px)
        except OSError:
            continue
    return ImageFont.load_default(size=size_px)


def _draw_text(draw: ImageDraw.ImageDraw, plan: LayoutPlan, element) -> tuple[float, float, float]:
    """Draw centred text; returns (anchor_x, baseline, width) in raster space."""
    font = _load_font(element.font, element.size)
    point = to_raster(element.x_pct, element.y_pct, plan.canvas, dy=getattr(element, "dy", 0.0))
    width = font.getlength(element.text)
    ascent, descent = font.getmetrics()
    baseline = middle_baseline(point.y, ascent, descent, flip_y=False)
    draw.text(
        (centered_x(point.x, width), baseline),
        element.text,
        font=font,
        fill=ImageColor.getrgb(element.color),
        anchor="ls",
    )
    return point.x, baseline, width


def _paste(image: Image.Image, source: Image.Image, left: float, top: float, width: float, height: float) -> None:
    size = (max(int(round(width)), 1), max(int(round(height)), 1))
    resized = source.convert("RGBA").resize(size, Image.LANCZOS)
    image.paste(resized, (int(round(left)), int(round(top))), resized)


def render_png(plan: LayoutPlan) -> RenderedCertificate:
    width = int(round(plan.canvas.width))
    height = int(round(plan.canvas.height))
    image = Image.new("RGB", (width, height), ImageColor.getrgb(plan.background_color))
    draw = ImageDraw.Draw(image)
    drawn: list[DrawnElement] = []

    if plan.background is not None:
        _paste(image, plan.background, 0, 0, width, height)
        drawn.append(DrawnElement("background", "image"))
    else:
        drawn.append(DrawnElement("background", "fill"))

    border = int(round(plan.border_width))
    if plan.border_width > 0:
        draw.rectangle(
            [0, 0, width - 1, height - 1],
            outline=ImageColor.getrgb(plan.border_color),
            width=max(border, 1),
        )
        drawn.append(DrawnElement("border"))

    for element in plan.elements:
        if isinstance(element, ImageElement):
            if element.image is None:
                continue
            origin = box_origin(element.left, element.top, element.height, plan.canvas, flip_y=False)
            _paste(image, element.image, origin.x, origin.y, element.width, element.height)
            drawn.append(DrawnElement(element.kind))
        elif isinstance(element, LineElement):
            start = to_raster(element.x1_pct, element.y_pct, plan.canvas)
            end = to_raster(element.x2_pct, element.y_pct, plan.canvas)
            draw.line(
                [(start.x, start.y), (end.x, end.y)],
                fill=ImageColor.getrgb(element.color),
                width=max(int(round(element.thickness)), 1),
            )
            drawn.append(DrawnElement(element.kind))
        elif isinstance(element, CertificateNumberElement):
            anchor_x, baseline, text_width = _draw_text(draw, plan, element)
            drawn.append(DrawnElement(element.kind, element.text))
            if element.qr is not None:
                qr_left = anchor_x + text_width / 2 + element.qr_gap
                # pasted unscaled; resampling would break the module grid
                image.paste(
                    element.qr.convert("RGB"),
                    (int(round(qr_left)), int(round(baseline - element.qr_size / 2))),
                )
                drawn.append(DrawnElement("qr", element.verification_url or ""))
        elif isinstance(element, TextElement):
            _draw_text(draw, plan, element)
            drawn.append(DrawnElement(element.kind, element.text))

    buf = BytesIO()
    image.save(buf, format="PNG")
    return RenderedCertificate(buf.getvalue(), tuple(drawn), PNG_MEDIA_TYPE)
