import threading
from io import BytesIO

from PIL import ImageColor
from reportlab.lib.colors import Color
from reportlab.lib.utils import ImageReader
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas as pdf_canvas

from ..shared.certificates_coords import box_origin, centered_x, middle_baseline, to_pdf
from ..shared.certificates_fonts import FontHandle
from ..shared.certificates_plan import (
    CertificateNumberElement,
    DrawnElement,
    ImageElement,
    LayoutPlan,
    LineElement,
    RenderedCertificate,
    TextElement,
)

PDF_MEDIA_TYPE = "application/pdf"

_register_lock = threading.Lock()


def _color(value: str) -> Color:
    red, green, blue = ImageColor.getrgb(value)[:3]
    return Color(red / 255.0, green / 255.0, blue / 255.0)


def _font_name(handle: FontHandle) -> str:
    if handle.ttf_data is None:
        return handle.pdf_font
    with _register_lock:
        if handle.pdf_font not in pdfmetrics.getRegisteredFontNames():
            pdfmetrics.registerFont(TTFont(handle.pdf_font, BytesIO(handle.ttf_data)))
    return handle.pdf_font


def _draw_text(c, plan: LayoutPlan, element) -> tuple[float, float, float]:
    """Draw centred text; returns (anchor_x, baseline, width) in PDF space."""
    font = _font_name(element.font)
    point = to_pdf(element.x_pct, element.y_pct, plan.canvas, dy=getattr(element, "dy", 0.0))
    width = pdfmetrics.stringWidth(element.text, font, element.size)
    ascent, descent = pdfmetrics.getAscentDescent(font, element.size)
    baseline = middle_baseline(point.y, ascent, -descent, flip_y=True)
    c.setFont(font, element.size)
    c.setFillColor(_color(element.color))
    c.drawString(centered_x(point.x, width), baseline, element.text)
    return point.x, baseline, width


def _draw_image(c, plan: LayoutPlan, element: ImageElement) -> None:
    origin = box_origin(element.left, element.top, element.height, plan.canvas, flip_y=True)
    c.drawImage(
        ImageReader(element.image),
        origin.x,
        origin.y,
        width=element.width,
        height=element.height,
        mask="auto",
    )


def render_pdf(plan: LayoutPlan) -> RenderedCertificate:
    width, height = plan.canvas.width, plan.canvas.height
    buf = BytesIO()
    c = pdf_canvas.Canvas(buf, pagesize=(width, height), invariant=1)
    drawn: list[DrawnElement] = []

    c.setFillColor(_color(plan.background_color))
    c.rect(0, 0, width, height, stroke=0, fill=1)
    if plan.background is not None:
        c.drawImage(ImageReader(plan.background), 0, 0, width=width, height=height, mask="auto")
        drawn.append(DrawnElement("background", "image"))
    else:
        drawn.append(DrawnElement("background", "fill"))

    border = plan.border_width
    if border > 0:
        c.setStrokeColor(_color(plan.border_color))
        c.setLineWidth(border)
        c.rect(border / 2, border / 2, width - border, height - border, stroke=1, fill=0)
        drawn.append(DrawnElement("border"))

    for element in plan.elements:
        if isinstance(element, ImageElement):
            if element.image is None:
                continue
            _draw_image(c, plan, element)
            drawn.append(DrawnElement(element.kind))
        elif isinstance(element, LineElement):
            start = to_pdf(element.x1_pct, element.y_pct, plan.canvas)
            end = to_pdf(element.x2_pct, element.y_pct, plan.canvas)
            c.setStrokeColor(_color(element.color))
            c.setLineWidth(element.thickness)
            c.line(start.x, start.y, end.x, end.y)
            drawn.append(DrawnElement(element.kind))
        elif isinstance(element, CertificateNumberElement):
            anchor_x, baseline, text_width = _draw_text(c, plan, element)
            drawn.append(DrawnElement(element.kind, element.text))
            if element.qr is not None:
                qr_left = anchor_x + text_width / 2 + element.qr_gap
                c.drawImage(
                    ImageReader(element.qr),
                    qr_left,
                    baseline - element.qr_size / 2,
                    width=element.qr_size,
                    height=element.qr_size,
                )
                drawn.append(DrawnElement("qr", element.verification_url or ""))
        elif isinstance(element, TextElement):
            _draw_text(c, plan, element)
            drawn.append(DrawnElement(element.kind, element.text))

    c.showPage()
    c.save()
    return RenderedCertificate(buf.getvalue(), tuple(drawn), PDF_MEDIA_TYPE)
