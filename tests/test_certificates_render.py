import os
from io import BytesIO

import httpx
import pytest
import reportlab
from PIL import Image

from eventcerts.services.certificates_pdf import render_pdf
from eventcerts.services.certificates_png import render_png
from eventcerts.shared import qr
from eventcerts.shared.certificates_fonts import FontResolver
from eventcerts.shared.certificates_layout import resolve_layout
from eventcerts.shared.certificates_plan import ImageElement, build_plan
from eventcerts.shared.certificates_text import CertificateData

LOGO = "https://cdn.test/logo.png"
SIGNATURE = "https://cdn.test/sig.png"
UNREACHABLE = "https://unreachable.test/logo.png"

DATA = CertificateData(
    participant_name="Ana Cruz",
    event_title="Demo Day",
    completion_date="2024-06-15",
    venue="Main Hall",
)


def _layout(**overrides):
    partial = {
        "header_config": {"university": {"text": "Partido State University"}},
        "participation_text_config": {
            "text_template": "For joining {EVENT_NAME}\nheld on {EVENT_DATE} at {VENUE}"
        },
        "signature_blocks": [
            {"name": "Dr. Reyes", "position": "Dean", "signature_image_url": SIGNATURE, "position_config": {"x": 30}},
            {"name": "J. Cruz", "position": "Chair", "position_config": {"x": 70}},
        ],
    }
    partial.update(overrides)
    return resolve_layout(partial)


def _plan(layout, fetcher, fonts, number="EVT-007"):
    return build_plan(
        layout,
        DATA,
        number,
        fonts=fonts,
        fetcher=fetcher,
        verify_base_url="https://x.test",
    )


def test_plan_orders_elements(fetcher, fonts):
    plan = _plan(_layout(logo_config={"logos": [{"url": LOGO}]}), fetcher, fonts)
    assert plan.element_kinds() == [
        "logo",
        "header",
        "title",
        "subtitle",
        "is_given_to",
        "name",
        "separator",
        "participation_text",
        "participation_text",
        "signature_image",
        "signature_name",
        "signature_role",
        "signature_name",
        "signature_role",
        "certificate_number",
    ]


def test_participation_lines_center_on_position(fetcher, fonts):
    plan = _plan(_layout(), fetcher, fonts)
    lines = [e for e in plan.elements if e.kind == "participation_text"]
    assert [line.text for line in lines] == [
        "For joining Demo Day",
        "held on June 15, 2024 at Main Hall",
    ]
    step = 18 * 1.5
    assert [line.dy for line in lines] == [-step / 2, step / 2]


def test_qr_encodes_verification_url(fetcher, fonts):
    plan = _plan(_layout(), fetcher, fonts)
    number = plan.elements[-1]
    assert number.text == "EVT-007"
    assert number.verification_url == "https://x.test/verify-certificate/EVT-007"
    assert number.qr is not None
    assert number.qr.size == (number.qr_size, number.qr_size)
    modules = len(qr.build_qr(number.verification_url).get_matrix())
    assert number.qr.width % modules == 0


def test_qr_disabled(fetcher, fonts):
    plan = _plan(_layout(qr_config={"enabled": False}), fetcher, fonts)
    assert plan.elements[-1].qr is None
    assert "qr" not in render_png(plan).kinds()


def test_renderers_agree_on_elements(fetcher, fonts, routes, png_bytes):
    routes[LOGO] = png_bytes("green", (64, 64))
    routes[SIGNATURE] = png_bytes("black", (300, 100))
    plan = _plan(_layout(logo_config={"logos": [{"url": LOGO}]}), fetcher, fonts)
    pdf = render_pdf(plan)
    png = render_png(plan)
    assert pdf.elements == png.elements
    assert pdf.kinds()[:3] == ["background", "border", "logo"]
    assert pdf.kinds().count("signature_name") == 2
    texts = {e.kind: e.text for e in png.elements}
    assert texts["name"] == "Ana Cruz"
    assert texts["title"] == "CERTIFICATE"
    assert texts["certificate_number"] == "EVT-007"
    assert texts["qr"] == "https://x.test/verify-certificate/EVT-007"


def test_outputs_are_valid_documents(fetcher, fonts):
    plan = _plan(_layout(), fetcher, fonts)
    pdf = render_pdf(plan)
    png = render_png(plan)
    assert pdf.data.startswith(b"%PDF")
    assert pdf.media_type == "application/pdf"
    image = Image.open(BytesIO(png.data))
    assert image.size == (2000, 1200)
    assert png.media_type == "image/png"


def test_png_draws_border_and_background(fetcher, fonts):
    plan = _plan(_layout(background_color="#fafafa", border_color="#ff0000", border_width=8), fetcher, fonts)
    image = Image.open(BytesIO(render_png(plan).data)).convert("RGB")
    assert image.getpixel((2, 600)) == (255, 0, 0)
    assert image.getpixel((40, 600)) == (250, 250, 250)


def test_unreachable_logo_still_renders_both(fetcher, fonts, routes):
    routes[UNREACHABLE] = httpx.ConnectError("unreachable")
    layout = _layout(logo_config={"logos": [{"url": UNREACHABLE}]}, signature_blocks=[])
    plan = _plan(layout, fetcher, fonts)
    logo = next(e for e in plan.elements if isinstance(e, ImageElement))
    assert logo.image is None
    pdf = render_pdf(plan)
    png = render_png(plan)
    assert pdf.data.startswith(b"%PDF")
    assert Image.open(BytesIO(png.data)).format == "PNG"
    assert "logo" not in pdf.kinds()
    assert "logo" not in png.kinds()
    assert pdf.elements == png.elements


def test_missing_background_falls_back_to_fill(fetcher, fonts):
    plan = _plan(_layout(background_image_url="https://cdn.test/bg.png"), fetcher, fonts)
    assert plan.background is None
    assert render_pdf(plan).elements[0].text == "fill"
    assert render_png(plan).elements[0].text == "fill"


def test_background_image_is_drawn(fetcher, fonts, routes, png_bytes):
    routes["https://cdn.test/bg.png"] = png_bytes("yellow", (200, 120))
    plan = _plan(_layout(background_image_url="https://cdn.test/bg.png", border_width=0), fetcher, fonts)
    png = render_png(plan)
    assert png.elements[0].text == "image"
    assert "border" not in png.kinds()
    assert render_pdf(plan).elements == png.elements


@pytest.mark.parametrize("family", ["MonteCarlo, cursive", "Courier New", "Georgia, serif"])
def test_name_font_families_render(fetcher, fonts, family):
    layout = _layout(name_config={"font_family": family})
    plan = _plan(layout, fetcher, fonts)
    assert render_pdf(plan).elements == render_png(plan).elements


def test_decorative_font_is_used_by_both_renderers(fetcher):
    with open(os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf"), "rb") as fh:
        ttf = fh.read()
    resolver = FontResolver(lambda source: ttf)
    plan = _plan(_layout(), fetcher, resolver)
    name = next(e for e in plan.elements if e.kind == "name")
    assert name.font.decorative
    assert name.font.pdf_font == "MonteCarlo"
    assert render_pdf(plan).elements == render_png(plan).elements
