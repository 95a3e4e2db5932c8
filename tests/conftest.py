import os
import pathlib
import sys
from io import BytesIO

import httpx
import pytest
from PIL import Image

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from eventcerts.app import create_app, db
from eventcerts.shared.assets import AssetFetcher
from eventcerts.shared.certificates_fonts import FontResolver


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "slow" in item.keywords or "quarantine" in item.keywords:
            continue
        item.add_marker("full")
        if "no_smoke" in item.keywords:
            continue
        item.add_marker("smoke")


def _png(color="red", size=(40, 20)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes():
    return _png


@pytest.fixture
def routes():
    """URL -> body served by the stub transport; anything else is a 404."""
    return {}


@pytest.fixture
def fetcher(routes):
    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url in routes:
            body = routes[url]
            if isinstance(body, Exception):
                raise body
            return httpx.Response(200, content=body)
        return httpx.Response(404)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    yield AssetFetcher(client)
    client.close()


@pytest.fixture
def fonts(fetcher):
    return FontResolver(fetcher.fetch_bytes, remote=False)


@pytest.fixture
def app(tmp_path, fetcher, fonts):
    os.environ["DATABASE_URL"] = "sqlite:///:memory:"
    os.environ["SITE_ROOT"] = str(tmp_path)
    os.environ["VERIFY_BASE_URL"] = "https://x.test"
    os.environ["FONT_FETCH_REMOTE"] = "0"
    application = create_app()
    application.extensions["eventcerts"] = {"fetcher": fetcher, "fonts": fonts}
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()
