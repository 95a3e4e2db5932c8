from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Iterable
from urllib.parse import urlsplit

import httpx
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("eventcerts.assets")

DEFAULT_TIMEOUT = 10.0
DEFAULT_WORKERS = 4
REMOTE_SCHEMES = ("http", "https")


def is_remote(source: str) -> bool:
    parsed = urlsplit(source)
    return parsed.scheme.lower() in REMOTE_SCHEMES and bool(parsed.netloc)


class AssetFetcher:
    """Resolve logo, signature and background sources into decoded images.

    Only http(s) sources are fetched; local paths and other schemes are
    refused. Every failure (refused source, network, HTTP status, undecodable
    bytes) is logged and returned as ``None`` so the caller can leave that area
    empty instead of aborting the certificate.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        max_workers: int = DEFAULT_WORKERS,
    ):
        self._client = client or httpx.Client(follow_redirects=True, timeout=timeout)
        self._owns_client = client is None
        self.max_workers = max(1, int(max_workers))

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "AssetFetcher":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def fetch_bytes(self, source: str | None) -> bytes | None:
        if not source:
            return None
        if not is_remote(source):
            logger.warning("[CERT-ASSET] source=%s rejected (only http and https are fetched)", source)
            return None
        try:
            response = self._client.get(source)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.warning("[CERT-ASSET] source=%s timed out", source)
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "[CERT-ASSET] source=%s status=%s", source, exc.response.status_code
            )
            return None
        except httpx.HTTPError as exc:
            logger.warning("[CERT-ASSET] source=%s failed (%s)", source, exc)
            return None
        return response.content

    def fetch(self, url: str | None) -> Image.Image | None:
        data = self.fetch_bytes(url)
        if data is None:
            return None
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            logger.warning("[CERT-ASSET] source=%s undecodable (%s)", url, exc)
            return None
        return image.convert("RGBA")

    def fetch_all(self, urls: Iterable[str | None]) -> dict[str, Image.Image | None]:
        """Fetch distinct sources concurrently; one failure never affects another."""
        unique = list(dict.fromkeys(url for url in urls if url))
        if not unique:
            return {}
        if len(unique) == 1:
            return {unique[0]: self.fetch(unique[0])}
        workers = min(self.max_workers, len(unique))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            images = list(pool.map(self.fetch, unique))
        return dict(zip(unique, images))
