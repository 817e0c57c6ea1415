"""Photo byte retrieval.

The compiler only sees a ``Fetcher``: any callable ``(uri, timeout_s) -> bytes``
that raises on failure. Two concrete fetchers cover what the stored photo
references point at: public storage URLs (HTTP) and local files (exports,
tests, offline runs).
"""
import logging
from collections.abc import Callable
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

logger = logging.getLogger(__name__)

Fetcher = Callable[[str, float], bytes]

# Refuse to buffer anything larger than this; camera photos are well below it
_MAX_PHOTO_BYTES = 25 * 1024 * 1024


class PhotoFetchError(Exception):
    """Raised by fetchers when the photo bytes cannot be retrieved."""


class HttpFetcher:
    """Fetch photos over HTTP(S) using one shared ``requests.Session``."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def __call__(self, uri: str, timeout_s: float) -> bytes:
        try:
            resp = self._session.get(uri, timeout=timeout_s)
        except requests.RequestException as exc:
            raise PhotoFetchError(f"request failed: {exc}") from exc
        if resp.status_code != 200:
            raise PhotoFetchError(f"HTTP {resp.status_code}")
        if len(resp.content) > _MAX_PHOTO_BYTES:
            raise PhotoFetchError(f"photo too large ({len(resp.content)} bytes)")
        return resp.content

    def close(self) -> None:
        self._session.close()


class LocalFileFetcher:
    """Read photos from disk. Relative paths resolve against ``base_dir``."""

    def __init__(self, base_dir: Path | None = None) -> None:
        self._base_dir = base_dir

    def __call__(self, uri: str, timeout_s: float) -> bytes:
        path = self._resolve(uri)
        try:
            size = path.stat().st_size
            if size > _MAX_PHOTO_BYTES:
                raise PhotoFetchError(f"photo too large ({size} bytes)")
            return path.read_bytes()
        except OSError as exc:
            raise PhotoFetchError(f"cannot read {path}: {exc}") from exc

    def _resolve(self, uri: str) -> Path:
        if uri.startswith("file://"):
            return Path(unquote(urlparse(uri).path))
        path = Path(uri)
        if not path.is_absolute() and self._base_dir is not None:
            path = self._base_dir / path
        return path


def make_fetcher(
    base_dir: Path | None = None,
    session: requests.Session | None = None,
) -> Fetcher:
    """Return a fetcher that routes ``http(s)://`` to HTTP and everything else to disk."""
    http = HttpFetcher(session)
    local = LocalFileFetcher(base_dir)

    def fetch(uri: str, timeout_s: float) -> bytes:
        scheme = urlparse(uri).scheme.lower()
        if scheme in ("http", "https"):
            return http(uri, timeout_s)
        return local(uri, timeout_s)

    return fetch
