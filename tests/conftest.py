import io
import threading
from pathlib import Path

import pytest
from PIL import Image

from settings import Settings
from utils.fetchers import PhotoFetchError

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def make_image_bytes(width=800, height=600, fmt="JPEG", mode="RGB", color=(180, 90, 40)) -> bytes:
    """Encode a solid-colour test image in memory."""
    if mode == "RGBA" and len(color) == 3:
        color = (*color, 128)
    img = Image.new(mode, (width, height), color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


class FakeFetcher:
    """In-memory fetcher: known URIs return their bytes, anything else fails."""

    def __init__(self, photos: dict[str, bytes] | None = None, default: bytes | None = None):
        self.photos = dict(photos or {})
        self.default = default
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, uri: str, timeout_s: float) -> bytes:
        with self._lock:
            self.calls.append(uri)
        if uri in self.photos:
            return self.photos[uri]
        if self.default is not None:
            return self.default
        raise PhotoFetchError(f"not found: {uri}")


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a fresh temp project directory.

    Directory layout mirrors a real project:
        photos/    local photo files referenced by relative path
        template/  design.yaml
        output/    compiled reports
    """
    for subdir in ("photos", "template", "output"):
        (tmp_path / subdir).mkdir()
    return Settings(project_dir=tmp_path, max_workers=4, fetch_timeout_s=5.0)


@pytest.fixture
def image_bytes():
    """Factory fixture: ``image_bytes(width, height, fmt=..., mode=...)``."""
    return make_image_bytes


@pytest.fixture
def fake_fetcher():
    """Factory fixture: ``fake_fetcher({uri: bytes}, default=None)``."""
    return FakeFetcher
