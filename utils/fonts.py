"""Font lookup and text measurement.

The layout stage measures text with the same TTF/OTF files the render stage
embeds in the PDF, so a line that fits in layout also fits on the page.
"""
import logging
from functools import lru_cache
from pathlib import Path

from PIL import ImageFont

logger = logging.getLogger(__name__)

_PT_TO_MM = 25.4 / 72

# Fonts are loaded at this size and lengths scaled linearly to the requested size
_MEASURE_SIZE = 100

# Standard directories where TTF/OTF fonts live on Linux/macOS
FONT_SEARCH_DIRS = [
    Path("/usr/share/fonts"),
    Path("/usr/local/share/fonts"),
    Path.home() / ".local/share/fonts",
    Path.home() / ".fonts",
]

# Filename fragment → (CSS font-weight, CSS font-style)
_FONT_STYLE_MAP = {
    "bolditalic": ("bold", "italic"),
    "boldoblique": ("bold", "italic"),
    "bold":       ("bold", "normal"),
    "italic":     ("normal", "italic"),
    "oblique":    ("normal", "oblique"),
    "regular":    ("normal", "normal"),
    "book":       ("normal", "normal"),
}


def find_font_files(font_name: str) -> list[tuple[Path, str, str]]:
    """Scan font directories for TTF/OTF files of the family ``font_name``.

    Accepts "DejaVu-Sans-Bold" and "DejaVuSans-Bold" but not "DejaVuSansMono".
    Returns a list of (path, css_weight, css_style) tuples.
    """
    prefixes = (font_name.lower().replace(" ", "-"), font_name.lower().replace(" ", ""))
    results: list[tuple[Path, str, str]] = []
    for base in FONT_SEARCH_DIRS:
        if not base.exists():
            continue
        for ext in ("*.ttf", "*.TTF", "*.otf", "*.OTF"):
            for path in base.rglob(ext):
                stem = path.stem.lower()
                suffix = None
                for prefix in prefixes:
                    if stem == prefix or stem.startswith(prefix + "-"):
                        suffix = stem[len(prefix):].lstrip("-")
                        break
                if suffix is None:
                    continue
                weight, style = "normal", "normal"
                for fragment, (w, s) in _FONT_STYLE_MAP.items():
                    if fragment in suffix:
                        weight, style = w, s
                        break
                results.append((path, weight, style))
    return results


@lru_cache(maxsize=None)
def _measuring_font(font_name: str, weight: str) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    css_weight = "bold" if weight == "bold" else "normal"
    css_style = "italic" if weight == "italic" else "normal"
    candidates = find_font_files(font_name)
    ranked = sorted(
        candidates,
        key=lambda c: (c[1] != css_weight, c[2] != css_style, str(c[0])),
    )
    for path, _w, _s in ranked:
        try:
            return ImageFont.truetype(str(path), _MEASURE_SIZE)
        except OSError as exc:
            logger.debug("Cannot load font %s: %s", path, exc)
    logger.warning("No font files found for '%s' — measuring text with Pillow's default font", font_name)
    return ImageFont.load_default(size=_MEASURE_SIZE)


def text_width_mm(text: str, font_name: str, size_pt: float, weight: str = "normal") -> float:
    """Rendered width of ``text`` in millimetres at ``size_pt``."""
    if not text:
        return 0.0
    font = _measuring_font(font_name, weight)
    return font.getlength(text) / _MEASURE_SIZE * size_pt * _PT_TO_MM
