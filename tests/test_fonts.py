"""Tests for font lookup and text measurement."""
import logging

import pytest

from utils.fonts import _measuring_font, find_font_files, text_width_mm


@pytest.fixture(autouse=True)
def _fresh_font_cache():
    _measuring_font.cache_clear()
    yield
    _measuring_font.cache_clear()


# ---------------------------------------------------------------------------
# text_width_mm
# ---------------------------------------------------------------------------

class TestTextWidth:
    def test_empty_text_has_no_width(self):
        assert text_width_mm("", "DejaVu Sans", 7) == 0.0

    def test_wide_glyphs_measure_wider(self):
        assert text_width_mm("WWWW", "DejaVu Sans", 7) > text_width_mm("iiii", "DejaVu Sans", 7)

    def test_width_scales_with_size(self):
        small = text_width_mm("Fire hose cabinet", "DejaVu Sans", 7)
        large = text_width_mm("Fire hose cabinet", "DejaVu Sans", 14)
        assert large == pytest.approx(2 * small)

    def test_longer_text_is_wider(self):
        assert text_width_mm("abcdef", "DejaVu Sans", 7) > text_width_mm("abc", "DejaVu Sans", 7)

    def test_unknown_font_falls_back_to_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="utils.fonts"):
            width = text_width_mm("WWWW", "No Such Font Family 123", 7)
        assert width > 0
        assert "No font files found" in caplog.text


# ---------------------------------------------------------------------------
# find_font_files
# ---------------------------------------------------------------------------

class TestFindFontFiles:
    def test_unknown_family_finds_nothing(self):
        assert find_font_files("No Such Font Family 123") == []

    def test_family_prefix_must_end_at_separator(self, tmp_path, monkeypatch):
        (tmp_path / "DejaVuSans-Bold.ttf").write_bytes(b"")
        (tmp_path / "DejaVuSansMono.ttf").write_bytes(b"")
        monkeypatch.setattr("utils.fonts.FONT_SEARCH_DIRS", [tmp_path])
        found = find_font_files("DejaVu Sans")
        assert [(p.name, w, s) for p, w, s in found] == [("DejaVuSans-Bold.ttf", "bold", "normal")]
