"""Tests for Stage 5 PDF Rendering."""
import base64
import logging
from pathlib import Path
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest

from models.design import DesignSystem
from models.images import OptimizedImage
from models.report import (
    BadgeBlock,
    ImageBlock,
    Page,
    PageFooter,
    PlaceholderBlock,
    ReportDocument,
    TableCell,
    TextRun,
)
from pipeline import stage5_render
from pipeline.stage5_render import _build_font_face_css, _validate_pdf_fonts, render_html, render_pdf


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _document(blocks=None, images=None, language="en") -> ReportDocument:
    return ReportDocument(
        title="INSPECTION FINDINGS REPORT",
        language=language,
        generated_at=datetime(2026, 10, 19, 9, 30),
        pages=[Page(
            page_number=1,
            section="table",
            blocks=blocks or [],
            footer=PageFooter(page_label="page 1 of 1", printed_label="Printed: 2026-10-19 09:30"),
        )],
        images=images or {},
    )


def _mock_weasyprint(pdf_bytes=b"%PDF-1.7 fake"):
    """Patch the module-level _weasyprint with a fake whose write_pdf returns bytes."""
    mock_wp = MagicMock()
    mock_wp.HTML.return_value.write_pdf.return_value = pdf_bytes
    return patch("pipeline.stage5_render._weasyprint", mock_wp)


# ---------------------------------------------------------------------------
# render_html
# ---------------------------------------------------------------------------

class TestRenderHtml:
    def test_footer_rendered(self):
        html = render_html(_document(), DesignSystem())
        assert "page 1 of 1" in html
        assert "Printed: 2026-10-19 09:30" in html

    def test_page_size_in_css(self):
        html = render_html(_document(), DesignSystem())
        assert "size: 297.0mm 210.0mm" in html

    def test_primary_color_in_css(self):
        assert "#3490DC" in render_html(_document(), DesignSystem())

    def test_language_attribute(self):
        assert '<html lang="id">' in render_html(_document(language="id"), DesignSystem())

    def test_text_lines(self):
        block = TextRun(x_mm=15, y_mm=15, width_mm=200, height_mm=10, lines=["first", "second"], style_ref="title")
        html = render_html(_document([block]), DesignSystem())
        assert '<div class="line">first</div><div class="line">second</div>' in html
        assert "style-title" in html

    def test_block_position(self):
        block = TextRun(x_mm=15, y_mm=20.5, width_mm=100, height_mm=5, lines=["x"])
        html = render_html(_document([block]), DesignSystem())
        assert "left: 15.00mm; top: 20.50mm; width: 100.00mm; height: 5.00mm;" in html

    def test_cells(self):
        blocks = [
            TableCell(x_mm=15, y_mm=60, width_mm=10, height_mm=8, column="no", lines=["No"], header=True),
            TableCell(x_mm=15, y_mm=68, width_mm=10, height_mm=26, column="no", lines=["1"], shaded=True),
        ]
        html = render_html(_document(blocks), DesignSystem())
        assert "cell--header" in html
        assert "cell--shaded" in html
        assert 'data-column="no"' in html

    def test_text_escaped(self):
        block = TableCell(x_mm=0, y_mm=0, width_mm=10, height_mm=8, column="description",
                          lines=["<script>alert(1)</script> & more"])
        html = render_html(_document([block]), DesignSystem())
        assert "<script>alert" not in html
        assert "&lt;script&gt;" in html
        assert "&amp; more" in html

    def test_image_embedded_as_data_uri(self):
        data = b"\xff\xd8jpeg"
        image = OptimizedImage(preset="table", data=data, width=10, height=8)
        block = ImageBlock(x_mm=0, y_mm=0, width_mm=10, height_mm=8, image_key="table:a")
        html = render_html(_document([block], {"table:a": image}), DesignSystem())
        encoded = base64.b64encode(data).decode()
        assert f'src="data:image/jpeg;base64,{encoded}"' in html

    def test_image_without_data_has_no_img(self):
        block = ImageBlock(x_mm=0, y_mm=0, width_mm=10, height_mm=8, image_key="table:missing")
        assert "<img" not in render_html(_document([block]), DesignSystem())

    def test_placeholder_and_badge(self):
        blocks = [
            PlaceholderBlock(x_mm=0, y_mm=0, width_mm=56, height_mm=42, label="could not load"),
            BadgeBlock(x_mm=0, y_mm=0, width_mm=8, height_mm=4.5, text="+2"),
        ]
        html = render_html(_document(blocks), DesignSystem())
        assert "could not load" in html
        assert ">+2</div>" in html

    def test_every_page_rendered(self):
        doc = _document()
        doc.pages.append(Page(page_number=2, section="detail",
                              footer=PageFooter(page_label="page 2 of 2", printed_label="")))
        html = render_html(doc, DesignSystem())
        assert html.count('<section class="page') == 2
        assert "page--detail" in html


# ---------------------------------------------------------------------------
# render_pdf (WeasyPrint mocked)
# ---------------------------------------------------------------------------

class TestRenderPdf:
    def test_returns_pdf_bytes(self):
        with _mock_weasyprint(b"%PDF-1.7 /FontFile2 x") as mock_wp:
            pdf = render_pdf(_document(), DesignSystem())
        assert pdf == b"%PDF-1.7 /FontFile2 x"
        html_arg = mock_wp.HTML.call_args.kwargs["string"]
        assert "page 1 of 1" in html_arg

    def test_missing_weasyprint_raises(self):
        with patch("pipeline.stage5_render._weasyprint", None):
            with pytest.raises(RuntimeError, match="WeasyPrint"):
                render_pdf(_document(), DesignSystem())


# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------

class TestFonts:
    def test_unknown_font_gives_empty_css(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pipeline.stage5_render"):
            assert _build_font_face_css("No Such Font Family 123") == ""
        assert "No font files found" in caplog.text

    def test_embedded_font_program_detected(self, caplog):
        with caplog.at_level(logging.INFO, logger="pipeline.stage5_render"):
            _validate_pdf_fonts(b"%PDF-1.7\n1 0 obj << /FontFile2 5 0 R >>\n", "DejaVu Sans")
        assert "validation OK" in caplog.text

    def test_subset_name_detected(self, caplog):
        with caplog.at_level(logging.INFO, logger="pipeline.stage5_render"):
            _validate_pdf_fonts(b"%PDF-1.7\n<< /FontName /ABCDEF+DejaVuSans >>\n", "DejaVu Sans")
        assert "ABCDEF+DejaVuSans" in caplog.text

    def test_no_fonts_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="pipeline.stage5_render"):
            _validate_pdf_fonts(b"%PDF-1.7\n", "DejaVu Sans")
        assert "FAILED" in caplog.text


# ---------------------------------------------------------------------------
# Template location
# ---------------------------------------------------------------------------

class TestTemplateLocation:
    def test_template_lives_in_pipeline_package(self):
        assert stage5_render._TEMPLATE_DIR.parent == Path(stage5_render.__file__).resolve().parent
        assert (stage5_render._TEMPLATE_DIR / "report.html.j2").is_file()

    def test_template_declared_as_package_data(self):
        pyproject = Path(__file__).resolve().parent.parent / "pyproject.toml"
        assert 'pipeline = ["templates/*.j2"]' in pyproject.read_text(encoding="utf-8")
