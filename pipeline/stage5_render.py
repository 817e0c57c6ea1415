"""Stage 5: PDF Rendering — serialize a ReportDocument via Jinja2 + WeasyPrint.

Layout is already final when this stage runs: every block carries absolute
millimetre coordinates, so the template only positions boxes on fixed-size
pages and never lets WeasyPrint reflow content across pages. Optimized images
are embedded as ``data:`` URIs so the PDF is self-contained and no photo is
fetched a second time.
"""
import base64
import logging
import re
import zlib
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

try:
    import weasyprint as _weasyprint  # requires native GTK/Pango libs at runtime
except OSError:  # pragma: no cover — native libs absent in test env
    _weasyprint = None  # type: ignore[assignment]

from models.design import DesignSystem
from models.report import ReportDocument
from utils.fonts import find_font_files

logger = logging.getLogger(__name__)

# Package data, see [tool.setuptools.package-data]
_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"

_STYLE_NAMES = ("title", "heading", "body", "table_header", "cell", "caption", "footer")


def render_pdf(document: ReportDocument, design: DesignSystem) -> bytes:
    """Render the document to PDF bytes."""
    html = render_html(document, design)

    if _weasyprint is None:  # pragma: no cover
        raise RuntimeError(
            "WeasyPrint native libraries (GTK/Pango) are not available. "
            "Follow https://doc.courtbouillon.org/weasyprint/stable/first_steps.html"
        )
    font_config = _weasyprint.text.fonts.FontConfiguration()
    font_css = _weasyprint.CSS(
        string=_build_font_face_css(design.typography.body.font),
        font_config=font_config,
    )
    pdf_bytes = _weasyprint.HTML(string=html).write_pdf(
        stylesheets=[font_css], font_config=font_config,
    )

    _validate_pdf_fonts(pdf_bytes, design.typography.body.font)
    logger.info("Stage 5 complete → %d page(s), %d KB", document.page_count, len(pdf_bytes) // 1024)
    return pdf_bytes


# ---------------------------------------------------------------------------
# HTML rendering
# ---------------------------------------------------------------------------

def render_html(document: ReportDocument, design: DesignSystem) -> str:
    """Render the Jinja2 template to an HTML string."""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATE_DIR)),
        autoescape=select_autoescape(["html", "j2"]),
    )
    env.filters["mm"] = lambda value: f"{value:.2f}mm"
    template = env.get_template("report.html.j2")
    return template.render(
        doc=document,
        ds=design,
        styles={name: design.typography.get(name) for name in _STYLE_NAMES},
        image_srcs=_build_image_srcs(document),
    )


def _build_image_srcs(document: ReportDocument) -> dict[str, str]:
    """Map image key → ``data:`` URI for every embedded image."""
    return {
        key: f"data:{image.mime_type};base64,{base64.standard_b64encode(image.data).decode()}"
        for key, image in document.images.items()
    }


# ---------------------------------------------------------------------------
# Font embedding
# ---------------------------------------------------------------------------

def _build_font_face_css(font_name: str) -> str:
    """Return ``@font-face`` CSS for all variants of ``font_name`` found on disk.

    Uses explicit ``file://`` URIs so WeasyPrint embeds the font directly
    rather than relying on Pango's font lookup (which may skip embedding).
    Falls back to an empty string if no font files are found.
    """
    font_files = find_font_files(font_name)
    if not font_files:
        logger.warning("No font files found for '%s' — text may not embed correctly", font_name)
        return ""
    rules = []
    for path, weight, style in font_files:
        rules.append(
            f'@font-face {{\n'
            f'  font-family: "{font_name}";\n'
            f'  src: url({path.as_uri()}) format("truetype");\n'
            f'  font-weight: {weight};\n'
            f'  font-style: {style};\n'
            f'}}'
        )
    logger.debug("Font-face rules for '%s': %d variants", font_name, len(rules))
    return "\n".join(rules)


# ---------------------------------------------------------------------------
# PDF font validation
# ---------------------------------------------------------------------------

def _validate_pdf_fonts(pdf_bytes: bytes, expected_font: str) -> None:
    """Check that fonts are embedded in the generated PDF and log the result.

    Looks for ``/FontFile2`` / ``/FontFile3`` font programs and ``ABCDEF+Name``
    subset names, in raw objects and in FlateDecode object streams. Only logs;
    a report with system-substituted fonts is still a valid report.
    """
    all_decoded: list[bytes] = [pdf_bytes]
    for m in re.finditer(rb"stream[\r\n]+(.*?)[\r\n]+endstream", pdf_bytes, re.DOTALL):
        try:
            all_decoded.append(zlib.decompress(m.group(1)))
        except zlib.error:
            continue

    combined = b"\n".join(all_decoded)
    font_file_refs = len(re.findall(rb"/FontFile[23]?\b", combined))
    subset_names = [
        n.decode("latin-1")
        for n in re.findall(rb"/FontName\s+/([A-Z]{6}\+[^\s/\]>]+)", combined)
    ]

    if font_file_refs == 0 and not subset_names:
        logger.warning(
            "PDF font validation FAILED — no embedded font programs found. "
            "Text may be unreadable on systems without '%s' installed.",
            expected_font,
        )
    else:
        logger.info(
            "PDF font validation OK — %d font program(s) embedded, subsets: %s",
            font_file_refs,
            subset_names if subset_names else ["(none detected — may be in raw stream)"],
        )
