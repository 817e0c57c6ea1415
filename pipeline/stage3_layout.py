"""Stage 3: Layout — place findings and photos onto fixed-size pages.

Produces the page list for the report in two passes over the findings:

  Table section   one row per finding (ascending sequence number). The first
                  page carries the report title and the ship information
                  block; every table page starts with the column header row.
                  Rows have a fixed height, so text is wrapped into the lines
                  that fit and the last visible line is ellipsized.
  Detail section  only when at least one finding has more than one photo in
                  its before or after set. Starts on a new page; each such
                  finding gets a header line and a tile grid per multi-photo
                  set. A finding never spans two pages; one that is taller
                  than an empty page is clipped with a note.

Photo cells and tiles look up the optimizer result for their (uri, preset)
request and match on it: an OptimizedImage is drawn, an ImageFailure (or a
missing entry) becomes a text marker in the table and a placeholder box in the
detail grid.

The pages returned here carry no footer; see stage4_finalize.
"""
import logging
import math
from collections.abc import Mapping
from datetime import date

from models.design import TABLE_COLUMNS, DesignSystem, TextStyle
from models.images import ImageRequest, OptimizedImage, OptimizeResult
from models.labels import ReportLabels
from models.photo_set import EmptyPhotoSet, ManyPhotos
from models.records import Ship
from models.report import (
    BadgeBlock,
    Block,
    ImageBlock,
    Page,
    PlaceholderBlock,
    TableCell,
    TextRun,
)
from pipeline.stage1_collect import DecodedFinding
from utils.fonts import text_width_mm

logger = logging.getLogger(__name__)

_PT_TO_MM = 25.4 / 72
_ELLIPSIS = "…"

_PHOTO_COLUMNS = ("before", "after")
_CENTERED_COLUMNS = frozenset({"no", "date", "category", "pic_ship", "pic_office", "status"})


def layout(
    ship: Ship,
    findings: list[DecodedFinding],
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
    report_date: date,
    title: str | None = None,
) -> list[Page]:
    """Lay out the table section and, if needed, the detail section.

    ``findings`` may arrive in any order; rows and detail blocks always follow
    the sequence number.
    """
    ordered = sorted(findings, key=lambda item: item.finding.no)

    pages = _table_pages(ship, ordered, images, design, labels, report_date, title or labels.title)
    table_count = len(pages)

    detail_findings = [item for item in ordered if item.has_detail]
    if detail_findings:
        pages.extend(_detail_pages(len(pages) + 1, detail_findings, images, design, labels))

    logger.info("Stage 3 complete → %d page(s)", len(pages))
    logger.info("  table   %d", table_count)
    logger.info("  detail  %d", len(pages) - table_count)
    return pages


# ---------------------------------------------------------------------------
# Text fitting
# ---------------------------------------------------------------------------

def line_height_mm(style: TextStyle, factor: float = 1.25) -> float:
    return style.size_pt * _PT_TO_MM * factor


def text_width(text: str, style: TextStyle) -> float:
    """Rendered width of ``text`` in mm, measured with the embedded font."""
    return text_width_mm(text, style.font, style.size_pt, style.weight)


def fit_text(
    text: str,
    width_mm: float,
    height_mm: float,
    style: TextStyle,
    line_factor: float = 1.25,
) -> list[str]:
    """Wrap ``text`` into the lines that fit the box; ellipsize when it overflows."""
    if not text:
        return []
    max_lines = max(1, int(height_mm // line_height_mm(style, line_factor)))

    wrapped: list[str] = []
    for paragraph in text.splitlines():
        wrapped.extend(_wrap(paragraph, width_mm, style) or [""])
    while wrapped and not wrapped[-1]:
        wrapped.pop()

    if len(wrapped) <= max_lines:
        return wrapped
    kept = wrapped[:max_lines]
    kept[-1] = _ellipsize(kept[-1], width_mm, style)
    return kept


def _wrap(paragraph: str, width_mm: float, style: TextStyle) -> list[str]:
    """Greedy word wrap; a word wider than the box is broken across lines."""
    lines: list[str] = []
    current = ""
    for word in paragraph.split():
        candidate = f"{current} {word}" if current else word
        if text_width(candidate, style) <= width_mm:
            current = candidate
            continue
        if current:
            lines.append(current)
        while len(word) > 1 and text_width(word, style) > width_mm:
            cut = _fitting_prefix(word, width_mm, style)
            lines.append(word[:cut])
            word = word[cut:]
        current = word
    if current:
        lines.append(current)
    return lines


def _fitting_prefix(text: str, width_mm: float, style: TextStyle) -> int:
    """Length of the longest prefix of ``text`` that fits ``width_mm`` (at least 1)."""
    lo, hi = 1, len(text)
    while lo < hi:
        mid = (lo + hi + 1) // 2
        if text_width(text[:mid], style) <= width_mm:
            lo = mid
        else:
            hi = mid - 1
    return lo


def _ellipsize(line: str, width_mm: float, style: TextStyle) -> str:
    line = line.rstrip()
    room = width_mm - text_width(_ELLIPSIS, style)
    if room <= 0:
        return _ELLIPSIS
    if text_width(line, style) > room:
        line = line[:_fitting_prefix(line, room, style)].rstrip()
        if line and text_width(line, style) > room:
            line = ""
    return line + _ELLIPSIS


def _single_line(text: str, width_mm: float, style: TextStyle) -> str:
    text = " ".join(text.split())
    if text_width(text, style) <= width_mm:
        return text
    return _ellipsize(text, width_mm, style)


def _fit_image(image: OptimizedImage, x: float, y: float, w: float, h: float) -> tuple[float, float, float, float]:
    """Largest box with the image's aspect ratio inside (x, y, w, h), centred."""
    scale = min(w / image.width, h / image.height)
    fw, fh = image.width * scale, image.height * scale
    return x + (w - fw) / 2, y + (h - fh) / 2, fw, fh


# ---------------------------------------------------------------------------
# Table section
# ---------------------------------------------------------------------------

def column_geometry(design: DesignSystem) -> list[tuple[str, float, float]]:
    """(column key, x offset, width) for every table column, left to right."""
    weights = design.table.column_weights
    total = sum(weights[key] for key in TABLE_COLUMNS)
    x = design.page.margin_left_mm
    columns: list[tuple[str, float, float]] = []
    for key in TABLE_COLUMNS:
        width = design.page.content_width_mm * weights[key] / total
        columns.append((key, x, width))
        x += width
    return columns


def _table_pages(
    ship: Ship,
    findings: list[DecodedFinding],
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
    report_date: date,
    title: str,
) -> list[Page]:
    page_dims = design.page
    table = design.table
    columns = column_geometry(design)

    pages: list[Page] = []
    blocks, y = _report_header(ship, findings, design, labels, report_date, title)
    blocks.extend(_header_row(columns, y, design, labels))
    y += table.header_height_mm

    for index, item in enumerate(findings):
        if y + table.row_height_mm > page_dims.body_bottom_mm:
            pages.append(Page(page_number=len(pages) + 1, section="table", blocks=blocks))
            y = page_dims.margin_top_mm
            blocks = _header_row(columns, y, design, labels)
            y += table.header_height_mm
        blocks.extend(_row_blocks(item, index, y, columns, images, design, labels))
        y += table.row_height_mm

    pages.append(Page(page_number=len(pages) + 1, section="table", blocks=blocks))
    return pages


def _report_header(
    ship: Ship,
    findings: list[DecodedFinding],
    design: DesignSystem,
    labels: ReportLabels,
    report_date: date,
    title: str,
) -> tuple[list[Block], float]:
    page_dims = design.page
    typo = design.typography
    x, width = page_dims.margin_left_mm, page_dims.content_width_mm
    y = page_dims.margin_top_mm
    blocks: list[Block] = []

    title_h = line_height_mm(typo.title)
    blocks.append(TextRun(
        x_mm=x, y_mm=y, width_mm=width, height_mm=title_h,
        lines=[_single_line(title, width, typo.title)], style_ref="title", align="center",
    ))
    y += title_h + 4.0

    heading_h = line_height_mm(typo.heading)
    blocks.append(TextRun(
        x_mm=x, y_mm=y, width_mm=width, height_mm=heading_h,
        lines=[labels.ship_info_heading], style_ref="heading",
    ))
    y += heading_h + 1.0

    dated = [item.finding.inspection_date for item in findings if item.finding.inspection_date]
    info = [
        f"{labels.ship_name}: {ship.name}",
        f"{labels.ship_code}: {ship.code}",
        f"{labels.total_findings}: {len(findings)}",
        f"{labels.latest_inspection}: {labels.format_date(max(dated) if dated else None)}",
        f"{labels.report_date}: {labels.format_date(report_date)}",
    ]
    info_h = line_height_mm(typo.body) * len(info)
    blocks.append(TextRun(
        x_mm=x, y_mm=y, width_mm=width, height_mm=info_h,
        lines=[_single_line(line, width, typo.body) for line in info], style_ref="body",
    ))
    y += info_h + 4.0
    return blocks, y


def _header_row(
    columns: list[tuple[str, float, float]],
    y: float,
    design: DesignSystem,
    labels: ReportLabels,
) -> list[Block]:
    pad = design.table.cell_padding_mm
    style = design.typography.table_header
    return [
        TableCell(
            x_mm=x, y_mm=y, width_mm=w, height_mm=design.table.header_height_mm,
            column=key, header=True, align="center",
            lines=[_single_line(labels.columns.get(key, key), w - 2 * pad, style)],
        )
        for key, x, w in columns
    ]


def _row_blocks(
    item: DecodedFinding,
    index: int,
    y: float,
    columns: list[tuple[str, float, float]],
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
) -> list[Block]:
    table = design.table
    pad = table.cell_padding_mm
    style = design.typography.cell
    shaded = index % 2 == 1
    values = _row_values(item, labels)

    blocks: list[Block] = []
    overlays: list[Block] = []
    for key, x, w in columns:
        if key in _PHOTO_COLUMNS:
            lines, extra = _photo_cell(item, key, x, y, w, images, design, labels)
            overlays.extend(extra)
        else:
            lines = fit_text(
                values.get(key, ""), w - 2 * pad, table.row_height_mm - 2 * pad,
                style, table.line_height_factor,
            )
        blocks.append(TableCell(
            x_mm=x, y_mm=y, width_mm=w, height_mm=table.row_height_mm,
            column=key, lines=lines, shaded=shaded,
            align="center" if key in _CENTERED_COLUMNS or key in _PHOTO_COLUMNS else "left",
        ))
    # Images and badges are drawn after all cells so cell backgrounds never cover them
    return blocks + overlays


def _row_values(item: DecodedFinding, labels: ReportLabels) -> dict[str, str]:
    f = item.finding
    return {
        "no": str(f.no),
        "date": labels.format_date(f.inspection_date),
        "description": f.description,
        "category": f.category,
        "pic_ship": f.pic_ship,
        "pic_office": f.pic_office,
        "status": f.status,
        "comment": f.comment or "",
    }


def _photo_cell(
    item: DecodedFinding,
    key: str,
    x: float,
    y: float,
    w: float,
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
) -> tuple[list[str], list[Block]]:
    """Return (cell text lines, overlay blocks) for a before/after cell."""
    photo_set = item.before if key == "before" else item.after
    if isinstance(photo_set, EmptyPhotoSet):
        return [labels.none_marker], []

    table = design.table
    pad = table.cell_padding_mm
    inner_x, inner_y = x + pad, y + pad
    inner_w, inner_h = w - 2 * pad, table.row_height_mm - 2 * pad

    lines: list[str] = []
    overlays: list[Block] = []
    result = images.get(ImageRequest(uri=photo_set.uris[0], preset="table"))
    if isinstance(result, OptimizedImage):
        ix, iy, iw, ih = _fit_image(result, inner_x, inner_y, inner_w, inner_h)
        overlays.append(ImageBlock(
            x_mm=ix, y_mm=iy, width_mm=iw, height_mm=ih,
            image_key=ImageRequest(uri=photo_set.uris[0], preset="table").key,
        ))
    else:
        lines = [labels.present_marker]

    if isinstance(photo_set, ManyPhotos):
        overlays.append(BadgeBlock(
            x_mm=inner_x + inner_w - table.badge_width_mm,
            y_mm=inner_y,
            width_mm=table.badge_width_mm,
            height_mm=table.badge_height_mm,
            text=f"+{len(photo_set.uris) - 1}",
        ))
    return lines, overlays


# ---------------------------------------------------------------------------
# Detail section
# ---------------------------------------------------------------------------

def tiles_per_row(design: DesignSystem) -> int:
    detail = design.detail
    return max(1, math.floor(design.page.content_width_mm / (detail.tile_width_mm + detail.gutter_mm)))


def _multi_sets(item: DecodedFinding, labels: ReportLabels) -> list[tuple[str, tuple[str, ...]]]:
    return [
        (label, photo_set.uris)
        for label, photo_set in ((labels.before, item.before), (labels.after, item.after))
        if isinstance(photo_set, ManyPhotos)
    ]


def finding_detail_height(item: DecodedFinding, design: DesignSystem, labels: ReportLabels) -> float:
    """Vertical space the finding's detail block needs, spacing after it included."""
    detail = design.detail
    per_row = tiles_per_row(design)
    height = detail.finding_header_height_mm
    for _label, uris in _multi_sets(item, labels):
        rows = math.ceil(len(uris) / per_row)
        height += detail.set_label_height_mm + rows * (detail.tile_height_mm + detail.gutter_mm)
    return height + detail.finding_spacing_mm


def _detail_pages(
    first_page_number: int,
    findings: list[DecodedFinding],
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
) -> list[Page]:
    page_dims = design.page
    typo = design.typography
    bottom = page_dims.body_bottom_mm

    pages: list[Page] = []
    heading_h = line_height_mm(typo.heading)
    blocks: list[Block] = [TextRun(
        x_mm=page_dims.margin_left_mm, y_mm=page_dims.margin_top_mm,
        width_mm=page_dims.content_width_mm, height_mm=heading_h,
        lines=[labels.detail_heading], style_ref="heading",
    )]
    y = page_dims.margin_top_mm + heading_h + 3.0
    page_has_findings = False

    for item in findings:
        needed = finding_detail_height(item, design, labels)
        if page_has_findings and y + needed > bottom:
            pages.append(Page(
                page_number=first_page_number + len(pages), section="detail", blocks=blocks,
            ))
            blocks = []
            y = page_dims.margin_top_mm
            page_has_findings = False

        item_blocks, y = _finding_blocks(item, y, bottom, clip=y + needed > bottom,
                                         images=images, design=design, labels=labels)
        blocks.extend(item_blocks)
        page_has_findings = True

    pages.append(Page(page_number=first_page_number + len(pages), section="detail", blocks=blocks))
    return pages


def _finding_blocks(
    item: DecodedFinding,
    y: float,
    bottom: float,
    *,
    clip: bool,
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
) -> tuple[list[Block], float]:
    """Blocks for one finding starting at ``y``; returns them with the next free y.

    With ``clip`` set the grid stops at the last tile row that still leaves
    room for the "not shown" note.
    """
    detail = design.detail
    page_dims = design.page
    typo = design.typography
    x0, width = page_dims.margin_left_mm, page_dims.content_width_mm
    per_row = tiles_per_row(design)
    note_h = line_height_mm(typo.caption)
    limit = bottom - note_h if clip else bottom

    f = item.finding
    header = f"No. {f.no}: {f.description}" if f.description else f"No. {f.no}"
    blocks: list[Block] = [TextRun(
        x_mm=x0, y_mm=y, width_mm=width, height_mm=detail.finding_header_height_mm,
        lines=[_single_line(header, width, typo.heading)], style_ref="heading",
    )]
    y += detail.finding_header_height_mm

    omitted = 0
    for label, uris in _multi_sets(item, labels):
        if omitted or y + detail.set_label_height_mm + detail.tile_height_mm > limit:
            omitted += len(uris)
            continue
        blocks.append(TextRun(
            x_mm=x0, y_mm=y, width_mm=width, height_mm=detail.set_label_height_mm,
            lines=[f"{label} ({len(uris)} {labels.photos})"], style_ref="body",
        ))
        y += detail.set_label_height_mm

        for row_start in range(0, len(uris), per_row):
            if y + detail.tile_height_mm > limit:
                omitted += len(uris) - row_start
                break
            for col, uri in enumerate(uris[row_start:row_start + per_row]):
                tx = x0 + col * (detail.tile_width_mm + detail.gutter_mm)
                blocks.append(_tile(uri, tx, y, images, design, labels))
            y += detail.tile_height_mm + detail.gutter_mm

    if omitted:
        logger.warning(
            "  Finding %d: detail block taller than a page — %d photo(s) not shown",
            f.no, omitted,
        )
        blocks.append(TextRun(
            x_mm=x0, y_mm=y, width_mm=width, height_mm=note_h,
            lines=[labels.omitted_photos.format(count=omitted)], style_ref="caption",
        ))
        y += note_h

    return blocks, y + detail.finding_spacing_mm


def _tile(
    uri: str,
    x: float,
    y: float,
    images: Mapping[ImageRequest, OptimizeResult],
    design: DesignSystem,
    labels: ReportLabels,
) -> Block:
    detail = design.detail
    request = ImageRequest(uri=uri, preset="detail")
    result = images.get(request)
    if isinstance(result, OptimizedImage):
        ix, iy, iw, ih = _fit_image(result, x, y, detail.tile_width_mm, detail.tile_height_mm)
        return ImageBlock(x_mm=ix, y_mm=iy, width_mm=iw, height_mm=ih, image_key=request.key)
    return PlaceholderBlock(
        x_mm=x, y_mm=y, width_mm=detail.tile_width_mm, height_mm=detail.tile_height_mm,
        label=labels.load_failed,
    )
