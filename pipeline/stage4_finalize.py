"""Stage 4: Finalize — stamp page numbers and print time on every page.

The footer reads ``page i of N``, and N is only known once layout has placed
the last detail tile, so stamping is a separate pass over the finished page
list. It returns new Page objects and leaves the layout output untouched.
"""
import logging
from collections.abc import Mapping
from datetime import datetime

from models.images import ImageRequest, OptimizedImage, OptimizeResult
from models.labels import ReportLabels
from models.report import ImageBlock, Page, PageFooter, ReportDocument

logger = logging.getLogger(__name__)


def stamp_pages(pages: list[Page], labels: ReportLabels, generated_at: datetime) -> list[Page]:
    total = len(pages)
    printed = labels.printed_at.format(timestamp=labels.format_timestamp(generated_at))
    return [
        page.model_copy(update={
            "page_number": number,
            "footer": PageFooter(page_label=labels.footer(number, total), printed_label=printed),
        })
        for number, page in enumerate(pages, start=1)
    ]


def finalize(
    pages: list[Page],
    images: Mapping[ImageRequest, OptimizeResult],
    labels: ReportLabels,
    generated_at: datetime,
    title: str,
) -> ReportDocument:
    """Build the ReportDocument: stamped pages plus only the images they reference."""
    stamped = stamp_pages(pages, labels, generated_at)

    by_key = {req.key: result for req, result in images.items() if isinstance(result, OptimizedImage)}
    used: dict[str, OptimizedImage] = {}
    for page in stamped:
        for block in page.blocks:
            if isinstance(block, ImageBlock) and block.image_key in by_key:
                used[block.image_key] = by_key[block.image_key]

    document = ReportDocument(
        title=title,
        language=labels.language,
        generated_at=generated_at,
        pages=stamped,
        images=used,
    )
    logger.info("Stage 4 complete → %d page(s), %d embedded image(s)", document.page_count, len(used))
    return document
