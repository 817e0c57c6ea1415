"""Report compiler — runs the stages in order for one ship.

    collect (decode photo sets, plan requests)
      → optimize (concurrent, per-item failures absorbed)
      → layout (table pass, detail pass)
      → finalize (page i of N, print time)
      → render (PDF bytes)

The caller gets either complete PDF bytes or an exception; a partially built
document is never returned. Only unreadable input records
(ReportCompileError) and cancellation (CompileCancelled) escape. A failed
image becomes a placeholder in the document.
"""
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any

from models.design import DesignSystem
from models.labels import labels_for
from models.records import Finding, Ship
from models.report import ReportDocument
from pipeline import stage1_collect, stage2_optimize, stage3_layout, stage4_finalize, stage5_render
from pipeline.stage1_collect import ReportCompileError
from pipeline.stage2_optimize import CompileCancelled
from settings import Settings
from utils.fetchers import Fetcher

logger = logging.getLogger(__name__)

__all__ = [
    "CompileCancelled",
    "ReportCompileError",
    "build_document",
    "compile_report",
    "compile_to_file",
    "report_filename",
]


def build_document(
    ship: Ship | Mapping[str, Any],
    findings: Iterable[Finding | Mapping[str, Any]],
    fetch: Fetcher,
    *,
    settings: Settings,
    design: DesignSystem | None = None,
    generated_at: datetime | None = None,
    cancel_event: threading.Event | None = None,
) -> ReportDocument:
    """Run every stage up to (not including) serialization."""
    if design is None:
        design = DesignSystem.load_or_default(settings.design_yaml_path)
    if generated_at is None:
        generated_at = datetime.now()
    labels = labels_for(settings.language)
    title = settings.report_title or labels.title

    collected = stage1_collect.collect(ship, findings)

    images = stage2_optimize.optimize_batch(
        collected.requests,
        fetch,
        max_workers=settings.max_workers,
        timeout_s=settings.fetch_timeout_s,
        cancel_event=cancel_event,
    )

    pages = stage3_layout.layout(
        collected.ship,
        collected.findings,
        images,
        design,
        labels,
        report_date=generated_at.date(),
        title=title,
    )
    if cancel_event is not None and cancel_event.is_set():
        raise CompileCancelled("cancelled after layout")

    return stage4_finalize.finalize(pages, images, labels, generated_at, title)


def compile_report(
    ship: Ship | Mapping[str, Any],
    findings: Iterable[Finding | Mapping[str, Any]],
    fetch: Fetcher,
    *,
    settings: Settings,
    design: DesignSystem | None = None,
    generated_at: datetime | None = None,
    cancel_event: threading.Event | None = None,
) -> bytes:
    """Compile the findings report for one ship and return the PDF bytes."""
    if design is None:
        design = DesignSystem.load_or_default(settings.design_yaml_path)
    document = build_document(
        ship, findings, fetch,
        settings=settings, design=design,
        generated_at=generated_at, cancel_event=cancel_event,
    )
    return stage5_render.render_pdf(document, design)


def compile_to_file(
    ship: Ship | Mapping[str, Any],
    findings: Iterable[Finding | Mapping[str, Any]],
    fetch: Fetcher,
    *,
    settings: Settings,
    output_dir: Path | None = None,
    design: DesignSystem | None = None,
    generated_at: datetime | None = None,
    cancel_event: threading.Event | None = None,
) -> Path:
    """Compile and write the PDF; returns its path.

    The file appears under its final name only once it is complete.
    """
    if generated_at is None:
        generated_at = datetime.now()
    ship_model = stage1_collect.read_ship(ship)

    pdf_bytes = compile_report(
        ship_model, findings, fetch,
        settings=settings, design=design,
        generated_at=generated_at, cancel_event=cancel_event,
    )

    target_dir = output_dir or settings.output_dir
    target_dir.mkdir(parents=True, exist_ok=True)
    output_path = target_dir / report_filename(ship_model, generated_at.date())

    fd, tmp_name = tempfile.mkstemp(dir=target_dir, suffix=".pdf.part")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(pdf_bytes)
        os.replace(tmp_name, output_path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.info("Report written → %s", output_path)
    return output_path


def report_filename(ship: Ship, on: date) -> str:
    """``Report_<ship name, spaces → underscores>_<ISO date>.pdf``."""
    name = "_".join(ship.name.split())
    # Path separators would escape the output directory
    name = name.replace("/", "-").replace("\\", "-")
    return f"Report_{name}_{on.isoformat()}.pdf"

