#!/usr/bin/env python3
"""Compile the inspection findings report for one ship.

Usage:
    python run_report.py --ship ship.json --findings findings.json
    python run_report.py --ship ship.json --findings findings.json --out ./reports
    python run_report.py --ship ship.json --findings findings.json --date 2026-10-19

``ship.json`` holds one ship record, ``findings.json`` a list of finding
records, both as exported by the persistence service. Relative photo paths
resolve against ``<project_dir>/photos``; http(s) URLs are downloaded.
"""
import argparse
import json
import logging
import sys
from datetime import date, datetime
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from settings import Settings
from pipeline.compiler import ReportCompileError, compile_to_file
from utils.fetchers import make_fetcher

logger = logging.getLogger("run_report")


def _load_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--ship", type=Path, required=True,
                        help="JSON file with the ship record")
    parser.add_argument("--findings", type=Path, required=True,
                        help="JSON file with the list of finding records")
    parser.add_argument("--out", type=Path, default=None,
                        help="Output directory (default: <project_dir>/output)")
    parser.add_argument("--date", type=date.fromisoformat, default=None,
                        help="Report date YYYY-MM-DD (default: now)")
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    generated_at = datetime.now()
    if args.date is not None:
        generated_at = datetime.combine(args.date, generated_at.time())

    try:
        ship = _load_json(args.ship)
        findings = _load_json(args.findings)
    except (OSError, ValueError) as exc:
        logger.error("Cannot read input records: %s", exc)
        return 1

    logger.info("=== Compiling report ===")
    try:
        output_path = compile_to_file(
            ship,
            findings,
            make_fetcher(base_dir=settings.photos_dir),
            settings=settings,
            output_dir=args.out,
            generated_at=generated_at,
        )
    except ReportCompileError as exc:
        logger.error("Report compile failed: %s", exc)
        return 1

    logger.info("=== Done → %s ===", output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
