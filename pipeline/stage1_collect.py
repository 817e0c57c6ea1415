"""Stage 1: Collect — validate records, decode photo sets, plan image requests.

Input:  raw Ship and Finding records (dicts or models) from the persistence service
Output: CollectedReport — findings in sequence-number order with decoded
        before/after PhotoSets, plus the de-duplicated list of (uri, preset)
        requests the optimizer has to serve.

Which preset a photo needs:
  - the first photo of every non-empty set → "table" (thumbnail in the table row)
  - every photo of a set with more than one photo → "detail" (grid tile)
"""
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from models.images import ImageRequest
from models.photo_set import EmptyPhotoSet, ManyPhotos, PhotoSet, SinglePhoto
from models.records import Finding, Ship
from utils.photo_refs import parse_photo_set

logger = logging.getLogger(__name__)


class ReportCompileError(RuntimeError):
    """The report cannot be compiled at all (input records unreadable or invalid)."""


class DecodedFinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    finding: Finding
    before: PhotoSet
    after: PhotoSet

    @property
    def has_detail(self) -> bool:
        return isinstance(self.before, ManyPhotos) or isinstance(self.after, ManyPhotos)


class CollectedReport(BaseModel):
    ship: Ship
    findings: list[DecodedFinding]
    requests: list[ImageRequest]


def collect(
    ship: Ship | Mapping[str, Any],
    findings: Iterable[Finding | Mapping[str, Any]],
) -> CollectedReport:
    """Validate and decode the input records.

    Raises ReportCompileError when the records cannot be read; this is the
    only failure that aborts a compile.
    """
    ship_model = read_ship(ship)
    finding_models = _read_findings(findings)

    decoded = [
        DecodedFinding(
            finding=f,
            before=parse_photo_set(f.before_photo),
            after=parse_photo_set(f.after_photo),
        )
        for f in sorted(finding_models, key=lambda f: f.no)
    ]
    requests = plan_requests(decoded)

    logger.info("Stage 1 complete → %s (%s)", ship_model.name, ship_model.code)
    logger.info("  Findings:        %d", len(decoded))
    logger.info("  With detail:     %d", sum(1 for d in decoded if d.has_detail))
    logger.info("  Image requests:  %d", len(requests))
    return CollectedReport(ship=ship_model, findings=decoded, requests=requests)


def plan_requests(findings: list[DecodedFinding]) -> list[ImageRequest]:
    """Return every (uri, preset) pair needed by the layout, first-seen order, no duplicates."""
    seen: set[ImageRequest] = set()
    ordered: list[ImageRequest] = []

    def add(uri: str, preset: str) -> None:
        req = ImageRequest(uri=uri, preset=preset)
        if req not in seen:
            seen.add(req)
            ordered.append(req)

    for item in findings:
        for photo_set in (item.before, item.after):
            if isinstance(photo_set, EmptyPhotoSet):
                continue
            add(photo_set.uris[0], "table")
            if isinstance(photo_set, SinglePhoto):
                continue
            for uri in photo_set.uris:
                add(uri, "detail")
    return ordered


# ---------------------------------------------------------------------------
# Record validation
# ---------------------------------------------------------------------------

def read_ship(ship: Ship | Mapping[str, Any]) -> Ship:
    if isinstance(ship, Ship):
        return ship
    try:
        return Ship.model_validate(ship)
    except ValidationError as exc:
        raise ReportCompileError(f"Invalid ship record: {exc}") from exc


def _read_findings(findings: Iterable[Finding | Mapping[str, Any]]) -> list[Finding]:
    if findings is None:
        raise ReportCompileError("No finding list supplied")
    result: list[Finding] = []
    try:
        for index, record in enumerate(findings):
            result.append(record if isinstance(record, Finding) else Finding.model_validate(record))
    except ValidationError as exc:
        raise ReportCompileError(f"Invalid finding record at position {index}: {exc}") from exc
    except Exception as exc:
        raise ReportCompileError(f"Could not read finding records: {exc}") from exc
    return result
