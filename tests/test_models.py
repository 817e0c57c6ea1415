"""Validation tests for records, photo sets, image types, labels and the report model."""
from datetime import date, datetime

import pytest
from pydantic import ValidationError

from models.images import PRESETS, ImageFailure, ImagePreset, ImageRequest, OptimizedImage
from models.labels import labels_for
from models.photo_set import EmptyPhotoSet, ManyPhotos, SinglePhoto, photo_set_from_uris
from models.records import Finding, Ship, next_sequence_number
from models.report import BadgeBlock, Page, PlaceholderBlock, ReportDocument, TableCell, TextRun


# ---------------------------------------------------------------------------
# Ship / Finding
# ---------------------------------------------------------------------------

class TestShip:
    def test_short_names(self):
        s = Ship(name="KM Sinar Jaya", code="SJ-01")
        assert s.name == "KM Sinar Jaya"

    def test_column_names(self):
        s = Ship.model_validate({"id": 4, "ship_name": "KM Sinar Jaya", "ship_code": "SJ-01"})
        assert s.code == "SJ-01"

    def test_missing_code_rejected(self):
        with pytest.raises(ValidationError):
            Ship.model_validate({"ship_name": "KM Sinar Jaya"})


class TestFinding:
    def test_database_row(self):
        f = Finding.model_validate({
            "id": 12,
            "ship_id": 4,
            "no": 3,
            "date": "2026-10-01",
            "finding": "Fire hose cabinet missing nozzle",
            "category": "Fire Fighting Appliances",
            "pic_ship": "C/O",
            "pic_office": "Marine",
            "status": "Open",
            "before_photo": "https://x/a.jpg",
            "after_photo": None,
        })
        assert f.no == 3
        assert f.inspection_date == date(2026, 10, 1)
        assert f.description == "Fire hose cabinet missing nozzle"
        assert f.after_photo is None

    def test_null_text_columns_become_empty(self):
        f = Finding.model_validate({"no": 1, "finding": None, "category": None})
        assert f.description == ""
        assert f.category == ""

    def test_sequence_number_starts_at_one(self):
        with pytest.raises(ValidationError):
            Finding(no=0)

    def test_status_restricted(self):
        with pytest.raises(ValidationError):
            Finding(no=1, status="Pending")


class TestNextSequenceNumber:
    def test_first_finding(self):
        assert next_sequence_number([]) == 1

    def test_max_plus_one(self):
        findings = [Finding(no=1), Finding(no=5), Finding(no=2)]
        assert next_sequence_number(findings) == 6


# ---------------------------------------------------------------------------
# PhotoSet
# ---------------------------------------------------------------------------

class TestPhotoSet:
    def test_from_uris(self):
        assert photo_set_from_uris([]) == EmptyPhotoSet()
        assert photo_set_from_uris(["a"]) == SinglePhoto(uri="a")
        assert photo_set_from_uris(["a", "b"]) == ManyPhotos(photos=("a", "b"))

    def test_many_needs_two(self):
        with pytest.raises(ValidationError):
            ManyPhotos(photos=("a",))

    def test_uris_property(self):
        assert EmptyPhotoSet().uris == ()
        assert SinglePhoto(uri="a").uris == ("a",)
        assert ManyPhotos(photos=("a", "b", "a")).uris == ("a", "b", "a")

    def test_single_photo_needs_a_uri(self):
        with pytest.raises(ValidationError):
            SinglePhoto(uri="")

    def test_empty_strings_dropped(self):
        assert photo_set_from_uris(["", "a", ""]) == SinglePhoto(uri="a")


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

class TestPresets:
    def test_fixed_preset_table(self):
        assert (PRESETS["table"].max_width, PRESETS["table"].max_height, PRESETS["table"].quality) == (150, 112, 0.6)
        assert (PRESETS["detail"].max_width, PRESETS["detail"].max_height, PRESETS["detail"].quality) == (300, 225, 0.7)
        assert (PRESETS["fullPage"].max_width, PRESETS["fullPage"].max_height, PRESETS["fullPage"].quality) == (500, 375, 0.8)

    def test_jpeg_quality_scale(self):
        assert PRESETS["table"].jpeg_quality == 60
        assert ImagePreset(name="table", max_width=1, max_height=1, quality=1.0).jpeg_quality == 95

    def test_quality_must_be_fraction(self):
        with pytest.raises(ValidationError):
            ImagePreset(name="table", max_width=10, max_height=10, quality=1.5)


class TestImageRequest:
    def test_hashable_and_equal_by_value(self):
        a = ImageRequest(uri="u", preset="table")
        b = ImageRequest(uri="u", preset="table")
        assert a == b
        assert len({a, b}) == 1

    def test_preset_distinguishes(self):
        assert ImageRequest(uri="u", preset="table") != ImageRequest(uri="u", preset="detail")

    def test_key(self):
        assert ImageRequest(uri="http://x/a.jpg", preset="detail").key == "detail:http://x/a.jpg"

    def test_unknown_preset_rejected(self):
        with pytest.raises(ValidationError):
            ImageRequest(uri="u", preset="huge")


class TestResults:
    def test_status_tags(self):
        ok = OptimizedImage(preset="table", data=b"x", width=10, height=8)
        failed = ImageFailure(preset="table", uri="u", reason="fetch")
        assert ok.status == "ok"
        assert failed.status == "failed"


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------

class TestLabels:
    def test_english_footer(self):
        assert labels_for("en").footer(1, 1) == "page 1 of 1"

    def test_indonesian_footer(self):
        assert labels_for("id").footer(2, 5) == "Halaman 2 dari 5"

    def test_unknown_language_falls_back_to_english(self):
        assert labels_for("xx").language == "en"

    def test_indonesian_date(self):
        assert labels_for("id").format_date(date(2026, 10, 9)) == "9 Oktober 2026"

    def test_english_date_is_iso(self):
        assert labels_for("en").format_date(date(2026, 10, 9)) == "2026-10-09"

    def test_missing_date(self):
        assert labels_for("en").format_date(None) == "-"

    def test_timestamp(self):
        ts = datetime(2026, 10, 19, 8, 5)
        assert labels_for("en").format_timestamp(ts) == "2026-10-19 08:05"
        assert labels_for("id").format_timestamp(ts) == "19 Oktober 2026 08.05"

    def test_both_languages_have_every_column(self):
        assert labels_for("en").columns.keys() == labels_for("id").columns.keys()


# ---------------------------------------------------------------------------
# Report model
# ---------------------------------------------------------------------------

class TestReportModel:
    def test_text_content_collects_visible_text(self):
        page = Page(page_number=1, section="table", blocks=[
            TextRun(x_mm=0, y_mm=0, width_mm=10, height_mm=5, lines=["Title"]),
            TableCell(x_mm=0, y_mm=5, width_mm=10, height_mm=5, column="no", lines=["1"]),
            PlaceholderBlock(x_mm=0, y_mm=10, width_mm=10, height_mm=5, label="could not load"),
            BadgeBlock(x_mm=0, y_mm=15, width_mm=5, height_mm=3, text="+2"),
        ])
        assert page.text_content() == ["Title", "1", "could not load", "+2"]

    def test_blocks_round_trip_with_discriminator(self):
        page = Page(page_number=1, section="detail", blocks=[
            BadgeBlock(x_mm=1, y_mm=2, width_mm=3, height_mm=4, text="+1"),
        ])
        reloaded = Page.model_validate_json(page.model_dump_json())
        assert isinstance(reloaded.blocks[0], BadgeBlock)

    def test_page_count(self):
        doc = ReportDocument(
            title="T", generated_at=datetime(2026, 10, 19),
            pages=[Page(page_number=1, section="table"), Page(page_number=2, section="detail")],
        )
        assert doc.page_count == 2

    def test_negative_size_rejected(self):
        with pytest.raises(ValidationError):
            TextRun(x_mm=0, y_mm=0, width_mm=-1, height_mm=5, lines=[])
