"""Report wording per language.

English is the default; Indonesian reproduces the wording of the reports the
inspection teams already know. Dates are formatted by hand to avoid any locale
dependency.
"""
from datetime import date, datetime

from pydantic import BaseModel

_ID_MONTHS = [
    "", "Januari", "Februari", "Maret", "April", "Mei", "Juni",
    "Juli", "Agustus", "September", "Oktober", "November", "Desember",
]


class ReportLabels(BaseModel):
    language: str
    title: str
    ship_info_heading: str
    ship_name: str
    ship_code: str
    total_findings: str
    latest_inspection: str
    report_date: str
    columns: dict[str, str]
    none_marker: str
    present_marker: str
    load_failed: str
    detail_heading: str
    before: str
    after: str
    photos: str
    omitted_photos: str  # format string with {count}
    page_footer: str     # format string with {page} and {total}
    printed_at: str      # format string with {timestamp}

    def format_date(self, d: date | None) -> str:
        if d is None:
            return "-"
        if self.language == "id":
            return f"{d.day} {_ID_MONTHS[d.month]} {d.year}"
        return d.isoformat()

    def format_timestamp(self, ts: datetime) -> str:
        if self.language == "id":
            return f"{self.format_date(ts.date())} {ts:%H.%M}"
        return f"{ts:%Y-%m-%d %H:%M}"

    def footer(self, page: int, total: int) -> str:
        return self.page_footer.format(page=page, total=total)


_EN = ReportLabels(
    language="en",
    title="INSPECTION FINDINGS REPORT",
    ship_info_heading="SHIP INFORMATION",
    ship_name="Ship name",
    ship_code="Ship code",
    total_findings="Total findings",
    latest_inspection="Latest inspection",
    report_date="Report date",
    columns={
        "no": "No",
        "date": "Date",
        "description": "Finding",
        "category": "Category",
        "pic_ship": "PIC Ship",
        "pic_office": "PIC Office",
        "status": "Status",
        "before": "Before",
        "after": "After",
        "comment": "Comment",
    },
    none_marker="none",
    present_marker="present",
    load_failed="could not load",
    detail_heading="PHOTO DETAILS",
    before="Before",
    after="After",
    photos="photos",
    omitted_photos="{count} more photos not shown",
    page_footer="page {page} of {total}",
    printed_at="Printed: {timestamp}",
)

_ID = ReportLabels(
    language="id",
    title="LAPORAN TEMUAN INSPEKSI",
    ship_info_heading="INFORMASI KAPAL",
    ship_name="Nama Kapal",
    ship_code="Kode Kapal",
    total_findings="Total Temuan",
    latest_inspection="Inspeksi Terakhir",
    report_date="Tanggal Laporan",
    columns={
        "no": "No",
        "date": "Tanggal",
        "description": "Temuan",
        "category": "Kategori",
        "pic_ship": "PIC Kapal",
        "pic_office": "PIC Kantor",
        "status": "Status",
        "before": "Foto Before",
        "after": "Foto After",
        "comment": "Komentar",
    },
    none_marker="Tidak Ada",
    present_marker="Ada",
    load_failed="Gagal memuat",
    detail_heading="DETAIL FOTO",
    before="Before",
    after="After",
    photos="foto",
    omitted_photos="{count} foto lainnya tidak ditampilkan",
    page_footer="Halaman {page} dari {total}",
    printed_at="Dicetak pada: {timestamp}",
)

_LABELS = {"en": _EN, "id": _ID}


def labels_for(language: str) -> ReportLabels:
    """Return the label set for ``language``; unknown languages fall back to English."""
    return _LABELS.get(language, _EN)
