"""Design system model — typed representation of design.yaml.

Loaded once per compile and passed to the layout and render stages.
Every field has a default matching the established report look: A4
landscape, blue table header, striped rows.
"""
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


class PageDimensions(BaseModel):
    width_mm: float = 297.0
    height_mm: float = 210.0
    margin_top_mm: float = 15.0
    margin_bottom_mm: float = 12.0
    margin_left_mm: float = 15.0
    margin_right_mm: float = 15.0
    footer_height_mm: float = 8.0

    @property
    def content_width_mm(self) -> float:
        return self.width_mm - self.margin_left_mm - self.margin_right_mm

    @property
    def content_height_mm(self) -> float:
        return self.height_mm - self.margin_top_mm - self.margin_bottom_mm

    @property
    def body_bottom_mm(self) -> float:
        """Lowest y coordinate body content may reach; the footer sits below it."""
        return self.height_mm - self.margin_bottom_mm - self.footer_height_mm


class ColorPalette(BaseModel):
    primary: str = "#3490DC"
    header_text: str = "#FFFFFF"
    stripe: str = "#F2F6FA"
    text: str = "#1A1A1A"
    muted: str = "#666666"
    border: str = "#C8D2DC"
    placeholder: str = "#EEEEEE"


class TextStyle(BaseModel):
    font: str = "DejaVu Sans"
    size_pt: float = 8.0
    weight: Literal["normal", "bold", "italic"] = "normal"


class Typography(BaseModel):
    title: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=18.0, weight="bold"))
    heading: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=12.0, weight="bold"))
    body: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=10.0))
    table_header: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=8.0, weight="bold"))
    cell: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=7.0))
    caption: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=7.0))
    footer: TextStyle = Field(default_factory=lambda: TextStyle(size_pt=7.0))

    def get(self, style_ref: str) -> TextStyle:
        """Look up a TextStyle by key (e.g. 'title', 'cell', 'footer').

        Falls back to body style for unknown keys.
        """
        return getattr(self, style_ref, self.body)


# Table columns, left to right. The set and order are fixed; design.yaml may only re-weight them.
TABLE_COLUMNS = (
    "no", "date", "description", "category", "pic_ship",
    "pic_office", "status", "before", "after", "comment",
)

_DEFAULT_COLUMN_WEIGHTS = {
    "no": 4.0,
    "date": 8.0,
    "description": 20.0,
    "category": 10.0,
    "pic_ship": 7.0,
    "pic_office": 7.0,
    "status": 6.0,
    "before": 12.0,
    "after": 12.0,
    "comment": 14.0,
}


class TableLayout(BaseModel):
    header_height_mm: float = 8.0
    row_height_mm: float = 26.0
    cell_padding_mm: float = 1.5
    line_height_factor: float = 1.25
    column_weights: dict[str, float] = Field(default_factory=lambda: dict(_DEFAULT_COLUMN_WEIGHTS))
    badge_width_mm: float = 8.0
    badge_height_mm: float = 4.5

    @field_validator("column_weights")
    @classmethod
    def complete_column_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Merge a partial override onto the defaults, in TABLE_COLUMNS order."""
        unknown = sorted(set(v) - set(TABLE_COLUMNS))
        if unknown:
            raise ValueError(f"unknown table column(s): {', '.join(unknown)}")
        merged = {key: v.get(key, _DEFAULT_COLUMN_WEIGHTS[key]) for key in TABLE_COLUMNS}
        if any(weight <= 0 for weight in merged.values()):
            raise ValueError("column weights must be greater than 0")
        return merged


class DetailLayout(BaseModel):
    tile_width_mm: float = 56.0
    tile_height_mm: float = 42.0
    gutter_mm: float = 5.0
    finding_header_height_mm: float = 8.0
    set_label_height_mm: float = 6.0
    finding_spacing_mm: float = 4.0


class DesignSystem(BaseModel):
    """Complete design system loaded from design.yaml.

    Provides defaults for every field so it is usable even when design.yaml
    is absent or partially specified.
    """
    page: PageDimensions = Field(default_factory=PageDimensions)
    colors: ColorPalette = Field(default_factory=ColorPalette)
    typography: Typography = Field(default_factory=Typography)
    table: TableLayout = Field(default_factory=TableLayout)
    detail: DetailLayout = Field(default_factory=DetailLayout)

    @classmethod
    def load(cls, path: Path) -> "DesignSystem":
        """Load from a YAML file. Missing fields use Pydantic defaults.

        Raises FileNotFoundError if path does not exist.
        """
        import yaml  # lazy — only needed at load time
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return cls.model_validate(data)

    @classmethod
    def load_or_default(cls, path: Path) -> "DesignSystem":
        """Load from path if it exists, otherwise return default design system."""
        if path.exists():
            return cls.load(path)
        return cls()
