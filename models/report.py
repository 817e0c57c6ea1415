"""Report document model — positioned content blocks on fixed-size pages.

All coordinates are millimetres from the top-left corner of the page. The
layout stage produces pages without footers; the finalize stage adds the
``page i of N`` footer once the page count is known.
"""
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from models.images import OptimizedImage


class Box(BaseModel):
    x_mm: float
    y_mm: float
    width_mm: float = Field(ge=0.0)
    height_mm: float = Field(ge=0.0)

    @property
    def bottom_mm(self) -> float:
        return self.y_mm + self.height_mm


class TextRun(Box):
    kind: Literal["text"] = "text"
    lines: list[str]
    style_ref: str = "body"  # key into design typography
    align: Literal["left", "center", "right"] = "left"


class TableCell(Box):
    kind: Literal["cell"] = "cell"
    column: str
    lines: list[str] = Field(default_factory=list)
    header: bool = False
    shaded: bool = False
    align: Literal["left", "center", "right"] = "left"


class ImageBlock(Box):
    kind: Literal["image"] = "image"
    image_key: str  # key into ReportDocument.images


class PlaceholderBlock(Box):
    """Framed box standing in for an image that could not be loaded."""

    kind: Literal["placeholder"] = "placeholder"
    label: str


class BadgeBlock(Box):
    """Small count badge drawn over a thumbnail, e.g. "+2"."""

    kind: Literal["badge"] = "badge"
    text: str


Block = Annotated[
    Union[TextRun, TableCell, ImageBlock, PlaceholderBlock, BadgeBlock],
    Field(discriminator="kind"),
]


class PageFooter(BaseModel):
    page_label: str    # e.g. "page 2 of 5"
    printed_label: str  # e.g. "Printed: 2026-10-19 09:30"


class Page(BaseModel):
    page_number: int = Field(ge=1)
    section: Literal["table", "detail"]
    blocks: list[Block] = Field(default_factory=list)
    footer: PageFooter | None = None

    def text_content(self) -> list[str]:
        """All visible text on the page in block order (footer excluded)."""
        out: list[str] = []
        for block in self.blocks:
            if isinstance(block, (TextRun, TableCell)):
                out.extend(block.lines)
            elif isinstance(block, PlaceholderBlock):
                out.append(block.label)
            elif isinstance(block, BadgeBlock):
                out.append(block.text)
        return out


class ReportDocument(BaseModel):
    title: str
    language: str = "en"
    generated_at: datetime
    pages: list[Page] = Field(default_factory=list)
    images: dict[str, OptimizedImage] = Field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return len(self.pages)
