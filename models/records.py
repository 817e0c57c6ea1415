from datetime import date
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Ship(BaseModel):
    """Ship record as delivered by the persistence service.

    Rows from the ``ships`` table use ``ship_name`` / ``ship_code``; both the
    column names and the short names are accepted.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(validation_alias=AliasChoices("name", "ship_name"))
    code: str = Field(validation_alias=AliasChoices("code", "ship_code"))


class Finding(BaseModel):
    """One inspection observation tied to a ship.

    ``before_photo`` and ``after_photo`` hold the encoded photo reference
    strings (see ``utils.photo_refs``), exactly as stored.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int | None = None
    no: int = Field(ge=1)  # ship-scoped sequence number
    inspection_date: date | None = Field(
        default=None, validation_alias=AliasChoices("inspection_date", "date")
    )
    description: str = Field(default="", validation_alias=AliasChoices("description", "finding"))
    category: str = ""
    pic_ship: str = ""
    pic_office: str = ""
    status: Literal["Open", "Closed"] = "Open"
    before_photo: str | None = None
    after_photo: str | None = None
    comment: str | None = None

    @field_validator("description", "category", "pic_ship", "pic_office", mode="before")
    @classmethod
    def none_as_empty(cls, v: str | None) -> str:
        # Nullable text columns come back as None from the database
        return "" if v is None else v


def next_sequence_number(findings: list[Finding]) -> int:
    """Sequence number for a new finding on the same ship: max(existing) + 1, starting at 1."""
    return max((f.no for f in findings), default=0) + 1
