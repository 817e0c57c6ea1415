"""Image presets and optimizer result types.

Every optimize call yields either an ``OptimizedImage`` or an ``ImageFailure``;
the layout stage matches on the two explicitly instead of catching drawing
errors.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

PresetName = Literal["table", "detail", "fullPage"]
FailureReason = Literal["fetch", "decode", "encode", "timeout", "cancelled"]


class ImagePreset(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: PresetName
    max_width: int = Field(gt=0)
    max_height: int = Field(gt=0)
    quality: float = Field(gt=0.0, le=1.0)

    @property
    def jpeg_quality(self) -> int:
        """Pillow's 1–95 JPEG quality scale."""
        return max(1, min(95, round(self.quality * 100)))


PRESETS: dict[str, ImagePreset] = {
    # Thumbnails inside the findings table
    "table": ImagePreset(name="table", max_width=150, max_height=112, quality=0.6),
    # Tiles in the photo detail section
    "detail": ImagePreset(name="detail", max_width=300, max_height=225, quality=0.7),
    "fullPage": ImagePreset(name="fullPage", max_width=500, max_height=375, quality=0.8),
}


class ImageRequest(BaseModel):
    """One (uri, preset) pair to fetch and optimize. Hashable; used as the join key."""

    model_config = ConfigDict(frozen=True)

    uri: str
    preset: PresetName

    @property
    def key(self) -> str:
        return f"{self.preset}:{self.uri}"


class OptimizedImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["ok"] = "ok"
    preset: PresetName
    data: bytes
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    mime_type: str = "image/jpeg"


class ImageFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["failed"] = "failed"
    preset: PresetName
    uri: str
    reason: FailureReason
    message: str = ""


OptimizeResult = OptimizedImage | ImageFailure
