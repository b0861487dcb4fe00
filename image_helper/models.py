"""Pydantic models describing uploads and encoding constraints.

These models validate the loose option mappings accepted by the storage
helpers and carry the tuning knobs of the quality search. They are plain
value objects; none of them touches the filesystem.
"""

from __future__ import annotations

from typing import Optional, Set

from pydantic import BaseModel, ConfigDict, PositiveInt, field_validator, model_validator

DEFAULT_ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif", "webp"})


def normalize_extension(extension: str) -> str:
    """Lowercase an extension and drop surrounding whitespace and dots."""
    return extension.strip().lstrip(".").lower()


class ResizeSpec(BaseModel):
    """Requested output size. Either side may be left out.

    Attributes:
        width: Target width in pixels.
        height: Target height in pixels.
    """

    model_config = ConfigDict(frozen=True)

    width: Optional[PositiveInt] = None
    height: Optional[PositiveInt] = None


class EncodeConstraint(BaseModel):
    """Byte-size band and quality bounds for the quality search.

    Attributes:
        target_min: Smallest acceptable output size in bytes.
        target_max: Largest acceptable output size in bytes.
        start_quality: Quality used for the first encode attempt.
        min_quality: Quality floor; no further decrease below it.
        max_quality: Quality ceiling; no further increase above it.
        step_down: Quality decrease when the output is too large.
        step_up: Quality increase when the output is too small.
        max_iterations: Maximum number of encode attempts. ``None`` runs
            until the band check stops it or a quality value repeats.
    """

    model_config = ConfigDict(frozen=True)

    target_min: int = 15 * 1024
    target_max: int = 30 * 1024
    start_quality: int = 90
    min_quality: int = 40
    max_quality: int = 95
    step_down: PositiveInt = 10
    step_up: PositiveInt = 5
    max_iterations: Optional[PositiveInt] = 5

    @model_validator(mode="after")
    def _check_bounds(self) -> "EncodeConstraint":
        if self.target_min < 0 or self.target_min > self.target_max:
            raise ValueError("target_min must be between 0 and target_max")
        if not 0 <= self.min_quality <= self.start_quality <= self.max_quality <= 100:
            raise ValueError("expected 0 <= min_quality <= start_quality <= max_quality <= 100")
        return self


class UploadOptions(BaseModel):
    """Options accepted by ``upload_image`` and ``update_image``.

    Attributes:
        allowed: Extension allow-list. Defaults to jpg, jpeg, png, gif and webp.
        name: Base name used for the stored file instead of the client's.
        width: Target width in pixels.
        height: Target height in pixels.
        optimize: When false the upload is stored byte for byte, without
            resizing or re-encoding.
    """

    model_config = ConfigDict(frozen=True)

    allowed: Set[str] = set(DEFAULT_ALLOWED_EXTENSIONS)
    name: Optional[str] = None
    width: Optional[PositiveInt] = None
    height: Optional[PositiveInt] = None
    optimize: bool = True

    @field_validator("allowed", mode="before")
    @classmethod
    def _normalize_allowed(cls, value):
        if value is None:
            return set(DEFAULT_ALLOWED_EXTENSIONS)
        if isinstance(value, str):
            value = [value]
        return {normalize_extension(ext) for ext in value}

    @property
    def resize(self) -> ResizeSpec:
        return ResizeSpec(width=self.width, height=self.height)
