"""Image normalisation: resize and re-encode into a byte-size band.

This module wraps the Pillow operations behind an upload: resolving the
output size, resampling onto a fresh canvas (keeping transparency where
the target format can store it) and searching for an encoder quality
whose output lands between the constraint's minimum and maximum size.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Set, Tuple

from PIL import Image  # type: ignore[import]

from .codecs import Codec
from .errors import InvalidImage
from .models import EncodeConstraint, ResizeSpec

logger = logging.getLogger("image_helper.image_ops")

_ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa"}


@dataclass
class EncodeResult:
    """Outcome of the quality search."""

    data: bytes
    quality: int
    attempts: int

    @property
    def size(self) -> int:
        return len(self.data)


def resolve_dimensions(
    source_width: int,
    source_height: int,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> Tuple[int, int]:
    """Work out the output size for a resize request.

    Both sides given are used as-is, ignoring the aspect ratio. A single
    side derives the other from the source aspect ratio, truncated toward
    zero (and never below 1). Neither side keeps the source size.

    Raises:
        InvalidImage: If the source has a zero width or height.
    """
    if source_width <= 0 or source_height <= 0:
        raise InvalidImage(f"Invalid source dimensions {source_width}x{source_height}")
    if width and height:
        return width, height
    if width:
        return width, max(1, int(source_height / source_width * width))
    if height:
        return max(1, int(source_width / source_height * height)), height
    return source_width, source_height


def has_alpha(img: Image.Image) -> bool:
    """Return True if at least one pixel is not fully opaque.

    Scans the whole alpha band, so the cost grows with the pixel count.
    """
    if img.mode not in _ALPHA_MODES and "transparency" not in img.info:
        return False
    rgba = img if img.mode == "RGBA" else img.convert("RGBA")
    try:
        low, _ = rgba.getchannel("A").getextrema()
    finally:
        if rgba is not img:
            rgba.close()
    return low < 255


def resample(source: Image.Image, size: Tuple[int, int], keep_alpha: bool) -> Image.Image:
    """Bicubic resize of ``source`` onto a new canvas of ``size``.

    With ``keep_alpha`` and a translucent source the canvas starts fully
    transparent and the resized pixels are composited onto it; otherwise
    the canvas is opaque RGB.
    """
    if keep_alpha and has_alpha(source):
        canvas = Image.new("RGBA", size, (255, 255, 255, 0))
        work = source.convert("RGBA")
        mode = "RGBA"
    else:
        canvas = Image.new("RGB", size)
        work = source.convert("RGB")
        mode = "RGB"
    try:
        resized = work.resize(size, Image.BICUBIC)
        try:
            if mode == "RGBA":
                canvas.alpha_composite(resized)
            else:
                canvas.paste(resized, (0, 0))
        finally:
            resized.close()
    except Exception:
        canvas.close()
        raise
    finally:
        if work is not source:
            work.close()
    return canvas


def search_quality(
    canvas: Image.Image,
    codec: Codec,
    constraint: Optional[EncodeConstraint] = None,
) -> EncodeResult:
    """Re-encode ``canvas`` until its size falls inside the target band.

    Too large and above the quality floor lowers quality by ``step_down``;
    too small and below the ceiling raises it by ``step_up``. Anything
    else, or running out of attempts, accepts the current buffer. Codecs
    without a quality setting are encoded once.
    """
    constraint = constraint or EncodeConstraint()
    quality = constraint.start_quality
    tried: Set[int] = set()
    attempts = 0
    while True:
        data = codec.encode(canvas, quality)
        attempts += 1
        tried.add(quality)
        size = len(data)
        logger.debug("attempt %d: %s quality=%d size=%d", attempts, codec.pillow_format, quality, size)

        if not codec.supports_quality:
            break
        if constraint.max_iterations is not None and attempts >= constraint.max_iterations:
            break
        if size > constraint.target_max and quality > constraint.min_quality:
            next_quality = quality - constraint.step_down
        elif size < constraint.target_min and quality < constraint.max_quality:
            next_quality = quality + constraint.step_up
        else:
            break
        # unbounded mode only: a repeated quality means the search is cycling
        if constraint.max_iterations is None and next_quality in tried:
            break
        quality = next_quality
    return EncodeResult(data=data, quality=quality, attempts=attempts)


def normalize_image(
    data: bytes,
    codec: Codec,
    resize: Optional[ResizeSpec] = None,
    constraint: Optional[EncodeConstraint] = None,
) -> EncodeResult:
    """Decode, resize and re-encode an image payload.

    Args:
        data: Raw uploaded bytes.
        codec: Codec for the upload's extension; decoding only accepts
            that format.
        resize: Requested output size. Defaults to the source size.
        constraint: Byte-size band and quality bounds.

    Returns:
        The final encoded bytes with the quality and attempt count used.

    Raises:
        InvalidImage: If decoding fails or the image has zero dimensions.
    """
    resize = resize or ResizeSpec()
    with codec.decode(data) as source:
        size = resolve_dimensions(source.width, source.height, resize.width, resize.height)
        canvas = resample(source, size, keep_alpha=codec.supports_alpha)
    try:
        result = search_quality(canvas, codec, constraint)
    finally:
        canvas.close()
    logger.debug(
        "normalized %s to %dx%d: %d bytes at quality %d after %d attempt(s)",
        codec.pillow_format,
        size[0],
        size[1],
        result.size,
        result.quality,
        result.attempts,
    )
    return result
