"""Codec families and the extension allow-list gate.

Each supported family (JPEG, PNG, GIF, WEBP) is a small class that knows
how to decode a payload with Pillow and how to encode a canvas at a given
quality. ``CODECS`` maps normalized extensions to codec instances so that
callers never branch on the extension themselves.
"""

from __future__ import annotations

import math
from io import BytesIO
from typing import Dict, Iterable, Optional

from PIL import Image, UnidentifiedImageError  # type: ignore[import]

from .errors import InvalidImage, UnsupportedFormat
from .models import DEFAULT_ALLOWED_EXTENSIONS, normalize_extension


class Codec:
    """Decode/encode pair for one Pillow format."""

    pillow_format: str = ""
    supports_alpha: bool = False
    supports_quality: bool = True

    def decode(self, data: bytes) -> Image.Image:
        """Open ``data`` with this codec only and load its pixels.

        Raises:
            InvalidImage: If the payload is empty, corrupt or in another format.
        """
        if not data:
            raise InvalidImage("Empty image data")
        try:
            img = Image.open(BytesIO(data), formats=[self.pillow_format])
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as exc:
            raise InvalidImage(f"Cannot decode {self.pillow_format} image: {exc}") from exc
        try:
            img.load()
        except (Image.DecompressionBombError, OSError, SyntaxError, ValueError) as exc:
            img.close()
            raise InvalidImage(f"Cannot decode {self.pillow_format} image: {exc}") from exc
        return img

    def save_options(self, quality: int) -> dict:
        return {"quality": quality}

    def encode(self, canvas: Image.Image, quality: int) -> bytes:
        """Encode ``canvas`` in memory and return the bytes."""
        buffer = BytesIO()
        canvas.save(buffer, format=self.pillow_format, **self.save_options(quality))
        return buffer.getvalue()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.pillow_format}>"


class JpegCodec(Codec):
    pillow_format = "JPEG"


class PngCodec(Codec):
    pillow_format = "PNG"
    supports_alpha = True

    def save_options(self, quality: int) -> dict:
        return {"compress_level": png_compress_level(quality)}


class GifCodec(Codec):
    pillow_format = "GIF"
    supports_quality = False

    def save_options(self, quality: int) -> dict:
        return {}


class WebpCodec(Codec):
    pillow_format = "WEBP"
    supports_alpha = True


def png_compress_level(quality: int) -> int:
    """Map a 0-100 quality onto zlib's 0-9 level, higher quality meaning less compression.

    Rounds halves away from zero, so quality 85 gives level 0 and 45 gives 4.
    """
    level = 9 - int(math.floor(quality / 10 + 0.5))
    return max(0, min(9, level))


_JPEG = JpegCodec()

CODECS: Dict[str, Codec] = {
    "jpg": _JPEG,
    "jpeg": _JPEG,
    "png": PngCodec(),
    "gif": GifCodec(),
    "webp": WebpCodec(),
}


def resolve_codec(extension: str, allowed: Optional[Iterable[str]] = None) -> Codec:
    """Return the codec for ``extension`` if the allow-list permits it.

    Args:
        extension: Claimed file extension, case-insensitive, with or
            without a leading dot.
        allowed: Extension allow-list. Defaults to jpg, jpeg, png, gif, webp.

    Raises:
        UnsupportedFormat: If the extension is not allowed or has no codec.
    """
    ext = normalize_extension(extension or "")
    allow = DEFAULT_ALLOWED_EXTENSIONS if allowed is None else {normalize_extension(a) for a in allowed}
    if ext not in allow:
        raise UnsupportedFormat(ext)
    codec = CODECS.get(ext)
    if codec is None:
        raise UnsupportedFormat(ext, f"Unsupported image type: {ext}")
    return codec
