"""Tests for the extension gate and the per-format codecs."""

import io
import struct
import zlib

import pytest
from PIL import Image  # type: ignore

from image_helper.codecs import CODECS, GifCodec, resolve_codec, png_compress_level
from image_helper.errors import InvalidImage, UnsupportedFormat

from conftest import encode


@pytest.mark.parametrize("ext", ["jpg", "JPEG", ".png", "Gif", "webp"])
def test_resolve_codec_accepts_default_formats(ext):
    codec = resolve_codec(ext)
    assert codec is CODECS[ext.lstrip(".").lower()]


def test_jpg_and_jpeg_share_codec():
    assert resolve_codec("jpg") is resolve_codec("jpeg")


def test_resolve_codec_rejects_unknown_extension():
    with pytest.raises(UnsupportedFormat) as excinfo:
        resolve_codec("bmp")
    assert excinfo.value.extension == "bmp"


def test_resolve_codec_respects_allow_list():
    with pytest.raises(UnsupportedFormat):
        resolve_codec("gif", allowed=["jpg", "png"])
    # Allowed but without a codec is still unsupported
    with pytest.raises(UnsupportedFormat):
        resolve_codec("bmp", allowed={"bmp", "png"})


@pytest.mark.parametrize(
    "quality, level",
    [(90, 0), (95, 0), (85, 0), (80, 1), (75, 1), (50, 4), (45, 4), (40, 5), (0, 9), (100, 0)],
)
def test_png_compress_level_is_inverse_of_quality(quality, level):
    assert png_compress_level(quality) == level


def test_decode_rejects_format_mismatch():
    jpeg_bytes = encode(Image.new("RGB", (10, 10)), "JPEG")
    with pytest.raises(InvalidImage):
        resolve_codec("png").decode(jpeg_bytes)


def test_decode_rejects_corrupt_and_empty_data():
    codec = resolve_codec("jpg")
    with pytest.raises(InvalidImage):
        codec.decode(b"definitely not an image")
    with pytest.raises(InvalidImage):
        codec.decode(b"")


def test_gif_codec_ignores_quality():
    canvas = Image.new("RGB", (32, 32), color=(0, 128, 255))
    codec = GifCodec()
    assert not codec.supports_quality
    assert codec.encode(canvas, 40) == codec.encode(canvas, 95)
    with Image.open(io.BytesIO(codec.encode(canvas, 90))) as img:
        assert img.format == "GIF"


def png_header_only(width, height):
    """A PNG that is just a signature, an IHDR chunk and IEND."""
    def chunk(tag, body):
        return struct.pack(">I", len(body)) + tag + body + struct.pack(">I", zlib.crc32(tag + body))

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IEND", b"")


def test_decode_rejects_decompression_bomb():
    with pytest.raises(InvalidImage):
        resolve_codec("png").decode(png_header_only(50000, 50000))
