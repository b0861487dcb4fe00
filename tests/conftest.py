"""Shared fixtures for the image helper tests.

Images are synthesised in memory with Pillow so that no binary fixtures
are needed. The public root is redirected to a temporary directory via
``PUBLIC_DIR`` so that uploads never touch the working tree.
"""

import io
import random

import pytest
from PIL import Image  # type: ignore

from image_helper import UploadedImage


def encode(img, fmt, **kwargs):
    buf = io.BytesIO()
    img.save(buf, format=fmt, **kwargs)
    return buf.getvalue()


def noisy_image(size=(400, 300), mode="RGB", seed=7):
    """Random pixels; hard to compress, so encoded sizes react to quality."""
    rng = random.Random(seed)
    channels = len(mode)
    data = bytes(rng.randrange(256) for _ in range(size[0] * size[1] * channels))
    return Image.frombytes(mode, size, data)


@pytest.fixture
def public_dir(tmp_path, monkeypatch):
    """Point PUBLIC_DIR at a sandboxed directory."""
    root = tmp_path / "public"
    root.mkdir()
    monkeypatch.setenv("PUBLIC_DIR", str(root))
    monkeypatch.delenv("IMAGE_UPLOAD_DIR", raising=False)
    return root


@pytest.fixture
def png_upload():
    img = Image.new("RGB", (200, 100), color=(200, 30, 30))
    return UploadedImage(filename="Red Banner.PNG", content=encode(img, "PNG"))


@pytest.fixture
def jpeg_upload():
    return UploadedImage(filename="holiday photo.jpg", content=encode(noisy_image(), "JPEG", quality=95))
