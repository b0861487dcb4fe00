"""Exceptions raised by the image helpers.

Both concrete errors subclass ``ValueError`` so that callers which
already treat bad input as a ``ValueError`` (for example a FastAPI
handler mapping it to a 400 response) keep working.
"""

from __future__ import annotations


class ImageHelperError(Exception):
    """Base class for errors raised by this package."""


class UnsupportedFormat(ImageHelperError, ValueError):
    """The file extension is not allowed or has no codec."""

    def __init__(self, extension: str, message: str | None = None) -> None:
        self.extension = extension
        super().__init__(message or f"Invalid file type: .{extension}")


class InvalidImage(ImageHelperError, ValueError):
    """The payload could not be decoded or has zero dimensions."""
