"""Uploaded-file handles.

``UploadedImage`` is the handle the storage helpers work with: the
client's original filename plus the uploaded bytes. Web frameworks hand
over their own objects, so ``coerce_upload`` also accepts a FastAPI
``UploadFile`` and converts it.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Tuple, Union

from fastapi import UploadFile
from pydantic import BaseModel, ConfigDict

from .models import normalize_extension


class UploadedImage(BaseModel):
    """An uploaded file held in memory.

    Attributes:
        filename: Original client filename, e.g. ``"Holiday Photo.JPG"``.
        content: Raw uploaded bytes.
    """

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes

    def _split_name(self) -> Tuple[str, str]:
        # last dot wins, so ".png" is an empty stem with a png extension
        base = os.path.basename(self.filename)
        if "." not in base:
            return base, ""
        stem, ext = base.rsplit(".", 1)
        return stem, ext

    @property
    def extension(self) -> str:
        """Client-declared extension, lowercased and without the dot."""
        return normalize_extension(self._split_name()[1])

    @property
    def stem(self) -> str:
        return self._split_name()[0]

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Union[str, Path], filename: Optional[str] = None) -> "UploadedImage":
        """Read a temporary upload from disk.

        Args:
            path: Location of the uploaded file.
            filename: Original client filename. Defaults to the file's own name.
        """
        path = Path(path)
        return cls(filename=filename or path.name, content=path.read_bytes())


def from_upload_file(upload: UploadFile) -> UploadedImage:
    """Convert a FastAPI ``UploadFile`` into an ``UploadedImage``.

    Reads the spooled file synchronously from the start.
    """
    upload.file.seek(0)
    content = upload.file.read()
    return UploadedImage(filename=upload.filename or "", content=content)


def coerce_upload(file: Union[UploadedImage, UploadFile]) -> UploadedImage:
    """Return ``file`` as an ``UploadedImage``.

    Raises:
        TypeError: If ``file`` is neither supported handle type.
    """
    if isinstance(file, UploadedImage):
        return file
    # starlette's own UploadFile (what form parsing yields) is not a fastapi.UploadFile
    if isinstance(file, UploadFile) or (hasattr(file, "file") and hasattr(file, "filename")):
        return from_upload_file(file)
    raise TypeError(f"Unsupported upload handle: {type(file).__name__}")
