"""Public-directory storage for uploaded images.

This module stores normalised uploads under the public document root
and returns relative paths of the form ``{dir}/{filename}``. Those paths
are the only record of an upload; the file on disk is the source of
truth, so deleting or replacing an image is a matter of removing the
file behind its path.

Environment variables:
    PUBLIC_DIR: Public document root refs are resolved against (default
        './public'). An explicit ``root`` argument takes precedence.
    IMAGE_UPLOAD_DIR: Default directory, relative to the root, for new
        uploads (default 'uploads').
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import string
import unicodedata
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from fastapi import UploadFile

from .codecs import resolve_codec
from .image_ops import normalize_image
from .models import EncodeConstraint, UploadOptions, normalize_extension
from .uploads import UploadedImage, coerce_upload

logger = logging.getLogger("image_helper.storage")

DIR_MODE = 0o755
RANDOM_ALPHABET = string.ascii_letters + string.digits
RANDOM_LENGTH = 10
SLUG_PATTERN = re.compile(r"[^a-z0-9]+")

Options = Union[UploadOptions, Mapping[str, Any], None]
Upload = Union[UploadedImage, UploadFile]


def public_root(root: Union[str, Path, None] = None) -> Path:
    """Return the public document root, from ``root`` or ``PUBLIC_DIR``."""
    if root is not None:
        return Path(root)
    return Path(os.getenv("PUBLIC_DIR", "./public"))


def default_upload_dir() -> str:
    return os.getenv("IMAGE_UPLOAD_DIR", "uploads")


def public_path(relative: str = "", root: Union[str, Path, None] = None) -> Path:
    """Resolve a root-relative path to an absolute one.

    Normalisation is lexical: symlinks under the root are not followed, so
    a ref through ``public/storage -> ../storage`` stays under the root.
    """
    base = os.path.abspath(public_root(root))
    return Path(os.path.normpath(os.path.join(base, relative.lstrip("/"))))


def _within_root(path: Path, root: Union[str, Path, None] = None) -> bool:
    base = Path(os.path.abspath(public_root(root)))
    return base in path.parents


def _make_dirs(path: Path) -> None:
    # Path.mkdir(parents=True) applies mode to the leaf only
    missing = []
    while not path.is_dir():
        missing.append(path)
        path = path.parent
    for directory in reversed(missing):
        directory.mkdir(mode=DIR_MODE, exist_ok=True)


def slugify(value: str, fallback: str = "file") -> str:
    """Generate a lowercase, hyphen-separated ASCII slug."""
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    normalized = SLUG_PATTERN.sub("-", normalized.lower()).strip("-")
    return normalized or fallback


def random_token(length: int = RANDOM_LENGTH) -> str:
    return "".join(secrets.choice(RANDOM_ALPHABET) for _ in range(length))


def generate_filename(base_name: str, extension: str) -> str:
    """Build a unique filename like ``holiday-photo-aB3dE5gH7j.jpg``.

    Args:
        base_name: Name to slugify, usually the client filename without
            its extension or the ``name`` option.
        extension: File extension, with or without the leading dot.
    """
    return f"{slugify(base_name or '')}-{random_token()}.{normalize_extension(extension)}"


def _coerce_options(options: Options) -> UploadOptions:
    if options is None:
        return UploadOptions()
    if isinstance(options, UploadOptions):
        return options
    return UploadOptions.model_validate(dict(options))


def upload_image(
    file: Upload,
    directory: Optional[str] = None,
    options: Options = None,
    *,
    root: Union[str, Path, None] = None,
    constraint: Optional[EncodeConstraint] = None,
) -> str:
    """Normalise an uploaded image and store it under the public root.

    Args:
        file: The uploaded file.
        directory: Directory relative to the public root. Surrounding
            slashes are trimmed. Defaults to ``IMAGE_UPLOAD_DIR``.
        options: ``allowed``, ``name``, ``width``, ``height`` and ``optimize``.
        root: Public root override; defaults to ``PUBLIC_DIR``.
        constraint: Byte-size band and quality bounds for re-encoding.

    Returns:
        The stored image's path relative to the root, ``{dir}/{filename}``.

    Raises:
        UnsupportedFormat: If the extension is not allowed or unknown.
        InvalidImage: If the payload cannot be decoded.
        ValueError: If ``directory`` points outside the public root.
        OSError: If the directory or file cannot be written.
    """
    upload = coerce_upload(file)
    opts = _coerce_options(options)
    ext = upload.extension
    codec = resolve_codec(ext, opts.allowed)

    if opts.optimize:
        data = normalize_image(upload.content, codec, opts.resize, constraint).data
    else:
        data = upload.content

    directory = (default_upload_dir() if directory is None else directory).strip("/")
    target_dir = public_path(directory, root)
    if directory and not _within_root(target_dir, root):
        raise ValueError(f"Upload directory escapes the public root: {directory}")
    _make_dirs(target_dir)

    filename = generate_filename(opts.name if opts.name is not None else upload.stem, ext)
    (target_dir / filename).write_bytes(data)

    ref = f"{directory}/{filename}" if directory else filename
    logger.info("stored %s (%d bytes, uploaded %d)", ref, len(data), upload.size)
    return ref


def delete_image(ref: Optional[str], *, root: Union[str, Path, None] = None) -> bool:
    """Remove a stored image.

    Never raises for filesystem problems: a missing file, an empty ref, a
    ref pointing outside the root or a failed removal all return False.

    Returns:
        True if the file was removed.
    """
    if not ref:
        return False
    full = public_path(ref, root)
    if not _within_root(full, root):
        logger.warning("refusing to delete %s: outside %s", ref, public_root(root))
        return False
    if not full.is_file():
        return False
    try:
        full.unlink()
    except OSError as exc:
        logger.warning("failed to delete %s: %s", full, exc)
        return False
    logger.info("deleted %s", ref)
    return True


def update_image(
    new_file: Optional[Upload],
    old_ref: Optional[str] = None,
    directory: Optional[str] = None,
    options: Options = None,
    *,
    root: Union[str, Path, None] = None,
    constraint: Optional[EncodeConstraint] = None,
) -> Optional[str]:
    """Replace a stored image with a new upload.

    Without ``new_file`` nothing is touched and ``old_ref`` is returned
    as-is. Otherwise the old image is deleted (best effort) and the new
    one uploaded.
    """
    if new_file is None:
        return old_ref
    if old_ref:
        delete_image(old_ref, root=root)
    return upload_image(new_file, directory, options, root=root, constraint=constraint)
