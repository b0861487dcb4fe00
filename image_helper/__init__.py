"""Helpers for storing uploaded images in a public directory.

Uploads are validated against an extension allow-list, optionally
resized, re-encoded into a target byte-size band and written under the
public root. See ``storage`` for the upload/delete/update helpers and
``image_ops`` for the resize and quality search.
"""

from .errors import ImageHelperError, InvalidImage, UnsupportedFormat
from .models import EncodeConstraint, ResizeSpec, UploadOptions
from .storage import delete_image, generate_filename, update_image, upload_image
from .uploads import UploadedImage

__all__ = [
    "EncodeConstraint",
    "ImageHelperError",
    "InvalidImage",
    "ResizeSpec",
    "UnsupportedFormat",
    "UploadOptions",
    "UploadedImage",
    "delete_image",
    "generate_filename",
    "update_image",
    "upload_image",
]
