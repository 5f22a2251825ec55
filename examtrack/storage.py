# examtrack/storage.py
"""Evidence photo storage.

Photos are written below ``UPLOAD_DIR`` and served back through the
``/uploads`` static mount, so the stored reference is a URL path.
"""
import hashlib
import logging
import os
import time

from fastapi import UploadFile

from . import settings
from .errors import BadRequest

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
URL_PREFIX = "/uploads"


def sha256_hex(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def validate_image(upload: UploadFile, content: bytes) -> None:
    if (upload.content_type or "").lower() not in ALLOWED_IMAGE_TYPES:
        raise BadRequest("Only JPEG, PNG, and WebP images are allowed")
    if not content:
        raise BadRequest("Image file is required")
    if len(content) > settings.MAX_UPLOAD_BYTES:
        raise BadRequest("Image exceeds the maximum allowed size")


def save_photo(content: bytes, folder: str, prefix: str, filename: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lower().lstrip(".") or "jpg"
    target_dir = settings.UPLOAD_DIR / folder
    target_dir.mkdir(parents=True, exist_ok=True)
    name = f"{prefix.lower()}_{int(time.time() * 1000)}.{ext}"
    (target_dir / name).write_bytes(content)
    return f"{URL_PREFIX}/{folder}/{name}"


def discard_photo(url: str) -> None:
    """Remove a stored photo; a missing file or I/O error is only logged."""
    if not url.startswith(URL_PREFIX + "/"):
        return
    path = settings.UPLOAD_DIR / url[len(URL_PREFIX) + 1:]
    try:
        path.unlink(missing_ok=True)
    except OSError:
        logger.exception("Failed to discard photo %s", url)
