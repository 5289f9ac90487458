"""Upload intake.

Validates the declared MIME type of a multipart file and stores it under a
collision-resistant name in the upload directory.

The MIME check runs on the part werkzeug has already parsed, so a rejected
file may have spilled to werkzeug's own temp storage, bounded by
MAX_CONTENT_LENGTH. Nothing is written to the upload directory until the
declared type passes.
"""
from __future__ import annotations

import hashlib
import logging
import os
import random
import re
import time
from dataclasses import dataclass

from werkzeug.exceptions import RequestEntityTooLarge

from docuchat.config import PipelineConfig
from docuchat.errors import UnsupportedFormat

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
})

PUBLIC_PREFIX = "/uploads/"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_.-]+")


@dataclass
class UploadedFile:
    original_filename: str
    mime_type: str
    size_bytes: int
    path: str
    checksum: str


def is_allowed_mime(mime_type: str) -> bool:
    return (mime_type or "").strip().lower() in ALLOWED_MIME_TYPES


def safe_filename(name: str) -> str:
    safe = _UNSAFE_CHARS.sub("_", os.path.basename(name or ""))
    return safe or "upload"


def unique_filename(name: str) -> str:
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}-{safe_filename(name)}"


def save_upload(file_storage, settings: PipelineConfig) -> UploadedFile:
    """Validate and persist a werkzeug FileStorage.

    Raises UnsupportedFormat before anything is written when the declared
    MIME type is not one of pdf/doc/docx.
    """
    filename = file_storage.filename or ""
    mime_type = (file_storage.mimetype or "").strip().lower()
    if not is_allowed_mime(mime_type):
        logger.warning("upload:rejected filename=%s mime=%s reason=unsupported_type", filename, mime_type)
        if mime_type.startswith("image/"):
            raise UnsupportedFormat("Image files are not allowed")
        raise UnsupportedFormat()

    os.makedirs(settings.upload_dir, exist_ok=True)
    path = os.path.join(settings.upload_dir, unique_filename(filename))
    file_storage.save(path)

    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(block)

    size = os.path.getsize(path)
    if settings.max_upload_bytes and size > settings.max_upload_bytes:
        remove_upload(path)
        raise RequestEntityTooLarge()
    logger.info("upload:stored filename=%s mime=%s size_bytes=%d path=%s", filename, mime_type, size, path)
    return UploadedFile(
        original_filename=filename,
        mime_type=mime_type,
        size_bytes=size,
        path=path,
        checksum=digest.hexdigest(),
    )


def remove_upload(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("upload:cleanup:failed path=%s error=%s", path, e)


def public_url(path: str) -> str:
    return f"{PUBLIC_PREFIX}{os.path.basename(path)}"

