"""PDF text extraction.

Two mandatory stages: a raw byte scan that rejects any PDF declaring an
image XObject, then text-layer extraction with PyPDF2. There is no OCR
fallback; PDFs without enough embedded text are rejected.
"""
from __future__ import annotations

import logging
import re
from typing import List

import PyPDF2

from docuchat.errors import ExtractionIOError, ImageContentRejected, NoExtractableText

logger = logging.getLogger(__name__)

IMAGE_MARKER = re.compile(rb"/Subtype\s*/Image")


def contains_images(data: bytes) -> bool:
    return IMAGE_MARKER.search(data) is not None


def scan_for_images(path: str) -> None:
    """Fail closed: an unreadable file is rejected, never waved through."""
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.warning("pdf:scan:failed path=%s error=%s", path, e)
        raise ExtractionIOError("Unable to verify PDF contents") from e
    if contains_images(data):
        logger.info("pdf:scan:images-found path=%s", path)
        raise ImageContentRejected()


def read_text_layer(path: str) -> str:
    reader = PyPDF2.PdfReader(path)
    parts: List[str] = []
    for page in reader.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts).strip()


def extract_pdf_text(path: str, min_chars: int = 1000) -> str:
    """Return the raw (not yet normalized) text layer of a PDF.

    Text at or under `min_chars` characters is taken as a scanned document.
    """
    scan_for_images(path)

    text = ""
    try:
        logger.debug("pdf:parse:start path=%s", path)
        text = read_text_layer(path)
        logger.debug("pdf:parse:done path=%s chars=%d", path, len(text))
    except Exception as e:
        # Parser failures fall through to the insufficient-text rejection
        logger.warning("pdf:parse:failed path=%s error=%s: %s", path, type(e).__name__, e)
        text = ""

    if len(text) <= min_chars:
        logger.info("pdf:parse:insufficient-text path=%s chars=%d min_chars=%d", path, len(text), min_chars)
        raise NoExtractableText()
    return text
