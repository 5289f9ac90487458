"""Extraction dispatcher.

Routes a stored upload to the extractor for its declared MIME type and
returns canonical text. Dispatch never sniffs file contents.
"""
from __future__ import annotations

import enum
import logging
import re
import time
from typing import Callable, Dict, Optional

from docuchat.config import PipelineConfig
from docuchat.errors import NoExtractableText, UnsupportedFormat
from docuchat.services import pdf_service, word_service

logger = logging.getLogger(__name__)


class DocumentFormat(enum.Enum):
    PDF = "application/pdf"
    DOC = "application/msword"
    DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

    @classmethod
    def from_mime(cls, mime_type: str) -> Optional["DocumentFormat"]:
        try:
            return cls((mime_type or "").strip().lower())
        except ValueError:
            return None


EXTRACTORS: Dict[DocumentFormat, Callable[[str, PipelineConfig], str]] = {
    DocumentFormat.PDF: lambda path, settings: pdf_service.extract_pdf_text(path, settings.pdf_min_text_chars),
    DocumentFormat.DOC: lambda path, settings: word_service.extract_doc_text(path),
    DocumentFormat.DOCX: lambda path, settings: word_service.extract_docx_text(path),
}

_NEWLINES = re.compile(r"\r\n|\r")
_BLANKS = re.compile(r"[\t\f\v]+")
_SPACES = re.compile(r" {2,}")


def normalize_whitespace(text: str) -> str:
    text = _NEWLINES.sub("\n", text or "")
    text = _BLANKS.sub(" ", text)
    text = text.replace("\u00a0", " ")
    return _SPACES.sub(" ", text)


def truncate_text(text: str, max_chars: int) -> str:
    return (text or "")[:max_chars]


def extract_text(path: str, mime_type: str, settings: PipelineConfig) -> str:
    """Extract and normalize the text of a stored file.

    Raises an ExtractionError subclass on any failure.
    """
    fmt = DocumentFormat.from_mime(mime_type)
    if fmt is None:
        if (mime_type or "").lower().startswith("image/"):
            raise UnsupportedFormat("Image files are not allowed")
        raise UnsupportedFormat("Unsupported file type for extraction")

    started = time.monotonic()
    logger.info("extract:start path=%s format=%s", path, fmt.name)
    text = normalize_whitespace(EXTRACTORS[fmt](path, settings))
    logger.info(
        "extract:done path=%s format=%s chars=%d duration_ms=%d",
        path, fmt.name, len(text), (time.monotonic() - started) * 1000,
    )
    return text


def extract_document_text(path: str, mime_type: str, settings: PipelineConfig) -> str:
    """Extraction plus the character cap applied before persistence."""
    text = truncate_text(extract_text(path, mime_type, settings), settings.max_text_chars)
    if not text.strip():
        raise NoExtractableText("Unable to extract text from the provided file")
    return text
