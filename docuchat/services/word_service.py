"""Word document text extraction.

DOCX goes through python-docx. Legacy binary DOC (Word 97-2003) is read with
olefile: the text lives in the WordDocument stream, located through the
piece table (Clx) kept in the 0Table/1Table stream.
"""
from __future__ import annotations

import logging
import re
import struct
from typing import List

import docx
import olefile

from docuchat.errors import ExtractionIOError

logger = logging.getLogger(__name__)

# File Information Block offsets (MS-DOC 2.5.1)
FIB_IDENT = 0xA5EC
FIB_FLAGS_OFFSET = 0x000A
FIB_FC_CLX_OFFSET = 0x01A2
FIB_LCB_CLX_OFFSET = 0x01A6
FLAG_ENCRYPTED = 0x0100
FLAG_WHICH_TABLE = 0x0200
PIECE_COMPRESSED = 0x40000000

_FIELD_INSTRUCTION = re.compile(r"\x13[^\x13\x14\x15]*\x14?")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0e-\x1f]")


def extract_docx_text(path: str) -> str:
    # row.cells raises on malformed grid spans, not only Document()
    try:
        document = docx.Document(path)
        chunks: List[str] = [p.text for p in document.paragraphs if p.text]
        for table in document.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                row_text = " | ".join(value for value in cells if value)
                if row_text:
                    chunks.append(row_text)
    except Exception as e:
        logger.warning("docx:read:failed path=%s error=%s: %s", path, type(e).__name__, e)
        raise ExtractionIOError() from e
    return "\n\n".join(chunks)


def extract_doc_text(path: str) -> str:
    try:
        if not olefile.isOleFile(path):
            raise ExtractionIOError("File is not a Word 97-2003 document")
        with olefile.OleFileIO(path) as ole:
            if not ole.exists("WordDocument"):
                raise ExtractionIOError("File is not a Word 97-2003 document")
            word_stream = ole.openstream("WordDocument").read()
            flags = _fib_flags(word_stream)
            table_name = "1Table" if flags & FLAG_WHICH_TABLE else "0Table"
            if not ole.exists(table_name):
                raise ExtractionIOError()
            table_stream = ole.openstream(table_name).read()
        text = text_from_streams(word_stream, table_stream)
    except ExtractionIOError:
        raise
    except Exception as e:
        logger.warning("doc:read:failed path=%s error=%s: %s", path, type(e).__name__, e)
        raise ExtractionIOError() from e

    return clean_word_text(text)


def _fib_flags(word_stream: bytes) -> int:
    if len(word_stream) < FIB_LCB_CLX_OFFSET + 4:
        raise ExtractionIOError()
    ident, = struct.unpack_from("<H", word_stream, 0)
    if ident != FIB_IDENT:
        raise ExtractionIOError("File is not a Word 97-2003 document")
    flags, = struct.unpack_from("<H", word_stream, FIB_FLAGS_OFFSET)
    if flags & FLAG_ENCRYPTED:
        raise ExtractionIOError("Encrypted documents are not supported")
    return flags


def text_from_streams(word_stream: bytes, table_stream: bytes) -> str:
    """Concatenate every text piece listed in the piece table."""
    _fib_flags(word_stream)
    fc_clx, lcb_clx = struct.unpack_from("<II", word_stream, FIB_FC_CLX_OFFSET)
    if lcb_clx == 0 or fc_clx + lcb_clx > len(table_stream):
        raise ExtractionIOError()

    plc = _piece_table(table_stream[fc_clx:fc_clx + lcb_clx])
    count = (len(plc) - 4) // 12
    if count <= 0:
        return ""
    cps = struct.unpack_from(f"<{count + 1}I", plc, 0)

    parts: List[str] = []
    for i in range(count):
        fc, = struct.unpack_from("<I", plc, 4 * (count + 1) + 8 * i + 2)
        chars = cps[i + 1] - cps[i]
        if chars <= 0:
            continue
        if fc & PIECE_COMPRESSED:
            start = (fc & ~PIECE_COMPRESSED) // 2
            parts.append(word_stream[start:start + chars].decode("cp1252", errors="replace"))
        else:
            parts.append(word_stream[fc:fc + 2 * chars].decode("utf-16-le", errors="replace"))
    return "".join(parts)


def _piece_table(clx: bytes) -> bytes:
    pos = 0
    while pos < len(clx):
        kind = clx[pos]
        if kind == 0x01:
            # Prc: property modifiers, skipped
            cb_grpprl, = struct.unpack_from("<h", clx, pos + 1)
            pos += 3 + max(cb_grpprl, 0)
        elif kind == 0x02:
            lcb, = struct.unpack_from("<I", clx, pos + 1)
            return clx[pos + 5:pos + 5 + lcb]
        else:
            break
    raise ExtractionIOError()


def clean_word_text(text: str) -> str:
    """Drop field instructions and Word control marks, keep visible text."""
    text = _FIELD_INSTRUCTION.sub("", text).replace("\x15", "")
    text = text.replace("\x07", "\t")
    return _CONTROL_CHARS.sub("", text)
