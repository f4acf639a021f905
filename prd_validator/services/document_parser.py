"""
Raw-text extraction for uploaded PRD files.

Detects the format from the file extension and dispatches to a PDF
(PyMuPDF, with Tesseract OCR for image-only pages), DOCX/DOC (python-docx)
or plain-text reader. Returns a ParsedContent with the text and whatever
metadata the format exposes (page_count, title, author, ...).
"""
from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import fitz  # PyMuPDF
import pytesseract
from docx import Document as DocxDocument
from langdetect import DetectorFactory
from langdetect import detect as detect_language_code
from langdetect.lang_detect_exception import LangDetectException
from PIL import Image

from prd_validator.config import settings
from prd_validator.errors import DocumentParseError, UnsupportedFormatError

logger = logging.getLogger(__name__)

# langdetect is probabilistic; a fixed seed keeps results stable per text
DetectorFactory.seed = 0

# extension -> canonical format name
FORMAT_BY_EXTENSION: Dict[str, str] = {
    ".pdf": "pdf",
    ".docx": "docx",
    ".txt": "txt",
}


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParsedContent:
    """
    Output of the DocumentParser.

    Attributes:
        text:     Plain text of the whole document.
        metadata: Dict with keys: format, word_count, character_count,
                  detected_language, file_size, parsed_at, plus
                  format-specific fields (page_count, title, author, ...).
    """

    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


def detect_format(filename: str) -> str:
    """
    Map a filename to one of ``pdf``, ``docx`` or ``txt``.

    Raises:
        UnsupportedFormatError: the extension is not handled.
    """
    ext = Path(filename or "").suffix.lower()
    fmt = FORMAT_BY_EXTENSION.get(ext)
    if fmt is None or ext not in settings.SUPPORTED_FILE_TYPES:
        raise UnsupportedFormatError(
            f"Unsupported file format '{ext or filename}'. "
            f"Accepted: {', '.join(settings.SUPPORTED_FILE_TYPES)}"
        )
    return fmt


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------

class DocumentParser:
    """Parses PDF, DOCX/DOC and TXT files into ParsedContent objects."""

    def __init__(self) -> None:
        if settings.TESSERACT_CMD:
            pytesseract.pytesseract.tesseract_cmd = settings.TESSERACT_CMD

    async def parse_document(self, file_path: str, filename: str = "") -> ParsedContent:
        """
        Parse a document file into text + metadata.

        Args:
            file_path: Path to the file on disk.
            filename:  Original upload name; its extension picks the reader.
                       Defaults to the basename of *file_path*.

        Raises:
            UnsupportedFormatError: Unknown extension.
            DocumentParseError:     Password-protected or unreadable file.
        """
        fmt = detect_format(filename or os.path.basename(file_path))

        if fmt == "pdf":
            text, metadata = await self._parse_pdf(file_path)
        elif fmt == "docx":
            text, metadata = await self._parse_docx(file_path)
        else:
            text, metadata = await self._parse_txt(file_path)

        metadata.update(describe_text(text))
        metadata["file_size"] = os.path.getsize(file_path)
        metadata["parsed_at"] = datetime.now(timezone.utc).isoformat()

        logger.info(
            "Parsed %r as %s: %d words", filename or file_path, fmt, metadata["word_count"]
        )
        return ParsedContent(text=text, metadata=metadata)

    # ------------------------------------------------------------------
    # PDF
    # ------------------------------------------------------------------

    async def _parse_pdf(self, file_path: str):
        """Extract page text with PyMuPDF; OCR pages that carry no text layer."""
        try:
            doc = fitz.open(file_path)
        except Exception as exc:
            raise DocumentParseError(f"Cannot open PDF file: {exc}") from exc

        if doc.needs_pass:
            doc.close()
            raise DocumentParseError(
                "PDF is password-protected. Please provide an unlocked copy."
            )

        raw_meta = doc.metadata or {}
        page_texts: List[str] = []
        ocr_pages = 0

        for page in doc:
            page_text = page.get_text("text")
            if not page_text.strip():
                page_text = self._ocr_page(page)
                if page_text.strip():
                    ocr_pages += 1
            if page_text.strip():
                page_texts.append(page_text.strip())

        page_count = doc.page_count
        doc.close()

        metadata: Dict[str, Any] = {
            "format": "pdf",
            "page_count": page_count,
            "ocr_pages": ocr_pages,
            "title": raw_meta.get("title", "") or "",
            "author": raw_meta.get("author", "") or "",
            "subject": raw_meta.get("subject", "") or "",
            "creator": raw_meta.get("creator", "") or "",
            "producer": raw_meta.get("producer", "") or "",
        }
        return "\n\n".join(page_texts), metadata

    def _ocr_page(self, page: "fitz.Page") -> str:
        """Render an entire page at 2× scale and run Tesseract OCR."""
        try:
            pix = page.get_pixmap(matrix=fitz.Matrix(2, 2))
            img = Image.open(io.BytesIO(pix.tobytes("png")))
            return pytesseract.image_to_string(img)
        except Exception as exc:
            logger.warning("Full-page OCR failed on page %d: %s", page.number + 1, exc)
            return ""

    # ------------------------------------------------------------------
    # DOCX
    # ------------------------------------------------------------------

    async def _parse_docx(self, file_path: str):
        """Paragraph text followed by pipe-delimited table rows."""
        try:
            doc = DocxDocument(file_path)
        except Exception as exc:
            raise DocumentParseError(f"Cannot open DOCX file: {exc}") from exc

        parts: List[str] = [p.text.strip() for p in doc.paragraphs if p.text.strip()]

        for table in doc.tables:
            for row in table.rows:
                cells = [cell.text.strip() for cell in row.cells]
                non_empty = [c for c in cells if c]
                if non_empty:
                    parts.append(" | ".join(non_empty))

        core = doc.core_properties
        metadata: Dict[str, Any] = {
            "format": "docx",
            "page_count": None,   # python-docx cannot report rendered page count
            "title": core.title or "",
            "author": core.author or "",
            "subject": core.subject or "",
            "created": str(core.created) if core.created else "",
            "modified": str(core.modified) if core.modified else "",
        }
        return "\n".join(parts), metadata

    # ------------------------------------------------------------------
    # TXT
    # ------------------------------------------------------------------

    async def _parse_txt(self, file_path: str):
        try:
            with open(file_path, "r", encoding="utf-8", errors="replace") as fh:
                text = fh.read()
        except OSError as exc:
            raise DocumentParseError(f"Cannot read text file: {exc}") from exc
        return text, {"format": "txt"}


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def describe_text(text: str) -> Dict[str, Any]:
    """Word/character counts and detected language for a block of text."""
    return {
        "word_count": len(text.split()),
        "character_count": len(text),
        "detected_language": _detect_language(text[:3000]),
    }


def _detect_language(sample: str) -> str:
    """Detect the language of a text sample; returns an ISO 639-1 code or 'unknown'."""
    if len(sample.split()) < 20:
        return "unknown"
    try:
        return detect_language_code(sample)
    except LangDetectException:
        return "unknown"
