"""Text extraction for ingested documents."""
from __future__ import annotations

from io import BytesIO

import pdfplumber
import structlog

logger = structlog.get_logger("etl.extract")

TEXT_MIME_TYPES = ("text/plain", "text/markdown")


class UnsupportedDocumentType(ValueError):
    pass


def extract_pdf_text(content: bytes) -> str:
    pages = []
    with pdfplumber.open(BytesIO(content)) as pdf:
        for number, page in enumerate(pdf.pages, start=1):
            page_text = page.extract_text() or ""
            if page_text.strip():
                pages.append(page_text)
            else:
                logger.debug("PDF page has no extractable text", page=number)
    return "\n\n".join(pages)


def extract_text(content: bytes, mime_type: str) -> str:
    if mime_type in TEXT_MIME_TYPES:
        return content.decode("utf-8", errors="replace")
    if mime_type == "application/pdf":
        return extract_pdf_text(content)
    raise UnsupportedDocumentType(f"Cannot extract text from {mime_type}")
