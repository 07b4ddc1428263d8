"""
PDF Text Extraction for Court Filings

Extracts plain text page by page with PyMuPDF. A page that fails to extract
is replaced by a marker line instead of aborting the whole document.
"""

import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional

import fitz  # PyMuPDF

from .errors import ExternalServiceError

logger = logging.getLogger(__name__)

# Documents with less extracted text than this are corrupted or image-based
MIN_EXTRACTED_CHARS = 100

PAGE_ERROR_MARKER = "[Page {page} - Text extraction error]"


class InsufficientTextError(ValueError):
    """Raised when a PDF yields too little text to index."""

    def __init__(self, title: str, char_count: int):
        super().__init__(
            f"Insufficient text extracted from {title} ({char_count} chars). "
            "File may be corrupted or image-based."
        )
        self.title = title
        self.char_count = char_count


@dataclass
class ExtractedDocument:
    """Per-page text of one PDF."""
    title: str
    pages: list[str] = field(default_factory=list)
    file_path: str = ""
    failed_pages: list[int] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def raw_text(self) -> str:
        return "\n\n".join(self.pages)

    def has_enough_text(self, min_chars: int = MIN_EXTRACTED_CHARS) -> bool:
        return len(self.raw_text.strip()) >= min_chars

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "page_count": self.page_count,
            "file_path": self.file_path,
            "failed_pages": self.failed_pages,
            "char_count": len(self.raw_text),
        }


class PdfTextExtractor:
    """Extracts text from PDF files or in-memory PDF bytes."""

    def extract(self, file_path: str, title: Optional[str] = None) -> ExtractedDocument:
        """
        Extract text from a PDF on disk.

        Raises:
            FileNotFoundError: if the file does not exist
            ExternalServiceError: if PyMuPDF cannot open the file
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        logger.info(f"Extracting text: {path.name}")

        try:
            doc = fitz.open(str(path))
        except Exception as e:
            logger.error(f"Could not open {path.name}: {e}")
            raise ExternalServiceError("extraction", f"could not open {path.name}: {e}") from e

        with doc:
            return self._extract_pages(doc, title or path.stem, str(path.absolute()))

    def extract_bytes(self, data: bytes, title: str) -> ExtractedDocument:
        """
        Extract text from PDF bytes (e.g. an uploaded file).

        Raises:
            ExternalServiceError: if PyMuPDF cannot parse the data
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            logger.error(f"Could not open uploaded PDF {title}: {e}")
            raise ExternalServiceError("extraction", f"could not open {title}: {e}") from e

        with doc:
            return self._extract_pages(doc, title, "")

    def _extract_pages(self, doc, title: str, file_path: str) -> ExtractedDocument:
        pages = []
        failed = []

        for page_num in range(len(doc)):
            try:
                pages.append(doc[page_num].get_text())
            except Exception as e:
                logger.warning(f"Error extracting page {page_num + 1} of {title}: {e}")
                pages.append(PAGE_ERROR_MARKER.format(page=page_num + 1))
                failed.append(page_num + 1)

        extracted = ExtractedDocument(
            title=title,
            pages=pages,
            file_path=file_path,
            failed_pages=failed,
        )
        logger.info(
            f"Extracted {len(extracted.raw_text)} chars from {extracted.page_count} pages"
            + (f" ({len(failed)} failed)" if failed else "")
        )
        return extracted
