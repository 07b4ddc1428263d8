"""
Text Normalization for Court Filings

Strips recurring boilerplate (letterheads, attention lines, PO-box addresses,
case-number and FILED lines, page footers) from raw extracted PDF text and
canonicalizes paragraph separators.

Cleanup is best-effort: unmatched patterns are left in place.
"""

import logging
from typing import Optional

from .patterns import NORMALIZER_STRIP_RULES, EXCESS_LINE_BREAKS, BoilerplateRule

logger = logging.getLogger(__name__)

PAGE_SEPARATOR = "\n\n"


class TextNormalizer:
    """Removes boilerplate spans from raw document text."""

    def __init__(self, rules: Optional[list[BoilerplateRule]] = None):
        self._rules = rules if rules is not None else NORMALIZER_STRIP_RULES

    def normalize(self, raw_text: str) -> str:
        """
        Clean raw extracted text.

        Args:
            raw_text: Text as produced by the PDF extractor

        Returns:
            Text with boilerplate removed, runs of 3+ line breaks collapsed
            to a paragraph break, and outer whitespace trimmed.
        """
        if not raw_text:
            return ""

        text = raw_text
        for rule in self._rules:
            text = rule.pattern.sub("", text)

        text = EXCESS_LINE_BREAKS.sub("\n\n", text)
        return text.strip()

    def normalize_pages(self, pages: list[str]) -> tuple[str, list[int]]:
        """
        Normalize each page and join them into one document.

        Returns:
            tuple: (text, page_offsets) where page_offsets[i] is the start
            offset of page i+1 in text. Pages that normalize to nothing
            still get an offset so page numbering stays aligned.
        """
        parts = []
        page_offsets = []
        cursor = 0

        for page in pages:
            cleaned = self.normalize(page)
            if parts and cleaned:
                cursor += len(PAGE_SEPARATOR)
            page_offsets.append(cursor)
            if cleaned:
                parts.append(cleaned)
                cursor += len(cleaned)

        text = PAGE_SEPARATOR.join(parts)
        logger.debug(f"Normalized {len(pages)} pages into {len(text)} chars")
        return text, page_offsets


_default_normalizer = TextNormalizer()


def normalize(raw_text: str) -> str:
    """Normalize text with the default rule set."""
    return _default_normalizer.normalize(raw_text)
