"""
Paragraph-Aware Chunker for Court Filings

Splits normalized filing text into overlapping, size-bounded chunks along
paragraph boundaries, seeding each new chunk with the closing sentences of
the previous one so no chunk starts with a hard semantic cutoff.

Paragraphs are atomic: a paragraph longer than the target size becomes its
own oversized chunk rather than being split mid-sentence.
"""

import uuid
import logging
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Optional

from .normalizer import TextNormalizer
from .patterns import (
    PARAGRAPH_BREAK,
    SENTENCE_BREAK,
    PARAGRAPH_SKIP_RULES,
    CHUNK_NOISE_MARKERS,
)

logger = logging.getLogger(__name__)


class NoChunksProducedError(ValueError):
    """Raised when no paragraph of a document survives filtering."""

    def __init__(self, document_name: str = "document"):
        super().__init__(
            f"No valid chunks created from {document_name}. "
            "The document may be image-based or mostly boilerplate."
        )
        self.document_name = document_name


@dataclass(frozen=True)
class DocumentChunk:
    """A span of filing text prepared for embedding."""
    text: str
    source_offset: Optional[int] = None  # Offset of first fresh paragraph in normalized text
    page_number: Optional[int] = None
    chunk_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "text": self.text,
            "source_offset": self.source_offset,
            "page_number": self.page_number,
        }


@dataclass
class ChunkConfig:
    """Configuration for chunking parameters (sizes in characters)."""
    target_size: int = 3500
    overlap_size: int = 700

    # Paragraphs at or below this length carry no usable content
    min_paragraph_length: int = 50

    # Post-filter: chunks shorter than this are dropped
    min_chunk_length: int = 200

    # Sentence spans at or below this length are not used as overlap
    sentence_min_length: int = 20

    # Drop chunks whose noise-marker-per-word ratio reaches this
    max_boilerplate_ratio: float = 0.1


class FilingChunker:
    """
    Chunks filing text for embedding.

    Stateless: every call builds a fresh, independent list, so one instance
    can be shared across concurrent requests.
    """

    def __init__(
        self,
        config: Optional[ChunkConfig] = None,
        normalizer: Optional[TextNormalizer] = None,
    ):
        self.config = config or ChunkConfig()
        self._normalizer = normalizer or TextNormalizer()

    def chunk(self, raw_text: str, document_name: str = "document") -> list[DocumentChunk]:
        """
        Normalize and chunk a whole document.

        Raises:
            NoChunksProducedError: if nothing usable survives filtering
        """
        text = self._normalizer.normalize(raw_text)
        chunks = self.build_chunks(text)
        if not chunks:
            raise NoChunksProducedError(document_name)

        logger.info(f"Created {len(chunks)} chunks from {document_name}")
        return chunks

    def chunk_pages(self, pages: list[str], document_name: str = "document") -> list[DocumentChunk]:
        """
        Normalize and chunk a document given per-page text, tagging each
        chunk with the page its first fresh paragraph starts on.

        Raises:
            NoChunksProducedError: if nothing usable survives filtering
        """
        text, page_offsets = self._normalizer.normalize_pages(pages)
        chunks = [
            DocumentChunk(
                text=c.text,
                source_offset=c.source_offset,
                page_number=self._page_for_offset(c.source_offset, page_offsets),
                chunk_id=c.chunk_id,
            )
            for c in self.build_chunks(text)
        ]
        if not chunks:
            raise NoChunksProducedError(document_name)

        logger.info(f"Created {len(chunks)} chunks from {document_name} ({len(pages)} pages)")
        return chunks

    def build_chunks(
        self,
        normalized_text: str,
        target_size: Optional[int] = None,
        overlap_size: Optional[int] = None,
    ) -> list[DocumentChunk]:
        """
        Split normalized text into overlapping chunks.

        Args:
            normalized_text: Output of TextNormalizer.normalize
            target_size: Max characters per chunk (defaults to config)
            overlap_size: Max characters carried into the next chunk (defaults to config)

        Returns:
            Chunks in document order. Empty if no paragraph qualifies.
        """
        target = target_size if target_size is not None else self.config.target_size
        overlap = overlap_size if overlap_size is not None else self.config.overlap_size

        raw_chunks = []
        buffer = ""
        buffer_offset = None

        for offset, paragraph in self._split_paragraphs(normalized_text):
            if len(buffer) + len(paragraph) > target and buffer.strip():
                raw_chunks.append((buffer.strip(), buffer_offset))

                seed = self._overlap_seed(buffer, overlap)
                buffer = seed + (" " if seed else "") + paragraph
                buffer_offset = offset
            else:
                if not buffer:
                    buffer_offset = offset
                buffer += ("\n\n" if buffer else "") + paragraph

        if buffer.strip():
            raw_chunks.append((buffer.strip(), buffer_offset))

        chunks = [
            DocumentChunk(text=text, source_offset=offset)
            for text, offset in raw_chunks
            if self._is_viable(text)
        ]

        dropped = len(raw_chunks) - len(chunks)
        if dropped:
            logger.debug(f"Dropped {dropped} short or boilerplate-heavy chunks")
        return chunks

    def _split_paragraphs(self, text: str):
        """Yield (offset, paragraph) for paragraphs worth indexing."""
        pos = 0
        spans = []
        for match in PARAGRAPH_BREAK.finditer(text):
            spans.append((pos, text[pos:match.start()]))
            pos = match.end()
        spans.append((pos, text[pos:]))

        for start, raw in spans:
            paragraph = raw.strip()
            if len(paragraph) <= self.config.min_paragraph_length:
                continue
            if any(rule.applies_to(paragraph) for rule in PARAGRAPH_SKIP_RULES):
                continue
            yield start + (len(raw) - len(raw.lstrip())), paragraph

    def _overlap_seed(self, text: str, overlap_size: int) -> str:
        """Closing sentences of text, in order, totalling at most overlap_size chars."""
        sentences = [
            s.strip() for s in SENTENCE_BREAK.split(text)
            if len(s.strip()) > self.config.sentence_min_length
        ]

        seed = []
        seed_length = 0
        for sentence in reversed(sentences):
            # Joined length, including the separating spaces
            added = len(sentence) + (1 if seed else 0)
            if seed_length + added > overlap_size:
                break
            seed.insert(0, sentence)
            seed_length += added

        return " ".join(seed)

    def _is_viable(self, text: str) -> bool:
        """Post-filter: long enough and not dominated by address/firm markers."""
        if len(text) < self.config.min_chunk_length:
            return False
        words = text.split(" ")
        noise = len(CHUNK_NOISE_MARKERS.findall(text))
        return noise / len(words) < self.config.max_boilerplate_ratio

    @staticmethod
    def _page_for_offset(offset: Optional[int], page_offsets: list[int]) -> Optional[int]:
        if offset is None or not page_offsets:
            return None
        return max(1, bisect_right(page_offsets, offset))


def build_chunks(
    normalized_text: str,
    target_size: int = 3500,
    overlap_size: int = 700,
) -> list[str]:
    """Chunk normalized text with default filters and return the chunk texts."""
    chunker = FilingChunker()
    return [c.text for c in chunker.build_chunks(normalized_text, target_size, overlap_size)]
