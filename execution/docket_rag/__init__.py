"""
Docket RAG - Grounded Question Answering over Court Filings

This module provides:
- Boilerplate-stripping normalization of extracted PDF text
- Paragraph-aware chunking with sentence overlap
- Vector retrieval with boilerplate filtering and near-duplicate removal
- Citation formatting and prompt assembly for the language model
"""

from .normalizer import TextNormalizer
from .chunker import FilingChunker, ChunkConfig, DocumentChunk, NoChunksProducedError
from .similarity import jaccard_similarity
from .retriever import ResultFilter, ResultDeduplicator, CitationRetriever
from .citation import Citation, CitationExtractor
from .settings import ChatSettings
from .errors import ExternalServiceError

__all__ = [
    "TextNormalizer",
    "FilingChunker",
    "ChunkConfig",
    "DocumentChunk",
    "NoChunksProducedError",
    "jaccard_similarity",
    "ResultFilter",
    "ResultDeduplicator",
    "CitationRetriever",
    "Citation",
    "CitationExtractor",
    "ChatSettings",
    "ExternalServiceError",
]

__version__ = "0.1.0"
