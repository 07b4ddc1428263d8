"""
Document Ingestion

Orchestrates upload processing:
    PDF -> per-page text -> normalize -> chunk -> embed (batches of 50) -> index

Pre-chunked text can also be ingested directly, skipping extraction and
chunking.
"""

import time
import uuid
import logging
from typing import Optional
from dataclasses import dataclass, field

from .chunker import FilingChunker, DocumentChunk
from .document_parser import PdfTextExtractor, ExtractedDocument, InsufficientTextError
from .embeddings import BaseEmbeddingService
from .metrics import get_metrics_collector
from .vector_store import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_BASE = "ftx_documents"


@dataclass
class IngestionResult:
    """Outcome of indexing one document."""
    document_id: str
    document_name: str
    knowledge_base: str
    chunks: int
    page_count: int = 0
    avg_chunk_size: float = 0.0
    elapsed_ms: float = 0.0
    chunk_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "document_name": self.document_name,
            "knowledge_base": self.knowledge_base,
            "chunks": self.chunks,
            "page_count": self.page_count,
            "avg_chunk_size": self.avg_chunk_size,
            "elapsed_ms": self.elapsed_ms,
        }


class DocumentIngestor:
    """
    Indexes filings into the vector store.

    Errors:
        InsufficientTextError: extraction yielded too little text
        NoChunksProducedError: nothing survived chunk filtering
        ExternalServiceError: extraction, embedding or storage failed
    """

    def __init__(
        self,
        store: VectorStore,
        embedding_service: BaseEmbeddingService,
        chunker: Optional[FilingChunker] = None,
        extractor: Optional[PdfTextExtractor] = None,
        knowledge_base: str = DEFAULT_KNOWLEDGE_BASE,
    ):
        self.store = store
        self.embeddings = embedding_service
        self.chunker = chunker or FilingChunker()
        self.extractor = extractor or PdfTextExtractor()
        self.knowledge_base = knowledge_base

    def ingest_pdf(self, file_path: str, title: Optional[str] = None) -> IngestionResult:
        """Extract, chunk and index a PDF on disk."""
        extracted = self.extractor.extract(file_path, title=title)
        return self.ingest_extracted(extracted)

    def ingest_pdf_bytes(self, data: bytes, title: str) -> IngestionResult:
        """Extract, chunk and index an uploaded PDF."""
        extracted = self.extractor.extract_bytes(data, title)
        return self.ingest_extracted(extracted)

    def ingest_extracted(self, extracted: ExtractedDocument) -> IngestionResult:
        metrics = get_metrics_collector()
        try:
            if not extracted.has_enough_text():
                raise InsufficientTextError(extracted.title, len(extracted.raw_text.strip()))

            chunks = self.chunker.chunk_pages(extracted.pages, document_name=extracted.title)
            return self._index(
                document_name=extracted.title,
                chunks=chunks,
                page_count=extracted.page_count,
                file_path=extracted.file_path,
            )
        except Exception as e:
            metrics.record_failed_ingestion(type(e).__name__)
            raise

    def ingest_chunks(
        self,
        file_name: str,
        chunks: list[str],
        knowledge_base: Optional[str] = None,
    ) -> IngestionResult:
        """
        Index pre-built chunk texts.

        Chunks carry no page information; they are stored with page 1.

        Raises:
            ValueError: if file_name is empty or no chunk has text
        """
        if not file_name:
            raise ValueError("file_name is required")
        texts = [c.strip() for c in chunks or [] if c and c.strip()]
        if not texts:
            raise ValueError(f"No chunk text provided for {file_name}")

        metrics = get_metrics_collector()
        try:
            return self._index(
                document_name=file_name,
                chunks=[DocumentChunk(text=t, page_number=1) for t in texts],
                knowledge_base=knowledge_base,
            )
        except Exception as e:
            metrics.record_failed_ingestion(type(e).__name__)
            raise

    def _index(
        self,
        document_name: str,
        chunks: list[DocumentChunk],
        page_count: int = 0,
        file_path: str = "",
        knowledge_base: Optional[str] = None,
    ) -> IngestionResult:
        start_time = time.time()
        knowledge_base = knowledge_base or self.knowledge_base
        document_id = str(uuid.uuid4())

        avg_size = sum(len(c.text) for c in chunks) / len(chunks)
        logger.info(
            f"Indexing {document_name}: {len(chunks)} chunks, "
            f"average {avg_size:.0f} chars"
        )

        embeddings = self.embeddings.embed_documents([c.text for c in chunks])

        self.store.insert_document(
            document_id=document_id,
            title=document_name,
            knowledge_base=knowledge_base,
            file_path=file_path or None,
            page_count=page_count,
            chunk_count=len(chunks),
        )
        try:
            self.store.insert_chunks(
                document_id=document_id,
                document_name=document_name,
                chunks=[c.to_dict() for c in chunks],
                embeddings=embeddings,
                knowledge_base=knowledge_base,
            )
        except Exception:
            # A document row without chunks would be listed but never cited
            logger.error(f"Chunk insert failed for {document_name}, removing document {document_id}")
            self.store.delete_document(document_id)
            raise

        elapsed_ms = (time.time() - start_time) * 1000
        get_metrics_collector().record_ingestion(len(chunks), page_count, elapsed_ms)
        logger.info(f"Indexed {document_name} as {document_id} in {elapsed_ms:.0f}ms")

        return IngestionResult(
            document_id=document_id,
            document_name=document_name,
            knowledge_base=knowledge_base,
            chunks=len(chunks),
            page_count=page_count,
            avg_chunk_size=round(avg_size, 1),
            elapsed_ms=round(elapsed_ms, 1),
            chunk_ids=[c.chunk_id for c in chunks],
        )
