"""
Batch ingestion of court filings into the Docket RAG index.

Processes every PDF in a directory:
- Extraction: PyMuPDF, page by page
- Normalization + chunking: FilingChunker (3500-char chunks, 700-char overlap)
- Embeddings: OpenAI text-embedding-ada-002 (or EMBEDDING_PROVIDER)
- Storage: PostgreSQL + pgvector

Usage:
    python ingest_filings.py --dir ~/filings/
    python ingest_filings.py --dir ~/filings/ --knowledge-base ftx_documents --dry-run
"""

import sys
import time
import argparse
import logging
from pathlib import Path
from dotenv import load_dotenv

# Ensure project root is on path
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))
load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def preview_file(pdf_path: Path, extractor, chunker) -> int:
    """Chunk a PDF without embedding or storing it. Returns chunk count."""
    from execution.docket_rag.document_parser import InsufficientTextError

    extracted = extractor.extract(str(pdf_path))
    if not extracted.has_enough_text():
        raise InsufficientTextError(extracted.title, len(extracted.raw_text.strip()))
    chunks = chunker.chunk_pages(extracted.pages, document_name=extracted.title)
    sizes = [len(c.text) for c in chunks]
    logger.info(
        f"  {len(chunks)} chunks, sizes {min(sizes)}-{max(sizes)} chars, "
        f"pages {chunks[0].page_number}-{chunks[-1].page_number}"
    )
    return len(chunks)


def main():
    arg_parser = argparse.ArgumentParser(description="Ingest court filing PDFs")
    arg_parser.add_argument(
        "--dir",
        type=str,
        required=True,
        help="Directory containing PDF filings",
    )
    arg_parser.add_argument(
        "--knowledge-base",
        type=str,
        default="ftx_documents",
        help="Knowledge base to index into (default: ftx_documents)",
    )
    arg_parser.add_argument("--target-size", type=int, default=3500, help="Chunk target size in chars")
    arg_parser.add_argument("--overlap-size", type=int, default=700, help="Chunk overlap size in chars")
    arg_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Extract and chunk only; do not embed or store",
    )
    args = arg_parser.parse_args()

    input_dir = Path(args.dir)
    if not input_dir.exists():
        logger.error(f"Directory not found: {input_dir}")
        sys.exit(1)

    pdf_files = sorted(input_dir.glob("*.pdf"))
    if not pdf_files:
        logger.error(f"No PDF files found in {input_dir}")
        sys.exit(1)

    logger.info(f"Found {len(pdf_files)} PDFs in {input_dir}")

    from execution.docket_rag.chunker import FilingChunker, ChunkConfig, NoChunksProducedError
    from execution.docket_rag.document_parser import PdfTextExtractor, InsufficientTextError
    from execution.docket_rag.errors import ExternalServiceError

    extractor = PdfTextExtractor()
    chunker = FilingChunker(ChunkConfig(target_size=args.target_size, overlap_size=args.overlap_size))

    ingestor = None
    if not args.dry_run:
        from execution.docket_rag.embeddings import get_embedding_service
        from execution.docket_rag.ingestion import DocumentIngestor
        from execution.docket_rag.vector_store import VectorStore, VectorStoreConfig

        embedding_service = get_embedding_service()
        store = VectorStore(VectorStoreConfig(embedding_dimensions=embedding_service.dimensions))
        store.connect()
        store.initialize_schema()
        ingestor = DocumentIngestor(
            store,
            embedding_service,
            chunker=chunker,
            extractor=extractor,
            knowledge_base=args.knowledge_base,
        )

    start_time = time.time()
    total_chunks = 0
    success_count = 0
    skip_count = 0
    fail_count = 0

    for i, pdf_path in enumerate(pdf_files):
        logger.info(f"[{i + 1}/{len(pdf_files)}] {pdf_path.name}")
        try:
            if args.dry_run:
                total_chunks += preview_file(pdf_path, extractor, chunker)
            else:
                result = ingestor.ingest_pdf(str(pdf_path))
                total_chunks += result.chunks
                logger.info(f"  Indexed {result.chunks} chunks as {result.document_id}")
            success_count += 1
        except (InsufficientTextError, NoChunksProducedError) as e:
            logger.warning(f"  Skipping {pdf_path.name}: {e}")
            skip_count += 1
        except ExternalServiceError as e:
            logger.error(f"  Failed {pdf_path.name}: {e}")
            fail_count += 1

    elapsed = time.time() - start_time
    logger.info("=" * 60)
    logger.info(f"Done in {elapsed:.1f}s")
    logger.info(f"  Success: {success_count}, Skipped: {skip_count}, Failed: {fail_count}")
    logger.info(f"  Total chunks: {total_chunks}")

    if fail_count:
        sys.exit(1)


if __name__ == "__main__":
    main()
