"""
FastAPI Backend for Docket RAG

REST endpoints for filing upload, grounded chat with citations, guest chat
sessions, and metrics.

Run with: uvicorn execution.docket_rag.api:app --host 0.0.0.0 --port 8000
"""

import os
import time
import uuid
import logging
from pathlib import Path
from typing import Optional
from collections import defaultdict

from fastapi import FastAPI, HTTPException, UploadFile, File, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
from openai import OpenAI

from . import __version__
from .api_models import (
    ChatRequest, ChatResponse, CitationInfo,
    ChunkUploadRequest, UploadResponse, DocumentInfo,
    SessionInfo, MessageInfo, HealthResponse,
)
from .chat_summary import generate_chat_summary
from .chunker import NoChunksProducedError, ChunkConfig, FilingChunker
from .citation import CitationExtractor, build_messages
from .document_parser import InsufficientTextError
from .errors import ExternalServiceError
from .metrics import get_metrics_collector
from .settings import ChatSettings

load_dotenv()
logger = logging.getLogger(__name__)

DEFAULT_LLM_BASE_URL = "https://integrate.api.nvidia.com/v1"

app = FastAPI(
    title="Docket RAG API",
    description="Question answering over court filings with grounded citations",
    version=__version__,
)

_cors_origins = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in _cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ExternalServiceError)
async def external_service_error_handler(request: Request, exc: ExternalServiceError):
    logger.error(f"{request.url.path}: {exc}")
    return JSONResponse(status_code=502, content={"detail": str(exc), "service": exc.service})


# =============================================================================
# Rate Limiting
# =============================================================================

class RateLimiter:
    """Simple in-memory rate limiter using sliding window."""

    def __init__(self, max_requests: int = 60, window_seconds: int = 60):
        self._max_requests = max_requests
        self._window = window_seconds
        self._requests: dict[str, list[float]] = defaultdict(list)

    def is_allowed(self, key: str) -> bool:
        now = time.time()
        window_start = now - self._window

        self._requests[key] = [t for t in self._requests[key] if t > window_start]

        if len(self._requests[key]) >= self._max_requests:
            return False

        self._requests[key].append(now)
        return True


_rate_limiter = RateLimiter(
    max_requests=int(os.getenv("RATE_LIMIT_RPM", "60")),
    window_seconds=60,
)


async def check_rate_limit(request: Request):
    """FastAPI dependency that enforces rate limiting per guest token or client address."""
    host = request.client.host if request.client else "unknown"
    key = request.headers.get("x-guest-token", host)
    if not _rate_limiter.is_allowed(key):
        raise HTTPException(status_code=429, detail="Rate limit exceeded. Try again later.")


def require_uuid(value: str, what: str) -> str:
    """Reject ids that cannot exist in the database before they reach it."""
    try:
        return str(uuid.UUID(value))
    except ValueError:
        raise HTTPException(status_code=404, detail=f"{what} not found")


# =============================================================================
# Service Container
# =============================================================================

class ServiceContainer:
    """Lazily builds and caches the store, pipeline services and LLM client."""

    def __init__(self):
        self._store = None
        self._embeddings = None
        self._chunker = None
        self._retriever = None
        self._ingestor = None
        self._llm_client = None

    def get_store(self):
        if self._store is None:
            from .vector_store import VectorStore, VectorStoreConfig

            store = VectorStore(VectorStoreConfig(
                embedding_dimensions=self.get_embeddings().dimensions,
            ))
            store.connect()
            store.initialize_schema()
            self._store = store
        return self._store

    def get_embeddings(self):
        if self._embeddings is None:
            from .embeddings import get_embedding_service
            self._embeddings = get_embedding_service()
        return self._embeddings

    def get_chunker(self) -> FilingChunker:
        if self._chunker is None:
            self._chunker = FilingChunker(ChunkConfig(
                target_size=int(os.getenv("CHUNK_TARGET_SIZE", "3500")),
                overlap_size=int(os.getenv("CHUNK_OVERLAP_SIZE", "700")),
            ))
        return self._chunker

    def get_retriever(self):
        if self._retriever is None:
            from .retriever import CitationRetriever
            self._retriever = CitationRetriever(self.get_store(), self.get_embeddings())
        return self._retriever

    def get_ingestor(self):
        if self._ingestor is None:
            from .ingestion import DocumentIngestor
            self._ingestor = DocumentIngestor(
                self.get_store(),
                self.get_embeddings(),
                chunker=self.get_chunker(),
                knowledge_base=os.getenv("KNOWLEDGE_BASE", "ftx_documents"),
            )
        return self._ingestor

    def get_llm_client(self) -> OpenAI:
        """OpenAI-compatible client (NVIDIA NIM by default)."""
        if self._llm_client is None:
            self._llm_client = OpenAI(
                base_url=os.getenv("LLM_BASE_URL", DEFAULT_LLM_BASE_URL),
                api_key=os.getenv("LLM_API_KEY") or os.getenv("NVIDIA_API_KEY"),
                timeout=120.0,
            )
        return self._llm_client


_container = ServiceContainer()


def _generate_answer(messages: list[dict], settings: ChatSettings) -> str:
    """Call the LLM once. Failures surface as ExternalServiceError("llm")."""
    try:
        response = _container.get_llm_client().chat.completions.create(
            model=settings.model,
            messages=messages,
            max_tokens=settings.max_tokens,
            temperature=settings.temperature,
        )
    except Exception as e:
        logger.error(f"LLM generation failed: {type(e).__name__}: {e}")
        raise ExternalServiceError("llm", str(e)) from e

    return response.choices[0].message.content or ""


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/api/v1/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    try:
        db_status = "connected" if _container.get_store().ping() else "disconnected"
    except Exception as e:
        logger.warning(f"Health check: database disconnected: {e}")
        db_status = "disconnected"

    return HealthResponse(status="ok", version=__version__, database=db_status)


@app.post("/api/v1/documents/upload", response_model=UploadResponse, dependencies=[Depends(check_rate_limit)])
async def upload_document(file: UploadFile = File(...)):
    """Upload, chunk and index a PDF filing."""
    if not file.filename or not file.filename.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail="Only PDF files are supported")

    content = await file.read()
    title = Path(file.filename).stem

    try:
        result = _container.get_ingestor().ingest_pdf_bytes(content, title=title)
    except (InsufficientTextError, NoChunksProducedError) as e:
        raise HTTPException(status_code=422, detail=str(e))

    return UploadResponse(
        id=result.document_id,
        title=result.document_name,
        knowledge_base=result.knowledge_base,
        page_count=result.page_count,
        chunks=result.chunks,
        avg_chunk_size=result.avg_chunk_size,
    )


@app.post("/api/v1/documents/chunks", response_model=UploadResponse, dependencies=[Depends(check_rate_limit)])
async def upload_chunks(request: ChunkUploadRequest):
    """Index pre-chunked document text."""
    try:
        result = _container.get_ingestor().ingest_chunks(
            request.file_name,
            request.chunks,
            knowledge_base=request.knowledge_base,
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return UploadResponse(
        id=result.document_id,
        title=result.document_name,
        knowledge_base=result.knowledge_base,
        page_count=result.page_count,
        chunks=result.chunks,
        avg_chunk_size=result.avg_chunk_size,
    )


@app.get("/api/v1/documents", response_model=list[DocumentInfo])
async def list_documents(knowledge_base: Optional[str] = None):
    """List indexed documents, optionally for one knowledge base."""
    docs = _container.get_store().list_documents(knowledge_base=knowledge_base)
    return [
        DocumentInfo(
            id=str(d["id"]),
            title=d["title"],
            knowledge_base=d["knowledge_base"],
            page_count=d.get("page_count") or 0,
            chunk_count=d.get("chunk_count") or 0,
            created_at=d.get("created_at"),
        )
        for d in docs
    ]


@app.delete("/api/v1/documents/{document_id}")
async def delete_document(document_id: str):
    """Delete a document and all its chunks."""
    document_id = require_uuid(document_id, "Document")
    if not _container.get_store().delete_document(document_id):
        raise HTTPException(status_code=404, detail="Document not found")
    return {"status": "deleted", "document_id": document_id}


@app.post("/api/v1/chat", response_model=ChatResponse, dependencies=[Depends(check_rate_limit)])
async def chat(request: ChatRequest):
    """Answer a question grounded in retrieved filing excerpts."""
    start_time = time.time()

    try:
        payload = request.settings.model_dump(exclude_none=True) if request.settings else {}
        settings = ChatSettings.from_dict(payload)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    store = _container.get_store()
    session = store.get_or_create_session(request.guest_token)
    session_id = str(session["id"])
    store.add_message(session_id, "user", request.message)

    metrics = get_metrics_collector()
    with metrics.track_query(session_id, request.message) as tracker:
        result = _container.get_retriever().retrieve(request.message, settings)
        citations = CitationExtractor().extract(result.candidates)
        tracker.set_results(len(citations), result.filtered_out, result.duplicates_removed)

        answer = _generate_answer(build_messages(request.message, citations, settings), settings)

    citation_dicts = [c.to_dict() for c in citations]
    store.add_message(session_id, "assistant", answer, citation_dicts)

    summary = session.get("summary")
    if not summary:
        summary = generate_chat_summary([{"role": "user", "content": request.message}])
        store.update_session_summary(session_id, summary)

    return ChatResponse(
        message=answer,
        citations=[CitationInfo(**c) for c in citation_dicts],
        guest_token=session["guest_token"],
        session_id=session_id,
        session_summary=summary,
        latency_ms=(time.time() - start_time) * 1000,
    )


@app.get("/api/v1/sessions", response_model=list[SessionInfo])
async def list_sessions(guest_token: str):
    """List chat sessions for a guest token."""
    sessions = _container.get_store().list_sessions(guest_token)
    return [
        SessionInfo(
            id=str(s["id"]),
            guest_token=s["guest_token"],
            started_at=s.get("started_at"),
            last_activity=s.get("last_activity"),
            total_messages=s.get("total_messages") or 0,
            summary=s.get("summary"),
        )
        for s in sessions
    ]


@app.get("/api/v1/sessions/{session_id}/messages", response_model=list[MessageInfo])
async def get_session_messages(session_id: str):
    """Message history of a session, oldest first."""
    session_id = require_uuid(session_id, "Session")
    messages = _container.get_store().get_messages(session_id)
    return [
        MessageInfo(
            id=str(m["id"]),
            message_type=m["message_type"],
            content=m["content"],
            citations=m.get("citations") or [],
            created_at=m.get("created_at"),
        )
        for m in messages
    ]


@app.get("/api/v1/metrics")
async def get_metrics():
    """Metrics snapshot."""
    collector = get_metrics_collector()
    return {
        "uptime_seconds": round(collector.get_uptime().total_seconds(), 1),
        **collector.get_metrics_dict(),
    }
