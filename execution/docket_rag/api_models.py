"""
Pydantic models for the Docket RAG FastAPI backend.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class ChatSettingsPayload(BaseModel):
    """Optional per-request chat settings. Accepts camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)

    model: Optional[str] = None
    temperature: Optional[float] = Field(None, ge=0.0, le=1.0)
    max_tokens: Optional[int] = Field(None, gt=0, alias="maxTokens")
    knowledge_base: Optional[str] = Field(None, alias="knowledgeBase")
    max_sources: Optional[int] = Field(None, ge=1, le=10, alias="maxSources")
    system_prompt: Optional[str] = Field(None, alias="systemPrompt")
    context_window: Optional[int] = Field(None, ge=1000, le=8000, alias="contextWindow")


class ChatRequest(BaseModel):
    """Request body for the chat endpoint."""
    message: str = Field(..., min_length=1, max_length=4000)
    guest_token: Optional[str] = None
    settings: Optional[ChatSettingsPayload] = None


class CitationInfo(BaseModel):
    """A citation returned with an answer."""
    id: str
    document_title: str
    page_number: Optional[int] = None
    excerpt: str
    similarity: float
    short_citation: str


class ChatResponse(BaseModel):
    """Response body for the chat endpoint."""
    message: str
    citations: list[CitationInfo]
    guest_token: str
    session_id: str
    session_summary: Optional[str] = None
    latency_ms: float


class ChunkUploadRequest(BaseModel):
    """Request body for ingesting pre-chunked text."""
    model_config = ConfigDict(populate_by_name=True)

    file_name: str = Field(..., min_length=1, alias="fileName")
    chunks: list[str] = Field(..., min_length=1)
    knowledge_base: Optional[str] = Field(None, alias="knowledgeBase")


class UploadResponse(BaseModel):
    """Response body for document ingestion."""
    id: str
    title: str
    knowledge_base: str
    page_count: int
    chunks: int
    avg_chunk_size: float


class DocumentInfo(BaseModel):
    """Information about an indexed document."""
    id: str
    title: str
    knowledge_base: str
    page_count: int = 0
    chunk_count: int = 0
    created_at: Optional[str] = None


class SessionInfo(BaseModel):
    """A guest chat session."""
    id: str
    guest_token: str
    started_at: Optional[str] = None
    last_activity: Optional[str] = None
    total_messages: int = 0
    summary: Optional[str] = None


class MessageInfo(BaseModel):
    """A single stored chat message."""
    id: str
    message_type: str
    content: str
    citations: list = []
    created_at: Optional[str] = None


class HealthResponse(BaseModel):
    """Response body for health check."""
    status: str
    version: str
    database: str
