"""
Vector Store with PostgreSQL + pgvector

Stores filing chunks with their embeddings and serves cosine-similarity
search over them, partitioned by knowledge base. Also persists guest chat
sessions and their messages.

Search scores are similarities (1 - cosine distance): higher is more
relevant, and results come back most relevant first.
"""

import os
import json
import uuid
import logging
import secrets
from datetime import datetime
from typing import Optional
from dataclasses import dataclass, field
from contextlib import contextmanager

import psycopg2
import psycopg2.pool
from psycopg2.extras import RealDictCursor, execute_values

from .errors import ExternalServiceError

logger = logging.getLogger(__name__)

# Searching this knowledge base spans every indexed filing
ALL_DOCUMENTS = "all_documents"

MESSAGE_TYPES = ("user", "assistant")


@dataclass
class VectorStoreConfig:
    """Configuration for vector store."""
    connection_string: Optional[str] = None
    documents_table: str = "filing_documents"
    chunks_table: str = "filing_chunks"
    embedding_dimensions: int = 1536
    # Connection pooling settings
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    use_pooling: bool = True


@dataclass
class SearchCandidate:
    """A single vector-search hit."""
    id: str
    text: str
    document_title: str
    page_number: Optional[int]
    score: float
    metadata: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "document_title": self.document_title,
            "page_number": self.page_number,
            "score": self.score,
            "metadata": self.metadata,
        }


def _serialize_row(row) -> dict:
    """RealDictRow -> plain dict with JSON-friendly ids and timestamps."""
    result = {}
    for key, value in dict(row).items():
        if isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        result[key] = value
    return result


class VectorStore:
    """
    PostgreSQL vector store with pgvector.

    Features:
    - Cosine similarity search scoped to a knowledge base
    - Batch insert with execute_values
    - Guest chat sessions and message history
    - One retry on stale connections
    """

    def __init__(self, config: Optional[VectorStoreConfig] = None):
        self.config = config or VectorStoreConfig()
        self._conn = None
        self._pool = None
        self._connection_string = (
            self.config.connection_string or
            os.getenv("POSTGRES_URL") or
            os.getenv("DATABASE_URL") or
            "postgresql://localhost:5432/docket_rag"
        )

    def connect(self) -> None:
        """Establish database connection (with optional pooling)."""
        try:
            if self.config.use_pooling:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self.config.pool_min_connections,
                    maxconn=self.config.pool_max_connections,
                    dsn=self._connection_string,
                    cursor_factory=RealDictCursor,
                )
                conn = self._pool.getconn()
                try:
                    with conn.cursor() as cur:
                        cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                    conn.commit()
                finally:
                    self._pool.putconn(conn)

                logger.info(
                    f"Connection pool initialized (min={self.config.pool_min_connections}, "
                    f"max={self.config.pool_max_connections})"
                )
            else:
                self._conn = psycopg2.connect(
                    self._connection_string,
                    cursor_factory=RealDictCursor,
                )
                self._conn.autocommit = False

                with self._conn.cursor() as cur:
                    cur.execute("CREATE EXTENSION IF NOT EXISTS vector")
                self._conn.commit()

                logger.info("Connected to PostgreSQL with pgvector (single connection)")

        except psycopg2.Error as e:
            logger.error(f"Database connection failed: {e}")
            raise ExternalServiceError("vector_store", f"connection failed: {e}") from e

    def _get_connection(self):
        """Get a connection from the pool, or the single connection."""
        if self._pool:
            return self._pool.getconn()

        if self._conn is None or self._conn.closed:
            if self._conn is not None:
                logger.warning("Connection closed, reconnecting...")
            self.connect()

        return self._conn

    def _release_connection(self, conn):
        """Release a connection back to the pool (if pooling is enabled)."""
        if self._pool and conn:
            self._pool.putconn(conn)

    def _ensure_connection(self):
        if not self._conn and not self._pool:
            self.connect()
        return self._get_connection()

    @contextmanager
    def get_connection(self):
        """
        Context manager for getting a database connection.

        Usage:
            with store.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute("SELECT 1")
        """
        conn = self._ensure_connection()
        try:
            yield conn
        finally:
            self._release_connection(conn)

    def _safe_rollback(self, conn) -> None:
        """Rollback a connection, ignoring errors if the connection is dead."""
        try:
            conn.rollback()
        except (psycopg2.InterfaceError, psycopg2.OperationalError):
            pass

    def _execute_with_retry(self, operation, label="db_operation"):
        """
        Execute a DB operation with one retry on stale connection.

        Args:
            operation: Callable(conn) that performs the DB work and returns a result.
            label: Human-readable name for logging.

        Raises:
            ExternalServiceError: on any database error after the retry
        """
        for attempt in range(2):
            conn = self._ensure_connection()
            try:
                result = operation(conn)
                self._release_connection(conn)
                return result
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                self._safe_rollback(conn)
                self._release_connection(conn)
                if attempt == 0:
                    logger.warning(f"{label}: stale conn, reconnecting: {e}")
                    self.close()
                    continue
                logger.error(f"{label} failed: {e}")
                raise ExternalServiceError("vector_store", f"{label} failed: {e}") from e
            except psycopg2.Error as e:
                self._safe_rollback(conn)
                self._release_connection(conn)
                logger.error(f"{label} failed: {e}")
                raise ExternalServiceError("vector_store", f"{label} failed: {e}") from e
            except Exception:
                self._safe_rollback(conn)
                self._release_connection(conn)
                raise

    def close(self) -> None:
        """Close database connection(s)."""
        if self._pool:
            self._pool.closeall()
            self._pool = None
            logger.info("Connection pool closed")
        if self._conn:
            self._conn.close()
            self._conn = None

    def ping(self) -> bool:
        """True if the database answers a trivial query."""
        def _op(conn):
            with conn.cursor() as cur:
                cur.execute("SELECT 1")
                cur.fetchone()
            return True

        try:
            return self._execute_with_retry(_op, "ping")
        except ExternalServiceError:
            return False

    # =========================================================================
    # Schema
    # =========================================================================

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        docs = self.config.documents_table
        chunks = self.config.chunks_table

        schema_sql = f"""
        CREATE TABLE IF NOT EXISTS {docs} (
            id UUID PRIMARY KEY,
            title TEXT NOT NULL,
            knowledge_base TEXT NOT NULL,
            file_path TEXT,
            page_count INT DEFAULT 0,
            chunk_count INT DEFAULT 0,
            metadata JSONB DEFAULT '{{}}',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS {chunks} (
            id UUID PRIMARY KEY,
            document_id UUID NOT NULL REFERENCES {docs}(id) ON DELETE CASCADE,
            knowledge_base TEXT NOT NULL,
            document_name TEXT NOT NULL,
            content TEXT NOT NULL,
            page_number INT,
            source_offset INT,
            embedding VECTOR({self.config.embedding_dimensions}),
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_{chunks}_document
            ON {chunks}(document_id);
        CREATE INDEX IF NOT EXISTS idx_{chunks}_knowledge_base
            ON {chunks}(knowledge_base);

        CREATE TABLE IF NOT EXISTS chat_sessions (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            guest_token TEXT NOT NULL,
            session_token TEXT NOT NULL UNIQUE,
            started_at TIMESTAMPTZ DEFAULT NOW(),
            last_activity TIMESTAMPTZ DEFAULT NOW(),
            total_messages INT DEFAULT 0,
            summary TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_chat_sessions_guest
            ON chat_sessions(guest_token);

        CREATE TABLE IF NOT EXISTS chat_messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            session_id UUID NOT NULL REFERENCES chat_sessions(id) ON DELETE CASCADE,
            message_type TEXT NOT NULL CHECK (message_type IN ('user', 'assistant')),
            content TEXT NOT NULL,
            citations JSONB DEFAULT '[]',
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_chat_messages_session
            ON chat_messages(session_id, created_at);
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()
            logger.info("Schema initialized successfully")

        self._execute_with_retry(_op, "initialize_schema")

    # =========================================================================
    # Documents and Chunks
    # =========================================================================

    def insert_document(
        self,
        document_id: str,
        title: str,
        knowledge_base: str,
        file_path: Optional[str] = None,
        page_count: int = 0,
        chunk_count: int = 0,
        metadata: Optional[dict] = None,
    ) -> None:
        """Insert (or update) a document record."""
        sql = f"""
        INSERT INTO {self.config.documents_table}
            (id, title, knowledge_base, file_path, page_count, chunk_count, metadata)
        VALUES
            (%s::uuid, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (id) DO UPDATE SET
            title = EXCLUDED.title,
            knowledge_base = EXCLUDED.knowledge_base,
            chunk_count = EXCLUDED.chunk_count,
            metadata = EXCLUDED.metadata
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (
                    document_id,
                    title,
                    knowledge_base,
                    file_path,
                    page_count,
                    chunk_count,
                    json.dumps(metadata or {}),
                ))
            conn.commit()

        self._execute_with_retry(_op, "insert_document")

    def insert_chunks(
        self,
        document_id: str,
        document_name: str,
        chunks: list[dict],
        embeddings: list[list[float]],
        knowledge_base: str,
    ) -> None:
        """
        Batch insert chunks with embeddings.

        Args:
            document_id: Owning document UUID
            document_name: Title shown in citations
            chunks: Chunk dictionaries (from DocumentChunk.to_dict())
            embeddings: Corresponding embedding vectors
            knowledge_base: Knowledge base the chunks belong to
        """
        if len(chunks) != len(embeddings):
            raise ValueError(
                f"Mismatch: {len(chunks)} chunks, {len(embeddings)} embeddings"
            )

        sql = f"""
        INSERT INTO {self.config.chunks_table}
            (id, document_id, knowledge_base, document_name, content,
             page_number, source_offset, embedding)
        VALUES %s
        ON CONFLICT (id) DO UPDATE SET
            content = EXCLUDED.content,
            embedding = EXCLUDED.embedding
        """

        values = [
            (
                chunk.get("chunk_id") or str(uuid.uuid4()),
                document_id,
                knowledge_base,
                document_name,
                chunk["text"],
                chunk.get("page_number"),
                chunk.get("source_offset"),
                embedding,
            )
            for chunk, embedding in zip(chunks, embeddings)
        ]

        def _op(conn):
            with conn.cursor() as cur:
                execute_values(
                    cur,
                    sql,
                    values,
                    template="(%s::uuid, %s::uuid, %s, %s, %s, %s, %s, %s::vector)",
                    page_size=500,
                )
            conn.commit()
            logger.info(f"Batch inserted {len(values)} chunks into {knowledge_base}")

        self._execute_with_retry(_op, "insert_chunks")

    def search(
        self,
        query_embedding: list[float],
        limit: int = 10,
        knowledge_base: str = ALL_DOCUMENTS,
    ) -> list[SearchCandidate]:
        """
        Semantic search using cosine similarity.

        Args:
            query_embedding: Query embedding vector
            limit: Max number of candidates
            knowledge_base: Knowledge base to search (ALL_DOCUMENTS spans all)

        Returns:
            SearchCandidates, most similar first
        """
        where_clause = ""
        filter_params = []
        if knowledge_base and knowledge_base != ALL_DOCUMENTS:
            where_clause = "WHERE c.knowledge_base = %s"
            filter_params.append(knowledge_base)

        sql = f"""
        SELECT
            c.id,
            c.document_id,
            c.document_name,
            c.content,
            c.page_number,
            c.knowledge_base,
            1 - (c.embedding <=> %s::vector) AS score
        FROM {self.config.chunks_table} c
        {where_clause}
        ORDER BY c.embedding <=> %s::vector
        LIMIT %s
        """

        vector = str(list(query_embedding))
        params = [vector] + filter_params + [vector, limit]

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params)
                rows = cur.fetchall()

            return [
                SearchCandidate(
                    id=str(row["id"]),
                    text=row["content"],
                    document_title=row["document_name"],
                    page_number=row["page_number"],
                    score=float(row["score"]),
                    metadata={
                        "document_id": str(row["document_id"]),
                        "knowledge_base": row["knowledge_base"],
                    },
                )
                for row in rows
            ]

        results = self._execute_with_retry(_op, "search")
        logger.debug(f"Vector search returned {len(results)} candidates from {knowledge_base}")
        return results

    def list_documents(self, knowledge_base: Optional[str] = None) -> list[dict]:
        """List indexed documents, newest first."""
        sql = f"""
        SELECT id, title, knowledge_base, file_path, page_count, chunk_count, metadata, created_at
        FROM {self.config.documents_table}
        """
        params = []
        if knowledge_base and knowledge_base != ALL_DOCUMENTS:
            sql += " WHERE knowledge_base = %s"
            params.append(knowledge_base)
        sql += " ORDER BY created_at DESC"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, params or None)
                rows = cur.fetchall()
            return [_serialize_row(row) for row in rows]

        return self._execute_with_retry(_op, "list_documents")

    def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and all its chunks.

        Returns:
            True if a document was deleted, False if not found
        """
        sql = f"DELETE FROM {self.config.documents_table} WHERE id = %s::uuid"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (document_id,))
                deleted = cur.rowcount > 0
            conn.commit()
            if deleted:
                logger.info(f"Deleted document {document_id}")
            else:
                logger.warning(f"Document {document_id} not found")
            return deleted

        return self._execute_with_retry(_op, "delete_document")

    # =========================================================================
    # Chat Sessions
    # =========================================================================

    def get_or_create_session(self, guest_token: Optional[str] = None) -> dict:
        """
        Return the latest session for a guest token, creating one if needed.

        A missing guest token gets a freshly generated one.
        """
        guest_token = guest_token or secrets.token_urlsafe(24)

        find_sql = """
        UPDATE chat_sessions SET last_activity = NOW()
        WHERE id = (
            SELECT id FROM chat_sessions
            WHERE guest_token = %s
            ORDER BY last_activity DESC
            LIMIT 1
        )
        RETURNING id, guest_token, session_token, started_at, last_activity, total_messages, summary
        """
        create_sql = """
        INSERT INTO chat_sessions (guest_token, session_token)
        VALUES (%s, %s)
        RETURNING id, guest_token, session_token, started_at, last_activity, total_messages, summary
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(find_sql, (guest_token,))
                row = cur.fetchone()
                if row is None:
                    cur.execute(create_sql, (guest_token, secrets.token_urlsafe(32)))
                    row = cur.fetchone()
                    logger.info(f"Created chat session {row['id']}")
            conn.commit()
            return _serialize_row(row)

        return self._execute_with_retry(_op, "get_or_create_session")

    def add_message(
        self,
        session_id: str,
        message_type: str,
        content: str,
        citations: Optional[list[dict]] = None,
    ) -> dict:
        """Append a message to a session and bump its activity counters."""
        if message_type not in MESSAGE_TYPES:
            raise ValueError(f"message_type must be one of {MESSAGE_TYPES}, got {message_type!r}")

        insert_sql = """
        INSERT INTO chat_messages (session_id, message_type, content, citations)
        VALUES (%s::uuid, %s, %s, %s)
        RETURNING id, session_id, message_type, content, citations, created_at
        """
        touch_sql = """
        UPDATE chat_sessions
        SET total_messages = total_messages + 1, last_activity = NOW()
        WHERE id = %s::uuid
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(insert_sql, (session_id, message_type, content, json.dumps(citations or [])))
                row = cur.fetchone()
                cur.execute(touch_sql, (session_id,))
            conn.commit()
            return _serialize_row(row)

        return self._execute_with_retry(_op, "add_message")

    def get_messages(self, session_id: str) -> list[dict]:
        """All messages of a session, oldest first."""
        sql = """
        SELECT id, session_id, message_type, content, citations, created_at
        FROM chat_messages
        WHERE session_id = %s::uuid
        ORDER BY created_at ASC
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (session_id,))
                rows = cur.fetchall()
            return [_serialize_row(row) for row in rows]

        return self._execute_with_retry(_op, "get_messages")

    def list_sessions(self, guest_token: str, limit: int = 50) -> list[dict]:
        """Sessions for a guest token, most recently active first."""
        sql = """
        SELECT id, guest_token, session_token, started_at, last_activity, total_messages, summary
        FROM chat_sessions
        WHERE guest_token = %s
        ORDER BY last_activity DESC
        LIMIT %s
        """

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (guest_token, limit))
                rows = cur.fetchall()
            return [_serialize_row(row) for row in rows]

        return self._execute_with_retry(_op, "list_sessions")

    def update_session_summary(self, session_id: str, summary: str) -> None:
        sql = "UPDATE chat_sessions SET summary = %s WHERE id = %s::uuid"

        def _op(conn):
            with conn.cursor() as cur:
                cur.execute(sql, (summary, session_id))
            conn.commit()

        self._execute_with_retry(_op, "update_session_summary")
