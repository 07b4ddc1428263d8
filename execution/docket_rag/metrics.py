"""
Metrics Collection for Docket RAG

Tracks chat latency, citation yield, retrieval filtering and ingestion
volume for monitoring.
"""

import time
import logging
from dataclasses import dataclass, field
from collections import defaultdict
from typing import Optional
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)


@dataclass
class QueryMetrics:
    """Metrics for a single chat query."""
    query_id: str
    session_id: str
    query_text: str
    start_time: float
    end_time: float = 0
    latency_ms: float = 0
    citations_returned: int = 0
    candidates_filtered: int = 0
    duplicates_removed: int = 0
    error: Optional[str] = None


@dataclass
class SystemMetrics:
    """Aggregated system metrics."""
    # Query metrics
    total_queries: int = 0
    successful_queries: int = 0
    failed_queries: int = 0
    ungrounded_queries: int = 0  # Answered with no citations

    # Latency tracking (in ms)
    total_latency_ms: float = 0
    min_latency_ms: float = float('inf')
    max_latency_ms: float = 0
    latencies: list = field(default_factory=list)

    # Retrieval metrics
    citations_returned: int = 0
    candidates_filtered: int = 0
    duplicates_removed: int = 0

    # Ingestion metrics
    documents_ingested: int = 0
    failed_ingestions: int = 0
    chunks_created: int = 0
    pages_processed: int = 0
    total_ingestion_time_ms: float = 0

    # Error tracking
    errors_by_type: dict = field(default_factory=lambda: defaultdict(int))

    @property
    def avg_latency_ms(self) -> float:
        if self.total_queries == 0:
            return 0
        return self.total_latency_ms / self.total_queries

    @property
    def p95_latency_ms(self) -> float:
        """Calculate 95th percentile latency."""
        if not self.latencies:
            return 0
        sorted_latencies = sorted(self.latencies)
        index = int(len(sorted_latencies) * 0.95)
        return sorted_latencies[min(index, len(sorted_latencies) - 1)]

    @property
    def avg_citations(self) -> float:
        if self.successful_queries == 0:
            return 0
        return self.citations_returned / self.successful_queries

    @property
    def error_rate(self) -> float:
        if self.total_queries == 0:
            return 0
        return self.failed_queries / self.total_queries

    def to_dict(self) -> dict:
        """Convert to dictionary for display."""
        return {
            "queries": {
                "total": self.total_queries,
                "successful": self.successful_queries,
                "failed": self.failed_queries,
                "ungrounded": self.ungrounded_queries,
                "error_rate": f"{self.error_rate:.2%}",
            },
            "latency_ms": {
                "avg": round(self.avg_latency_ms, 2),
                "min": round(self.min_latency_ms, 2) if self.min_latency_ms != float('inf') else 0,
                "max": round(self.max_latency_ms, 2),
                "p95": round(self.p95_latency_ms, 2),
            },
            "retrieval": {
                "citations_returned": self.citations_returned,
                "avg_citations": round(self.avg_citations, 2),
                "candidates_filtered": self.candidates_filtered,
                "duplicates_removed": self.duplicates_removed,
            },
            "ingestion": {
                "documents": self.documents_ingested,
                "failed": self.failed_ingestions,
                "chunks": self.chunks_created,
                "pages": self.pages_processed,
                "avg_time_ms": round(
                    self.total_ingestion_time_ms / max(self.documents_ingested, 1), 2
                ),
            },
            "errors": dict(self.errors_by_type),
        }


class MetricsCollector:
    """
    Collects and aggregates system metrics.

    Usage:
        collector = get_metrics_collector()

        with collector.track_query(session_id, question) as tracker:
            result = retriever.retrieve(question, settings)
            tracker.set_results(len(result.candidates), result.filtered_out, result.duplicates_removed)
    """

    _instance = None

    def __new__(cls):
        """Singleton pattern for global metrics collection."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self.metrics = SystemMetrics()
        self._query_history: list[QueryMetrics] = []
        self._max_history = 1000
        self._start_time = datetime.now()
        self._initialized = True

    def reset(self):
        """Reset all metrics (for testing)."""
        self.metrics = SystemMetrics()
        self._query_history = []
        self._start_time = datetime.now()

    class QueryTracker:
        """Context manager for tracking query metrics."""

        def __init__(self, collector: 'MetricsCollector', session_id: str, query_text: str):
            self.collector = collector
            self.query = QueryMetrics(
                query_id=f"q_{int(time.time() * 1000)}",
                session_id=session_id,
                query_text=query_text[:200],
                start_time=time.time(),
            )

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            self.query.end_time = time.time()
            self.query.latency_ms = (self.query.end_time - self.query.start_time) * 1000

            if exc_type:
                self.query.error = str(exc_val)
                self.collector._record_error(exc_type.__name__)

            self.collector._record_query(self.query)
            return False

        def set_results(
            self,
            citations: int,
            filtered: int = 0,
            duplicates: int = 0,
        ):
            """Set retrieval result counts."""
            self.query.citations_returned = citations
            self.query.candidates_filtered = filtered
            self.query.duplicates_removed = duplicates

    def track_query(self, session_id: str, query_text: str) -> QueryTracker:
        return self.QueryTracker(self, session_id, query_text)

    def _record_query(self, query: QueryMetrics):
        m = self.metrics
        m.total_queries += 1

        if query.error:
            m.failed_queries += 1
        else:
            m.successful_queries += 1
            if query.citations_returned == 0:
                m.ungrounded_queries += 1

        m.total_latency_ms += query.latency_ms
        m.min_latency_ms = min(m.min_latency_ms, query.latency_ms)
        m.max_latency_ms = max(m.max_latency_ms, query.latency_ms)
        m.latencies.append(query.latency_ms)
        if len(m.latencies) > self._max_history:
            m.latencies = m.latencies[-self._max_history:]

        m.citations_returned += query.citations_returned
        m.candidates_filtered += query.candidates_filtered
        m.duplicates_removed += query.duplicates_removed

        self._query_history.append(query)
        if len(self._query_history) > self._max_history:
            self._query_history = self._query_history[-self._max_history:]

    def _record_error(self, error_type: str):
        self.metrics.errors_by_type[error_type] += 1

    def record_ingestion(self, chunks_count: int, pages_count: int, duration_ms: float):
        """Record a successfully indexed document."""
        self.metrics.documents_ingested += 1
        self.metrics.chunks_created += chunks_count
        self.metrics.pages_processed += pages_count
        self.metrics.total_ingestion_time_ms += duration_ms

    def record_failed_ingestion(self, error_type: str):
        self.metrics.failed_ingestions += 1
        self._record_error(error_type)

    def get_metrics(self) -> SystemMetrics:
        return self.metrics

    def get_metrics_dict(self) -> dict:
        return self.metrics.to_dict()

    def get_recent_queries(self, limit: int = 10) -> list[QueryMetrics]:
        return self._query_history[-limit:]

    def get_uptime(self) -> timedelta:
        return datetime.now() - self._start_time


# Global metrics collector instance
_collector = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector
