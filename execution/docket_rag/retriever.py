"""
Citation Retriever for Court Filings

Turns a raw vector-search result set into a small, diverse, boilerplate-free
citation set for grounding the language model.

Pipeline:
1. Vector search for the query embedding (ranked, most relevant first)
2. ResultFilter drops short or boilerplate-heavy excerpts
3. ResultDeduplicator greedily keeps near-unique excerpts up to max_sources

Filtering and deduplication never rerank: vector-search order is relevance
order throughout.
"""

import time
import logging
from typing import Callable, Optional
from dataclasses import dataclass, field

from .patterns import RESULT_BOILERPLATE_RULES, BoilerplateRule
from .similarity import jaccard_similarity
from .settings import ChatSettings
from .vector_store import VectorStore, SearchCandidate
from .embeddings import BaseEmbeddingService

logger = logging.getLogger(__name__)


@dataclass
class RetrievalConfig:
    """Configuration for citation retrieval."""
    # Candidates requested from the vector index before filtering
    search_limit: int = 10

    # Jaccard similarity above which a candidate is a near-duplicate
    dedup_threshold: float = 0.7

    # Boilerplate matches only disqualify excerpts shorter than this
    boilerplate_length_threshold: int = 200

    # Excerpts at or below this length are too short to be informative
    min_result_length: int = 100


class ResultFilter:
    """Removes boilerplate-heavy or too-short search candidates, preserving order."""

    def __init__(
        self,
        config: Optional[RetrievalConfig] = None,
        rules: Optional[list[BoilerplateRule]] = None,
    ):
        self.config = config or RetrievalConfig()
        if rules is None:
            rules = [
                BoilerplateRule(r.name, r.pattern, self.config.boilerplate_length_threshold)
                for r in RESULT_BOILERPLATE_RULES
            ]
        self._rules = rules

    def is_boilerplate(self, text: str) -> bool:
        """True if a boilerplate rule matches and the text is short enough for it to count."""
        lowered = text.lower()
        return any(rule.applies_to(lowered) for rule in self._rules)

    def filter(self, candidates: list[SearchCandidate]) -> list[SearchCandidate]:
        kept = [
            c for c in candidates
            if not self.is_boilerplate(c.text)
            and len(c.text) > self.config.min_result_length
        ]
        if len(kept) < len(candidates):
            logger.debug(f"Filtered out {len(candidates) - len(kept)}/{len(candidates)} candidates")
        return kept


class ResultDeduplicator:
    """
    Greedy, order-preserving near-duplicate removal.

    Each candidate is compared against every already-kept candidate; it is
    rejected if its highest similarity exceeds the threshold. Iteration stops
    as soon as max_results candidates are kept. O(n * k) for k kept items.
    """

    def __init__(self, scorer: Callable[[str, str], float] = jaccard_similarity):
        self._scorer = scorer

    def deduplicate(
        self,
        candidates: list[SearchCandidate],
        max_results: int,
        threshold: float = 0.7,
    ) -> list[SearchCandidate]:
        kept = []
        if max_results <= 0:
            return kept

        for candidate in candidates:
            if len(kept) >= max_results:
                break
            duplicate = any(
                self._scorer(candidate.text, existing.text) > threshold
                for existing in kept
            )
            if duplicate:
                logger.debug(f"Rejected near-duplicate candidate {candidate.id}")
                continue
            kept.append(candidate)

        return kept


@dataclass
class RetrievalResult:
    """Final citation candidates plus pipeline counts."""
    candidates: list[SearchCandidate] = field(default_factory=list)
    total_candidates: int = 0
    filtered_out: int = 0
    duplicates_removed: int = 0
    latency_ms: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.candidates


class CitationRetriever:
    """
    Query-time retrieval: embed, search, filter, deduplicate.

    Stateless apart from its collaborators; safe to share across requests.
    """

    def __init__(
        self,
        vector_store: VectorStore,
        embedding_service: BaseEmbeddingService,
        config: Optional[RetrievalConfig] = None,
    ):
        self.store = vector_store
        self.embeddings = embedding_service
        self.config = config or RetrievalConfig()
        self.result_filter = ResultFilter(self.config)
        self.deduplicator = ResultDeduplicator()

    def retrieve(self, query: str, settings: Optional[ChatSettings] = None) -> RetrievalResult:
        """
        Retrieve grounding candidates for a query.

        Args:
            query: User question
            settings: Chat settings (max_sources and knowledge_base are honored)

        Returns:
            RetrievalResult; its candidates list may be empty.

        Raises:
            ExternalServiceError: if embedding or vector search fails
        """
        settings = settings or ChatSettings()
        start_time = time.time()

        logger.info(f"Retrieving for query: {query[:50]}...")

        query_embedding = self.embeddings.embed_query(query)
        raw = self.store.search(
            query_embedding,
            limit=self.config.search_limit,
            knowledge_base=settings.knowledge_base,
        )

        filtered = self.result_filter.filter(raw)
        final = self.deduplicator.deduplicate(
            filtered,
            max_results=settings.max_sources,
            threshold=self.config.dedup_threshold,
        )

        # Anything not kept after filtering was either a duplicate or past the cap
        result = RetrievalResult(
            candidates=final,
            total_candidates=len(raw),
            filtered_out=len(raw) - len(filtered),
            duplicates_removed=len(filtered) - len(final),
            latency_ms=(time.time() - start_time) * 1000,
        )

        logger.info(
            f"Retrieved {len(final)} citations from {len(raw)} candidates "
            f"({result.filtered_out} filtered, {result.duplicates_removed} deduplicated) "
            f"in {result.latency_ms:.0f}ms"
        )
        if result.is_empty:
            logger.warning("No usable citations for query; answering without grounding context")

        return result
