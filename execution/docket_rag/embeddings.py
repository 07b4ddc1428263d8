"""
Embedding Service for Docket RAG

Turns chunk texts and queries into fixed-size vectors via OpenAI
(text-embedding-ada-002, the default) or Voyage AI (voyage-law-2).

Documents are embedded in fixed-size request batches (50 by default) to stay
within provider rate limits. Embeddings are cached in memory and optionally
on disk, keyed by model, input type and text.

Architecture:
    BaseEmbeddingService  -- shared caching, batching, embed_documents, embed_query
        OpenAIEmbeddingService  -- OpenAI embeddings API
        VoyageEmbeddingService  -- Voyage AI embeddings API
"""

import os
import json
import hashlib
import logging
from typing import Optional
from dataclasses import dataclass
from pathlib import Path

import openai
import voyageai

from .errors import ExternalServiceError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddingConfig:
    """Configuration for embedding service."""
    provider: str = "openai"  # "openai" or "voyage"
    model: str = "text-embedding-ada-002"
    dimensions: int = 1536
    batch_size: int = 50
    cache_dir: Optional[str] = None
    use_cache: bool = True


class BaseEmbeddingService:
    """
    Base class for API-based embedding services.

    Subclasses implement:
    - _init_client(): create the provider client (leave None if no API key)
    - _request_embeddings(texts, input_type): one provider call for one batch
    """

    _provider_name: str = "Base"
    _env_var_name: str = ""
    _doc_input_type: str = "document"
    _query_input_type: str = "query"

    def __init__(self, config: Optional[EmbeddingConfig] = None):
        self.config = config or EmbeddingConfig()
        self._client = None
        self._cache = {}

        if self.config.cache_dir:
            self._cache_path = Path(self.config.cache_dir)
            self._cache_path.mkdir(parents=True, exist_ok=True)
        else:
            self._cache_path = None

        self._init_client()

    def _init_client(self):
        raise NotImplementedError("Subclasses must implement _init_client()")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        raise NotImplementedError("Subclasses must implement _request_embeddings()")

    def _require_client(self):
        if not self._client:
            raise RuntimeError(
                f"{self._provider_name} client not initialized. "
                f"Check {self._env_var_name}."
            )

    def _create_batches(self, texts: list[str]) -> list[list[str]]:
        """Split texts into consecutive batches of at most batch_size."""
        size = max(1, self.config.batch_size)
        return [texts[i:i + size] for i in range(0, len(texts), size)]

    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        """
        Generate embeddings for document chunks.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors, aligned with texts

        Raises:
            ExternalServiceError: if the provider call fails
        """
        if not texts:
            return []

        self._require_client()
        batches = self._create_batches(texts)

        logger.info(
            f"Embedding {len(texts)} chunks in {len(batches)} batches"
            f" with {self._provider_name}"
        )

        embeddings = []
        for batch_idx, batch in enumerate(batches):
            embeddings.extend(self._embed_batch(batch, input_type=self._doc_input_type))
            logger.info(f"Processed batch {batch_idx + 1}/{len(batches)}")

        return embeddings

    def embed_query(self, query: str) -> list[float]:
        """
        Generate embedding for a search query.

        Raises:
            ExternalServiceError: if the provider call fails
        """
        self._require_client()

        cache_key = self._get_cache_key(query, "query")
        cached = self._get_cached(cache_key)
        if cached is not None:
            return cached

        result = self._embed_batch([query], input_type=self._query_input_type)
        if result:
            self._set_cached(cache_key, result[0])
            return result[0]

        return []

    def _embed_batch(self, texts: list[str], input_type: str = "document") -> list[list[float]]:
        """Embed one batch, skipping texts already cached."""
        results = []
        uncached_texts = []
        uncached_indices = []

        for i, text in enumerate(texts):
            cached = self._get_cached(self._get_cache_key(text, input_type))
            if cached is not None:
                results.append((i, cached))
            else:
                uncached_texts.append(text)
                uncached_indices.append(i)

        if uncached_texts:
            try:
                vectors = self._request_embeddings(uncached_texts, input_type)
            except Exception as e:
                logger.error(f"{self._provider_name} embedding failed: {e}")
                raise ExternalServiceError("embedding", f"{self._provider_name}: {e}") from e

            if len(vectors) != len(uncached_texts):
                raise ExternalServiceError(
                    "embedding",
                    f"{self._provider_name} returned {len(vectors)} vectors for {len(uncached_texts)} texts",
                )

            for idx, embedding in zip(uncached_indices, vectors):
                self._set_cached(self._get_cache_key(texts[idx], input_type), embedding)
                results.append((idx, embedding))

        results.sort(key=lambda x: x[0])
        return [emb for _, emb in results]

    def _get_cache_key(self, text: str, input_type: str) -> str:
        content = f"{self.config.model}:{input_type}:{text}"
        return hashlib.sha256(content.encode()).hexdigest()[:32]

    def _get_cached(self, key: str) -> Optional[list[float]]:
        if not self.config.use_cache:
            return None

        if key in self._cache:
            return self._cache[key]

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            if cache_file.exists():
                try:
                    with open(cache_file) as f:
                        embedding = json.load(f)
                        self._cache[key] = embedding
                        return embedding
                except (OSError, ValueError) as e:
                    logger.debug(f"Failed to read embedding cache file {cache_file}: {e}")

        return None

    def _set_cached(self, key: str, embedding: list[float]) -> None:
        if not self.config.use_cache:
            return

        self._cache[key] = embedding

        if self._cache_path:
            cache_file = self._cache_path / f"{key}.json"
            try:
                with open(cache_file, 'w') as f:
                    json.dump(embedding, f)
            except OSError as e:
                logger.warning(f"Failed to cache embedding: {e}")

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions."""
        return self.config.dimensions


class OpenAIEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using the OpenAI embeddings API.

    text-embedding-ada-002 produces 1536-dimensional vectors and does not
    distinguish documents from queries.
    """

    _provider_name = "OpenAI"
    _env_var_name = "OPENAI_API_KEY"

    def _init_client(self):
        api_key = os.getenv("OPENAI_API_KEY")

        if not api_key:
            logger.warning("OPENAI_API_KEY not found. Embeddings will fail.")
            return

        self._client = openai.OpenAI(api_key=api_key)
        logger.info(f"OpenAI client initialized with model {self.config.model}")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embeddings.create(model=self.config.model, input=texts)
        # Response items carry their input index; keep input order
        data = sorted(response.data, key=lambda d: d.index)
        return [d.embedding for d in data]


class VoyageEmbeddingService(BaseEmbeddingService):
    """
    Embedding service using Voyage AI's voyage-law-2 model.

    voyage-law-2 provides 1024-dimensional embeddings tuned for legal text,
    with different input types for documents vs queries.
    """

    _provider_name = "Voyage AI"
    _env_var_name = "VOYAGE_API_KEY"
    _doc_input_type = "document"
    _query_input_type = "query"

    def _init_client(self):
        api_key = os.getenv("VOYAGE_API_KEY")

        if not api_key:
            logger.warning(
                "VOYAGE_API_KEY not found. Embeddings will fail. "
                "Get your free API key at https://dash.voyageai.com/"
            )
            return

        self._client = voyageai.Client(api_key=api_key)
        logger.info(f"Voyage AI client initialized with model {self.config.model}")

    def _request_embeddings(self, texts: list[str], input_type: str) -> list[list[float]]:
        response = self._client.embed(
            texts=texts,
            model=self.config.model,
            input_type=input_type,
        )
        return response.embeddings


def get_embedding_service(
    provider: Optional[str] = None,
    cache_dir: Optional[str] = None,
) -> BaseEmbeddingService:
    """
    Factory function to get appropriate embedding service.

    Args:
        provider: "openai" (default) or "voyage". Falls back to EMBEDDING_PROVIDER.
        cache_dir: Optional directory for the on-disk embedding cache

    Returns:
        Configured embedding service
    """
    provider = (provider or os.getenv("EMBEDDING_PROVIDER", "openai")).lower()

    if provider == "voyage":
        config = EmbeddingConfig(
            provider="voyage",
            model="voyage-law-2",
            dimensions=1024,
            batch_size=50,
            cache_dir=cache_dir,
        )
        return VoyageEmbeddingService(config)

    if provider != "openai":
        logger.warning(f"Unknown embedding provider '{provider}', using OpenAI")

    return OpenAIEmbeddingService(EmbeddingConfig(cache_dir=cache_dir))


# CLI for testing
if __name__ == "__main__":
    import sys
    from dotenv import load_dotenv

    load_dotenv()
    logging.basicConfig(level=logging.INFO)

    service = get_embedding_service()

    query = " ".join(sys.argv[1:]) or "What did the court decide about customer claims?"

    print(f"Query: {query}")
    embedding = service.embed_query(query)
    print(f"Embedding dimensions: {len(embedding)}")
    print(f"First 10 values: {embedding[:10]}")
