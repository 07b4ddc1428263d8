"""
Tests for execution/docket_rag/embeddings.py

Covers: EmbeddingConfig, OpenAIEmbeddingService, VoyageEmbeddingService,
        get_embedding_service() factory, batching, caching, and provider
        error wrapping.

All external API calls are mocked.
"""

import json
from types import SimpleNamespace
from unittest.mock import patch, MagicMock

import pytest


def openai_response(vectors, reverse=False):
    data = [SimpleNamespace(index=i, embedding=v) for i, v in enumerate(vectors)]
    if reverse:
        data.reverse()
    return SimpleNamespace(data=data)


@pytest.fixture
def openai_service(monkeypatch):
    """OpenAIEmbeddingService with a mocked client that echoes text lengths."""
    from execution.docket_rag.embeddings import OpenAIEmbeddingService, EmbeddingConfig

    monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
    client = MagicMock()
    client.embeddings.create.side_effect = lambda model, input: openai_response(
        [[float(len(t)), 0.0] for t in input]
    )
    with patch("execution.docket_rag.embeddings.openai") as mock_openai:
        mock_openai.OpenAI.return_value = client
        svc = OpenAIEmbeddingService(EmbeddingConfig(batch_size=2))
    return svc, client


# ---------------------------------------------------------------------------
# EmbeddingConfig
# ---------------------------------------------------------------------------

class TestEmbeddingConfig:
    def test_defaults(self):
        from execution.docket_rag.embeddings import EmbeddingConfig
        cfg = EmbeddingConfig()
        assert cfg.provider == "openai"
        assert cfg.model == "text-embedding-ada-002"
        assert cfg.dimensions == 1536
        assert cfg.batch_size == 50
        assert cfg.use_cache is True
        assert cfg.cache_dir is None


# ---------------------------------------------------------------------------
# OpenAIEmbeddingService
# ---------------------------------------------------------------------------

class TestOpenAIEmbeddingService:
    """Tests for the OpenAI-backed service."""

    def test_client_created_with_api_key(self, monkeypatch):
        from execution.docket_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        with patch("execution.docket_rag.embeddings.openai") as mock_openai:
            OpenAIEmbeddingService()
            mock_openai.OpenAI.assert_called_once_with(api_key="fake-key")

    def test_embed_documents_empty_list(self, openai_service):
        svc, client = openai_service
        assert svc.embed_documents([]) == []
        client.embeddings.create.assert_not_called()

    def test_embed_documents_batches(self, openai_service):
        svc, client = openai_service
        texts = ["a", "bb", "ccc", "dddd", "eeeee"]

        result = svc.embed_documents(texts)

        assert [v[0] for v in result] == [1.0, 2.0, 3.0, 4.0, 5.0]
        batch_inputs = [c.kwargs["input"] for c in client.embeddings.create.call_args_list]
        assert batch_inputs == [["a", "bb"], ["ccc", "dddd"], ["eeeee"]]

    def test_response_reordered_by_index(self, openai_service):
        svc, client = openai_service
        client.embeddings.create.side_effect = None
        client.embeddings.create.return_value = openai_response([[1.0], [2.0]], reverse=True)

        assert svc.embed_documents(["first", "second"]) == [[1.0], [2.0]]

    def test_embed_query_cached(self, openai_service):
        svc, client = openai_service

        first = svc.embed_query("What did the court decide?")
        second = svc.embed_query("What did the court decide?")

        assert first == second
        assert client.embeddings.create.call_count == 1

    def test_cached_documents_not_resent(self, openai_service):
        svc, client = openai_service
        svc.embed_documents(["alpha", "beta"])
        client.embeddings.create.reset_mock()

        svc.embed_documents(["alpha", "gamma"])

        assert client.embeddings.create.call_args.kwargs["input"] == ["gamma"]

    def test_cache_disabled(self, monkeypatch):
        from execution.docket_rag.embeddings import OpenAIEmbeddingService, EmbeddingConfig

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        with patch("execution.docket_rag.embeddings.openai") as mock_openai:
            client = mock_openai.OpenAI.return_value
            client.embeddings.create.return_value = openai_response([[0.5]])
            svc = OpenAIEmbeddingService(EmbeddingConfig(use_cache=False))

            svc.embed_query("q")
            svc.embed_query("q")

        assert client.embeddings.create.call_count == 2

    def test_disk_cache(self, monkeypatch, tmp_path):
        from execution.docket_rag.embeddings import OpenAIEmbeddingService, EmbeddingConfig

        monkeypatch.setenv("OPENAI_API_KEY", "fake-key")
        with patch("execution.docket_rag.embeddings.openai") as mock_openai:
            client = mock_openai.OpenAI.return_value
            client.embeddings.create.return_value = openai_response([[0.25, 0.75]])
            svc = OpenAIEmbeddingService(EmbeddingConfig(cache_dir=str(tmp_path)))
            svc.embed_query("query text")

            files = list(tmp_path.glob("*.json"))
            assert len(files) == 1
            assert json.loads(files[0].read_text()) == [0.25, 0.75]

            # A fresh service reads the vector back from disk
            fresh = OpenAIEmbeddingService(EmbeddingConfig(cache_dir=str(tmp_path)))
            client.embeddings.create.reset_mock()
            assert fresh.embed_query("query text") == [0.25, 0.75]
            client.embeddings.create.assert_not_called()

    def test_provider_error_wrapped(self, openai_service):
        from execution.docket_rag.errors import ExternalServiceError

        svc, client = openai_service
        client.embeddings.create.side_effect = RuntimeError("rate limited")

        with pytest.raises(ExternalServiceError) as exc_info:
            svc.embed_documents(["text"])

        assert exc_info.value.service == "embedding"
        assert "rate limited" in str(exc_info.value)

    def test_vector_count_mismatch_raises(self, openai_service):
        from execution.docket_rag.errors import ExternalServiceError

        svc, client = openai_service
        client.embeddings.create.side_effect = None
        client.embeddings.create.return_value = openai_response([[1.0]])

        with pytest.raises(ExternalServiceError):
            svc.embed_documents(["one", "two"])

    def test_raises_without_client(self, monkeypatch):
        from execution.docket_rag.embeddings import OpenAIEmbeddingService

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        svc = OpenAIEmbeddingService()

        with pytest.raises(RuntimeError, match="OpenAI client not initialized"):
            svc.embed_query("test query")

    def test_dimensions(self, openai_service):
        svc, _ = openai_service
        assert svc.dimensions == 1536


# ---------------------------------------------------------------------------
# VoyageEmbeddingService
# ---------------------------------------------------------------------------

class TestVoyageEmbeddingService:
    """Tests for the Voyage AI service."""

    @pytest.fixture
    def voyage(self, monkeypatch):
        from execution.docket_rag.embeddings import VoyageEmbeddingService, EmbeddingConfig

        monkeypatch.setenv("VOYAGE_API_KEY", "fake-key")
        with patch("execution.docket_rag.embeddings.voyageai") as mock_voyage:
            client = mock_voyage.Client.return_value
            client.embed.side_effect = lambda texts, model, input_type: SimpleNamespace(
                embeddings=[[0.1] * 4 for _ in texts]
            )
            svc = VoyageEmbeddingService(
                EmbeddingConfig(provider="voyage", model="voyage-law-2", dimensions=1024)
            )
        return svc, client

    def test_documents_use_document_input_type(self, voyage):
        svc, client = voyage
        svc.embed_documents(["chunk"])
        assert client.embed.call_args.kwargs["input_type"] == "document"
        assert client.embed.call_args.kwargs["model"] == "voyage-law-2"

    def test_queries_use_query_input_type(self, voyage):
        svc, client = voyage
        svc.embed_query("question")
        assert client.embed.call_args.kwargs["input_type"] == "query"

    def test_raises_without_client(self, monkeypatch):
        from execution.docket_rag.embeddings import VoyageEmbeddingService

        monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
        svc = VoyageEmbeddingService()

        with pytest.raises(RuntimeError, match="Voyage AI client not initialized"):
            svc.embed_documents(["text"])


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

class TestGetEmbeddingService:
    def test_default_is_openai(self, monkeypatch):
        from execution.docket_rag.embeddings import get_embedding_service, OpenAIEmbeddingService

        monkeypatch.delenv("EMBEDDING_PROVIDER", raising=False)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        svc = get_embedding_service()

        assert isinstance(svc, OpenAIEmbeddingService)
        assert svc.dimensions == 1536

    def test_voyage_from_env(self, monkeypatch):
        from execution.docket_rag.embeddings import get_embedding_service, VoyageEmbeddingService

        monkeypatch.setenv("EMBEDDING_PROVIDER", "voyage")
        monkeypatch.delenv("VOYAGE_API_KEY", raising=False)
        svc = get_embedding_service()

        assert isinstance(svc, VoyageEmbeddingService)
        assert svc.dimensions == 1024
        assert svc.config.model == "voyage-law-2"

    def test_unknown_provider_falls_back(self, monkeypatch):
        from execution.docket_rag.embeddings import get_embedding_service, OpenAIEmbeddingService

        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert isinstance(get_embedding_service("cohere"), OpenAIEmbeddingService)
