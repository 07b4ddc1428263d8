"""
Shared fixtures and test utilities for Docket RAG tests.

Provides mock services, sample filing text and candidate factories so that
all tests run without API keys, databases, or external network access.
"""

import sys
import uuid
import hashlib
from pathlib import Path

import pytest
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Path setup - ensure the execution package is importable
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

load_dotenv(PROJECT_ROOT / ".env")

# ---------------------------------------------------------------------------
# Sample court filing text (as extracted from a PDF)
# ---------------------------------------------------------------------------
SAMPLE_FILING = """UNITED STATES DEPARTMENT OF JUSTICE Office of the United States Trustee 844 King Street, Suite 2207 WILMINGTON, DE 19801
CASE NO.: 22-11068 (JTD)
FILED: 01/15/2024


IN THE UNITED STATES BANKRUPTCY COURT FOR THE DISTRICT OF DELAWARE. In re FTX Trading Ltd., et al., Debtors. Chapter 11 proceedings are jointly administered under the case number above.

The Debtors move for entry of an order approving the procedures for the estimation of customer claims. The motion asks the Court to fix the value of digital assets held on the exchange as of the petition date. Creditors argue that the petition-date valuation understates their recovery.

The Court has reviewed the motion, the objections filed by the ad hoc committee of customers, and the supporting declarations. The Court finds that the proposed procedures are fair and consistent with section 502 of the Bankruptcy Code.

Page 1 of 2

ATTN: Claims Processing Center 1 Liberty Plaza NEW YORK, NY 10006

1000 NORTH KING STREET

ACCORDINGLY, IT IS HEREBY ORDERED that the motion is granted as set forth herein. Distributions to customers shall be calculated using the petition-date prices listed in the schedule annexed to this order.
"""


@pytest.fixture
def sample_filing_text():
    """Return raw extracted text of a sample bankruptcy court filing."""
    return SAMPLE_FILING


def make_paragraph(length: int, sentence: str = "The court considered the evidence presented by the parties.") -> str:
    """Build a single-line paragraph of exactly `length` characters from repeated sentences."""
    text = (sentence + " ") * (length // len(sentence) + 2)
    body = text[:length - 1]
    if body.endswith(" "):
        body = body[:-1] + "x"
    return body + "."


@pytest.fixture
def paragraph_factory():
    return make_paragraph


# ---------------------------------------------------------------------------
# Search candidates
# ---------------------------------------------------------------------------

def make_candidate(text: str, id: str = None, score: float = 0.8, title: str = "Order.pdf", page=1):
    from execution.docket_rag.vector_store import SearchCandidate
    return SearchCandidate(
        id=id or str(uuid.uuid4()),
        text=text,
        document_title=title,
        page_number=page,
        score=score,
    )


@pytest.fixture
def candidate_factory():
    return make_candidate


# ---------------------------------------------------------------------------
# Mock embedding service
# ---------------------------------------------------------------------------

class MockEmbeddingService:
    """Deterministic mock embedding service -- never calls external APIs."""

    def __init__(self, dimensions=8):
        self._dimensions = dimensions
        self.document_calls = []
        self.query_calls = []

    def embed_documents(self, texts):
        self.document_calls.append(list(texts))
        return [self._deterministic_embedding(t) for t in texts]

    def embed_query(self, query):
        self.query_calls.append(query)
        return self._deterministic_embedding(query)

    def _deterministic_embedding(self, text):
        h = hashlib.sha256(text.encode()).hexdigest()
        seed = int(h[:8], 16)
        return [((seed + i) % 1000) / 1000.0 for i in range(self._dimensions)]

    @property
    def dimensions(self):
        return self._dimensions


@pytest.fixture
def mock_embedding_service():
    return MockEmbeddingService()


# ---------------------------------------------------------------------------
# Mock vector store (no database needed)
# ---------------------------------------------------------------------------

class MockVectorStore:
    """In-memory stand-in for VectorStore."""

    def __init__(self, search_results=None):
        self.documents = {}
        self.chunks = []
        self.search_results = search_results or []
        self.search_calls = []

    def connect(self):
        pass

    def initialize_schema(self):
        pass

    def insert_document(self, document_id, title, knowledge_base, **kwargs):
        self.documents[document_id] = {
            "id": document_id, "title": title,
            "knowledge_base": knowledge_base, **kwargs,
        }

    def insert_chunks(self, document_id, document_name, chunks, embeddings, knowledge_base):
        if len(chunks) != len(embeddings):
            raise ValueError("Mismatch")
        for chunk, emb in zip(chunks, embeddings):
            self.chunks.append({
                **chunk,
                "document_id": document_id,
                "document_name": document_name,
                "knowledge_base": knowledge_base,
                "embedding": emb,
            })

    def search(self, query_embedding, limit=10, knowledge_base="all_documents"):
        self.search_calls.append({"limit": limit, "knowledge_base": knowledge_base})
        return list(self.search_results[:limit])

    def list_documents(self, knowledge_base=None):
        return list(self.documents.values())

    def delete_document(self, document_id):
        return self.documents.pop(document_id, None) is not None

    def close(self):
        pass


@pytest.fixture
def mock_vector_store():
    return MockVectorStore()


# ---------------------------------------------------------------------------
# Singleton resets between tests
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def reset_metrics_singleton():
    """Reset the MetricsCollector singleton between tests."""
    import execution.docket_rag.metrics as metrics_mod
    metrics_mod.MetricsCollector._instance = None
    metrics_mod._collector = None
    yield
    metrics_mod.MetricsCollector._instance = None
    metrics_mod._collector = None
