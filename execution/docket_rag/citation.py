"""
Citation Records and Prompt Assembly

Converts retrieved candidates into user-facing citation records and formats
them into the context block sent to the language model:

    Doc: {title} (p{page}): "{excerpt}"
"""

import logging
from typing import Optional
from dataclasses import dataclass

from .vector_store import SearchCandidate
from .settings import ChatSettings
from .patterns import LLM_PROMPTS

logger = logging.getLogger(__name__)

# Rough token-to-character ratio for English legal text
CHARS_PER_TOKEN = 4


@dataclass
class Citation:
    """A retrieved excerpt presented as grounding evidence."""
    id: str
    document_title: str
    page_number: Optional[int]
    excerpt: str
    similarity: float

    def short_format(self) -> str:
        """Short inline citation format."""
        if self.page_number is None:
            return f"[{self.document_title}]"
        return f"[{self.document_title}, p. {self.page_number}]"

    def context_line(self) -> str:
        page = self.page_number if self.page_number is not None else "?"
        return f'Doc: {self.document_title} (p{page}): "{self.excerpt}"'

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_title": self.document_title,
            "page_number": self.page_number,
            "excerpt": self.excerpt,
            "similarity": self.similarity,
            "short_citation": self.short_format(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Citation":
        return cls(
            id=str(data["id"]),
            document_title=data.get("document_title", ""),
            page_number=data.get("page_number"),
            excerpt=data.get("excerpt", ""),
            similarity=float(data.get("similarity", 0.0)),
        )


class CitationExtractor:
    """Builds citation records from final retrieval candidates."""

    def extract(self, candidates: list[SearchCandidate]) -> list[Citation]:
        citations = [
            Citation(
                id=str(c.id),
                document_title=c.document_title,
                page_number=c.page_number,
                excerpt=c.text,
                similarity=c.score,
            )
            for c in candidates
        ]
        logger.debug(f"Extracted {len(citations)} citations")
        return citations


def format_context(citations: list[Citation], max_chars: Optional[int] = None) -> str:
    """
    Render citations as the LLM context block.

    An empty citation list renders a notice telling the model there is no
    grounding context, so it does not invent sources.

    Args:
        citations: Citations in relevance order
        max_chars: Character budget for the block (None = unlimited)
    """
    if not citations:
        return LLM_PROMPTS["no_context"]

    context = "\n\n".join(c.context_line() for c in citations)

    if max_chars is not None and len(context) > max_chars:
        cut = context[:max_chars]
        # Avoid ending mid-word
        if " " in cut:
            cut = cut.rsplit(" ", 1)[0]
        logger.info(f"Truncated context from {len(context)} to {len(cut)} chars")
        context = cut

    return context


def build_messages(
    question: str,
    citations: list[Citation],
    settings: Optional[ChatSettings] = None,
) -> list[dict]:
    """
    Assemble OpenAI-style chat messages for a grounded answer.

    The context block is bounded by settings.context_window tokens.
    """
    settings = settings or ChatSettings()
    context = format_context(
        citations,
        max_chars=settings.context_window * CHARS_PER_TOKEN,
    )
    prompt = LLM_PROMPTS["legal_analysis"].format(context=context, question=question)

    return [
        {"role": "system", "content": settings.system_prompt},
        {"role": "user", "content": prompt},
    ]
