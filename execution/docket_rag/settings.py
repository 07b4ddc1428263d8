"""
Chat Settings

User-facing options for a chat request. Only max_sources and context_window
influence retrieval and prompt assembly; the rest are passed through to the
LLM call.
"""

import os
from dataclasses import dataclass, field, fields, asdict

from .patterns import LLM_PROMPTS

DEFAULT_LLM_MODEL = "qwen/qwen3-235b-a22b"

KNOWLEDGE_BASES = ("ftx_documents", "all_documents")

# Original client used camelCase keys
_CAMEL_CASE_KEYS = {
    "maxTokens": "max_tokens",
    "knowledgeBase": "knowledge_base",
    "maxSources": "max_sources",
    "systemPrompt": "system_prompt",
    "contextWindow": "context_window",
}


def _default_model() -> str:
    return os.getenv("LLM_MODEL", DEFAULT_LLM_MODEL)


def _default_knowledge_base() -> str:
    return os.getenv("KNOWLEDGE_BASE", "ftx_documents")


@dataclass
class ChatSettings:
    """Per-request chat configuration."""
    model: str = field(default_factory=_default_model)
    temperature: float = 0.7
    max_tokens: int = 1000
    knowledge_base: str = field(default_factory=_default_knowledge_base)
    max_sources: int = 4
    system_prompt: str = LLM_PROMPTS["default_system"]
    context_window: int = 4000  # Tokens of retrieved context allowed in the prompt

    @classmethod
    def from_dict(cls, data: dict) -> "ChatSettings":
        """
        Build settings from a request payload.

        Accepts snake_case and camelCase keys. Unknown keys and None values
        are ignored so partial payloads fall back to defaults.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in (data or {}).items():
            name = _CAMEL_CASE_KEYS.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value

        settings = cls(**kwargs)
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ValueError if any option is out of range."""
        if not self.model:
            raise ValueError("model must be a non-empty identifier")
        if not 0.0 <= self.temperature <= 1.0:
            raise ValueError(f"temperature must be in [0, 1], got {self.temperature}")
        if self.max_tokens <= 0:
            raise ValueError(f"max_tokens must be positive, got {self.max_tokens}")
        if not self.knowledge_base:
            raise ValueError("knowledge_base must be a non-empty identifier")
        if self.max_sources <= 0:
            raise ValueError(f"max_sources must be positive, got {self.max_sources}")
        if self.context_window <= 0:
            raise ValueError(f"context_window must be positive, got {self.context_window}")

    def to_dict(self) -> dict:
        return asdict(self)
