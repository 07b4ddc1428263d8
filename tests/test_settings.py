"""
Tests for execution/docket_rag/settings.py
"""

import pytest


class TestChatSettingsDefaults:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("LLM_MODEL", raising=False)
        monkeypatch.delenv("KNOWLEDGE_BASE", raising=False)
        from execution.docket_rag.settings import ChatSettings, DEFAULT_LLM_MODEL
        from execution.docket_rag.patterns import LLM_PROMPTS

        settings = ChatSettings()

        assert settings.model == DEFAULT_LLM_MODEL
        assert settings.temperature == 0.7
        assert settings.max_tokens == 1000
        assert settings.knowledge_base == "ftx_documents"
        assert settings.max_sources == 4
        assert settings.context_window == 4000
        assert settings.system_prompt == LLM_PROMPTS["default_system"]

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("LLM_MODEL", "meta/llama-3.1-70b-instruct")
        monkeypatch.setenv("KNOWLEDGE_BASE", "all_documents")
        from execution.docket_rag.settings import ChatSettings

        settings = ChatSettings()

        assert settings.model == "meta/llama-3.1-70b-instruct"
        assert settings.knowledge_base == "all_documents"


class TestChatSettingsFromDict:
    """Tests for ChatSettings.from_dict()."""

    def test_camel_case_keys(self):
        from execution.docket_rag.settings import ChatSettings
        settings = ChatSettings.from_dict({
            "maxSources": 6,
            "contextWindow": 2000,
            "knowledgeBase": "all_documents",
            "maxTokens": 500,
            "systemPrompt": "Be brief.",
        })
        assert settings.max_sources == 6
        assert settings.context_window == 2000
        assert settings.knowledge_base == "all_documents"
        assert settings.max_tokens == 500
        assert settings.system_prompt == "Be brief."

    def test_snake_case_keys(self):
        from execution.docket_rag.settings import ChatSettings
        assert ChatSettings.from_dict({"max_sources": 2}).max_sources == 2

    def test_unknown_keys_and_none_ignored(self):
        from execution.docket_rag.settings import ChatSettings
        settings = ChatSettings.from_dict({"theme": "dark", "temperature": None})
        assert settings.temperature == 0.7

    def test_empty_or_none_payload(self):
        from execution.docket_rag.settings import ChatSettings
        assert ChatSettings.from_dict({}).max_sources == 4
        assert ChatSettings.from_dict(None).max_sources == 4

    @pytest.mark.parametrize("payload", [
        {"temperature": 1.5},
        {"temperature": -0.1},
        {"maxTokens": 0},
        {"maxSources": 0},
        {"contextWindow": -1},
        {"model": ""},
        {"knowledgeBase": ""},
    ])
    def test_invalid_values_rejected(self, payload):
        from execution.docket_rag.settings import ChatSettings
        with pytest.raises(ValueError):
            ChatSettings.from_dict(payload)

    def test_to_dict_round_trip(self):
        from execution.docket_rag.settings import ChatSettings
        settings = ChatSettings(max_sources=3, temperature=0.2)
        assert ChatSettings.from_dict(settings.to_dict()) == settings
