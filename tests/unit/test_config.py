"""Tests for environment-driven settings."""

from chatbranch.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CHATBRANCH_DEFAULT_MODELS", raising=False)
        settings = Settings()

        assert settings.app_name == "chatbranch"
        assert settings.default_model_list == []
        assert settings.system_prompt is None
        assert settings.insert_suggestion_prompt is False
        assert settings.suggestion_threshold == 0.5
        assert settings.suggestion_max_query_length == 500
        assert settings.title_max_length == 30

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("CHATBRANCH_DEFAULT_MODELS", "gpt-4o, llama3.1,,")
        monkeypatch.setenv("CHATBRANCH_INSERT_SUGGESTION_PROMPT", "true")
        monkeypatch.setenv("CHATBRANCH_REFRESH_INTERVAL_MS", "500")

        settings = Settings()

        assert settings.default_model_list == ["gpt-4o", "llama3.1"]
        assert settings.insert_suggestion_prompt is True
        assert settings.refresh_interval_ms == 500

    def test_unprefixed_variables_are_ignored(self, monkeypatch):
        monkeypatch.delenv("CHATBRANCH_APP_NAME", raising=False)
        monkeypatch.setenv("APP_NAME", "other")
        assert Settings().app_name == "chatbranch"

    def test_keyword_arguments_override(self, monkeypatch):
        monkeypatch.setenv("CHATBRANCH_SYSTEM_PROMPT", "from env")
        assert Settings(system_prompt="explicit").system_prompt == "explicit"
