"""
Tests for config.py - defaults and environment overrides.
"""

import os
from unittest.mock import patch

from config import ChunkingSettings, Config


class TestDefaults:
    def test_chunking_defaults(self, clean_env):
        settings = Config().CHUNKING
        assert settings.target_words == 500
        assert settings.tolerance == 100
        assert settings.large_document_threshold_words == 1000
        assert (settings.min_words, settings.max_words) == (400, 600)

    def test_backend_defaults(self, clean_env):
        config = Config()
        assert config.EDIT_BACKEND == "providers"
        assert config.REQUEST_TIMEOUT == 60.0
        assert config.DOCUMENT_STORE.max_saved_documents == 10
        assert config.DEFAULT_MODEL_ORDER[0] == "x-ai/grok-4.1-fast:free"

    def test_min_words_never_negative(self):
        assert ChunkingSettings(target_words=50, tolerance=80).min_words == 0


class TestEnvironmentOverrides:
    def test_chunking_overrides(self, mock_env_vars):
        settings = Config().CHUNKING
        assert settings.target_words == 300
        assert settings.tolerance == 50
        assert settings.large_document_threshold_words == 800

    def test_api_keys_loaded(self, mock_env_vars):
        config = Config()
        assert config.OPENAI_API_KEY == "sk-test-openai-key-12345"
        assert config.OPENROUTER_API_KEY == "sk-or-test-key-12345"

    def test_invalid_numbers_are_ignored(self, clean_env):
        env = {"CHUNK_TARGET_WORDS": "lots", "REQUEST_TIMEOUT": "-5", "MAX_SAVED_DOCUMENTS": "0"}
        with patch.dict(os.environ, env):
            config = Config()
        assert config.CHUNKING.target_words == 500
        assert config.REQUEST_TIMEOUT == 60.0
        assert config.DOCUMENT_STORE.max_saved_documents == 10

    def test_backend_and_model_order(self, clean_env):
        env = {
            "EDIT_BACKEND": " HTTP ",
            "EDIT_BACKEND_URL": "http://editor.test/edit",
            "DEFAULT_MODEL_ORDER": "openai/gpt-4o, ,anthropic/claude-3-haiku",
            "DOCUMENT_STORE_BACKEND": "Memory",
            "REQUEST_TIMEOUT": "12.5",
        }
        with patch.dict(os.environ, env):
            config = Config()
        assert config.EDIT_BACKEND == "http"
        assert config.EDIT_BACKEND_URL == "http://editor.test/edit"
        assert config.DEFAULT_MODEL_ORDER == ["openai/gpt-4o", "anthropic/claude-3-haiku"]
        assert config.DOCUMENT_STORE.backend == "memory"
        assert config.REQUEST_TIMEOUT == 12.5

    def test_legacy_openai_key_name_wins(self, clean_env):
        with patch.dict(os.environ, {"OPENAI_KEY": "sk-legacy", "OPENAI_API_KEY": "sk-new"}):
            assert Config().OPENAI_API_KEY == "sk-legacy"


class TestModelCatalog:
    def test_get_model_spec(self, clean_env):
        spec = Config().get_model_spec("anthropic/claude-3.5-sonnet:free")
        assert spec.provider == "anthropic"
        assert spec.rpm == 5

    def test_unknown_model_spec_is_none(self, clean_env):
        assert Config().get_model_spec("nope") is None

    def test_available_models_are_serializable(self, clean_env):
        models = Config().get_available_models()
        assert {"key", "name", "provider", "model_id", "max_tokens", "context_window", "rpm"} <= set(models[0])
        assert len(models) == len(Config().MODEL_CATALOG)
