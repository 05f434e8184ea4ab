"""
Configuration for the Longform Editor
=====================================

Central configuration for chunk sizing, editing backends, model catalog and
document persistence. Values are loaded from the environment (and an optional
.env file) on import; the global ``config`` instance is what entry points use.

The chunking/diff/dispatch core never reads this module on its own: callers
pass the relevant settings in explicitly.
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class ChunkingSettings(BaseModel):
    """Size knobs for the semantic chunker."""

    target_words: int = Field(
        default=500,
        ge=1,
        description="Ideal chunk size in words",
    )
    tolerance: int = Field(
        default=100,
        ge=0,
        description="Allowed deviation (in words) around target_words",
    )
    large_document_threshold_words: int = Field(
        default=1000,
        ge=1,
        description="Documents above this word count are edited chunk by chunk",
    )

    @property
    def min_words(self) -> int:
        return max(0, self.target_words - self.tolerance)

    @property
    def max_words(self) -> int:
        return self.target_words + self.tolerance


class DocumentStoreSettings(BaseModel):
    """Persistence settings for saved documents."""

    backend: str = Field(
        default="sqlite",
        description="Document store backend: 'sqlite' or 'memory'",
    )
    db_path: str = Field(
        default="data/documents.db",
        description="SQLite database path for saved documents",
    )
    max_saved_documents: int = Field(
        default=10,
        ge=1,
        description="Maximum documents returned when listing saved documents",
    )


class ModelSpec(BaseModel):
    """Static description of an editing model."""

    provider: str = Field(..., description="openai, anthropic, xai, openrouter or ollama")
    model_id: str = Field(..., description="Identifier sent to the provider API")
    name: str = Field(default="", description="Human readable name")
    max_tokens: int = Field(default=4096, gt=0, description="Maximum output tokens")
    context_window: int = Field(default=128000, gt=0, description="Context window in tokens")
    rpm: Optional[int] = Field(default=None, description="Requests per minute allowed by the provider tier")


def _default_model_catalog() -> Dict[str, ModelSpec]:
    return {
        "x-ai/grok-4.1-fast:free": ModelSpec(
            provider="xai",
            model_id="grok-beta",
            name="Grok Fast",
            max_tokens=8192,
            context_window=128000,
        ),
        "anthropic/claude-3.5-sonnet:free": ModelSpec(
            provider="anthropic",
            model_id="claude-3-5-sonnet-20240620",
            name="Claude Sonnet",
            max_tokens=4096,
            context_window=200000,
            rpm=5,
        ),
        "openai/gpt-4o-mini:free": ModelSpec(
            provider="openai",
            model_id="gpt-4o-mini",
            name="GPT-4o Mini",
            max_tokens=16384,
            context_window=128000,
        ),
        "mistralai/devstral-2512:free": ModelSpec(
            provider="openrouter",
            model_id="mistralai/devstral-2512:free",
            name="Devstral",
            rpm=10,
        ),
        "kwaipilot/kat-coder-pro:free": ModelSpec(
            provider="openrouter",
            model_id="kwaipilot/kat-coder-pro:free",
            name="Kat Coder",
            rpm=8,
        ),
        "google/gemini-flash-1.5-8b:free": ModelSpec(
            provider="openrouter",
            model_id="google/gemini-flash-1.5-8b:free",
            name="Gemini Flash",
            rpm=7,
        ),
    }


class Config(BaseModel):
    """Configuration settings for the Longform Editor."""

    model_config = {"populate_by_name": True}

    # API Keys (loaded from environment variables)
    OPENAI_API_KEY: str = Field(default="", description="OpenAI API key")
    ANTHROPIC_API_KEY: str = Field(default="", description="Anthropic Claude API key")
    XAI_API_KEY: str = Field(default="", description="xAI Grok API key")
    OPENROUTER_API_KEY: str = Field(default="", description="OpenRouter API key for unified model access")
    OLLAMA_HOST: str = Field(default="", description="Ollama server URL for local models")

    CHUNKING: ChunkingSettings = Field(default_factory=ChunkingSettings, description="Chunker size settings")
    DOCUMENT_STORE: DocumentStoreSettings = Field(default_factory=DocumentStoreSettings, description="Document persistence settings")

    # Backend edit call
    EDIT_BACKEND: str = Field(
        default="providers",
        description="'providers' calls model SDKs directly, 'http' posts to EDIT_BACKEND_URL",
    )
    EDIT_BACKEND_URL: str = Field(default="", description="Endpoint implementing the edit call contract")
    REQUEST_TIMEOUT: float = Field(default=60.0, gt=0, description="Per-call timeout in seconds")
    DEFAULT_TEMPERATURE: float = Field(default=0.3, ge=0.0, le=1.0, description="Temperature for single edits")

    MODEL_CATALOG: Dict[str, ModelSpec] = Field(default_factory=_default_model_catalog)
    DEFAULT_MODEL_ORDER: List[str] = Field(
        default_factory=lambda: [
            "x-ai/grok-4.1-fast:free",
            "anthropic/claude-3.5-sonnet:free",
            "openai/gpt-4o-mini:free",
        ],
        description="Default model preference order for edits",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    def __init__(self, **data):
        super().__init__(**data)
        self.load_from_environment()

    def load_from_environment(self):
        """Load configuration from environment variables."""
        self.OPENAI_API_KEY = os.getenv("OPENAI_KEY", "") or os.getenv("OPENAI_API_KEY", self.OPENAI_API_KEY)
        self.ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", self.ANTHROPIC_API_KEY)
        self.XAI_API_KEY = os.getenv("XAI_API_KEY", self.XAI_API_KEY)
        self.OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", self.OPENROUTER_API_KEY)
        self.OLLAMA_HOST = os.getenv("OLLAMA_HOST", self.OLLAMA_HOST)

        target_override = _env_int("CHUNK_TARGET_WORDS")
        if target_override and target_override > 0:
            self.CHUNKING.target_words = target_override

        tolerance_override = _env_int("CHUNK_TOLERANCE_WORDS")
        if tolerance_override is not None and tolerance_override >= 0:
            self.CHUNKING.tolerance = tolerance_override

        threshold_override = _env_int("LARGE_DOCUMENT_THRESHOLD_WORDS")
        if threshold_override and threshold_override > 0:
            self.CHUNKING.large_document_threshold_words = threshold_override

        store_backend = os.getenv("DOCUMENT_STORE_BACKEND")
        if store_backend:
            self.DOCUMENT_STORE.backend = store_backend.strip().lower()

        store_path = os.getenv("DOCUMENT_STORE_DB_PATH")
        if store_path:
            self.DOCUMENT_STORE.db_path = store_path

        max_docs_override = _env_int("MAX_SAVED_DOCUMENTS")
        if max_docs_override and max_docs_override > 0:
            self.DOCUMENT_STORE.max_saved_documents = max_docs_override

        self.EDIT_BACKEND = os.getenv("EDIT_BACKEND", self.EDIT_BACKEND).strip().lower()
        self.EDIT_BACKEND_URL = os.getenv("EDIT_BACKEND_URL", self.EDIT_BACKEND_URL)

        timeout_override = os.getenv("REQUEST_TIMEOUT")
        if timeout_override:
            try:
                parsed = float(timeout_override)
                if parsed > 0:
                    self.REQUEST_TIMEOUT = parsed
            except ValueError:
                pass

        model_order = os.getenv("DEFAULT_MODEL_ORDER")
        if model_order:
            models = [value.strip() for value in model_order.split(",") if value.strip()]
            if models:
                self.DEFAULT_MODEL_ORDER = models

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL)

    def get_model_spec(self, model: str) -> Optional[ModelSpec]:
        """Return the catalog entry for a model key, if any."""
        return self.MODEL_CATALOG.get(model)

    def get_available_models(self) -> List[Dict[str, object]]:
        """List catalog models in a serializable form."""
        return [
            {
                "key": key,
                "name": spec.name or key,
                "provider": spec.provider,
                "model_id": spec.model_id,
                "max_tokens": spec.max_tokens,
                "context_window": spec.context_window,
                "rpm": spec.rpm,
            }
            for key, spec in self.MODEL_CATALOG.items()
        ]


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


# Global configuration instance
config = Config()
