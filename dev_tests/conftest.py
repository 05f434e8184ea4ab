"""Shared pytest fixtures for Longform Editor tests."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def mock_env_vars():
    """Provide test environment variables."""
    env = {
        "OPENAI_API_KEY": "sk-test-openai-key-12345",
        "ANTHROPIC_API_KEY": "sk-ant-test-key-12345",
        "XAI_API_KEY": "xai-test-key-12345",
        "OPENROUTER_API_KEY": "sk-or-test-key-12345",
        "CHUNK_TARGET_WORDS": "300",
        "CHUNK_TOLERANCE_WORDS": "50",
        "LARGE_DOCUMENT_THRESHOLD_WORDS": "800",
    }
    with patch.dict(os.environ, env, clear=False):
        yield env


@pytest.fixture
def clean_env():
    """Provide clean environment without API keys or overrides."""
    keys_to_remove = [
        "OPENAI_KEY", "OPENAI_API_KEY", "ANTHROPIC_API_KEY", "XAI_API_KEY",
        "OPENROUTER_API_KEY", "OLLAMA_HOST", "CHUNK_TARGET_WORDS",
        "CHUNK_TOLERANCE_WORDS", "LARGE_DOCUMENT_THRESHOLD_WORDS",
        "EDIT_BACKEND", "EDIT_BACKEND_URL", "REQUEST_TIMEOUT",
        "DEFAULT_MODEL_ORDER", "DOCUMENT_STORE_BACKEND", "MAX_SAVED_DOCUMENTS",
    ]
    with patch.dict(os.environ, {}, clear=False):
        for key in keys_to_remove:
            os.environ.pop(key, None)
        yield


# ============================================================================
# Text Fixtures
# ============================================================================

def make_paragraph(words: int, seed: str = "word") -> str:
    """Paragraph of exactly ``words`` words ending with a period."""
    body = " ".join(f"{seed}{i}" for i in range(words - 1))
    return f"{body} end." if words > 1 else "end."


def make_document(paragraph_sizes, seed: str = "word") -> str:
    return "\n\n".join(make_paragraph(size, f"{seed}{n}x") for n, size in enumerate(paragraph_sizes))


# ============================================================================
# Backend Mocks
# ============================================================================

class ScriptedBackend:
    """
    Edit backend returning scripted results per model.

    ``script`` maps a model to a callable (text, temperature) -> str, a fixed
    string, or an Exception instance to raise.
    """

    def __init__(self, script):
        self.script = script
        self.calls = []

    async def edit(self, *, model, instruction, text, temperature):
        self.calls.append({"model": model, "instruction": instruction, "text": text, "temperature": temperature})
        behaviour = self.script[model]
        if isinstance(behaviour, Exception):
            raise behaviour
        if callable(behaviour):
            return behaviour(text, temperature)
        return behaviour

    def calls_for(self, model):
        return [call for call in self.calls if call["model"] == model]


@pytest.fixture
def scripted_backend():
    return ScriptedBackend


@pytest.fixture
def mock_backend():
    """Mocked backend whose edit() upper-cases the text."""
    backend = MagicMock()
    backend.edit = AsyncMock(side_effect=lambda *, model, instruction, text, temperature: text.upper())
    return backend


@pytest.fixture
def mock_openai_response():
    """Standard OpenAI completion response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = "Edited text from OpenAI"
    response.usage = MagicMock()
    response.usage.prompt_tokens = 100
    response.usage.completion_tokens = 50
    response.usage.total_tokens = 150
    return response


@pytest.fixture
def mock_anthropic_response():
    """Standard Anthropic message response."""
    response = MagicMock()
    response.content = [MagicMock()]
    response.content[0].text = "Edited text from Claude"
    response.content[0].type = "text"
    response.usage = MagicMock()
    response.usage.input_tokens = 100
    response.usage.output_tokens = 50
    response.usage.total_tokens = None
    return response
