"""
AI Service Module for the Longform Editor
=========================================

Implements the backend edit call: ``edit(model, instruction, text,
temperature) -> edited text``. Two interchangeable backends are provided:

- AIService: calls provider SDKs directly (OpenAI, Anthropic, xAI,
  OpenRouter, Ollama).
- HttpEditBackend: posts the call contract to an external edit endpoint.

Any provider or transport failure surfaces as ModelCallError. SDK-level
retries are disabled: the dispatcher owns fallback across models.
"""

import asyncio
import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import aiohttp
import anthropic
import openai

# Use optimized JSON
import json_utils as json

from config import config
from edit_prompts import build_system_prompt

logger = logging.getLogger(__name__)

UsageCallback = Callable[[Dict[str, Any]], None]

DEFAULT_MAX_TOKENS = 4096

# Model key prefixes that map straight to a first-party provider
PROVIDER_PREFIXES = {
    "openai": "openai",
    "anthropic": "anthropic",
    "x-ai": "xai",
    "xai": "xai",
    "ollama": "ollama",
}


class ModelCallError(RuntimeError):
    """Raised when one backend call fails or cannot be made."""

    def __init__(
        self,
        model: str,
        message: str,
        status: Optional[int] = None,
        provider: Optional[str] = None,
    ):
        super().__init__(message)
        self.model = model
        self.message = message
        self.status = status
        self.provider = provider

    def __str__(self) -> str:
        return self.message


class EditBackend(Protocol):
    """Anything that can perform one edit call."""

    async def edit(self, *, model: str, instruction: str, text: str, temperature: float) -> str:
        ...


def resolve_model(model: str) -> Tuple[str, str, int]:
    """
    Resolve a model key to (provider, provider model id, max output tokens).

    Catalog keys win. Otherwise ``provider/model`` keys for first-party
    providers are split, and any other ``vendor/model`` key is routed through
    OpenRouter unchanged.
    """
    spec = config.get_model_spec(model)
    if spec:
        return spec.provider, spec.model_id, spec.max_tokens

    if "/" in model:
        prefix, rest = model.split("/", 1)
        provider = PROVIDER_PREFIXES.get(prefix.lower())
        if provider and rest:
            return provider, rest, DEFAULT_MAX_TOKENS
        return "openrouter", model, DEFAULT_MAX_TOKENS

    raise ModelCallError(model, f"Unknown model '{model}': not in catalog and no provider prefix")


def _normalize_usage(usage_obj: Any) -> Optional[Dict[str, int]]:
    """Extract token metrics from provider-specific usage objects."""
    if usage_obj is None:
        return None

    def _pluck(obj: Any, *names: str) -> Optional[int]:
        for name in names:
            if isinstance(obj, dict) and name in obj:
                return obj[name]
            value = getattr(obj, name, None)
            if isinstance(value, (int, float)):
                return value
        return None

    input_tokens = _pluck(usage_obj, "prompt_tokens", "input_tokens") or 0
    output_tokens = _pluck(usage_obj, "completion_tokens", "output_tokens") or 0
    total_tokens = _pluck(usage_obj, "total_tokens", "tokens")
    if total_tokens is None:
        total_tokens = input_tokens + output_tokens

    return {
        "input_tokens": int(input_tokens),
        "output_tokens": int(output_tokens),
        "total_tokens": int(total_tokens),
    }


def _emit_usage(
    usage_callback: Optional[UsageCallback],
    model: str,
    provider: str,
    usage_obj: Any,
) -> None:
    """Safely emit a usage payload to the provided callback."""
    if not usage_callback:
        return

    payload: Dict[str, Any] = {"model": model, "provider": provider}
    payload.update(_normalize_usage(usage_obj) or {"input_tokens": 0, "output_tokens": 0, "total_tokens": 0})

    try:
        usage_callback(payload)
    except Exception:
        logger.exception("Usage callback failed for model %s", model)


_shared_ai_service: Optional["AIService"] = None
_ai_service_init_lock = threading.Lock()


def get_ai_service() -> "AIService":
    """Return the shared AIService instance, creating it on first use."""
    global _shared_ai_service
    if _shared_ai_service is None:
        with _ai_service_init_lock:
            if _shared_ai_service is None:
                _shared_ai_service = AIService()
    return _shared_ai_service


class AIService:
    """Edit backend calling provider SDKs directly"""

    def __init__(self, usage_callback: Optional[UsageCallback] = None, request_timeout: Optional[float] = None):
        """Initialize AI service with API clients"""
        self.usage_callback = usage_callback
        self.request_timeout = request_timeout or config.REQUEST_TIMEOUT
        self.openai_client = None
        self.anthropic_client = None
        self.xai_client = None
        self.openrouter_client = None
        self.ollama_client = None

        self._initialize_clients()

    def _initialize_clients(self):
        """Initialize API clients for each configured provider"""
        if config.OPENAI_API_KEY:
            self.openai_client = openai.AsyncOpenAI(
                api_key=config.OPENAI_API_KEY,
                timeout=self.request_timeout,
                max_retries=0,
            )
        else:
            logger.warning("OpenAI API key not found")

        if config.ANTHROPIC_API_KEY:
            self.anthropic_client = anthropic.AsyncAnthropic(
                api_key=config.ANTHROPIC_API_KEY,
                timeout=self.request_timeout,
                max_retries=0,
            )
        else:
            logger.warning("Anthropic API key not found")

        # xAI speaks the OpenAI protocol
        if config.XAI_API_KEY:
            self.xai_client = openai.AsyncOpenAI(
                api_key=config.XAI_API_KEY,
                base_url="https://api.x.ai/v1",
                timeout=self.request_timeout,
                max_retries=0,
            )
        else:
            logger.warning("xAI API key not found")

        if config.OPENROUTER_API_KEY:
            self.openrouter_client = openai.AsyncOpenAI(
                api_key=config.OPENROUTER_API_KEY,
                base_url="https://openrouter.ai/api/v1",
                timeout=self.request_timeout,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": "https://longform-editor.local",
                    "X-Title": "Longform Editor",
                },
            )
            logger.info("OpenRouter client initialized for unified model access")
        else:
            logger.warning("OpenRouter API key not found")

        if config.OLLAMA_HOST:
            ollama_base_url = config.OLLAMA_HOST.rstrip("/")
            if not ollama_base_url.startswith(("http://", "https://")):
                ollama_base_url = f"http://{ollama_base_url}"
            if not ollama_base_url.endswith("/v1"):
                ollama_base_url = f"{ollama_base_url}/v1"
            self.ollama_client = openai.AsyncOpenAI(
                api_key="ollama",  # Ollama ignores the key
                base_url=ollama_base_url,
                timeout=self.request_timeout,
                max_retries=0,
            )
            logger.info(f"Ollama client initialized at {ollama_base_url}")
        else:
            logger.info("Ollama not configured (OLLAMA_HOST not set)")

    def _chat_client(self, provider: str):
        return {
            "openai": self.openai_client,
            "xai": self.xai_client,
            "openrouter": self.openrouter_client,
            "ollama": self.ollama_client,
        }.get(provider)

    async def edit(self, *, model: str, instruction: str, text: str, temperature: float) -> str:
        """
        Run one edit call against the provider that serves ``model``.

        Returns:
            Raw model output (possibly empty; emptiness is judged by the caller)

        Raises:
            ModelCallError: on any provider, transport or configuration failure
        """
        provider, model_id, max_tokens = resolve_model(model)
        system_prompt = build_system_prompt(instruction)

        try:
            if provider == "anthropic":
                content, usage = await self._generate_claude(text, model_id, temperature, max_tokens, system_prompt)
            else:
                client = self._chat_client(provider)
                if client is None:
                    raise ModelCallError(model, f"{provider} client not initialized", provider=provider)
                content, usage = await self._generate_chat(client, text, model_id, temperature, max_tokens, system_prompt)
        except ModelCallError:
            raise
        except Exception as exc:
            status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
            raise ModelCallError(
                model,
                f"{provider} request failed for {model_id}: {exc}",
                status=status if isinstance(status, int) else None,
                provider=provider,
            ) from exc

        _emit_usage(self.usage_callback, model, provider, usage)
        return content or ""

    async def _generate_chat(
        self,
        client,
        text: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
        system_prompt: str,
    ) -> Tuple[str, Any]:
        """Generate an edit through an OpenAI-compatible chat completions API"""
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": text},
        ]
        response = await client.chat.completions.create(
            model=model_id,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        if not response.choices:
            return "", getattr(response, "usage", None)
        return response.choices[0].message.content or "", getattr(response, "usage", None)

    async def _generate_claude(
        self,
        text: str,
        model_id: str,
        temperature: float,
        max_tokens: int,
        system_prompt: str,
    ) -> Tuple[str, Any]:
        """Generate an edit using the Claude messages API"""
        if not self.anthropic_client:
            raise ModelCallError(model_id, "Claude client not initialized", provider="anthropic")

        response = await self.anthropic_client.messages.create(
            model=model_id,
            max_tokens=max_tokens,
            temperature=temperature,
            system=system_prompt,
            messages=[{"role": "user", "content": text}],
        )
        return self._extract_text_from_claude_response(response), getattr(response, "usage", None)

    @staticmethod
    def _extract_text_from_claude_response(response) -> str:
        """Join the text blocks of a Claude response, skipping thinking blocks."""
        parts = []
        for block in getattr(response, "content", None) or []:
            if getattr(block, "type", "text") == "text" and getattr(block, "text", None):
                parts.append(block.text)
        return "".join(parts)

    async def close(self):
        """Close provider clients"""
        for client in (self.openai_client, self.anthropic_client, self.xai_client,
                       self.openrouter_client, self.ollama_client):
            close = getattr(client, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning(f"Error closing AI client: {e}")


class HttpEditBackend:
    """
    Edit backend speaking the HTTP edit contract.

    Request:  POST {"model", "instruction", "text", "temperature"}
    Response: {"editedText": "..."} or {"error": "..."}
    """

    def __init__(
        self,
        url: str,
        timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
        usage_callback: Optional[UsageCallback] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        if not url:
            raise ValueError("HttpEditBackend requires an endpoint URL")
        self.url = url
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.headers = headers or {}
        self.usage_callback = usage_callback
        self._session = session
        self._owns_session = session is None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers=self.headers,
                json_serialize=json.dumps,
            )
            self._owns_session = True
        return self._session

    async def edit(self, *, model: str, instruction: str, text: str, temperature: float) -> str:
        payload = {
            "model": model,
            "instruction": instruction,
            "text": text,
            "temperature": temperature,
        }
        session = self._get_session()
        try:
            async with session.post(self.url, json=payload) as response:
                status = response.status
                body = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise ModelCallError(model, f"Edit request failed: {exc}", provider="http") from exc

        try:
            data = json.loads(body) if body else None
        except json.JSONDecodeError:
            data = None

        if status >= 400:
            message = data.get("error") if isinstance(data, dict) else None
            raise ModelCallError(
                model,
                message or f"Edit request failed with HTTP {status}",
                status=status,
                provider="http",
            )

        if not isinstance(data, dict):
            raise ModelCallError(model, "Edit response was not a JSON object", status=status, provider="http")
        if data.get("error"):
            raise ModelCallError(model, str(data["error"]), status=status, provider="http")

        edited = data.get("editedText")
        if not isinstance(edited, str):
            raise ModelCallError(model, "Edit response missing editedText", status=status, provider="http")

        usage = data.get("usage")
        if usage is None and isinstance(data.get("tokens"), int):
            usage = {"total_tokens": data["tokens"]}
        _emit_usage(self.usage_callback, model, "http", usage)
        return edited

    async def close(self):
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()


def get_edit_backend(usage_callback: Optional[UsageCallback] = None) -> EditBackend:
    """Build the backend selected by EDIT_BACKEND."""
    if config.EDIT_BACKEND == "http":
        if not config.EDIT_BACKEND_URL:
            raise ValueError("EDIT_BACKEND=http requires EDIT_BACKEND_URL")
        return HttpEditBackend(config.EDIT_BACKEND_URL, timeout=config.REQUEST_TIMEOUT, usage_callback=usage_callback)
    if config.EDIT_BACKEND != "providers":
        raise ValueError(f"Unknown EDIT_BACKEND '{config.EDIT_BACKEND}'")
    service = get_ai_service()
    if usage_callback is not None:
        service.usage_callback = usage_callback
    return service


async def call_backend(
    backend: EditBackend,
    *,
    model: str,
    instruction: str,
    text: str,
    temperature: float,
) -> str:
    """Invoke a backend, wrapping unexpected exceptions into ModelCallError."""
    try:
        return await backend.edit(model=model, instruction=instruction, text=text, temperature=temperature)
    except ModelCallError:
        raise
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        raise ModelCallError(model, str(exc) or exc.__class__.__name__) from exc
