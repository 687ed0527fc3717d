"""Text-generation gateway: two HTTP providers behind a sequential fallback.

The pipeline depends only on the `TextGateway` protocol:

    async def call(self, request: GatewayRequest) -> GatewayResult: ...

Providers:

    ClaudeProvider   Anthropic Messages API, or a proxy speaking the same body.
    OpenAIProvider   OpenAI chat completions, or a proxy speaking the same body.

FallbackGateway calls the primary provider and, only after it has fully
failed, the secondary one. If both fail it raises GatewayError naming both
failures. Cancellation (CancelToken) is never retried on the secondary.

Tests use a stub gateway (see conftest.py) instead of real providers.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Literal, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
OPENAI_URL = "https://api.openai.com/v1/chat/completions"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class LLMError(RuntimeError):
    """Raised when a provider cannot be reached or returns an error."""


class GatewayError(LLMError):
    """Raised when both providers failed."""

    def __init__(self, message: str, primary_error: Exception, secondary_error: Exception) -> None:
        super().__init__(message)
        self.primary_error = primary_error
        self.secondary_error = secondary_error


class GenerationCancelled(Exception):
    """Raised when a request was cancelled through its CancelToken."""


# ---------------------------------------------------------------------------
# CancelToken: abort signal for in-flight generation
# ---------------------------------------------------------------------------

class CancelToken:
    """Cancellation signal shared by everything serving one request.

    `run()` races a coroutine against the signal: once `cancel()` is called
    the underlying task is cancelled and GenerationCancelled is raised.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("Request was cancelled")

    async def run(self, coro):
        self.raise_if_cancelled()
        task = asyncio.ensure_future(coro)
        waiter = asyncio.ensure_future(self._event.wait())
        done: set = set()
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done and not self.cancelled:
            return task.result()
        raise GenerationCancelled("Request was cancelled")


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------

class AIMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ProviderCredentials(BaseModel):
    """Keys and proxy URLs. A proxy URL replaces the key for its provider."""

    claude_api_key: str = ""
    claude_proxy_url: str = ""
    openai_api_key: str = ""
    openai_proxy_url: str = ""
    prefer_openai: bool = False


class GatewayRequest(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    system: str = ""
    messages: list[AIMessage]
    temperature: float = 0.8
    max_tokens: int = 500
    credentials: ProviderCredentials = Field(default_factory=ProviderCredentials)
    cancel_token: CancelToken | None = None


class GatewayResult(BaseModel):
    text: str
    provider: str


class TextGateway(Protocol):
    async def call(self, request: GatewayRequest) -> GatewayResult: ...


class Provider(Protocol):
    name: str

    async def __call__(self, request: GatewayRequest) -> str: ...


# ---------------------------------------------------------------------------
# HTTP providers
# ---------------------------------------------------------------------------

class _HttpProvider(ABC):
    """Shared transport for the JSON-over-HTTP providers."""

    name = "http"

    def __init__(self, model: str, timeout: float = 60.0) -> None:
        self._model = model
        self._timeout = timeout

    @abstractmethod
    def _build_request(self, request: GatewayRequest) -> tuple[str, dict[str, str], dict]:
        """URL, headers and JSON body for one call."""

    @abstractmethod
    def _parse_response(self, data: dict) -> str:
        """Extract the reply text; raise LLMError when there is none."""

    async def __call__(self, request: GatewayRequest) -> str:
        url, headers, body = self._build_request(request)
        logger.debug("%s call url=%s messages=%d", self.name, url, len(request.messages))

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=body, headers=headers)
                resp.raise_for_status()
        except httpx.ConnectError as e:
            raise LLMError(f"Cannot connect to {self.name} at {url}") from e
        except httpx.HTTPStatusError as e:
            raise LLMError(f"{self.name} returned HTTP {e.response.status_code}") from e
        except httpx.TimeoutException as e:
            raise LLMError(f"{self.name} timed out after {self._timeout}s") from e

        text = self._parse_response(resp.json())
        logger.debug("%s response len=%d", self.name, len(text))
        return text


class ClaudeProvider(_HttpProvider):
    """Anthropic Messages API.

    With `claude_proxy_url` set the body is posted to the proxy without an
    API key; otherwise `claude_api_key` is required.
    """

    name = "claude"

    def __init__(self, model: str = "claude-haiku-4-5", timeout: float = 60.0) -> None:
        super().__init__(model, timeout)

    def _build_request(self, request: GatewayRequest) -> tuple[str, dict[str, str], dict]:
        creds = request.credentials
        body: dict = {
            "model": self._model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [m.model_dump() for m in request.messages if m.role != "system"],
        }
        if request.system:
            body["system"] = request.system

        headers = {"Content-Type": "application/json"}
        proxy_url = creds.claude_proxy_url.strip()
        if proxy_url:
            return proxy_url, headers, body

        key = creds.claude_api_key.strip()
        if not key:
            raise LLMError("Claude API key not available")
        headers["x-api-key"] = key
        headers["anthropic-version"] = ANTHROPIC_VERSION
        return ANTHROPIC_URL, headers, body

    def _parse_response(self, data: dict) -> str:
        content = data.get("content")
        if not content or not content[0].get("text"):
            raise LLMError("Claude returned empty response")
        return content[0]["text"]


class OpenAIProvider(_HttpProvider):
    """OpenAI chat completions. The system prompt becomes the first message."""

    name = "openai"

    def __init__(self, model: str = "gpt-4o-mini", timeout: float = 60.0) -> None:
        super().__init__(model, timeout)

    def _build_request(self, request: GatewayRequest) -> tuple[str, dict[str, str], dict]:
        creds = request.credentials
        messages = []
        if request.system:
            messages.append({"role": "system", "content": request.system})
        messages.extend(m.model_dump() for m in request.messages)
        body = {
            "model": self._model,
            "messages": messages,
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }

        headers = {"Content-Type": "application/json"}
        proxy_url = creds.openai_proxy_url.strip()
        if proxy_url:
            return proxy_url, headers, body

        key = creds.openai_api_key.strip()
        if not key:
            raise LLMError("OpenAI API key not available and no proxy configured")
        headers["Authorization"] = f"Bearer {key}"
        return OPENAI_URL, headers, body

    def _parse_response(self, data: dict) -> str:
        choices = data.get("choices")
        if not choices:
            raise LLMError("OpenAI returned empty response")
        text = (choices[0].get("message") or {}).get("content")
        if not text:
            raise LLMError("OpenAI returned empty response")
        return text


# ---------------------------------------------------------------------------
# FallbackGateway
# ---------------------------------------------------------------------------

class FallbackGateway:
    """Primary provider first, secondary only after the primary failed.

    `credentials.prefer_openai` puts an "openai" provider first.
    """

    def __init__(self, primary: Provider, secondary: Provider) -> None:
        self._primary = primary
        self._secondary = secondary

    def _ordered(self, request: GatewayRequest) -> tuple[Provider, Provider]:
        if request.credentials.prefer_openai and self._secondary.name == "openai":
            return self._secondary, self._primary
        return self._primary, self._secondary

    async def _attempt(self, provider: Provider, request: GatewayRequest) -> str:
        token = request.cancel_token
        if token is None:
            return await provider(request)
        return await token.run(provider(request))

    async def call(self, request: GatewayRequest) -> GatewayResult:
        first, second = self._ordered(request)

        try:
            text = await self._attempt(first, request)
            logger.info("%s succeeded (primary)", first.name)
            return GatewayResult(text=text, provider=first.name)
        except GenerationCancelled:
            raise
        except Exception as first_error:
            logger.warning("%s failed, falling back to %s: %s", first.name, second.name, first_error)

            try:
                text = await self._attempt(second, request)
            except GenerationCancelled:
                raise
            except Exception as second_error:
                logger.error("%s also failed: %s", second.name, second_error)
                raise GatewayError(
                    f"Both AI providers failed. {first.name}: {first_error}. "
                    f"{second.name}: {second_error}",
                    first_error,
                    second_error,
                ) from second_error

            logger.info("%s succeeded (fallback)", second.name)
            return GatewayResult(text=text, provider=second.name)


def build_gateway(generation: dict) -> FallbackGateway:
    """Construct the default Claude → OpenAI gateway from the generation config."""
    timeout = float(generation.get("timeout", 60.0))
    return FallbackGateway(
        ClaudeProvider(model=generation.get("claude_model", "claude-haiku-4-5"), timeout=timeout),
        OpenAIProvider(model=generation.get("openai_model", "gpt-4o-mini"), timeout=timeout),
    )
