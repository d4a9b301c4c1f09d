"""OpenRouter API provider implementation.

This module provides integration with OpenRouter's multi-model API through
its OpenAI-compatible chat/completions endpoint.

OpenRouter API docs: https://openrouter.ai/docs

OpenRouter is stateless, so dialogues served here are PrimedDialogue
states: the fixed priming turns are re-sent with every message and no
history is kept between turns.

Examples:
    >>> from medassist.core.providers.openrouter import OpenRouterProvider
    >>> provider = OpenRouterProvider(api_key="sk-or-v1-...")
    >>> response = await provider.generate_text(
    ...     prompt="What is paracetamol?",
    ...     model="google/gemini-2.0-flash-001",
    ... )

Tests:
    - tests/unit/test_providers.py::TestOpenRouterProvider
"""

import base64
import logging
import time
from typing import Any

import httpx

from medassist.config import ProviderType
from medassist.core.providers.base import (
    AuthenticationError,
    DialogueState,
    DialogueTurn,
    ErrorKind,
    LLMResponse,
    ProviderClient,
    ProviderError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

# OpenRouter API configuration
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

# Provider-neutral config keys -> chat/completions payload fields
_PAYLOAD_FIELDS = {
    "temperature": "temperature",
    "max_output_tokens": "max_tokens",
    "top_k": "top_k",
    "top_p": "top_p",
}

# Dialogue roles -> OpenAI-style message roles
_ROLE_MAP = {"user": "user", "model": "assistant"}


def _error_message(error: Any, default: str) -> str:
    """Message from an OpenRouter error field (object or plain string)."""
    if isinstance(error, dict):
        return str(error.get("message") or default)
    if isinstance(error, str) and error:
        return error
    return default


class OpenRouterProvider(ProviderClient):
    """OpenRouter API provider for multi-model access.

    Attributes:
        provider_type: ProviderType.OPENROUTER
        api_key: OpenRouter API key
        base_url: API base URL
        timeout: Request timeout in seconds
    """

    provider_type = ProviderType.OPENROUTER
    supports_dialogue = False

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENROUTER_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize OpenRouter provider.

        Args:
            api_key: OpenRouter API key.
            base_url: API base URL (default: https://openrouter.ai/api/v1).
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        super().__init__(api_key)
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get httpx async client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "X-Title": "MedAssist",
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _handle_error(self, response: httpx.Response) -> None:
        """Convert HTTP errors to provider errors.

        Args:
            response: The HTTP response.

        Raises:
            AuthenticationError: For 401 errors.
            RateLimitError: For 429 errors.
            ProviderError: For other errors.
        """
        if response.status_code == 401:
            raise AuthenticationError(ProviderType.OPENROUTER)
        elif response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                ProviderType.OPENROUTER,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        else:
            try:
                message = _error_message(response.json().get("error"), response.text)
            except (ValueError, AttributeError):
                message = response.text

            raise ProviderError(
                message=message or f"HTTP {response.status_code}",
                provider=ProviderType.OPENROUTER,
                status_code=response.status_code,
            )

    def _build_payload(
        self,
        model: str,
        messages: list[dict[str, Any]],
        config: dict[str, Any] | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "messages": messages}
        for key, target in _PAYLOAD_FIELDS.items():
            if config and config.get(key) is not None:
                payload[target] = config[key]
        return payload

    async def _complete(self, payload: dict[str, Any]) -> LLMResponse:
        """POST a chat completion and wrap the reply."""
        start_time = time.perf_counter()

        try:
            response = await self.client.post("/chat/completions", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"OpenRouter HTTP error: {e}")
            raise ProviderError(
                message=str(e) or type(e).__name__,
                provider=ProviderType.OPENROUTER,
                kind=ErrorKind.TRANSIENT,
            ) from e

        if response.status_code != 200:
            self._handle_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(
                message=f"Non-JSON response: {response.text[:200]}",
                provider=ProviderType.OPENROUTER,
                kind=ErrorKind.TRANSIENT,
            ) from e
        latency_ms = int((time.perf_counter() - start_time) * 1000)

        # OpenRouter reports upstream failures inside a 200 body
        if isinstance(data, dict) and "error" in data:
            error = data["error"]
            code = error.get("code") if isinstance(error, dict) else None
            raise ProviderError(
                message=_error_message(error, "Upstream provider error"),
                provider=ProviderType.OPENROUTER,
                status_code=code if isinstance(code, int) else None,
            )

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(
                message=f"Malformed completion: {str(data)[:200]}",
                provider=ProviderType.OPENROUTER,
                kind=ErrorKind.TRANSIENT,
            ) from e

        if not content:
            raise ProviderError(
                message="Empty response from OpenRouter",
                provider=ProviderType.OPENROUTER,
                kind=ErrorKind.TRANSIENT,
            )

        usage_data = data.get("usage") or {}
        usage = {
            "input_tokens": usage_data.get("prompt_tokens", 0),
            "output_tokens": usage_data.get("completion_tokens", 0),
        }

        return LLMResponse(
            content=content,
            model=payload["model"],
            provider=self.provider_type,
            usage=usage,
            latency_ms=latency_ms,
        )

    async def generate_text(
        self,
        prompt: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate text via chat/completions.

        Args:
            prompt: The input prompt.
            model: Model ID (e.g., "google/gemini-2.0-flash-001").
            config: Generation parameters.

        Returns:
            LLMResponse containing generated text.

        Raises:
            ProviderError: If the API call fails.
        """
        messages = [{"role": "user", "content": prompt}]
        return await self._complete(self._build_payload(model, messages, config))

    async def generate_with_image(
        self,
        prompt: str,
        image: bytes,
        mime_type: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate text from a prompt and an image (data URL).

        Args:
            prompt: The analysis prompt.
            image: Raw image bytes.
            mime_type: Image MIME type.
            model: Vision-capable model ID.
            config: Generation parameters.

        Returns:
            LLMResponse containing the analysis text.

        Raises:
            ProviderError: If the API call fails.
        """
        encoded = base64.b64encode(image).decode("ascii")
        messages = [
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": prompt},
                    {
                        "type": "image_url",
                        "image_url": {"url": f"data:{mime_type};base64,{encoded}"},
                    },
                ],
            }
        ]
        return await self._complete(self._build_payload(model, messages, config))

    async def continue_dialogue(
        self,
        state: DialogueState,
        message: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> tuple[LLMResponse, DialogueState]:
        """Send a message preceded by the fixed priming turns.

        The returned state is the one passed in: nothing from this exchange
        is remembered.

        Args:
            state: Dialogue bound to this model.
            message: The user's message.
            model: Model ID.
            config: Generation parameters.

        Returns:
            The reply and the unchanged dialogue state.

        Raises:
            ProviderError: If the API call fails.
        """
        turns = state.turns + (DialogueTurn("user", message),)
        messages = [{"role": _ROLE_MAP[turn.role], "content": turn.text} for turn in turns]
        response = await self._complete(self._build_payload(model, messages, config))
        return response, state

    async def health_check(self) -> bool:
        """Check if OpenRouter provider is accessible.

        Returns:
            bool: True if provider is healthy.
        """
        try:
            # Just check models endpoint - doesn't require completion tokens
            response = await self.client.get("/models")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning(f"OpenRouter health check failed: {e}")
            return False
