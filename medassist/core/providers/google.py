"""Google Gen AI SDK provider implementation.

This module provides integration with Google's Gemini models via the Gen AI SDK.
Supports text generation, image understanding and native multi-turn chat.

Examples:
    >>> from medassist.core.providers.google import GoogleProvider
    >>> provider = GoogleProvider(api_key="your-api-key")
    >>> response = await provider.generate_text(
    ...     prompt="What is ibuprofen used for?",
    ...     model="gemini-2.0-flash",
    ...     config={"temperature": 0.3},
    ... )
    >>> print(response.content)

Tests:
    - tests/unit/test_providers.py::TestGoogleProvider
"""

import logging
import time
from typing import Any

from medassist.config import ProviderType

# Import from base module directly to avoid circular import
from medassist.core.providers.base import (
    DialogueState,
    ErrorKind,
    LLMResponse,
    NativeDialogue,
    ProviderClient,
    ProviderError,
    classify_message,
    classify_status,
)

logger = logging.getLogger(__name__)

# Provider-neutral config keys -> GenerateContentConfig fields
_CONFIG_FIELDS = {
    "temperature": "temperature",
    "max_output_tokens": "max_output_tokens",
    "top_k": "top_k",
    "top_p": "top_p",
}


def _get_genai_client(api_key: str, timeout: float | None) -> Any:
    """Create a Google Gen AI client.

    Args:
        api_key: Google API key.
        timeout: Request timeout in seconds.

    Returns:
        Configured Gen AI client.

    Raises:
        ImportError: If google-genai is not installed.
    """
    try:
        from google import genai
        from google.genai import types
    except ImportError as e:
        raise ImportError(
            "google-genai is required for Google provider. "
            "Install with: pip install google-genai"
        ) from e

    http_options = None
    if timeout:
        # HttpOptions.timeout is in milliseconds
        http_options = types.HttpOptions(timeout=int(timeout * 1000))
    return genai.Client(api_key=api_key, http_options=http_options)


class GoogleProvider(ProviderClient):
    """Google Gen AI SDK provider for Gemini models.

    Gemini keeps real chat history, so dialogues served by this provider are
    NativeDialogue states that grow with every turn.

    Attributes:
        provider_type: ProviderType.GOOGLE
        api_key: Google AI API key
        timeout: Per-request timeout in seconds
    """

    provider_type = ProviderType.GOOGLE
    supports_dialogue = True

    def __init__(self, api_key: str, timeout: float | None = 30.0) -> None:
        """Initialize Google provider.

        Args:
            api_key: Google AI API key.
            timeout: Per-request timeout in seconds.
        """
        super().__init__(api_key)
        self.timeout = timeout
        self._client: Any = None  # Lazy initialization

    @property
    def client(self) -> Any:
        """Get Gen AI client (lazy initialization)."""
        if self._client is None:
            self._client = _get_genai_client(self.api_key, self.timeout)
        return self._client

    def _to_provider_error(self, error: Exception) -> ProviderError:
        """Convert Google API errors to provider errors.

        Uses the structured ``code``/``status`` of google.genai APIError when
        present and falls back to the message text otherwise.

        Args:
            error: The original exception.

        Returns:
            ProviderError with its kind set.
        """
        if isinstance(error, ProviderError):
            return error

        code = getattr(error, "code", None)
        status = getattr(error, "status", None)
        status_code = code if isinstance(code, int) else None

        if status == "RESOURCE_EXHAUSTED":
            kind = ErrorKind.RATE_LIMITED
        else:
            kind = classify_status(status_code) or classify_message(str(error))

        return ProviderError(
            message=str(error),
            provider=ProviderType.GOOGLE,
            status_code=status_code,
            kind=kind,
        )

    def _build_config(self, config: dict[str, Any] | None) -> Any:
        """Build a GenerateContentConfig from provider-neutral keys."""
        from google.genai import types

        params = {
            target: config[key]
            for key, target in _CONFIG_FIELDS.items()
            if config and config.get(key) is not None
        }
        return types.GenerateContentConfig(**params) if params else None

    def _build_response(self, response: Any, model: str, start_time: float) -> LLMResponse:
        latency_ms = int((time.perf_counter() - start_time) * 1000)

        text = response.text
        if not text:
            raise ProviderError(
                message="Empty response from Gemini",
                provider=ProviderType.GOOGLE,
                kind=ErrorKind.TRANSIENT,
            )

        # Extract usage - use `or 0` to handle None values from getattr
        usage: dict[str, int] = {}
        if getattr(response, "usage_metadata", None):
            usage = {
                "input_tokens": getattr(response.usage_metadata, "prompt_token_count", 0) or 0,
                "output_tokens": getattr(response.usage_metadata, "candidates_token_count", 0) or 0,
            }

        return LLMResponse(
            content=text,
            model=model,
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
        """Generate text with a Gemini model.

        Args:
            prompt: The input prompt.
            model: Model ID (e.g., "gemini-2.0-flash").
            config: Generation parameters.

        Returns:
            LLMResponse containing generated text.

        Raises:
            ProviderError: If the API call fails.
        """
        start_time = time.perf_counter()

        try:
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=prompt,
                config=self._build_config(config),
            )
            return self._build_response(response, model, start_time)
        except Exception as e:
            logger.error(f"Google API error: {e}")
            raise self._to_provider_error(e) from e

    async def generate_with_image(
        self,
        prompt: str,
        image: bytes,
        mime_type: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate text from a prompt and an inline image.

        Args:
            prompt: The analysis prompt.
            image: Raw image bytes.
            mime_type: Image MIME type.
            model: Model ID (e.g., "gemini-2.0-flash").
            config: Generation parameters.

        Returns:
            LLMResponse containing the analysis text.

        Raises:
            ProviderError: If the API call fails.
        """
        start_time = time.perf_counter()

        try:
            from google.genai import types

            image_part = types.Part.from_bytes(data=image, mime_type=mime_type)
            response = await self.client.aio.models.generate_content(
                model=model,
                contents=[prompt, image_part],
                config=self._build_config(config),
            )
            return self._build_response(response, model, start_time)
        except Exception as e:
            logger.error(f"Google vision error: {e}")
            raise self._to_provider_error(e) from e

    async def continue_dialogue(
        self,
        state: DialogueState,
        message: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> tuple[LLMResponse, DialogueState]:
        """Send a chat message with the dialogue's history replayed.

        Args:
            state: NativeDialogue bound to this model.
            message: The user's message.
            model: Model ID.
            config: Generation parameters.

        Returns:
            The reply and the dialogue extended by this exchange.

        Raises:
            ProviderError: If the API call fails.
        """
        if not isinstance(state, NativeDialogue):
            raise ProviderError(
                message=f"Gemini cannot continue a {state.kind} dialogue",
                provider=ProviderType.GOOGLE,
                kind=ErrorKind.FATAL,
            )

        start_time = time.perf_counter()

        try:
            from google.genai import types

            history = [
                types.Content(role=turn.role, parts=[types.Part.from_text(text=turn.text)])
                for turn in state.turns
            ]
            chat = self.client.aio.chats.create(
                model=model,
                config=self._build_config(config),
                history=history,
            )
            response = await chat.send_message(message)
            result = self._build_response(response, model, start_time)
        except Exception as e:
            logger.error(f"Google chat error: {e}")
            raise self._to_provider_error(e) from e

        return result, state.extended(message, result.content)

    async def health_check(self) -> bool:
        """Check if Google provider is accessible.

        Returns:
            bool: True if provider is healthy.
        """
        try:
            await self.client.aio.models.list(config={"page_size": 1})
            return True
        except Exception as e:
            logger.warning(f"Google health check failed: {e}")
            return False
