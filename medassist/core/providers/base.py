"""Base LLM provider abstraction layer.

This module defines the abstract base class and types for provider clients.
All provider implementations (Google, OpenRouter) inherit from ProviderClient.

A provider call either returns an LLMResponse or raises a ProviderError whose
``kind`` tells the orchestrator how to book the failure:

- RATE_LIMITED: quota / 429 semantics, the model is put on cooldown
- TRANSIENT: timeouts, 5xx, malformed responses
- FATAL: authentication or request errors that retrying the same model won't fix

Examples:
    >>> from medassist.core.providers import ProviderError, ErrorKind, ProviderType
    >>> error = ProviderError("boom", ProviderType.GOOGLE, status_code=503)
    >>> error.kind
    <ErrorKind.TRANSIENT: 'transient'>

Tests:
    - tests/unit/test_providers.py::TestProviderErrors
    - tests/unit/test_providers.py::TestErrorClassification
    - tests/unit/test_providers.py::TestDialogueState
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

# Re-export ProviderType from config for convenience
from medassist.config import ProviderType

__all__ = [
    "PROVIDER_CAPABILITIES",
    "AuthenticationError",
    "DialogueState",
    "DialogueTurn",
    "ErrorKind",
    "LLMResponse",
    "ModelCapability",
    "NativeDialogue",
    "PrimedDialogue",
    "ProviderClient",
    "ProviderError",
    "ProviderType",
    "QuotaExhaustedError",
    "RateLimitError",
    "classify_message",
    "classify_status",
]


class ModelCapability(str, Enum):
    """Model capabilities used to match candidates to requests.

    - TEXT: Plain text generation
    - IMAGE: Accepts an image alongside the prompt
    - CHAT: Can serve multi-turn dialogue
    """

    TEXT = "text"
    IMAGE = "image"
    CHAT = "chat"


# What each backend can accept at all. A candidate may claim a subset only.
PROVIDER_CAPABILITIES: dict[ProviderType, frozenset[ModelCapability]] = {
    ProviderType.GOOGLE: frozenset(
        {ModelCapability.TEXT, ModelCapability.IMAGE, ModelCapability.CHAT}
    ),
    ProviderType.OPENROUTER: frozenset(
        {ModelCapability.TEXT, ModelCapability.IMAGE, ModelCapability.CHAT}
    ),
}


class ErrorKind(str, Enum):
    """Classification of a failed provider call."""

    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"
    FATAL = "fatal"


_RATE_LIMIT_MARKERS = (
    "429",
    "rate limit",
    "ratelimit",
    "too many requests",
    "quota",
    "resource_exhausted",
    "resource exhausted",
)
_FATAL_MARKERS = ("401", "403", "invalid api key", "permission denied", "unauthenticated")


def classify_status(status_code: int | None) -> ErrorKind | None:
    """Classify an HTTP-style status code.

    Args:
        status_code: Status reported by the provider, if any.

    Returns:
        The ErrorKind, or None when the code says nothing useful.
    """
    if status_code is None:
        return None
    if status_code == 429:
        return ErrorKind.RATE_LIMITED
    if status_code >= 500 or status_code in (408, 409):
        return ErrorKind.TRANSIENT
    if 400 <= status_code < 500:
        return ErrorKind.FATAL
    return None


def classify_message(message: str) -> ErrorKind:
    """Classify an error from its text.

    Only used when the provider gives no structured code.

    Args:
        message: Error message text.

    Returns:
        ErrorKind guessed from known substrings (TRANSIENT by default).
    """
    text = message.lower()
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return ErrorKind.RATE_LIMITED
    if any(marker in text for marker in _FATAL_MARKERS):
        return ErrorKind.FATAL
    return ErrorKind.TRANSIENT


class LLMResponse(BaseModel):
    """Standardized LLM response wrapper.

    Attributes:
        content: Generated text
        model: Model ID used for generation
        provider: Provider used for generation
        usage: Token usage statistics
        latency_ms: Response latency in milliseconds
    """

    content: str = Field(description="Generated text")
    model: str = Field(description="Model ID used")
    provider: ProviderType = Field(description="Provider used")
    usage: dict[str, int] = Field(
        default_factory=dict,
        description="Token usage statistics",
    )
    latency_ms: int = Field(
        default=0,
        ge=0,
        description="Response latency in milliseconds",
    )


@dataclass(frozen=True)
class DialogueTurn:
    """One turn of a conversation."""

    role: Literal["user", "model"]
    text: str


@dataclass(frozen=True)
class NativeDialogue:
    """Dialogue for providers that keep real conversation history.

    Every served message appends the user turn and the model reply to
    ``history``; the priming turns are replayed ahead of it.
    """

    kind: ClassVar[str] = "native"

    model_name: str
    priming: tuple[DialogueTurn, ...] = ()
    history: tuple[DialogueTurn, ...] = ()

    @property
    def turns(self) -> tuple[DialogueTurn, ...]:
        return self.priming + self.history

    def extended(self, message: str, reply: str) -> "NativeDialogue":
        return NativeDialogue(
            model_name=self.model_name,
            priming=self.priming,
            history=self.history
            + (DialogueTurn("user", message), DialogueTurn("model", reply)),
        )


@dataclass(frozen=True)
class PrimedDialogue:
    """Dialogue for providers without stateful chat.

    The priming turns are re-sent with every message and nothing else is
    remembered between turns.
    """

    kind: ClassVar[str] = "primed"

    model_name: str
    priming: tuple[DialogueTurn, ...] = field(default=())

    @property
    def turns(self) -> tuple[DialogueTurn, ...]:
        return self.priming


DialogueState = NativeDialogue | PrimedDialogue


class ProviderClient(ABC):
    """Abstract base class for provider clients.

    Attributes:
        provider_type: The provider type identifier
        supports_dialogue: Whether the backend keeps conversation history
        api_key: API key for authentication
    """

    provider_type: ClassVar[ProviderType]
    supports_dialogue: ClassVar[bool] = False

    def __init__(self, api_key: str) -> None:
        """Initialize provider with API key.

        Args:
            api_key: API key for authentication.
        """
        self.api_key = api_key

    @property
    def capabilities(self) -> frozenset[ModelCapability]:
        return PROVIDER_CAPABILITIES.get(self.provider_type, frozenset())

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate text from a prompt.

        Args:
            prompt: The input prompt.
            model: Model ID to use.
            config: Generation parameters (temperature, max_output_tokens, top_k, top_p).

        Returns:
            LLMResponse containing the generated text.

        Raises:
            ProviderError: If the API call fails.
        """

    @abstractmethod
    async def generate_with_image(
        self,
        prompt: str,
        image: bytes,
        mime_type: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> LLMResponse:
        """Generate text from a prompt and an image.

        Args:
            prompt: The input prompt.
            image: Raw image bytes.
            mime_type: Image MIME type (e.g. "image/jpeg").
            model: Model ID to use.
            config: Generation parameters.

        Returns:
            LLMResponse containing the generated text.

        Raises:
            ProviderError: If the API call fails.
        """

    def start_dialogue(
        self,
        model_name: str,
        priming: tuple[DialogueTurn, ...] = (),
    ) -> DialogueState:
        """Create a fresh dialogue bound to a model.

        Args:
            model_name: Registry name of the model serving the dialogue.
            priming: System/greeting turns that open the conversation.

        Returns:
            NativeDialogue if the backend keeps history, PrimedDialogue otherwise.
        """
        if self.supports_dialogue:
            return NativeDialogue(model_name=model_name, priming=tuple(priming))
        return PrimedDialogue(model_name=model_name, priming=tuple(priming))

    @abstractmethod
    async def continue_dialogue(
        self,
        state: DialogueState,
        message: str,
        model: str,
        config: dict[str, Any] | None = None,
    ) -> tuple[LLMResponse, DialogueState]:
        """Send the next user message of a dialogue.

        Args:
            state: Dialogue returned by start_dialogue or a previous turn.
            message: The user's message.
            model: Model ID to use.
            config: Generation parameters.

        Returns:
            The response and the dialogue state to keep for the next turn.

        Raises:
            ProviderError: If the API call fails.
        """

    async def close(self) -> None:
        """Release client resources."""

    async def health_check(self) -> bool:
        """Check if the provider is accessible.

        Returns:
            bool: True if the provider is healthy.
        """
        return True


class ProviderError(Exception):
    """Base exception for provider errors.

    Attributes:
        provider: The provider that raised the error
        message: Error message
        status_code: HTTP status code (if applicable)
        kind: Failure classification used for fallback bookkeeping
    """

    def __init__(
        self,
        message: str,
        provider: ProviderType,
        status_code: int | None = None,
        kind: ErrorKind | None = None,
    ) -> None:
        """Initialize provider error.

        When ``kind`` is not given it is derived from ``status_code``, then
        from the message text.

        Args:
            message: Error message.
            provider: Provider that raised the error.
            status_code: HTTP status code (optional).
            kind: Explicit classification (optional).
        """
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
        self.kind = kind or classify_status(status_code) or classify_message(message)

    @property
    def message(self) -> str:
        return self.args[0]

    @property
    def is_rate_limit(self) -> bool:
        return self.kind == ErrorKind.RATE_LIMITED

    @property
    def retryable(self) -> bool:
        return self.kind != ErrorKind.FATAL

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.provider.value}]", self.args[0]]
        if self.status_code:
            parts.insert(1, f"({self.status_code})")
        return " ".join(parts)


class RateLimitError(ProviderError):
    """Rate limit exceeded error (temporary, retrying later may help)."""

    def __init__(self, provider: ProviderType, retry_after: int | None = None) -> None:
        """Initialize rate limit error.

        Args:
            provider: Provider that raised the error.
            retry_after: Seconds to wait before retrying (optional).
        """
        message = "Rate limit exceeded"
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(
            message, provider, status_code=429, kind=ErrorKind.RATE_LIMITED
        )
        self.retry_after = retry_after


class QuotaExhaustedError(ProviderError):
    """Daily quota exhausted error.

    Booked like a rate limit: the model cools down and the chain moves on.
    """

    def __init__(self, provider: ProviderType, message: str | None = None) -> None:
        """Initialize quota exhausted error.

        Args:
            provider: Provider that raised the error.
            message: Optional custom message with details.
        """
        super().__init__(
            message or "Quota exhausted",
            provider,
            status_code=429,
            kind=ErrorKind.RATE_LIMITED,
        )


class AuthenticationError(ProviderError):
    """Authentication failed error."""

    def __init__(self, provider: ProviderType) -> None:
        """Initialize authentication error.

        Args:
            provider: Provider that raised the error.
        """
        super().__init__(
            "Authentication failed - check API key",
            provider,
            status_code=401,
            kind=ErrorKind.FATAL,
        )
