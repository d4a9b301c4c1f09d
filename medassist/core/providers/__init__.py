"""LLM Provider abstraction and implementations.

Re-exports base classes and provider implementations for convenient imports.
"""

# Base classes (import from base module)
from medassist.core.providers.base import (
    PROVIDER_CAPABILITIES,
    AuthenticationError,
    DialogueState,
    DialogueTurn,
    ErrorKind,
    LLMResponse,
    ModelCapability,
    NativeDialogue,
    PrimedDialogue,
    ProviderClient,
    ProviderError,
    ProviderType,
    QuotaExhaustedError,
    RateLimitError,
    classify_message,
    classify_status,
)

# Provider implementations
from medassist.core.providers.google import GoogleProvider
from medassist.core.providers.openrouter import OpenRouterProvider

__all__ = [
    # Base classes
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
    # Implementations
    "GoogleProvider",
    "OpenRouterProvider",
]
