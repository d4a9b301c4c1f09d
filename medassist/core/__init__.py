"""Core components for MedAssist."""

from medassist.core.orchestrator import (
    AllProvidersExhausted,
    FallbackOrchestrator,
    GenerationRequest,
    GenerationResult,
    InvalidRequest,
)
from medassist.core.providers import (
    ErrorKind,
    LLMResponse,
    ModelCapability,
    ProviderClient,
    ProviderError,
    ProviderType,
    RateLimitError,
)
from medassist.core.registry import ModelCandidate, ModelRegistry, RegistryError
from medassist.core.sessions import ChatSession, ChatSessionStore
from medassist.core.stats import ModelStats, ModelStatsTracker

__all__ = [
    "AllProvidersExhausted",
    "ChatSession",
    "ChatSessionStore",
    "ErrorKind",
    "FallbackOrchestrator",
    "GenerationRequest",
    "GenerationResult",
    "InvalidRequest",
    "LLMResponse",
    "ModelCandidate",
    "ModelCapability",
    "ModelRegistry",
    "ModelStats",
    "ModelStatsTracker",
    "ProviderClient",
    "ProviderError",
    "ProviderType",
    "RateLimitError",
    "RegistryError",
]
