"""Fallback orchestrator over the model registry.

This module walks the registry in priority order and returns the first
successful generation. It is the only place that decides which model serves
a request.

Features:
    - Sequential fallback in registry order (no racing of candidates)
    - Cooldown skip for models that recently hit a rate limit
    - Capability matching (image payloads, chat continuation)
    - Per-model attempt/failure/rate-limit bookkeeping
    - Chat continuation bound to the serving model
    - Optional deadline across the whole chain

Per candidate:
    1. skip if cooling down (no attempt recorded)
    2. skip on capability mismatch (no attempt, no failure)
    3. record attempt, merge config overrides over candidate defaults
    4. call the provider (text, text+image, or dialogue continuation)
    5. success: return at once; chat path stores the dialogue for the key
    6. failure: rate limits start a cooldown, anything else is a plain
       failure; either way move on to the next candidate

Examples:
    >>> from medassist.core.orchestrator import get_orchestrator, GenerationRequest
    >>> orchestrator = get_orchestrator()
    >>> result = await orchestrator.generate(GenerationRequest(prompt="hello"))
    >>> print(result.model_used, result.text)

Tests:
    - tests/unit/test_orchestrator.py
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from medassist.config import ProviderType, Settings, get_settings
from medassist.core.providers import (
    DialogueState,
    DialogueTurn,
    ErrorKind,
    GoogleProvider,
    LLMResponse,
    ModelCapability,
    OpenRouterProvider,
    ProviderClient,
    ProviderError,
)
from medassist.core.registry import ModelCandidate, ModelRegistry, build_registry
from medassist.core.sessions import ChatSessionStore
from medassist.core.stats import ModelStatsTracker

logger = logging.getLogger(__name__)

# Less budget than this is treated as spent
MIN_ATTEMPT_SECONDS = 1.0


class InvalidRequest(ValueError):
    """Request is missing required input; rejected before any model is tried."""


class AllProvidersExhausted(Exception):
    """Every candidate was tried or skipped without a success.

    Attributes:
        last_error: Most recent provider error, if any candidate was attempted
        attempted: Candidates that were called, in order
        skipped: Candidates skipped (cooldown or capability mismatch)
        deadline_exceeded: Whether the chain stopped because its budget ran out
    """

    def __init__(
        self,
        last_error: ProviderError | None = None,
        attempted: list[str] | None = None,
        skipped: list[str] | None = None,
        deadline_exceeded: bool = False,
    ) -> None:
        self.last_error = last_error
        self.attempted = attempted or []
        self.skipped = skipped or []
        self.deadline_exceeded = deadline_exceeded

        if deadline_exceeded:
            message = "Generation deadline exceeded before any model succeeded"
        elif not self.attempted:
            message = "No model is currently available for this request"
        else:
            message = f"All {len(self.attempted)} attempted model(s) failed"
        if last_error is not None:
            message += f". Last error: {last_error}"
        super().__init__(message)


@dataclass(frozen=True)
class GenerationRequest:
    """Input to the orchestrator.

    Attributes:
        prompt: Prompt text (the user message on the chat path)
        image: Optional image payload
        mime_type: MIME type of the image
        config_overrides: Generation parameters that win over candidate defaults
        chat_key: Presence selects chat continuation for this key
        priming: Turns that open a fresh dialogue on the chat path
    """

    prompt: str
    image: bytes | None = None
    mime_type: str = "image/jpeg"
    config_overrides: Mapping[str, Any] = field(default_factory=dict)
    chat_key: str | None = None
    priming: tuple[DialogueTurn, ...] = ()

    @property
    def is_chat(self) -> bool:
        return self.chat_key is not None

    @property
    def required_capabilities(self) -> frozenset[ModelCapability]:
        required = {ModelCapability.TEXT}
        if self.image is not None:
            required.add(ModelCapability.IMAGE)
        if self.is_chat:
            required.add(ModelCapability.CHAT)
        return frozenset(required)


@dataclass(frozen=True)
class GenerationResult:
    """First successful generation.

    Attributes:
        text: Generated text
        model_used: Registry name of the serving model
        provider_used: Provider of the serving model
        latency_ms: Provider call latency
        usage: Token usage reported by the provider
        chat_key: Chat key, on the chat path
    """

    text: str
    model_used: str
    provider_used: ProviderType
    latency_ms: int = 0
    usage: dict[str, int] = field(default_factory=dict)
    chat_key: str | None = None


@dataclass(frozen=True)
class CallOutcome:
    """Result of one provider call: a response or a classified error."""

    response: LLMResponse | None = None
    dialogue: DialogueState | None = None
    error: ProviderError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.response is not None


class FallbackOrchestrator:
    """Route generation requests through the registry with fallback.

    Attributes:
        registry: Candidates in fallback order
        providers: Provider clients keyed by provider type
        stats: Shared per-model counters
        sessions: Chat sessions for the chat path
        deadline_seconds: Budget for one whole chain (None means unbounded)
    """

    def __init__(
        self,
        registry: ModelRegistry,
        providers: Mapping[ProviderType, ProviderClient],
        stats: ModelStatsTracker | None = None,
        sessions: ChatSessionStore | None = None,
        deadline_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        min_attempt_seconds: float = MIN_ATTEMPT_SECONDS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            registry: Candidates in fallback order.
            providers: Provider clients keyed by provider type.
            stats: Shared tracker (a new one if omitted).
            sessions: Chat session store (a new one if omitted).
            deadline_seconds: Overall budget per request, None for unbounded.
            clock: Monotonic clock used for the deadline.
            min_attempt_seconds: Budget below which no further candidate is tried.
        """
        self.registry = registry
        self.providers = dict(providers)
        self.stats = stats if stats is not None else ModelStatsTracker()
        self.sessions = sessions if sessions is not None else ChatSessionStore()
        self.deadline_seconds = deadline_seconds
        self._clock = clock
        self.min_attempt_seconds = min_attempt_seconds

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate with the first candidate that succeeds.

        Args:
            request: The generation request.

        Returns:
            GenerationResult from the serving model.

        Raises:
            InvalidRequest: If the request lacks required input.
            AllProvidersExhausted: If no candidate succeeded.
        """
        self._validate(request)

        if request.chat_key is not None:
            async with self.sessions.lock(request.chat_key):
                return await self._run(request)
        return await self._run(request)

    def _validate(self, request: GenerationRequest) -> None:
        if not request.prompt or not request.prompt.strip():
            raise InvalidRequest("Prompt is required")
        if request.image is not None and not request.image:
            raise InvalidRequest("Image data is empty")
        if request.image is not None and request.is_chat:
            raise InvalidRequest("Images cannot be sent in a chat continuation")

    def _remaining(self, started: float) -> float | None:
        if self.deadline_seconds is None:
            return None
        return self.deadline_seconds - (self._clock() - started)

    def _skip_reason(self, candidate: ModelCandidate, request: GenerationRequest) -> str | None:
        """Why a candidate cannot be tried for this request, or None."""
        if self.stats.is_cooling_down(candidate.name):
            remaining = self.stats.cooldown_remaining(candidate.name)
            return f"cooling down ({remaining:.0f}s left)"

        provider = self.providers.get(candidate.provider)
        if provider is None:
            return f"provider {candidate.provider.value} not configured"

        usable = candidate.capabilities & provider.capabilities
        missing = request.required_capabilities - usable
        if missing:
            return "lacks " + ", ".join(sorted(c.value for c in missing))
        return None

    async def _run(self, request: GenerationRequest) -> GenerationResult:
        started = self._clock()
        last_error: ProviderError | None = None
        attempted: list[str] = []
        skipped: list[str] = []

        for candidate in self.registry:
            reason = self._skip_reason(candidate, request)
            if reason:
                logger.debug(f"Skipping {candidate.name}: {reason}")
                skipped.append(candidate.name)
                continue

            remaining = self._remaining(started)
            if remaining is not None and remaining < self.min_attempt_seconds:
                logger.error(
                    f"Deadline of {self.deadline_seconds}s spent after trying {attempted}"
                )
                raise AllProvidersExhausted(last_error, attempted, skipped, deadline_exceeded=True)

            self.stats.record_attempt(candidate.name)
            attempted.append(candidate.name)
            logger.debug(f"Calling {candidate.provider.value} with model {candidate.model_id}")

            try:
                outcome = await self._invoke(candidate, request, remaining)
            except asyncio.CancelledError:
                # Caller went away: leave no trace in stats or sessions
                self.stats.discard_attempt(candidate.name)
                logger.info(f"Request abandoned while {candidate.name} was generating")
                raise

            if outcome.ok:
                response = outcome.response
                if request.chat_key is not None and outcome.dialogue is not None:
                    self.sessions.bind(request.chat_key, candidate.name, outcome.dialogue)
                logger.info(
                    f"Served by {candidate.name} ({candidate.provider.value}) "
                    f"in {response.latency_ms}ms"
                )
                return GenerationResult(
                    text=response.content,
                    model_used=candidate.name,
                    provider_used=candidate.provider,
                    latency_ms=response.latency_ms,
                    usage=dict(response.usage),
                    chat_key=request.chat_key,
                )

            error = outcome.error
            self.stats.record_failure(candidate.name, is_rate_limit=error.is_rate_limit)
            last_error = error
            if error.is_rate_limit:
                logger.warning(
                    f"Rate limit on {candidate.name}, cooling down for "
                    f"{self.stats.cooldown_seconds:.0f}s: {error}"
                )
            else:
                logger.warning(f"{candidate.name} failed ({error.kind.value}): {error}")

        logger.error(f"All providers exhausted (attempted={attempted}, skipped={skipped})")
        raise AllProvidersExhausted(last_error, attempted, skipped)

    async def _invoke(
        self,
        candidate: ModelCandidate,
        request: GenerationRequest,
        timeout: float | None,
    ) -> CallOutcome:
        """Call one candidate and fold any failure into a CallOutcome."""
        provider = self.providers[candidate.provider]
        config = candidate.merged_config(request.config_overrides)

        try:
            call = self._call(provider, candidate, request, config)
            if timeout is None:
                response, dialogue = await call
            else:
                response, dialogue = await asyncio.wait_for(call, timeout=timeout)
        except ProviderError as e:
            return CallOutcome(error=e)
        except asyncio.TimeoutError:
            return CallOutcome(
                error=ProviderError(
                    message=f"No response within the remaining {timeout:.1f}s budget",
                    provider=candidate.provider,
                    kind=ErrorKind.TRANSIENT,
                )
            )
        except Exception as e:
            logger.exception(f"Unexpected error from {candidate.name}")
            # Classified from the message text
            return CallOutcome(
                error=ProviderError(
                    message=str(e) or type(e).__name__,
                    provider=candidate.provider,
                )
            )

        return CallOutcome(response=response, dialogue=dialogue)

    async def _call(
        self,
        provider: ProviderClient,
        candidate: ModelCandidate,
        request: GenerationRequest,
        config: dict[str, Any],
    ) -> tuple[LLMResponse, DialogueState | None]:
        if request.chat_key is not None:
            dialogue = self._dialogue_for(provider, candidate, request)
            return await provider.continue_dialogue(
                dialogue, request.prompt, candidate.model_id, config
            )

        if request.image is not None:
            response = await provider.generate_with_image(
                request.prompt, request.image, request.mime_type, candidate.model_id, config
            )
        else:
            response = await provider.generate_text(request.prompt, candidate.model_id, config)
        return response, None

    def _dialogue_for(
        self,
        provider: ProviderClient,
        candidate: ModelCandidate,
        request: GenerationRequest,
    ) -> DialogueState:
        """Dialogue bound to this candidate, or a fresh one."""
        session = self.sessions.resolve(request.chat_key)
        if session is not None and session.model_name == candidate.name:
            return session.dialogue
        return provider.start_dialogue(candidate.name, request.priming)

    def describe(self) -> list[dict[str, Any]]:
        """Registry order joined with current stats, for observability."""
        snapshot = self.stats.snapshot()
        rows = []
        for position, candidate in enumerate(self.registry, start=1):
            stats = snapshot.get(candidate.name, {})
            rows.append({
                "position": position,
                "name": candidate.name,
                "provider": candidate.provider.value,
                "model_id": candidate.model_id,
                "capabilities": sorted(c.value for c in candidate.capabilities),
                "available": candidate.provider in self.providers,
                "attempts": stats.get("attempts", 0),
                "failures": stats.get("failures", 0),
                "rate_limit_hits": stats.get("rate_limit_hits", 0),
                "success_rate": stats.get("success_rate"),
                "cooling_down": stats.get("cooling_down", False),
                "cooldown_remaining": round(self.stats.cooldown_remaining(candidate.name), 1),
            })
        return rows

    async def aclose(self) -> None:
        """Close every provider client."""
        for provider in self.providers.values():
            await provider.close()


def build_providers(settings: Settings) -> dict[ProviderType, ProviderClient]:
    """Initialize provider clients for every configured API key.

    Args:
        settings: Application settings with API keys.

    Returns:
        Provider clients keyed by provider type.
    """
    providers: dict[ProviderType, ProviderClient] = {}

    if settings.has_provider(ProviderType.GOOGLE):
        providers[ProviderType.GOOGLE] = GoogleProvider(
            api_key=settings.GOOGLE_API_KEY,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )
        logger.info("Initialized Google provider")

    if settings.has_provider(ProviderType.OPENROUTER):
        providers[ProviderType.OPENROUTER] = OpenRouterProvider(
            api_key=settings.OPENROUTER_API_KEY,
            base_url=settings.OPENROUTER_BASE_URL,
            timeout=settings.PROVIDER_TIMEOUT_SECONDS,
        )
        logger.info("Initialized OpenRouter provider")

    return providers


def build_orchestrator(settings: Settings) -> FallbackOrchestrator:
    """Wire registry, providers, stats and sessions from settings."""
    return FallbackOrchestrator(
        registry=build_registry(settings),
        providers=build_providers(settings),
        stats=ModelStatsTracker(cooldown_seconds=settings.COOLDOWN_SECONDS),
        sessions=ChatSessionStore(max_sessions=settings.MAX_CHAT_SESSIONS),
        deadline_seconds=settings.GENERATION_DEADLINE_SECONDS,
    )


# Global orchestrator instance
_orchestrator: FallbackOrchestrator | None = None


def get_orchestrator() -> FallbackOrchestrator:
    """Get the global orchestrator instance.

    Returns:
        FallbackOrchestrator singleton
    """
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator(get_settings())
    return _orchestrator


async def shutdown_orchestrator() -> None:
    """Close and drop the global orchestrator."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.aclose()
        _orchestrator = None
