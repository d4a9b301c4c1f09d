"""Static, ordered registry of model candidates.

The order of the registry is the fallback priority: the first candidate is
the preferred model, later ones are tried only when earlier ones fail, are
cooling down, or cannot serve the request.

Examples:
    >>> from medassist.core.registry import ModelRegistry, DEFAULT_CANDIDATES
    >>> registry = ModelRegistry(DEFAULT_CANDIDATES)
    >>> registry.names()[0]
    'gemini-2.0-flash'

Tests:
    - tests/unit/test_registry.py
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from medassist.config import ProviderType, Settings
from medassist.core.providers.base import PROVIDER_CAPABILITIES, ModelCapability

logger = logging.getLogger(__name__)


class RegistryError(ValueError):
    """Raised when a candidate list is not a valid registry."""


class ModelCandidate(BaseModel):
    """One (provider, model, config) entry of the fallback chain.

    Attributes:
        name: Unique registry name
        provider: Backend serving the model
        model_id: Identifier sent to the provider (defaults to name)
        capabilities: What the model can serve
        generation_config: Default generation parameters
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1, description="Unique registry name")
    provider: ProviderType = Field(description="Backend serving the model")
    model_id: str = Field(default="", description="Identifier sent to the provider")
    capabilities: frozenset[ModelCapability] = Field(
        default=frozenset({ModelCapability.TEXT}),
        description="Capabilities the model can serve",
    )
    generation_config: dict[str, Any] = Field(
        default_factory=dict,
        description="Default generation parameters",
    )

    @model_validator(mode="before")
    @classmethod
    def default_model_id(cls, data: Any) -> Any:
        """Use the registry name as the provider model ID when none is given."""
        if isinstance(data, dict) and not data.get("model_id"):
            return {**data, "model_id": data.get("name", "")}
        return data

    def supports(self, capability: ModelCapability) -> bool:
        return capability in self.capabilities

    def merged_config(self, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Candidate defaults with request overrides applied key by key."""
        merged = dict(self.generation_config)
        if overrides:
            merged.update(overrides)
        return merged


_FULL = frozenset({ModelCapability.TEXT, ModelCapability.IMAGE, ModelCapability.CHAT})

# Fallback chain: preferred model first
DEFAULT_CANDIDATES: tuple[ModelCandidate, ...] = (
    ModelCandidate(
        name="gemini-2.0-flash",
        provider=ProviderType.GOOGLE,
        capabilities=_FULL,
        generation_config={"temperature": 0.7, "max_output_tokens": 800},
    ),
    ModelCandidate(
        name="gemini-2.5-flash",
        provider=ProviderType.GOOGLE,
        capabilities=_FULL,
        generation_config={"temperature": 0.7, "max_output_tokens": 800},
    ),
    ModelCandidate(
        name="google/gemini-2.0-flash-001",
        provider=ProviderType.OPENROUTER,
        capabilities=_FULL,
        generation_config={"temperature": 0.7, "max_output_tokens": 800},
    ),
    ModelCandidate(
        name="meta-llama/llama-3.3-70b-instruct:free",
        provider=ProviderType.OPENROUTER,
        capabilities=frozenset({ModelCapability.TEXT, ModelCapability.CHAT}),
        generation_config={"temperature": 0.7, "max_output_tokens": 800},
    ),
)


class ModelRegistry:
    """Read-only ordered collection of ModelCandidates.

    Validation on construction:
        - at least one candidate
        - names are unique
        - no candidate claims a capability its provider cannot serve

    Attributes:
        candidates: Candidates in fallback order
    """

    def __init__(
        self,
        candidates: Iterable[ModelCandidate],
        provider_capabilities: Mapping[ProviderType, frozenset[ModelCapability]] | None = None,
    ) -> None:
        """Build and validate a registry.

        Args:
            candidates: Candidates in fallback order.
            provider_capabilities: Capabilities per provider (defaults to
                PROVIDER_CAPABILITIES).

        Raises:
            RegistryError: If the candidate list is invalid.
        """
        self._candidates: tuple[ModelCandidate, ...] = tuple(candidates)
        capabilities = (
            provider_capabilities if provider_capabilities is not None else PROVIDER_CAPABILITIES
        )

        if not self._candidates:
            raise RegistryError("Registry needs at least one candidate")

        seen: set[str] = set()
        for candidate in self._candidates:
            if candidate.name in seen:
                raise RegistryError(f"Duplicate candidate name: {candidate.name}")
            seen.add(candidate.name)

            unsupported = candidate.capabilities - capabilities.get(candidate.provider, frozenset())
            if unsupported:
                claimed = ", ".join(sorted(c.value for c in unsupported))
                raise RegistryError(
                    f"Candidate {candidate.name} claims {claimed} but provider "
                    f"{candidate.provider.value} cannot serve it"
                )

        self._by_name = {c.name: c for c in self._candidates}

    def __iter__(self) -> Iterator[ModelCandidate]:
        return iter(self._candidates)

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    @property
    def candidates(self) -> tuple[ModelCandidate, ...]:
        return self._candidates

    def get(self, name: str) -> ModelCandidate:
        """Get a candidate by name.

        Raises:
            KeyError: If no candidate has that name.
        """
        if name not in self._by_name:
            raise KeyError(f"No candidate named: {name}")
        return self._by_name[name]

    def names(self) -> list[str]:
        return [c.name for c in self._candidates]


def build_registry(
    settings: Settings,
    candidates: Iterable[ModelCandidate] = DEFAULT_CANDIDATES,
) -> ModelRegistry:
    """Build the registry for the configured providers.

    Keeps declaration order, drops candidates whose provider has no API key,
    and applies MODEL_CHAIN (selection and order) when set.

    Args:
        settings: Application settings.
        candidates: Full candidate list to pick from.

    Returns:
        ModelRegistry for this deployment.

    Raises:
        RegistryError: If MODEL_CHAIN names an unknown candidate or nothing is left.
    """
    available = [c for c in candidates if settings.has_provider(c.provider)]

    chain = settings.model_chain
    if chain:
        by_name = {c.name: c for c in candidates}
        unknown = [name for name in chain if name not in by_name]
        if unknown:
            raise RegistryError(f"MODEL_CHAIN names unknown candidates: {', '.join(unknown)}")
        available = [by_name[name] for name in chain if settings.has_provider(by_name[name].provider)]

    registry = ModelRegistry(available)
    logger.info(f"Model registry: {' -> '.join(registry.names())}")
    return registry
