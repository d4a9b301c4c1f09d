"""
Pytest configuration and fixtures for MedAssist tests.

Provider calls never leave the process: the fixtures below wire the
orchestrator to FakeProvider instances and a manually advanced clock.
"""
import os
import sys
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Settings require at least one key; set them before the app is imported
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")

from medassist.config import ProviderType, get_settings
from medassist.core.orchestrator import FallbackOrchestrator
from medassist.core.registry import ModelCandidate, ModelRegistry
from medassist.core.sessions import ChatSessionStore
from medassist.core.stats import ModelStatsTracker
from tests.utils.fakes import FULL, TEXT_CHAT, FakeClock, FakeProvider

# ============================================
# Test Fixtures
# ============================================

@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Settings are cached; tests that patch the environment need a fresh read."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def google() -> FakeProvider:
    return FakeProvider(provider_type=ProviderType.GOOGLE, supports_dialogue=True)


@pytest.fixture
def openrouter() -> FakeProvider:
    return FakeProvider(provider_type=ProviderType.OPENROUTER, supports_dialogue=False)


@pytest.fixture
def candidates() -> list[ModelCandidate]:
    """model-x and model-y on Google, model-z on OpenRouter."""
    return [
        ModelCandidate(
            name="model-x",
            provider=ProviderType.GOOGLE,
            capabilities=FULL,
            generation_config={"temperature": 0.7, "max_output_tokens": 800},
        ),
        ModelCandidate(
            name="model-y",
            provider=ProviderType.GOOGLE,
            capabilities=TEXT_CHAT,
            generation_config={"temperature": 0.5, "max_output_tokens": 400},
        ),
        ModelCandidate(
            name="model-z",
            provider=ProviderType.OPENROUTER,
            capabilities=FULL,
            generation_config={"temperature": 0.7},
        ),
    ]


@pytest.fixture
def registry(candidates) -> ModelRegistry:
    return ModelRegistry(candidates)


@pytest.fixture
def tracker(fake_clock) -> ModelStatsTracker:
    return ModelStatsTracker(cooldown_seconds=60.0, clock=fake_clock)


@pytest.fixture
def session_store() -> ChatSessionStore:
    return ChatSessionStore(max_sessions=100)


@pytest.fixture
def make_orchestrator(
    registry, google, openrouter, tracker, session_store, fake_clock
) -> Callable[..., FallbackOrchestrator]:
    """Build an orchestrator over the fake providers; keyword args override parts."""

    def factory(**overrides: Any) -> FallbackOrchestrator:
        params: dict[str, Any] = {
            "registry": registry,
            "providers": {ProviderType.GOOGLE: google, ProviderType.OPENROUTER: openrouter},
            "stats": tracker,
            "sessions": session_store,
            "deadline_seconds": None,
            "clock": fake_clock,
        }
        params.update(overrides)
        return FallbackOrchestrator(**params)

    return factory


@pytest.fixture
def orchestrator(make_orchestrator) -> FallbackOrchestrator:
    return make_orchestrator()
