"""Model chain and statistics endpoints.

Endpoints:
    GET /api/v1/models - Fallback chain in priority order
    GET /api/v1/models/stats - Per-model counters and cooldowns
    POST /api/v1/models/stats/reset - Forget counters and cooldowns

Examples:
    >>> GET /api/v1/models/stats
    >>> {"cooldown_seconds": 60.0, "models": [{"name": "gemini-2.0-flash",
    ...  "attempts": 3, "failures": 1, "cooling_down": false, ...}]}

Tests:
    - tests/integration/test_api_guidance.py::TestModelEndpoints
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from medassist.core.orchestrator import FallbackOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/models", tags=["models"])


# Response Models


class ModelInfo(BaseModel):
    """One candidate in the fallback chain."""

    position: int
    name: str
    provider: str
    model_id: str
    capabilities: list[str] = Field(default_factory=list)
    available: bool = True


class ModelListResponse(BaseModel):
    """Response containing the fallback chain."""

    models: list[ModelInfo]
    total: int


class ModelStatsInfo(ModelInfo):
    """Candidate joined with its live counters."""

    attempts: int = 0
    failures: int = 0
    rate_limit_hits: int = 0
    success_rate: float | None = None
    cooling_down: bool = False
    cooldown_remaining: float = 0.0


class ModelStatsResponse(BaseModel):
    """Response with per-model statistics."""

    cooldown_seconds: float
    deadline_seconds: float | None = None
    active_sessions: int = 0
    models: list[ModelStatsInfo]


# Endpoints


@router.get("", response_model=ModelListResponse)
async def list_models(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> ModelListResponse:
    """List the fallback chain in the order it is tried."""
    models = [ModelInfo(**row) for row in orchestrator.describe()]
    return ModelListResponse(models=models, total=len(models))


@router.get("/stats", response_model=ModelStatsResponse)
async def model_stats(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> ModelStatsResponse:
    """Attempts, failures, rate-limit hits and cooldown state per model."""
    return ModelStatsResponse(
        cooldown_seconds=orchestrator.stats.cooldown_seconds,
        deadline_seconds=orchestrator.deadline_seconds,
        active_sessions=orchestrator.sessions.count,
        models=[ModelStatsInfo(**row) for row in orchestrator.describe()],
    )


@router.post("/stats/reset")
async def reset_model_stats(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool | str]:
    """Forget all counters and end every cooldown."""
    orchestrator.stats.reset()
    logger.info("Model statistics reset")
    return {"success": True, "message": "Model statistics reset"}
