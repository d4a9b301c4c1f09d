"""FastAPI application for MedAssist.

This module provides the main FastAPI application with health endpoints,
API routes, error envelopes, and lifecycle management.

Run with:
    uvicorn medassist.main:app --reload

Examples:
    >>> # Health check
    >>> curl http://localhost:8000/health

    >>> # Ask the chatbot
    >>> curl -X POST http://localhost:8000/api/v1/chat \\
    ...     -H "Content-Type: application/json" -d '{"message": "I feel dizzy"}'

Tests:
    - tests/unit/test_main.py
    - tests/integration/test_api_guidance.py
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from medassist import __version__
from medassist.api.v1 import router as v1_router
from medassist.config import ProviderType, get_settings
from medassist.core.orchestrator import (
    AllProvidersExhausted,
    FallbackOrchestrator,
    InvalidRequest,
    get_orchestrator,
    shutdown_orchestrator,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

START_TIME = time.monotonic()

UNAVAILABLE_MESSAGE = (
    "All AI models are temporarily unavailable. Please try again in a minute."
)


# Response models
class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    uptime_seconds: float
    active_sessions: int
    providers: dict[str, bool]


def error_response(
    status_code: int,
    error: str,
    detail: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Build the error envelope shared by every failure path."""
    content: dict[str, Any] = {"error": error, "statusCode": status_code, "success": False}
    if detail is not None:
        content["detail"] = detail
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown tasks:
    - Build the fallback chain on startup
    - Close provider clients on shutdown
    """
    # Startup
    logger.info(f"Starting MedAssist v{__version__}")
    orchestrator = get_orchestrator()
    logger.info(f"Fallback chain: {' -> '.join(orchestrator.registry.names())}")

    yield

    # Shutdown
    logger.info("Shutting down MedAssist")
    await shutdown_orchestrator()


# Create FastAPI app
settings = get_settings()

app = FastAPI(
    title="MedAssist",
    description="AI medical guidance with multi-provider model fallback",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API v1 routes
app.include_router(v1_router)


# Exception handlers
@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request, exc: InvalidRequest):
    """Reject requests with missing or unusable input."""
    return error_response(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(AllProvidersExhausted)
async def exhausted_handler(request, exc: AllProvidersExhausted):
    """Every model failed or was unavailable."""
    retry_after = int(get_settings().COOLDOWN_SECONDS)
    return error_response(
        status.HTTP_503_SERVICE_UNAVAILABLE,
        UNAVAILABLE_MESSAGE,
        detail=str(exc),
        headers={"Retry-After": str(retry_after)},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with consistent response format."""
    return error_response(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Malformed request bodies keep the framework's 422 status."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        f"{location}: {message}" if location else message,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")

    if settings.DEBUG:
        detail = str(exc)
    else:
        detail = None

    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=detail,
    )


# Health endpoints
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """Check application health.

    Returns:
        HealthResponse with uptime, live chat sessions and configured providers.
    """
    providers = {provider.value: settings.has_provider(provider) for provider in ProviderType}

    return HealthResponse(
        status="healthy" if orchestrator.providers else "degraded",
        version=__version__,
        uptime_seconds=round(time.monotonic() - START_TIME, 1),
        active_sessions=orchestrator.sessions.count,
        providers=providers,
    )


@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """Root endpoint with basic info.

    Returns:
        Basic application information.
    """
    return {
        "name": "MedAssist",
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/api/v1/status", tags=["API"])
async def api_status(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """API status endpoint.

    Returns:
        Service information, the fallback chain and the endpoint list.
    """
    return {
        "status": "running",
        "api_version": "v1",
        "app_version": __version__,
        "environment": settings.ENVIRONMENT.value,
        "model_chain": orchestrator.registry.names(),
        "endpoints": [
            "/api/v1/chat",
            "/api/v1/analyze-symptoms",
            "/api/v1/summarize-report",
            "/api/v1/medicine-info",
            "/api/v1/health-tips",
            "/api/v1/diet-plan",
            "/api/v1/read-prescription",
            "/api/v1/clear-chat",
            "/api/v1/clear-all-chats",
            "/api/v1/models",
            "/api/v1/models/stats",
            "/api/v1/models/stats/reset",
        ],
    }


# Entry point for development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "medassist.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
