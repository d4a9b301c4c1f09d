"""Medical guidance API endpoints.

Each endpoint turns its request body into a prompt and hands it to the
fallback orchestrator; the response says which model and provider served it.

Endpoints:
    POST /api/v1/chat - Health chatbot turn
    POST /api/v1/analyze-symptoms - Structured symptom assessment
    POST /api/v1/summarize-report - Patient-friendly report summary
    POST /api/v1/medicine-info - Medicine information
    POST /api/v1/health-tips - Five health tips for a category
    POST /api/v1/diet-plan - One-day diet plan
    POST /api/v1/read-prescription - Read a prescription image
    POST /api/v1/clear-chat - Forget one chat session
    POST /api/v1/clear-all-chats - Forget every chat session

Examples:
    >>> POST /api/v1/chat
    >>> {"message": "I have a headache", "sessionId": "abc"}
    >>> {"reply": "...", "success": true, "modelUsed": "gemini-2.0-flash",
    ...  "provider": "google", "sessionId": "abc"}

Tests:
    - tests/integration/test_api_guidance.py
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from medassist.config import get_settings
from medassist.core.orchestrator import (
    FallbackOrchestrator,
    GenerationRequest,
    GenerationResult,
    InvalidRequest,
    get_orchestrator,
)
from medassist.prompts import (
    chat as chat_prompts,
    diet as diet_prompts,
    health_tips as tips_prompts,
    medicine as medicine_prompts,
    prescription as prescription_prompts,
    report as report_prompts,
    symptoms as symptom_prompts,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["guidance"])


# =============================================================================
# REQUEST MODELS
# =============================================================================


class _CamelModel(BaseModel):
    """Accepts both camelCase (wire) and snake_case field names."""

    model_config = ConfigDict(populate_by_name=True)


class ChatRequest(_CamelModel):
    message: str | None = None
    session_id: str | None = Field(default=None, alias="sessionId")


class SymptomsRequest(_CamelModel):
    symptoms: str | None = None
    age: int | str | None = None
    gender: str | None = None
    duration: str | None = None


class ReportRequest(_CamelModel):
    report_text: str | None = Field(default=None, alias="reportText")
    report_type: str | None = Field(default=None, alias="reportType")


class MedicineRequest(_CamelModel):
    medicine_name: str | None = Field(default=None, alias="medicineName")


class HealthTipsRequest(_CamelModel):
    category: str | None = None
    user_profile: dict[str, Any] | str | None = Field(default=None, alias="userProfile")


class DietPlanRequest(_CamelModel):
    goal: str | None = None
    restrictions: str | None = None
    preferences: str | None = None


class PrescriptionRequest(_CamelModel):
    image_base64: str | None = Field(default=None, alias="imageBase64")


class ClearChatRequest(_CamelModel):
    session_id: str | None = Field(default=None, alias="sessionId")


# =============================================================================
# RESPONSE MODELS
# =============================================================================


class GuidanceResponse(_CamelModel):
    """Fields shared by every successful guidance response.

    Attributes:
        success: Always true on this path
        model_used: Registry name of the model that served the request
        provider: Provider of that model
    """

    success: bool = True
    model_used: str = Field(alias="modelUsed")
    provider: str


class ChatResponse(GuidanceResponse):
    reply: str
    session_id: str = Field(alias="sessionId")


class AnalysisResponse(GuidanceResponse):
    analysis: str


class SummaryResponse(GuidanceResponse):
    summary: str


class MedicineInfoResponse(GuidanceResponse):
    info: str


class HealthTipsResponse(GuidanceResponse):
    tips: str


class DietPlanResponse(GuidanceResponse):
    plan: str


class ClearChatResponse(_CamelModel):
    success: bool = True
    message: str
    session_id: str | None = Field(default=None, alias="sessionId")
    cleared: int = 0


# =============================================================================
# HELPERS
# =============================================================================


def _require(value: Any, message: str) -> str:
    """Return a required text field, or reject the request.

    Raises:
        InvalidRequest: If the value is missing or blank.
    """
    if value is None or not str(value).strip():
        raise InvalidRequest(message)
    return str(value).strip()


def _served_by(result: GenerationResult) -> dict[str, str]:
    return {"model_used": result.model_used, "provider": result.provider_used.value}


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Send one message to the health chatbot.

    The conversation is kept per ``sessionId`` for as long as the same model
    keeps serving it.
    """
    body = body or ChatRequest()
    message = _require(body.message, "Message is required")
    session_id = body.session_id or get_settings().DEFAULT_CHAT_SESSION

    logger.info(f"Chat [{session_id}]: {message[:100]}")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=message,
            config_overrides=chat_prompts.GENERATION_CONFIG,
            chat_key=session_id,
            priming=chat_prompts.get_priming(),
        )
    )

    logger.info(f"Reply [{session_id}]: {result.text[:100]}")
    return ChatResponse(reply=result.text, session_id=session_id, **_served_by(result))


@router.post("/analyze-symptoms", response_model=AnalysisResponse)
async def analyze_symptoms(
    body: SymptomsRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> AnalysisResponse:
    """Produce a structured preliminary assessment of symptoms."""
    body = body or SymptomsRequest()
    symptoms = _require(body.symptoms, "Symptoms are required")
    logger.info(f"Analyzing symptoms: {symptoms[:100]}")

    prompt = symptom_prompts.get_prompt(
        symptoms,
        age=str(body.age) if body.age is not None else None,
        gender=body.gender,
        duration=body.duration,
    )
    result = await orchestrator.generate(
        GenerationRequest(prompt=prompt, config_overrides=symptom_prompts.GENERATION_CONFIG)
    )
    return AnalysisResponse(analysis=result.text, **_served_by(result))


@router.post("/summarize-report", response_model=SummaryResponse)
async def summarize_report(
    body: ReportRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> SummaryResponse:
    """Explain a medical report in plain language."""
    body = body or ReportRequest()
    report_text = _require(body.report_text, "Report text is required")
    logger.info(f"Summarizing {body.report_type or 'medical'} report ({len(report_text)} chars)")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=report_prompts.get_prompt(report_text, body.report_type),
            config_overrides=report_prompts.GENERATION_CONFIG,
        )
    )
    return SummaryResponse(summary=result.text, **_served_by(result))


@router.post("/medicine-info", response_model=MedicineInfoResponse)
async def medicine_info(
    body: MedicineRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> MedicineInfoResponse:
    """Describe a medicine's uses, side effects and precautions."""
    body = body or MedicineRequest()
    medicine_name = _require(body.medicine_name, "Medicine name is required")
    logger.info(f"Getting info for: {medicine_name}")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=medicine_prompts.get_prompt(medicine_name),
            config_overrides=medicine_prompts.GENERATION_CONFIG,
        )
    )
    return MedicineInfoResponse(info=result.text, **_served_by(result))


@router.post("/health-tips", response_model=HealthTipsResponse)
async def health_tips(
    body: HealthTipsRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> HealthTipsResponse:
    """Generate five health tips; every field is optional."""
    body = body or HealthTipsRequest()
    logger.info(f"Generating tips for: {body.category or 'General Health'}")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=tips_prompts.get_prompt(body.category, body.user_profile),
            config_overrides=tips_prompts.GENERATION_CONFIG,
        )
    )
    return HealthTipsResponse(tips=result.text, **_served_by(result))


@router.post("/diet-plan", response_model=DietPlanResponse)
async def diet_plan(
    body: DietPlanRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> DietPlanResponse:
    """Generate a one-day diet plan; every field is optional."""
    body = body or DietPlanRequest()
    logger.info(f"Generating diet plan for goal: {body.goal or 'General health'}")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=diet_prompts.get_prompt(body.goal, body.restrictions, body.preferences),
            config_overrides=diet_prompts.GENERATION_CONFIG,
        )
    )
    return DietPlanResponse(plan=result.text, **_served_by(result))


@router.post("/read-prescription", response_model=AnalysisResponse)
async def read_prescription(
    body: PrescriptionRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> AnalysisResponse:
    """Extract medicines and instructions from a prescription image.

    Only models that accept images are tried.
    """
    body = body or PrescriptionRequest()
    image_base64 = _require(body.image_base64, "Image data is required")
    try:
        image, mime_type = prescription_prompts.decode_image(image_base64)
    except ValueError as e:
        raise InvalidRequest(str(e)) from e

    logger.info(f"Analyzing prescription image ({len(image)} bytes, {mime_type})")

    result = await orchestrator.generate(
        GenerationRequest(
            prompt=prescription_prompts.get_prompt(),
            image=image,
            mime_type=mime_type,
            config_overrides=prescription_prompts.GENERATION_CONFIG,
        )
    )
    return AnalysisResponse(analysis=result.text, **_served_by(result))


@router.post("/clear-chat", response_model=ClearChatResponse)
async def clear_chat(
    body: ClearChatRequest | None = None,
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> ClearChatResponse:
    """Forget one chat session (the default one when no id is sent)."""
    session_id = (body.session_id if body else None) or get_settings().DEFAULT_CHAT_SESSION

    async with orchestrator.sessions.lock(session_id):
        cleared = orchestrator.sessions.clear(session_id)

    logger.info(f"Cleared chat session: {session_id}")
    return ClearChatResponse(
        message="Chat history cleared",
        session_id=session_id,
        cleared=int(cleared),
    )


@router.post("/clear-all-chats", response_model=ClearChatResponse)
async def clear_all_chats(
    orchestrator: FallbackOrchestrator = Depends(get_orchestrator),
) -> ClearChatResponse:
    """Forget every chat session."""
    count = orchestrator.sessions.clear_all()
    logger.info(f"Cleared all {count} chat sessions")
    return ClearChatResponse(message=f"Cleared {count} chat sessions", cleared=count)
