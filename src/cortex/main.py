from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from cortex.assessment.models import load_stored_assessment
from cortex.errors import (
    AssessmentNotFoundError,
    InvalidAssessmentIdError,
    generate_incident_id,
    sanitize_error_for_user,
)
from cortex.generation.gateway import LiteLLMClient
from cortex.orchestrator.models import SituationAssessmentWithDiagnostics, ensure_diagnostics
from cortex.orchestrator.service import GenerationOrchestrator, validate_assessment_id
from cortex.sanitizer.sanitize import sanitize_situation_assessment
from cortex.settings import CortexSettings
from cortex.storage import InMemoryAssessmentStore, load_assessment, save_situation_assessment

logger = logging.getLogger(__name__)

app = FastAPI(title="Cortex Insight", version="0.1.0")

# In-process assessment store (per-process only; production deployments
# should plug in a persistent store implementing AssessmentStore).
_ASSESSMENT_STORE = InMemoryAssessmentStore()


class SituationAssessmentRequest(BaseModel):
    """Request body for the situation assessment endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    assessment_id: str | None = Field(default=None, alias="assessmentId")


def _build_orchestrator() -> GenerationOrchestrator:
    settings = CortexSettings.from_env()
    return GenerationOrchestrator(
        LiteLLMClient.from_settings(settings),
        model_name=settings.llm_model,
        max_generation_rounds=settings.max_generation_rounds,
        call_timeout_s=settings.llm_timeout_s,
        enforce_word_count=settings.enforce_word_count,
    )


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    """Return the incident envelope for unexpected failures."""
    incident_id = generate_incident_id()
    logger.exception("Unhandled error on %s [%s]: %s", request.url.path, incident_id, exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": sanitize_error_for_user(exc),
            "incidentId": incident_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "statusCode": 500,
        },
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {
        "status": "ok",
        "service": "cortex-insight",
        "version": "0.1.0",
    }


@app.post("/api/insight/situation-assessment", response_model_exclude_none=True)
async def generate_situation_assessment(
    req: SituationAssessmentRequest,
) -> SituationAssessmentWithDiagnostics:
    """Run a fresh generation for the assessment and return payload plus diagnostics.

    Every call is a new run; a client "Regenerate" simply posts again.
    """
    try:
        assessment_id = validate_assessment_id(req.assessment_id)
    except InvalidAssessmentIdError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err

    try:
        record = await load_assessment(_ASSESSMENT_STORE, assessment_id)
    except AssessmentNotFoundError as err:
        raise HTTPException(status_code=404, detail="Assessment not found") from err

    if record.context_profile is None:
        raise HTTPException(status_code=400, detail="Context profile not found")

    result = await _build_orchestrator().run(assessment_id, record.context_profile)

    await save_situation_assessment(
        _ASSESSMENT_STORE,
        assessment_id,
        result.model_dump(mode="json", by_alias=True, exclude_none=True),
        result.debug.generated_at.isoformat(),
    )
    return result


@app.get("/api/insight/situation-assessment/{assessment_id}")
async def get_situation_assessment(assessment_id: str) -> dict[str, Any]:
    """Return the latest stored payload, re-sanitized, with diagnostics always present."""
    try:
        normalized_id = validate_assessment_id(assessment_id)
    except InvalidAssessmentIdError as err:
        raise HTTPException(status_code=400, detail=str(err)) from err

    try:
        record = await load_assessment(_ASSESSMENT_STORE, normalized_id)
    except AssessmentNotFoundError as err:
        raise HTTPException(status_code=404, detail="Assessment not found") from err

    if not record.situation_assessment:
        raise HTTPException(status_code=404, detail="No situation assessment generated yet")

    stored = record.situation_assessment
    sanitized = sanitize_situation_assessment(load_stored_assessment(stored))
    body = sanitized.model_dump(mode="json", by_alias=True, exclude_none=True)
    if stored.get("debug"):
        body["debug"] = stored["debug"]
    return ensure_diagnostics(body)
