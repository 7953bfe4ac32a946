"""Pydantic models for the generation gateway and raw-output parser."""

from __future__ import annotations

from pydantic import BaseModel, Field

from cortex.assessment.models import ContextProfile, Scenarios, StructuredAssessment


class GenerationContext(BaseModel):
    """Everything the generation backend receives for one call."""

    assessment_id: str
    profile: ContextProfile | None = None
    round: int = Field(default=1, ge=1, description="Orchestrator round (1-based)")
    previous_failure: str | None = Field(
        default=None,
        description="Failure reason of the previous round, used to build a repair note",
    )


class LLMAssessmentResponse(BaseModel):
    """Structured JSON shape requested from the model."""

    headline: str | None = None
    insight: str
    actions: list[str] = Field(default_factory=list)
    watchouts: list[str] = Field(default_factory=list)
    scenarios: Scenarios | None = None
    disclaimer: str

    def to_assessment(self) -> StructuredAssessment:
        return StructuredAssessment(
            headline=self.headline,
            insight=self.insight,
            actions=self.actions,
            watchouts=self.watchouts,
            scenarios=self.scenarios,
            disclaimer=self.disclaimer,
        )


class ParseResult(BaseModel):
    """Outcome of interpreting raw model output."""

    success: bool
    assessment: StructuredAssessment | None = None
    error: str | None = None
