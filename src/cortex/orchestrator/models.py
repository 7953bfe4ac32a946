"""Pydantic models for the generation diagnostics trace."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

from cortex.assessment.models import StructuredAssessment

# Raw text surfaced to the diagnostics UI is capped at this many characters.
RAW_RESPONSE_PREVIEW_CHARS = 500


class FailureReason(str, Enum):
    """Why a single generation attempt was rejected."""

    timeout = "timeout"
    policy_violation = "policy_violation"
    parse_error = "parse_error"
    api_error = "api_error"


class GenerationSource(str, Enum):
    """Which path produced the payload returned to the client."""

    ai = "ai"
    retry_fallback = "retry-fallback"
    fallback = "fallback"
    unknown = "unknown"


def preview_raw_response(raw: str | None) -> str | None:
    if raw is None:
        return None
    return raw[:RAW_RESPONSE_PREVIEW_CHARS]


class GenerationAttempt(BaseModel):
    """An immutable record of one call to the generation backend."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    attempt_number: int = Field(ge=1)
    model: str
    start_time: datetime
    end_time: datetime | None = None
    success: bool
    failure_reason: FailureReason | None = None
    policy_violation: bool = False
    parse_error: str | None = None
    raw_response: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration(self) -> int | None:
        """Milliseconds between start and end; ``None`` while in flight."""
        if self.end_time is None:
            return None
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    @model_validator(mode="after")
    def _check_outcome(self) -> GenerationAttempt:
        if self.success and self.failure_reason is not None:
            raise ValueError("A successful attempt cannot carry a failure reason.")
        if not self.success and self.end_time is not None and self.failure_reason is None:
            raise ValueError("A failed attempt must record a failure reason.")
        if self.policy_violation and self.failure_reason is not FailureReason.policy_violation:
            raise ValueError("policy_violation flag requires failure_reason=policy_violation.")
        if self.raw_response is not None and len(self.raw_response) > RAW_RESPONSE_PREVIEW_CHARS:
            raise ValueError(f"raw_response is limited to {RAW_RESPONSE_PREVIEW_CHARS} characters.")
        return self


class GenerationMetadata(BaseModel):
    """Summary and full attempt trace for one generation run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    source: GenerationSource
    final_source: GenerationSource
    attempts: list[GenerationAttempt] = Field(default_factory=list)
    total_duration: int = Field(default=0, ge=0, description="Run wall-clock in milliseconds")
    model_version: str | None = None
    template_used: str | None = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @model_validator(mode="after")
    def _check_source_invariants(self) -> GenerationMetadata:
        numbers = [attempt.attempt_number for attempt in self.attempts]
        if numbers != sorted(set(numbers)):
            raise ValueError("attempts must be strictly ordered by attempt_number.")

        successes = [attempt for attempt in self.attempts if attempt.success]
        if self.final_source is GenerationSource.ai:
            if not self.attempts or not self.attempts[-1].success or self.attempts[-1].attempt_number != 1:
                raise ValueError("finalSource 'ai' requires a successful first and only attempt.")
        elif self.final_source is GenerationSource.retry_fallback:
            if not successes or successes[-1].attempt_number <= 1:
                raise ValueError("finalSource 'retry-fallback' requires a successful attempt after the first.")
        elif self.final_source is GenerationSource.fallback:
            if successes:
                raise ValueError("finalSource 'fallback' cannot follow a successful attempt.")
            if not self.template_used:
                raise ValueError("finalSource 'fallback' requires template_used.")
        return self


class SituationAssessmentWithDiagnostics(StructuredAssessment):
    """Client payload: the sanitized assessment plus its generation trace."""

    debug: GenerationMetadata


def unknown_diagnostics() -> GenerationMetadata:
    """Stub trace for payloads produced before diagnostics existed."""
    return GenerationMetadata(
        source=GenerationSource.unknown,
        final_source=GenerationSource.unknown,
        attempts=[],
        total_duration=0,
    )


def ensure_diagnostics(payload: dict[str, Any]) -> dict[str, Any]:
    """Return ``payload`` with a ``debug`` block, synthesizing the stub when absent."""
    if payload.get("debug"):
        return payload
    return {**payload, "debug": unknown_diagnostics().model_dump(mode="json", by_alias=True)}
