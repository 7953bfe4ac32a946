"""Exception hierarchy and incident helpers shared across the service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone


class CortexError(Exception):
    """Base class for errors raised by the Situation Assessment service."""


class InvalidAssessmentIdError(CortexError, ValueError):
    """The inbound assessment identifier failed validation.

    Validation errors are never retried and never consume an attempt slot.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(f"Invalid assessment ID: {detail}")
        self.detail = detail


class AssessmentNotFoundError(CortexError, LookupError):
    """No stored assessment exists for the requested identifier."""

    def __init__(self, assessment_id: str) -> None:
        super().__init__(f"Assessment not found: {assessment_id}")
        self.assessment_id = assessment_id


class GenerationTimeoutError(CortexError, TimeoutError):
    """A single generation call exceeded its timeout."""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"Generation request timed out after {timeout_s:g}s")
        self.timeout_s = timeout_s


class GenerationBackendError(CortexError, RuntimeError):
    """The generation backend raised or returned an unusable transport response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def generate_incident_id(now: datetime | None = None) -> str:
    """Return a user-facing incident id of the form ``INC-YYYY-XXXXXXXX``."""
    year = (now or datetime.now(timezone.utc)).year
    return f"INC-{year}-{uuid.uuid4().hex[:8].upper()}"


def sanitize_error_for_user(error: BaseException) -> str:
    """Map an internal error to a short message that is safe to show to users."""
    message = str(error).lower()
    if "validation" in message or "invalid" in message:
        return "Invalid input provided"
    if "network" in message or "connection" in message:
        return "Network connection error"
    if "timeout" in message or "timed out" in message:
        return "Request timed out"
    if "not found" in message:
        return "Requested resource not found"
    if "unauthorized" in message:
        return "Authentication required"
    if "forbidden" in message:
        return "Access denied"
    return "An unexpected error occurred"
