"""Interpretation of raw model output as a structured assessment."""

from __future__ import annotations

import json
import logging
import re
from json import JSONDecodeError

from pydantic import ValidationError

from .models import LLMAssessmentResponse, ParseResult

logger = logging.getLogger(__name__)

_JSON_FENCE_PATTERN = re.compile(r"```(?:json)?\s*\n(?P<body>.*?)```", re.DOTALL | re.IGNORECASE)


def _strip_json_fence(response_text: str) -> str:
    stripped = response_text.strip()
    match = _JSON_FENCE_PATTERN.search(stripped)
    if match is not None:
        return match.group("body").strip()
    return stripped


def _extract_object(text: str) -> str:
    """Trim prose around the outermost JSON object, if any."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return text
    return text[start : end + 1]


def parse_assessment(response_text: str) -> ParseResult:
    """Parse raw model output into a ``StructuredAssessment``.

    Accepts bare JSON, JSON wrapped in a Markdown fence, or JSON surrounded by
    stray prose. Anything else is reported as a parse error.
    """
    if not response_text or not response_text.strip():
        return ParseResult(success=False, error="Raw model response was empty.")

    cleaned = _extract_object(_strip_json_fence(response_text))
    try:
        parsed = json.loads(cleaned)
    except JSONDecodeError as err:
        return ParseResult(
            success=False,
            error=f"JSONDecodeError at line {err.lineno}, column {err.colno}: {err.msg}",
        )
    except RecursionError:
        return ParseResult(success=False, error="Response JSON is nested too deeply.")

    if not isinstance(parsed, dict):
        return ParseResult(
            success=False,
            error=f"Expected a JSON object, got {type(parsed).__name__}.",
        )

    try:
        response = LLMAssessmentResponse.model_validate(parsed)
    except ValidationError as err:
        logger.debug("Structured response JSON did not match schema: %s", err)
        fields = sorted({".".join(str(part) for part in item["loc"]) for item in err.errors()})
        return ParseResult(
            success=False,
            error=f"Response JSON did not match schema (fields: {', '.join(fields)}).",
        )

    return ParseResult(success=True, assessment=response.to_assessment())
