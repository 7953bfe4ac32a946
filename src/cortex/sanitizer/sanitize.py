"""
Text cleanup for generated Situation Assessment payloads.

Every function here is total: malformed or empty input yields best-effort
cleaned text, never an exception.
"""

from __future__ import annotations

import math
import re

from cortex.assessment.models import LegacyAssessment, Scenarios, StructuredAssessment
from cortex.policy.rules import BANNED_PHRASES_PATTERN, LEAKED_INSTRUCTIONS_PATTERN
from cortex.policy.validator import HEADLINE_MAX_CHARS, ITEM_MAX_CHARS, MAX_ACTIONS, MAX_WATCHOUTS

_BULLET_LINE = re.compile(r"^[ \t]*[-•][ \t]*", re.MULTILINE)
_LEADING_BULLET = re.compile(r"^[-•]\s*")
_TRAILING_LINE_SPACE = re.compile(r"[ \t]+\n")
_LEADING_LINE_SPACE = re.compile(r"\n[ \t]+")
_EXCESS_BLANK_LINES = re.compile(r"\n{3,}")
_REPEATED_PERIODS = re.compile(r"\.(?:[ \t]*\.)+")
_HORIZONTAL_SPACE = re.compile(r"[ \t]{2,}")
_ANY_WHITESPACE = re.compile(r"\s+")
_PARAGRAPH_BREAK = re.compile(r"\n{2,}")
_SENTENCE = re.compile(r"[^.!?]+[.!?]+")


def _strip_banned(text: str) -> str:
    text = LEAKED_INSTRUCTIONS_PATTERN.sub("", text)
    return BANNED_PHRASES_PATTERN.sub("", text)


def split_sentences(block: str) -> list[str]:
    """Split on terminal punctuation; an unterminated tail is kept as the last sentence."""
    sentences: list[str] = []
    end = 0
    for match in _SENTENCE.finditer(block):
        sentences.append(match.group(0).strip())
        end = match.end()
    tail = block[end:].strip()
    if tail:
        sentences.append(tail)
    return sentences or [block]


def sanitize_insight(text: str | None) -> str:
    """Clean narrative text and reshape it into exactly two paragraphs."""
    cleaned = (text or "").replace("\r", "").strip()
    cleaned = _strip_banned(cleaned)
    cleaned = _BULLET_LINE.sub("", cleaned)
    cleaned = _TRAILING_LINE_SPACE.sub("\n", cleaned)
    cleaned = _LEADING_LINE_SPACE.sub("\n", cleaned)
    cleaned = _EXCESS_BLANK_LINES.sub("\n\n", cleaned)
    cleaned = _REPEATED_PERIODS.sub(".", cleaned)
    cleaned = _HORIZONTAL_SPACE.sub(" ", cleaned)
    cleaned = cleaned.strip()

    parts = [part.strip() for part in _PARAGRAPH_BREAK.split(cleaned) if part.strip()]
    if not parts:
        return cleaned

    if len(parts) == 1:
        sentences = split_sentences(parts[0])
        mid = math.ceil(len(sentences) / 2)
        parts = [" ".join(sentences[:mid]).strip(), " ".join(sentences[mid:]).strip()]
    else:
        parts = parts[:2]

    # Single newlines inside a paragraph are soft wraps.
    return "\n\n".join(_ANY_WHITESPACE.sub(" ", part).strip() for part in parts)


def sanitize_structured_field(field: str | None, max_length: int | None = None) -> str:
    """Collapse a short field to one clean line, optionally truncated."""
    cleaned = _strip_banned(field or "")
    cleaned = _ANY_WHITESPACE.sub(" ", cleaned).strip()
    cleaned = _LEADING_BULLET.sub("", cleaned)
    cleaned = _REPEATED_PERIODS.sub(".", cleaned).strip()
    if max_length is not None:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned


def sanitize_headline(headline: str | None) -> str:
    return sanitize_structured_field(headline, HEADLINE_MAX_CHARS)


def _sanitize_items(items: list[str] | None, limit: int) -> list[str]:
    cleaned = [
        sanitize_structured_field(item, ITEM_MAX_CHARS)
        for item in (items or [])
        if isinstance(item, str)
    ]
    return [item for item in cleaned if item][:limit]


def sanitize_action_items(actions: list[str] | None) -> list[str]:
    return _sanitize_items(actions, MAX_ACTIONS)


def sanitize_watchouts(watchouts: list[str] | None) -> list[str]:
    return _sanitize_items(watchouts, MAX_WATCHOUTS)


def sanitize_scenarios(scenarios: Scenarios) -> Scenarios:
    return Scenarios(
        if_regulation_tightens=sanitize_structured_field(scenarios.if_regulation_tightens),
        if_budgets_tighten=sanitize_structured_field(scenarios.if_budgets_tighten),
    )


def sanitize_disclaimer(disclaimer: str | None) -> str:
    return _ANY_WHITESPACE.sub(" ", BANNED_PHRASES_PATTERN.sub("", disclaimer or "")).strip()


def _sanitize_structured(payload: StructuredAssessment) -> StructuredAssessment:
    sanitized = StructuredAssessment(disclaimer=sanitize_disclaimer(payload.disclaimer))
    if payload.insight:
        sanitized.insight = sanitize_insight(payload.insight)
    if payload.headline:
        sanitized.headline = sanitize_headline(payload.headline)
    if payload.actions is not None:
        sanitized.actions = sanitize_action_items(payload.actions)
    if payload.watchouts is not None:
        sanitized.watchouts = sanitize_watchouts(payload.watchouts)
    if (
        payload.scenarios is not None
        and payload.scenarios.if_regulation_tightens
        and payload.scenarios.if_budgets_tighten
    ):
        sanitized.scenarios = sanitize_scenarios(payload.scenarios)
    return sanitized


def _sanitize_legacy(payload: LegacyAssessment) -> LegacyAssessment:
    return LegacyAssessment(
        strengths=payload.strengths,
        fragilities=payload.fragilities,
        what_works=payload.what_works,
        insight=sanitize_insight(payload.insight) if payload.insight else None,
        disclaimer=sanitize_disclaimer(payload.disclaimer),
    )


def sanitize_situation_assessment(
    payload: StructuredAssessment | LegacyAssessment,
) -> StructuredAssessment | LegacyAssessment:
    """Sanitize every field present on ``payload``, dispatching on its ``kind`` tag."""
    if payload.kind == "legacy":
        return _sanitize_legacy(payload)  # type: ignore[arg-type]
    return _sanitize_structured(payload)  # type: ignore[arg-type]
