"""Content-policy and structural checks for generated assessments."""

from __future__ import annotations

import re

from pydantic import BaseModel

from cortex.assessment.models import StructuredAssessment

from .rules import COMPILED_BANNED_RULES

WORD_COUNT_MIN = 150
WORD_COUNT_MAX = 220

HEADLINE_MAX_CHARS = 120
ITEM_MAX_CHARS = 84
MAX_ACTIONS = 3
MAX_WATCHOUTS = 2
INSIGHT_PARAGRAPHS = 2

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")


class StructuralIssue(BaseModel):
    """A structural constraint the payload does not meet.

    Blocking issues reject the attempt; the rest are repaired by the sanitizer.
    """

    field: str
    message: str
    blocking: bool = False


def get_word_count(text: str) -> int:
    """Count whitespace-delimited words; blank input yields 0."""
    return len((text or "").split())


def is_valid_word_count(text: str) -> bool:
    """True when the word count is within the inclusive 150-220 window."""
    return WORD_COUNT_MIN <= get_word_count(text) <= WORD_COUNT_MAX


def find_policy_violations(text: str) -> list[str]:
    """Return the ids of every banned rule matched by ``text``."""
    if not text:
        return []
    return [rule.rule_id for rule, pattern in COMPILED_BANNED_RULES if pattern.search(text)]


def violates_policy(text: str) -> bool:
    """True when ``text`` contains any banned phrase (case-insensitive)."""
    return bool(find_policy_violations(text))


def _assessment_texts(payload: StructuredAssessment) -> list[tuple[str, str]]:
    texts: list[tuple[str, str]] = [("disclaimer", payload.disclaimer)]
    if payload.headline is not None:
        texts.append(("headline", payload.headline))
    if payload.insight is not None:
        texts.append(("insight", payload.insight))
    for index, action in enumerate(payload.actions or []):
        texts.append((f"actions[{index}]", action))
    for index, watchout in enumerate(payload.watchouts or []):
        texts.append((f"watchouts[{index}]", watchout))
    if payload.scenarios is not None:
        texts.append(("scenarios.if_regulation_tightens", payload.scenarios.if_regulation_tightens))
        texts.append(("scenarios.if_budgets_tighten", payload.scenarios.if_budgets_tighten))
    return texts


def find_assessment_violations(payload: StructuredAssessment) -> dict[str, list[str]]:
    """Map each field containing banned content to the rule ids it matched."""
    violations: dict[str, list[str]] = {}
    for field, text in _assessment_texts(payload):
        matched = find_policy_violations(text)
        if matched:
            violations[field] = matched
    return violations


def check_structure(
    payload: StructuredAssessment,
    *,
    enforce_word_count: bool = True,
) -> list[StructuralIssue]:
    """Report structural constraint breaches for a parsed payload."""
    issues: list[StructuralIssue] = []

    if not payload.insight or not payload.insight.strip():
        issues.append(StructuralIssue(field="insight", message="Insight is missing.", blocking=True))
    else:
        word_count = get_word_count(payload.insight)
        if not WORD_COUNT_MIN <= word_count <= WORD_COUNT_MAX:
            issues.append(
                StructuralIssue(
                    field="insight",
                    message=(
                        f"Insight has {word_count} words; expected "
                        f"{WORD_COUNT_MIN}-{WORD_COUNT_MAX}."
                    ),
                    blocking=enforce_word_count,
                )
            )
        paragraphs = [p for p in _PARAGRAPH_SPLIT.split(payload.insight.strip()) if p.strip()]
        if len(paragraphs) != INSIGHT_PARAGRAPHS:
            issues.append(
                StructuralIssue(
                    field="insight",
                    message=f"Insight has {len(paragraphs)} paragraphs; expected {INSIGHT_PARAGRAPHS}.",
                )
            )

    if payload.headline is not None and len(payload.headline) > HEADLINE_MAX_CHARS:
        issues.append(
            StructuralIssue(
                field="headline",
                message=f"Headline exceeds {HEADLINE_MAX_CHARS} characters.",
            )
        )

    for field, items, limit in (
        ("actions", payload.actions, MAX_ACTIONS),
        ("watchouts", payload.watchouts, MAX_WATCHOUTS),
    ):
        if items is None:
            continue
        if len(items) > limit:
            issues.append(
                StructuralIssue(field=field, message=f"{len(items)} entries; at most {limit} allowed.")
            )
        for index, item in enumerate(items):
            if len(item) > ITEM_MAX_CHARS:
                issues.append(
                    StructuralIssue(
                        field=f"{field}[{index}]",
                        message=f"Entry exceeds {ITEM_MAX_CHARS} characters.",
                    )
                )

    return issues
