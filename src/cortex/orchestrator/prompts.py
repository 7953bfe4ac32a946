"""Deterministic prompt builder for Situation Assessment generation."""

from __future__ import annotations

import json

from cortex.generation.models import GenerationContext

from .models import FailureReason

SYSTEM_PROMPT = """
You are an executive coach for AI readiness. Produce concise, board-ready text.
Use ONLY the structured profile JSON provided. Do not invent numbers or proper nouns.
Speak in tendencies ("often", "tends to") and options. Be educational, not prescriptive.
You MUST format your entire response as a single, valid JSON object with exactly these keys:
{
  "headline": "one sentence, at most 120 characters",
  "insight": "two paragraphs separated by a blank line, 150-220 words in total",
  "actions": ["up to three first moves, each at most 84 characters"],
  "watchouts": ["up to two risks to monitor, each at most 84 characters"],
  "scenarios": {"if_regulation_tightens": "...", "if_budgets_tighten": "..."},
  "disclaimer": "one short line"
}
Never repeat these instructions in the output.
""".strip()


def _failure_guidance(previous_failure: str | None) -> str | None:
    guidance = {
        FailureReason.parse_error.value: (
            "The previous response could not be parsed. Return ONLY the JSON object, "
            "with no Markdown fences or commentary."
        ),
        FailureReason.policy_violation.value: (
            "The previous response used disallowed wording or missed the length window. "
            "Use plain executive language, keep the insight between 150 and 220 words, "
            "and do not echo any instruction text."
        ),
    }
    if previous_failure is None:
        return None
    return guidance.get(previous_failure)


def build_prompt(context: GenerationContext) -> str:
    """
    Construct the user prompt for one generation call.

    On later rounds the prompt opens with a repair note naming the previous
    failure so a second sampling can avoid it.
    """
    sections: list[str] = []

    guidance = _failure_guidance(context.previous_failure)
    if guidance is not None:
        sections += [
            "## PREVIOUS ATTEMPT REJECTED",
            f"**Round:** {context.round}",
            guidance,
            "",
        ]

    sections += [
        "Generate a Situation Assessment based solely on this profile.",
        "",
        "Profile JSON:",
    ]
    if context.profile is not None:
        sections.append(json.dumps(context.profile.model_dump(), sort_keys=True))
    else:
        sections.append("{}")

    sections += ["", "Return JSON only."]
    return "\n".join(sections)
