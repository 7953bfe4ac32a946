from __future__ import annotations

from cortex.assessment.models import ContextProfile
from cortex.generation.models import GenerationContext
from cortex.orchestrator.prompts import SYSTEM_PROMPT, build_prompt
from cortex.policy import violates_policy

_ID = "5b0f2c4e-8f0e-4a55-9d6c-2f1b0c3a7e11"


def _profile() -> ContextProfile:
    return ContextProfile(
        regulatory_intensity=4,
        data_sensitivity=3,
        safety_criticality=2,
        brand_exposure=2,
        clock_speed=1,
        latency_edge=1,
        scale_throughput=1,
        data_advantage=2,
        build_readiness=2,
        finops_priority=3,
    )


def test_first_round_prompt_contains_profile_json() -> None:
    prompt = build_prompt(GenerationContext(assessment_id=_ID, profile=_profile()))
    assert '"regulatory_intensity": 4.0' in prompt
    assert "PREVIOUS ATTEMPT REJECTED" not in prompt


def test_prompt_is_deterministic() -> None:
    context = GenerationContext(assessment_id=_ID, profile=_profile())
    assert build_prompt(context) == build_prompt(context)


def test_missing_profile_sends_empty_object() -> None:
    prompt = build_prompt(GenerationContext(assessment_id=_ID))
    assert "Profile JSON:\n{}" in prompt


def test_repair_note_for_parse_error() -> None:
    context = GenerationContext(assessment_id=_ID, round=2, previous_failure="parse_error")
    prompt = build_prompt(context)
    assert prompt.startswith("## PREVIOUS ATTEMPT REJECTED")
    assert "**Round:** 2" in prompt
    assert "could not be parsed" in prompt


def test_repair_note_for_policy_violation() -> None:
    context = GenerationContext(assessment_id=_ID, round=2, previous_failure="policy_violation")
    assert "150 and 220 words" in build_prompt(context)


def test_transport_failures_get_no_repair_note() -> None:
    context = GenerationContext(assessment_id=_ID, round=2, previous_failure="timeout")
    assert "PREVIOUS ATTEMPT REJECTED" not in build_prompt(context)


def test_system_prompt_does_not_seed_banned_vocabulary() -> None:
    assert not violates_policy(SYSTEM_PROMPT)
