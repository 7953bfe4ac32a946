from __future__ import annotations

import pytest
from pydantic import ValidationError

from cortex.assessment.models import (
    ContextProfile,
    LegacyAssessment,
    StructuredAssessment,
    load_stored_assessment,
)


def test_profile_dimensions_are_bounded() -> None:
    with pytest.raises(ValidationError):
        ContextProfile(
            regulatory_intensity=5,
            data_sensitivity=0,
            safety_criticality=0,
            brand_exposure=0,
            clock_speed=0,
            latency_edge=0,
            scale_throughput=0,
            data_advantage=0,
            build_readiness=0,
            finops_priority=0,
        )


def test_structured_payload_uses_camel_case_aliases() -> None:
    payload = StructuredAssessment.model_validate(
        {
            "insight": "A.",
            "scenarios": {"if_regulation_tightens": "r", "if_budgets_tighten": "b"},
            "disclaimer": "d",
        }
    )
    dumped = payload.model_dump(by_alias=True)
    assert dumped["kind"] == "structured"
    assert dumped["scenarios"] == {"if_regulation_tightens": "r", "if_budgets_tighten": "b"}


def test_tagged_rows_dispatch_on_kind() -> None:
    loaded = load_stored_assessment({"kind": "legacy", "insight": "A.", "disclaimer": "d"})
    assert isinstance(loaded, LegacyAssessment)


def test_untagged_legacy_row_is_tagged() -> None:
    loaded = load_stored_assessment(
        {
            "strengths": ["s"],
            "fragilities": ["f"],
            "whatWorks": ["w"],
            "insight": "A.",
            "disclaimer": "d",
        }
    )
    assert isinstance(loaded, LegacyAssessment)
    assert loaded.what_works == ["w"]


def test_untagged_structured_row_is_tagged_and_debug_dropped() -> None:
    loaded = load_stored_assessment(
        {"headline": "h", "insight": "A.", "disclaimer": "d", "debug": {"source": "ai"}}
    )
    assert isinstance(loaded, StructuredAssessment)
    assert loaded.headline == "h"


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValidationError):
        load_stored_assessment({"kind": "other", "insight": "A."})
