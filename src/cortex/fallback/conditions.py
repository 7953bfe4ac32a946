"""Typed predicates over context-profile signals.

Template triggers are expressed as data (field, operator, threshold) and
evaluated here against a fixed field set. Nothing is parsed or evaluated from
strings.
"""

from __future__ import annotations

import operator
from collections.abc import Callable, Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from cortex.assessment.models import ContextProfile

ProfileField = Literal[
    "regulatory_intensity",
    "data_sensitivity",
    "safety_criticality",
    "brand_exposure",
    "clock_speed",
    "latency_edge",
    "scale_throughput",
    "data_advantage",
    "build_readiness",
    "finops_priority",
]

Comparison = Literal[">=", "<=", ">", "<", "=="]

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "==": operator.eq,
}


class Condition(BaseModel):
    """A single comparison of one profile dimension against a threshold."""

    model_config = ConfigDict(frozen=True)

    field: ProfileField
    op: Comparison
    threshold: float

    def evaluate(self, profile: ContextProfile) -> bool:
        return _OPERATORS[self.op](getattr(profile, self.field), self.threshold)


class Trigger(BaseModel):
    """Combination of conditions: every ``all_of`` and at least one ``any_of`` must hold.

    An empty ``any_of`` is vacuously satisfied; an empty trigger always matches.
    """

    model_config = ConfigDict(frozen=True)

    all_of: tuple[Condition, ...] = Field(default_factory=tuple)
    any_of: tuple[Condition, ...] = Field(default_factory=tuple)

    def evaluate(self, profile: ContextProfile) -> bool:
        if not all(condition.evaluate(profile) for condition in self.all_of):
            return False
        if self.any_of and not any(condition.evaluate(profile) for condition in self.any_of):
            return False
        return True


def when(field: ProfileField, op: Comparison, threshold: float) -> Condition:
    return Condition(field=field, op=op, threshold=threshold)


def first_match(
    profile: ContextProfile,
    candidates: Sequence[tuple[str, Trigger]],
) -> str | None:
    """Return the key of the first candidate whose trigger holds for ``profile``."""
    for key, trigger in candidates:
        if trigger.evaluate(profile):
            return key
    return None
