"""Pydantic models for the Situation Assessment payload and its inputs."""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


class ContextProfile(BaseModel):
    """Organisational context signals captured before the pulse check."""

    regulatory_intensity: float = Field(ge=0, le=4)
    data_sensitivity: float = Field(ge=0, le=4)
    safety_criticality: float = Field(ge=0, le=4)
    brand_exposure: float = Field(ge=0, le=4)
    clock_speed: float = Field(ge=0, le=4)
    latency_edge: float = Field(ge=0, le=4)
    scale_throughput: float = Field(ge=0, le=4)
    data_advantage: float = Field(ge=0, le=4)
    build_readiness: float = Field(ge=0, le=4)
    finops_priority: float = Field(ge=0, le=4)
    procurement_constraints: bool = False
    edge_operations: bool = False


class Scenarios(BaseModel):
    """Two short "what if" projections shown under the insight."""

    if_regulation_tightens: str
    if_budgets_tighten: str


class StructuredAssessment(BaseModel):
    """Situation Assessment 2.0: headline, narrative insight and short lists."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: Literal["structured"] = "structured"
    headline: str | None = None
    insight: str | None = None
    actions: list[str] | None = None
    watchouts: list[str] | None = None
    scenarios: Scenarios | None = None
    disclaimer: str = ""


class LegacyAssessment(BaseModel):
    """Pre-2.0 "3-3-2" shape kept for stored payloads and older clients."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: Literal["legacy"] = "legacy"
    strengths: list[str] | None = None
    fragilities: list[str] | None = None
    what_works: list[str] | None = None
    insight: str | None = None
    disclaimer: str = ""


SituationAssessment = Annotated[
    Union[StructuredAssessment, LegacyAssessment],
    Field(discriminator="kind"),
]

_SITUATION_ASSESSMENT_ADAPTER: TypeAdapter[StructuredAssessment | LegacyAssessment] = TypeAdapter(
    SituationAssessment
)

_LEGACY_KEYS = frozenset({"strengths", "fragilities", "whatWorks", "what_works"})


def load_stored_assessment(payload: dict[str, Any]) -> StructuredAssessment | LegacyAssessment:
    """Validate a stored payload into the tagged union.

    Rows written before payloads carried a ``kind`` tag are tagged here, once,
    at the storage boundary; everything downstream dispatches on the tag.
    """
    data = {key: value for key, value in payload.items() if key != "debug"}
    if "kind" not in data:
        data["kind"] = "legacy" if _LEGACY_KEYS & data.keys() else "structured"
    return _SITUATION_ASSESSMENT_ADAPTER.validate_python(data)
