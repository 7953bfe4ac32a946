"""Pre-vetted static Situation Assessments used when generation is exhausted.

Every template satisfies the content policy and the structural contract by
construction; the test suite checks this for each entry.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict

from cortex.assessment.models import ContextProfile, Scenarios, StructuredAssessment

from .conditions import Trigger, first_match, when

logger = logging.getLogger(__name__)

DISCLAIMER = "Educational reflection based on your context; not a compliance determination."

DEFAULT_TEMPLATE_ID = "regulated"


class FallbackTemplate(BaseModel):
    """A static assessment plus the profile trigger that selects it."""

    model_config = ConfigDict(frozen=True)

    template_id: str
    trigger: Trigger
    assessment: StructuredAssessment


_REGULATED = FallbackTemplate(
    template_id="regulated",
    trigger=Trigger(),
    assessment=StructuredAssessment(
        headline="Guardrails give you a license to operate; speed depends on making controls explicit early.",
        insight=(
            "Your organization operates in a context where regulatory expectations and data "
            "sensitivity create clear guardrails and stakeholder trust, while also imposing "
            "oversight and integration friction. In environments like this, value tends to "
            "emerge where outcomes are observable and risk can be bounded. The upside is a "
            "durable license to operate when controls are explicit; the trade-off is a slower "
            "path to production if governance, data lineage, and supplier requirements are not "
            "addressed early.\n\n"
            "Momentum typically comes from contained, high-signal pilots: workflows with "
            "measurable decisions, well-defined inputs, and human review checkpoints for "
            "material outcomes. Codify continuity early, including latency thresholds, fallbacks "
            "to standard procedures, and simple rollbacks, so operations never stall when a "
            "model misbehaves. As pilots prove stable, expand along data pipelines you already "
            "trust, harden auditability, and make review criteria explicit so oversight becomes "
            "routine rather than reactive. Leaders who treat governance as an enabler tend to "
            "move faster over time, because approvals become predictable and teams stop "
            "relitigating the same questions for every new use-case."
        ),
        actions=[
            "Pick one contained pilot with measurable decisions and human review.",
            "Document data lineage and supplier requirements before production.",
            "Define rollback paths and fallbacks to standard procedures.",
        ],
        watchouts=[
            "Approvals that stall because review criteria are implicit.",
            "Pilots that expand before auditability is in place.",
        ],
        scenarios=Scenarios(
            if_regulation_tightens=(
                "Explicit controls and audit trails let existing pilots continue while new "
                "scope waits for review."
            ),
            if_budgets_tighten=(
                "Concentrate on the few workflows with observable outcomes and pause broad "
                "exploration."
            ),
        ),
        disclaimer=DISCLAIMER,
    ),
)

_FAST_MOVING = FallbackTemplate(
    template_id="fast-moving",
    trigger=Trigger(
        all_of=(
            when("clock_speed", ">=", 3),
            when("regulatory_intensity", "<", 3),
        ),
    ),
    assessment=StructuredAssessment(
        headline="Speed is your edge; shared guardrails and outcome metrics keep pilots from stalling.",
        insight=(
            "Your operating context favors speed and iteration. Lighter external constraints and "
            "a faster competitive tempo enable experimentation and short feedback loops, while "
            "raising the risk of fragmented tooling, shadow adoption, and uneven quality if "
            "standards lag behind usage. The opportunity is rapid learning and differentiation; "
            "the hazard is value that stalls at pilot because integration and measurement trail "
            "adoption.\n\n"
            "Prioritize quick wins that connect directly to revenue or cycle time, but anchor "
            "them to minimal, shared guardrails: prompt and output policies, data boundaries, "
            "and review criteria for customer-facing content. Instrument for outcome metrics "
            "from the start, such as time saved, conversion, and resolution rate, and publish a "
            "simple graduation path from pilot to supported to scaled. Consolidate on a small "
            "set of services early to avoid tool sprawl as usage accelerates. Teams that pair "
            "speed with a light but consistent operating rhythm usually compound their gains, "
            "because each experiment leaves behind reusable components, cleaner data, and "
            "clearer evidence about what deserves a larger investment next quarter."
        ),
        actions=[
            "Tie each quick win to a revenue or cycle-time outcome metric.",
            "Publish a simple pilot-to-scaled graduation path.",
            "Consolidate on a small set of services before usage spreads.",
        ],
        watchouts=[
            "Shadow adoption that outpaces shared data boundaries.",
            "Pilots that never graduate because measurement trails usage.",
        ],
        scenarios=Scenarios(
            if_regulation_tightens=(
                "Minimal shared policies already in place make it easier to add review steps "
                "without halting delivery."
            ),
            if_budgets_tighten=(
                "Keep the experiments with measured outcomes and retire tools that duplicate "
                "each other."
            ),
        ),
        disclaimer=DISCLAIMER,
    ),
)

_LEGACY_INTEGRATION = FallbackTemplate(
    template_id="legacy-integration",
    trigger=Trigger(
        any_of=(
            when("scale_throughput", ">=", 2),
            when("latency_edge", ">=", 2),
        ),
    ),
    assessment=StructuredAssessment(
        headline="Reliability comes first; start where interfaces are stable and latency budgets are tolerant.",
        insight=(
            "A complex integration surface and strict continuity needs favor reliability over "
            "novelty. Value tends to appear where AI augments well-bounded tasks near existing "
            "systems of record. The benefit is clear provenance and stable runtime behavior; the "
            "downside is longer integration paths and stricter latency and observability "
            "constraints that can limit model choice or scope.\n\n"
            "Start where latency budgets are tolerant and interfaces are stable, such as "
            "internal knowledge retrieval, assisted drafting, and triage. Define response-time "
            "targets and rollback paths up front so operations never stall. Co-locate inference "
            "near data when feasible, and prefer patterns that cache, retrieve, and verify over "
            "those that require deep re-platforming. As reliability holds, expand into "
            "higher-impact surfaces with explicit service objectives and automated quality "
            "checks. Organizations in this position often underestimate how much progress comes "
            "from small interface improvements, so budget time for integration work, monitoring, "
            "and runbooks alongside model work, and treat each successful rollout as a reusable "
            "pattern rather than a one-off project."
        ),
        actions=[
            "Start with retrieval, drafting or triage near systems of record.",
            "Set response-time targets and rollback paths before launch.",
            "Prefer cache, retrieve and verify patterns over re-platforming.",
        ],
        watchouts=[
            "Latency limits that quietly narrow model choice.",
            "Integration effort that is budgeted as an afterthought.",
        ],
        scenarios=Scenarios(
            if_regulation_tightens=(
                "Clear provenance near systems of record simplifies evidence requests from "
                "auditors."
            ),
            if_budgets_tighten=(
                "Favor reusable integration patterns and defer surfaces that need deep "
                "re-platforming."
            ),
        ),
        disclaimer=DISCLAIMER,
    ),
)

# Selection order matters: the first matching trigger wins.
FALLBACK_TEMPLATES: tuple[FallbackTemplate, ...] = (
    _FAST_MOVING,
    _LEGACY_INTEGRATION,
    _REGULATED,
)

_TEMPLATES_BY_ID: dict[str, FallbackTemplate] = {
    template.template_id: template for template in FALLBACK_TEMPLATES
}


def get_template(template_id: str) -> FallbackTemplate:
    return _TEMPLATES_BY_ID[template_id]


def select_template(profile: ContextProfile | None) -> FallbackTemplate:
    """Pick the fallback template for ``profile``; no profile selects the default."""
    if profile is None:
        return get_template(DEFAULT_TEMPLATE_ID)

    template_id = first_match(
        profile,
        [(template.template_id, template.trigger) for template in FALLBACK_TEMPLATES],
    )
    selected = get_template(template_id or DEFAULT_TEMPLATE_ID)
    logger.debug("Selected fallback template '%s'", selected.template_id)
    return selected
