"""Banned-content rule set for generated Situation Assessment text.

Rules are data. Adding a term means adding a ``BannedRule`` entry; nothing
else in the pipeline needs to change.
"""

from __future__ import annotations

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict


class RuleCategory(str, Enum):
    """Why a phrase is banned from user-facing text."""

    internal_vocabulary = "internal_vocabulary"  # Framework terms reserved for other screens
    rule_echo = "rule_echo"                      # Prompt constraints echoed back by the model
    process_leakage = "process_leakage"          # Internal process / compliance jargon


class BannedRule(BaseModel):
    """A single case-insensitive banned phrase pattern."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    category: RuleCategory
    pattern: str
    description: str = ""

    def compile(self) -> re.Pattern[str]:
        return re.compile(self.pattern, re.IGNORECASE)


BANNED_RULES: tuple[BannedRule, ...] = (
    BannedRule(
        rule_id="strength",
        category=RuleCategory.internal_vocabulary,
        pattern=r"\bstrengths?\b",
        description="Legacy 3-3-2 vocabulary",
    ),
    BannedRule(
        rule_id="fragility",
        category=RuleCategory.internal_vocabulary,
        pattern=r"\bfragilit(?:y|ies)\b",
        description="Legacy 3-3-2 vocabulary",
    ),
    BannedRule(
        rule_id="no-vendor-names",
        category=RuleCategory.rule_echo,
        pattern=r"\bno\s+vendor\s+names?\b",
    ),
    BannedRule(
        rule_id="no-benchmarks",
        category=RuleCategory.rule_echo,
        pattern=r"\bno\s+benchmarks?\b",
    ),
    BannedRule(
        rule_id="probability-based",
        category=RuleCategory.rule_echo,
        pattern=r"\bprobability[- ]?based\b",
    ),
    BannedRule(
        rule_id="under-n-words",
        category=RuleCategory.rule_echo,
        pattern=r"\bunder\s+\d+\s*words?\b",
    ),
)

# Phrases stripped by the sanitizer in addition to BANNED_RULES. These echo the
# prompt's process instructions and are removed silently rather than rejected.
LEAKED_INSTRUCTION_RULES: tuple[BannedRule, ...] = (
    BannedRule(
        rule_id="methodology-compliant",
        category=RuleCategory.process_leakage,
        pattern=r"\bmethodology\s+compliant\b",
    ),
    BannedRule(
        rule_id="guidance-compliant",
        category=RuleCategory.process_leakage,
        pattern=r"\bguidance\s+compliant\b",
    ),
    BannedRule(
        rule_id="avoid-vendor",
        category=RuleCategory.rule_echo,
        pattern=r"\bavoid\s+(?:vendor|naming|metrics|benchmarks)\b",
    ),
)

COMPILED_BANNED_RULES: tuple[tuple[BannedRule, re.Pattern[str]], ...] = tuple(
    (rule, rule.compile()) for rule in BANNED_RULES
)

# One alternation per lexicon, used for stripping.
BANNED_PHRASES_PATTERN = re.compile(
    "|".join(f"(?:{rule.pattern})" for rule in BANNED_RULES),
    re.IGNORECASE,
)
LEAKED_INSTRUCTIONS_PATTERN = re.compile(
    "|".join(
        f"(?:{rule.pattern})"
        for rule in (*BANNED_RULES, *LEAKED_INSTRUCTION_RULES)
        if rule.category is not RuleCategory.internal_vocabulary
    ),
    re.IGNORECASE,
)
