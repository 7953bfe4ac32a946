"""Content policy: banned lexicon and structural validation."""

from cortex.policy.rules import BANNED_RULES, BannedRule, RuleCategory
from cortex.policy.validator import (
    StructuralIssue,
    check_structure,
    find_assessment_violations,
    find_policy_violations,
    get_word_count,
    is_valid_word_count,
    violates_policy,
)

__all__ = [
    "BANNED_RULES",
    "BannedRule",
    "RuleCategory",
    "StructuralIssue",
    "check_structure",
    "find_assessment_violations",
    "find_policy_violations",
    "get_word_count",
    "is_valid_word_count",
    "violates_policy",
]
