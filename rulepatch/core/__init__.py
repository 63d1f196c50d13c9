"""Core review pipeline for rulepatch."""

from rulepatch.core.prompt_builder import PromptBuilder, build_review_messages
from rulepatch.core.review_pool import (
    ReviewPool,
    ReviewResult,
    ReviewStatus,
    ReviewSummary,
    classify_reply,
    run_review,
)
from rulepatch.core.rule_document import RuleDocument, load_rule, parse_rule, serialize_rule
from rulepatch.core.rule_set import RuleSet

__all__ = [
    "RuleDocument",
    "RuleSet",
    "PromptBuilder",
    "ReviewPool",
    "ReviewResult",
    "ReviewStatus",
    "ReviewSummary",
    "build_review_messages",
    "classify_reply",
    "load_rule",
    "parse_rule",
    "run_review",
    "serialize_rule",
]
