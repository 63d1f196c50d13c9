"""rulepatch - rule-driven, LLM-powered code review that writes patch files."""

__version__ = "0.1.0"
__author__ = "rulepatch Contributors"

from rulepatch.core.review_pool import ReviewPool, run_review
from rulepatch.core.rule_document import RuleDocument, parse_rule, serialize_rule
from rulepatch.core.rule_set import RuleSet

__all__ = [
    "__version__",
    "RuleDocument",
    "RuleSet",
    "ReviewPool",
    "parse_rule",
    "serialize_rule",
    "run_review",
]
