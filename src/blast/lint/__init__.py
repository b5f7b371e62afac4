"""Static checks over built pipelines."""

from blast.lint.linter import (
    Issue,
    Linter,
    PipelineAnalysisResult,
    PipelineIssues,
    Rule,
    SimpleRule,
)
from blast.lint.query import QueryValidatorRule
from blast.lint.rules import get_rules

__all__ = [
    "Issue",
    "Linter",
    "PipelineAnalysisResult",
    "PipelineIssues",
    "QueryValidatorRule",
    "Rule",
    "SimpleRule",
    "get_rules",
]
