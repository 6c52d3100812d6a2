"""Opportunity filtering with an explanation trail."""

from pipeline_analytics.models.filters import OpportunityFilter

from .engine import FilterEngine, FilterResult
from .rules import (
    apply_client_rule,
    apply_owner_rule,
    apply_search_rule,
    apply_stage_rule,
    apply_value_rule,
)

__all__ = [
    "FilterEngine",
    "FilterResult",
    "OpportunityFilter",
    "apply_client_rule",
    "apply_owner_rule",
    "apply_search_rule",
    "apply_stage_rule",
    "apply_value_rule",
]
