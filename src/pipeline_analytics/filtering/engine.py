"""Filter engine with pluggable rules and explanation trail."""

from typing import Callable, Optional

from pydantic import BaseModel, Field

from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.opportunity import (
    Opportunity,
    PipelineDataset,
    Snapshot,
    current_state,
)

from .rules import (
    apply_client_rule,
    apply_owner_rule,
    apply_search_rule,
    apply_stage_rule,
    apply_value_rule,
)


class FilterResult(BaseModel):
    """Result of filtering an opportunity against the criteria."""

    passed: bool = Field(..., description="All rules passed")
    explanations: list[str] = Field(default_factory=list)
    opportunity: Opportunity = Field(..., description="The opportunity that was filtered")
    excluded_by_rule: Optional[str] = Field(
        default=None,
        description="First rule that excluded (owner|stage|client|search|value)",
    )


RuleFn = Callable[[Opportunity, Optional[Snapshot], OpportunityFilter], tuple[bool, str, str]]


class FilterEngine:
    """
    Applies filter criteria to opportunities, judged on their current state.
    Each rule returns (passed, explanation, rule_id); any failing rule excludes.
    """

    def __init__(self, criteria: Optional[OpportunityFilter] = None):
        self.criteria = criteria or OpportunityFilter()
        self._rules: list[RuleFn] = [
            apply_owner_rule,
            apply_stage_rule,
            apply_client_rule,
            apply_search_rule,
            apply_value_rule,
        ]

    def filter(self, opp: Opportunity, current: Optional[Snapshot] = None) -> FilterResult:
        """Apply all rules and return FilterResult with explanation trail."""
        explanations: list[str] = []
        all_passed = True
        excluded_by: Optional[str] = None

        for rule_fn in self._rules:
            passed, explanation, rule_id = rule_fn(opp, current, self.criteria)
            explanations.append(explanation)
            if not passed:
                all_passed = False
                if excluded_by is None:
                    excluded_by = rule_id

        return FilterResult(
            passed=all_passed,
            explanations=explanations,
            opportunity=opp,
            excluded_by_rule=excluded_by,
        )

    def filter_many(self, dataset: PipelineDataset) -> list[FilterResult]:
        """Filter every opportunity in the dataset against its latest snapshot."""
        groups = dataset.snapshots_by_opportunity()
        return [self.filter(opp, current_state(groups.get(opp.id, []))) for opp in dataset.opportunities]

    def filter_passed(self, dataset: PipelineDataset) -> list[FilterResult]:
        """Filter and return only results that passed."""
        return [r for r in self.filter_many(dataset) if r.passed]

    def filter_dataset(self, dataset: PipelineDataset) -> PipelineDataset:
        """Dataset restricted to passing opportunities and their snapshots."""
        if self.criteria.is_empty:
            return dataset
        kept = {r.opportunity.id for r in self.filter_passed(dataset)}
        return dataset.restricted_to(kept)
