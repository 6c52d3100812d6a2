"""Filter rules: each returns (passed, explanation, rule_id)."""

from typing import Optional

from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.opportunity import Opportunity, Snapshot


def _normalize_for_match(text: Optional[str]) -> str:
    """Lowercase and strip for matching; empty string if None."""
    return (text or "").lower().strip()


def apply_owner_rule(
    opp: Opportunity, current: Optional[Snapshot], criteria: OpportunityFilter
) -> tuple[bool, str, str]:
    """Owner must match exactly, ignoring case."""
    if not criteria.owner:
        return True, "Owner filter not set", "owner"

    if _normalize_for_match(opp.owner) == _normalize_for_match(criteria.owner):
        return True, f"Owned by {opp.owner}", "owner"

    return False, f"Excluded: owner {opp.owner or '(none)'} is not {criteria.owner}", "owner"


def apply_stage_rule(
    opp: Opportunity, current: Optional[Snapshot], criteria: OpportunityFilter
) -> tuple[bool, str, str]:
    """
    Current stage must be one of criteria.stages.
    Opportunities with no current snapshot cannot match a stage filter.
    """
    if not criteria.stages:
        return True, "Stage filter not set", "stage"

    if current is None or not current.stage:
        return False, "Excluded: no current stage", "stage"

    wanted = {_normalize_for_match(s) for s in criteria.stages}
    if _normalize_for_match(current.stage) in wanted:
        return True, f"In stage: {current.stage}", "stage"

    return False, f"Excluded: stage {current.stage} not in {criteria.stages}", "stage"


def apply_client_rule(
    opp: Opportunity, current: Optional[Snapshot], criteria: OpportunityFilter
) -> tuple[bool, str, str]:
    if not criteria.client_name:
        return True, "Client filter not set", "client"

    if _normalize_for_match(opp.client_name) == _normalize_for_match(criteria.client_name):
        return True, f"Client: {opp.client_name}", "client"

    return False, f"Excluded: client {opp.client_name or '(none)'} is not {criteria.client_name}", "client"


def apply_search_rule(
    opp: Opportunity, current: Optional[Snapshot], criteria: OpportunityFilter
) -> tuple[bool, str, str]:
    """Search text matches a substring of name, client name or CRM id."""
    term = _normalize_for_match(criteria.search)
    if not term:
        return True, "Search not set", "search"

    searchable = " ".join([opp.name, opp.client_name or "", opp.crm_id]).lower()
    if term in searchable:
        return True, f"Matches search: {criteria.search}", "search"

    return False, f"Excluded: no match for '{criteria.search}'", "search"


def apply_value_rule(
    opp: Opportunity, current: Optional[Snapshot], criteria: OpportunityFilter
) -> tuple[bool, str, str]:
    """
    Current amount within [min_value, max_value]. Missing amount counts as 0.
    """
    if criteria.min_value is None and criteria.max_value is None:
        return True, "Value filter not set", "value"

    amount = current.value if current is not None else 0.0

    if criteria.min_value is not None and amount < criteria.min_value:
        return False, f"Excluded: value {amount} below min {criteria.min_value}", "value"

    if criteria.max_value is not None and amount > criteria.max_value:
        return False, f"Excluded: value {amount} above max {criteria.max_value}", "value"

    return True, "Within value range", "value"
