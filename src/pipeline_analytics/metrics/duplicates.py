"""Group opportunities that share a client name (renewals, duplicate entries)."""

from collections import defaultdict
from typing import Iterable, Optional

from pipeline_analytics.models.opportunity import Opportunity, Snapshot, current_state
from pipeline_analytics.models.results import DuplicateGroup, DuplicateMember


def _member(opp: Opportunity, state: Optional[Snapshot]) -> DuplicateMember:
    return DuplicateMember(
        id=opp.id,
        crm_id=opp.crm_id,
        name=opp.name,
        owner=opp.owner,
        is_active=opp.is_active,
        stage=state.stage if state else None,
        amount=state.value if state else 0.0,
        close_date=state.resolved_close_date if state else None,
    )


def duplicate_groups(
    opportunities: Iterable[Opportunity],
    groups: dict[str, list[Snapshot]],
) -> list[DuplicateGroup]:
    """
    Opportunities grouped by exact client name; only groups with more than one
    member are returned, largest total value first. No date filter applies.
    """
    by_client: dict[str, list[DuplicateMember]] = defaultdict(list)
    for opp in opportunities:
        client = opp.client_name
        if not client or not client.strip():
            continue
        by_client[client].append(_member(opp, current_state(groups.get(opp.id, []))))

    result: list[DuplicateGroup] = []
    for client, members in by_client.items():
        if len(members) < 2:
            continue
        active = [m for m in members if m.is_active]
        result.append(
            DuplicateGroup(
                client_name=client,
                opportunities=members,
                active_opportunities=active,
                previous_opportunities=[m for m in members if not m.is_active],
                total_value=sum(m.amount for m in members),
                total_opportunities_count=len(members),
                active_opportunities_count=len(active),
            )
        )
    result.sort(key=lambda g: (-g.total_value, g.client_name))
    return result
