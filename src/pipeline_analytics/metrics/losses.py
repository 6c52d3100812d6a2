"""
Closed-lost analysis.

A loss is one run of consecutive closed-lost snapshots for an opportunity. The
last snapshot of the run supplies reason, year-1 value and close date; the snapshot
just before the run supplies the stage the deal was lost from.
"""

from collections import defaultdict
from typing import Optional, Union

from pipeline_analytics.dates import DateRange
from pipeline_analytics.models.opportunity import Opportunity, Snapshot
from pipeline_analytics.models.results import LossReasonRow, LossReasonStageRow, RecentLoss
from pipeline_analytics.stages import StageCatalog

OpportunityLookup = Union[dict[str, Opportunity], list[Opportunity], None]


def _as_map(opportunities: OpportunityLookup) -> dict[str, Opportunity]:
    if isinstance(opportunities, list):
        return {o.id: o for o in opportunities}
    return opportunities or {}


def lost_episodes(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
    opportunities: OpportunityLookup = None,
) -> list[RecentLoss]:
    """All closed-lost episodes whose resolved close date falls in the window."""
    settings = catalog.settings
    opp_map = _as_map(opportunities)
    losses: list[RecentLoss] = []

    for opp_id, snaps in groups.items():
        i = 0
        while i < len(snaps):
            if not catalog.is_lost(snaps[i].stage):
                i += 1
                continue
            j = i
            while j + 1 < len(snaps) and catalog.is_lost(snaps[j + 1].stage):
                j += 1
            record = snaps[j]
            previous_stage = snaps[i - 1].stage if i > 0 else settings.direct_import_label
            close_date = record.resolved_close_date
            if date_range is None or not date_range.bounded or date_range.contains(close_date):
                opp = opp_map.get(opp_id)
                losses.append(
                    RecentLoss(
                        opportunity_id=opp_id,
                        opportunity_name=(opp.name if opp and opp.name else opp_id),
                        client_name=opp.client_name if opp else None,
                        loss_reason=(record.loss_reason or "").strip() or settings.unknown_reason_label,
                        value=record.annualized_value,
                        close_date=close_date,
                        previous_stage=previous_stage,
                    )
                )
            i = j + 1
    return losses


def loss_by_reason(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[LossReasonRow]:
    """Loss count and value per reason, most frequent first."""
    losses = lost_episodes(groups, catalog, date_range)
    counts: dict[str, int] = defaultdict(int)
    values: dict[str, float] = defaultdict(float)
    for loss in losses:
        counts[loss.loss_reason] += 1
        values[loss.loss_reason] += loss.value

    total = len(losses)
    rows = [
        LossReasonRow(
            reason=reason,
            count=counts[reason],
            total_value=values[reason],
            percentage=round(counts[reason] / total * 100, 1),
        )
        for reason in counts
    ]
    rows.sort(key=lambda r: (-r.count, -r.total_value, r.reason))
    return rows


def loss_by_reason_and_stage(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[LossReasonStageRow]:
    """Loss count and value per (reason, stage lost from)."""
    losses = lost_episodes(groups, catalog, date_range)
    counts: dict[tuple[str, str], int] = defaultdict(int)
    values: dict[tuple[str, str], float] = defaultdict(float)
    for loss in losses:
        key = (loss.loss_reason, loss.previous_stage)
        counts[key] += 1
        values[key] += loss.value

    total = len(losses)
    rows = [
        LossReasonStageRow(
            reason=reason,
            previous_stage=stage,
            count=counts[(reason, stage)],
            total_value=values[(reason, stage)],
            percentage=round(counts[(reason, stage)] / total * 100, 1),
        )
        for reason, stage in counts
    ]
    rows.sort(key=lambda r: (r.reason, -r.count, r.previous_stage))
    return rows


def recent_losses(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    opportunities: OpportunityLookup = None,
    date_range: Optional[DateRange] = None,
    limit: Optional[int] = None,
) -> list[RecentLoss]:
    """Newest losses first, capped at limit (settings.recent_losses_limit by default)."""
    if limit is None:
        limit = catalog.settings.recent_losses_limit
    losses = lost_episodes(groups, catalog, date_range, opportunities)
    losses.sort(key=lambda loss: (loss.close_date, loss.opportunity_id), reverse=True)
    return losses[:limit]
