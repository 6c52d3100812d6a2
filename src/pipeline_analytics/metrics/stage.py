"""
Stage metrics: distribution, time in stage, progression funnel,
closing probability and value change by stage.

All functions take snapshot groups keyed by opportunity id, as produced by
group_snapshots (usable snapshots only, ascending by date).
"""

from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from pipeline_analytics.dates import DateRange
from pipeline_analytics.models.opportunity import Snapshot, current_state
from pipeline_analytics.models.results import (
    ClosingProbability,
    FunnelStage,
    Movement,
    StageCount,
    StageTiming,
    ValueChange,
)
from pipeline_analytics.stages import StageCatalog


def _in_window(date_range: Optional[DateRange], value: Optional[date]) -> bool:
    if date_range is None or not date_range.bounded:
        return True
    return date_range.contains(value)


def _percent(part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return part / whole * 100


def stage_distribution(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    as_of: Optional[date] = None,
    active_only: bool = False,
) -> list[StageCount]:
    """Count opportunities and sum their value by current-state stage."""
    counts: dict[str, int] = defaultdict(int)
    values: dict[str, float] = defaultdict(float)
    for snaps in groups.values():
        state = current_state(snaps, as_of)
        if state is None:
            continue
        if active_only and catalog.is_closed(state.stage):
            continue
        counts[state.stage] += 1
        values[state.stage] += state.value

    return [
        StageCount(stage=stage, count=counts[stage], total_value=values[stage])
        for stage in catalog.ordered(counts)
    ]


def time_in_stage(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[StageTiming]:
    """
    Average days spent per stage. The gap between two adjacent snapshots is
    attributed to the earlier snapshot's stage and summed per opportunity;
    the per-opportunity totals are then averaged.
    """
    per_stage: dict[str, list[int]] = defaultdict(list)
    for snaps in groups.values():
        days_by_stage: dict[str, int] = defaultdict(int)
        for prev, curr in zip(snaps, snaps[1:]):
            if catalog.is_closed(prev.stage):
                continue
            if not _in_window(date_range, curr.snapshot_date):
                continue
            days_by_stage[prev.stage] += (curr.snapshot_date - prev.snapshot_date).days
        for stage, days in days_by_stage.items():
            per_stage[stage].append(days)

    result: list[StageTiming] = []
    for stage in catalog.ordered(per_stage):
        totals = per_stage[stage]
        result.append(
            StageTiming(
                stage=stage,
                avg_days=round(sum(totals) / len(totals), 1),
                opportunity_count=len(totals),
            )
        )
    return result


def _advanced(movement: Movement, catalog: StageCatalog) -> bool:
    """Forward move: later ordered stage, Closed Won, or off the known order. Never lost."""
    if catalog.is_lost(movement.to_stage):
        return False
    to_idx = catalog.index(movement.to_stage)
    if to_idx is None:
        return True
    from_idx = catalog.index(movement.from_stage)
    return from_idx is not None and to_idx > from_idx


def progression_funnel(movements: Iterable[Movement], catalog: StageCatalog) -> list[FunnelStage]:
    """
    Per ordered stage: distinct opportunities leaving it, how many advanced,
    and the composed probability of reaching it.

    The cumulative rate multiplies a stage's own rate by the rates of every
    stage from the second up to the one before it. The first stage's rate is
    not part of the product.
    """
    started: dict[str, set[str]] = defaultdict(set)
    advanced: dict[str, set[str]] = defaultdict(set)
    for movement in movements:
        if not catalog.is_known(movement.from_stage):
            continue
        started[movement.from_stage].add(movement.opportunity_id)
        if _advanced(movement, catalog):
            advanced[movement.from_stage].add(movement.opportunity_id)

    rates = [_percent(len(advanced[s]), len(started[s])) for s in catalog.order]

    funnel: list[FunnelStage] = []
    for i, stage in enumerate(catalog.order):
        cumulative = rates[i]
        for j in range(1, i):
            cumulative = cumulative * rates[j] / 100
        funnel.append(
            FunnelStage(
                stage=stage,
                started=len(started[stage]),
                advanced=len(advanced[stage]),
                stage_rate=round(rates[i], 1),
                cumulative_rate=round(cumulative, 1),
            )
        )
    return funnel


def closing_probability(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[ClosingProbability]:
    """Win rate of closed deals broken out by each ordered stage they passed through."""
    totals: dict[str, int] = defaultdict(int)
    won: dict[str, int] = defaultdict(int)
    lost: dict[str, int] = defaultdict(int)

    for snaps in groups.values():
        if not snaps:
            continue
        final = snaps[-1]
        is_won = catalog.is_won(final.stage)
        if not is_won and not catalog.is_lost(final.stage):
            continue
        if not _in_window(date_range, final.resolved_close_date):
            continue
        visited = {s.stage for s in snaps if catalog.is_known(s.stage)}
        for stage in visited:
            totals[stage] += 1
            if is_won:
                won[stage] += 1
            else:
                lost[stage] += 1

    return [
        ClosingProbability(
            stage=stage,
            total_deals=totals[stage],
            closed_won=won[stage],
            closed_lost=lost[stage],
            win_rate=round(_percent(won[stage], totals[stage]), 1),
        )
        for stage in catalog.order
    ]


def value_changes(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[ValueChange]:
    """
    Contract value and year-1 value deltas across each stage change, grouped
    by the stage left. A missing year-1 value counts as 0.
    """
    counts: dict[str, int] = defaultdict(int)
    changes: dict[str, float] = defaultdict(float)
    bases: dict[str, float] = defaultdict(float)
    annual_changes: dict[str, float] = defaultdict(float)
    annual_bases: dict[str, float] = defaultdict(float)

    for snaps in groups.values():
        for prev, curr in zip(snaps, snaps[1:]):
            if prev.stage == curr.stage:
                continue
            if catalog.is_closed(prev.stage) and catalog.is_closed(curr.stage):
                continue
            if not _in_window(date_range, curr.snapshot_date):
                continue
            counts[prev.stage] += 1
            changes[prev.stage] += curr.value - prev.value
            bases[prev.stage] += prev.value
            annual_changes[prev.stage] += (curr.annual_value or 0.0) - (prev.annual_value or 0.0)
            annual_bases[prev.stage] += prev.annual_value or 0.0

    return [
        ValueChange(
            from_stage=stage,
            transition_count=counts[stage],
            total_change=changes[stage],
            avg_change=changes[stage] / counts[stage],
            change_percentage=round(_percent(changes[stage], bases[stage]), 1),
            total_annual_change=annual_changes[stage],
            avg_annual_change=annual_changes[stage] / counts[stage],
            annual_change_percentage=round(_percent(annual_changes[stage], annual_bases[stage]), 1),
        )
        for stage in catalog.ordered(counts)
    ]
