"""Pipeline value trends and closed-won totals."""

from collections import defaultdict
from datetime import date
from typing import Iterable, Literal, Optional, Union

from dateutil.relativedelta import relativedelta

from pipeline_analytics.dates import (
    DateRange,
    fiscal_quarter_label,
    fiscal_quarter_start,
    fiscal_year_label,
    fiscal_year_start,
)
from pipeline_analytics.models.opportunity import Opportunity, Snapshot, current_state
from pipeline_analytics.models.results import (
    ClosedWonDeal,
    ClosedWonSummary,
    FiscalPeriodValue,
    Metric,
    PipelineValuePoint,
)
from pipeline_analytics.stages import StageCatalog


def pipeline_value_by_date(
    snapshots: Iterable[Snapshot],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[PipelineValuePoint]:
    """Summed amount of open snapshots on each snapshot date."""
    values: dict[date, float] = {}
    opps: dict[date, set[str]] = defaultdict(set)
    for snap in snapshots:
        if not snap.is_usable:
            continue
        if date_range is not None and date_range.bounded and not date_range.contains(snap.snapshot_date):
            continue
        values.setdefault(snap.snapshot_date, 0.0)
        if catalog.is_open(snap.stage):
            values[snap.snapshot_date] += snap.value
            opps[snap.snapshot_date].add(snap.opportunity_id)

    return [
        PipelineValuePoint(date=day, value=values[day], opportunity_count=len(opps[day]))
        for day in sorted(values)
    ]


def fiscal_period_pipeline(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    period: Literal["quarter", "year"] = "quarter",
) -> list[FiscalPeriodValue]:
    """Current open pipeline bucketed by the fiscal period of its expected close date."""
    if period == "quarter":
        label_fn, start_fn = fiscal_quarter_label, fiscal_quarter_start
    elif period == "year":
        label_fn, start_fn = fiscal_year_label, fiscal_year_start
    else:
        raise ValueError(f"Unknown fiscal period: {period!r}")

    starts: dict[str, date] = {}
    values: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for snaps in groups.values():
        state = current_state(snaps)
        if state is None or not catalog.is_open(state.stage):
            continue
        if state.expected_close_date is None:
            continue
        label = label_fn(state.expected_close_date)
        starts[label] = start_fn(state.expected_close_date)
        values[label] += state.value
        counts[label] += 1

    return [
        FiscalPeriodValue(period=label, value=values[label], opportunity_count=counts[label])
        for label in sorted(starts, key=starts.get)
    ]


def _won_deals(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: DateRange,
    opportunities: dict[str, Opportunity],
) -> list[ClosedWonDeal]:
    deals: list[ClosedWonDeal] = []
    for opp_id, snaps in groups.items():
        state = current_state(snaps)
        if state is None or not catalog.is_won(state.stage):
            continue
        close_date = state.resolved_close_date
        if date_range.bounded and not date_range.contains(close_date):
            continue
        opp = opportunities.get(opp_id)
        deals.append(
            ClosedWonDeal(
                opportunity_id=opp_id,
                opportunity_name=(opp.name if opp and opp.name else opp_id),
                client_name=opp.client_name if opp else None,
                value=state.value,
                close_date=close_date,
            )
        )
    return deals


def growth_rate(current: float, prior: float) -> Metric:
    """Percentage growth; missing when both periods are empty, 100 when only prior is."""
    if not prior:
        if not current:
            return Metric.missing()
        return Metric.present(100.0)
    return Metric.present(round((current - prior) / prior * 100, 1))


def closed_won_summary(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
    opportunities: Optional[Union[dict[str, Opportunity], list[Opportunity]]] = None,
) -> ClosedWonSummary:
    """Closed-won total in the window plus growth against the same window a year earlier."""
    date_range = date_range or DateRange()
    if isinstance(opportunities, list):
        opportunities = {o.id: o for o in opportunities}
    opportunities = opportunities or {}

    deals = _won_deals(groups, catalog, date_range, opportunities)
    deals.sort(key=lambda d: (d.close_date, d.opportunity_id), reverse=True)
    total = sum(d.value for d in deals)

    growth = Metric.missing()
    if date_range.bounded:
        prior_range = DateRange(
            start_date=date_range.start_date - relativedelta(years=1),
            end_date=date_range.end_date - relativedelta(years=1),
        )
        prior_total = sum(d.value for d in _won_deals(groups, catalog, prior_range, opportunities))
        growth = growth_rate(total, prior_total)

    return ClosedWonSummary(total_value=total, total_count=len(deals), growth=growth, deals=deals)
