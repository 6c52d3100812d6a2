"""Expected-close-date slippage and same-quarter closure retention by stage."""

from collections import defaultdict
from itertools import groupby
from typing import Optional

from pipeline_analytics.dates import DateRange, fiscal_quarter
from pipeline_analytics.models.opportunity import Snapshot
from pipeline_analytics.models.results import QuarterRetention, StageSlippage
from pipeline_analytics.stages import StageCatalog


def _stints(snaps: list[Snapshot]) -> list[tuple[str, list[Snapshot]]]:
    """Runs of consecutive snapshots in the same stage."""
    return [(stage, list(run)) for stage, run in groupby(snaps, key=lambda s: s.stage)]


def close_date_slippage(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
    date_range: Optional[DateRange] = None,
) -> list[StageSlippage]:
    """
    For every completed stint in an open stage, the expected close date at the
    stint's last snapshot minus the one at its first. A stint is completed once
    the next snapshot is in another stage, closed stages included; the current
    stint is not counted. Only snapshots with an expected close date (and,
    when windowed, a snapshot date inside the window) supply the two dates.
    """
    totals: dict[str, int] = defaultdict(int)
    counts: dict[str, int] = defaultdict(int)

    for snaps in groups.values():
        for stage, stint in _stints(snaps)[:-1]:
            if not catalog.is_open(stage):
                continue
            tracked = [
                s
                for s in stint
                if s.expected_close_date is not None
                and (date_range is None or not date_range.bounded or date_range.contains(s.snapshot_date))
            ]
            if not tracked:
                continue
            totals[stage] += (tracked[-1].expected_close_date - tracked[0].expected_close_date).days
            counts[stage] += 1

    result = [
        StageSlippage(
            stage=stage,
            avg_slippage_days=round(totals[stage] / counts[stage], 1),
            opportunity_count=counts[stage],
            total_slippage_days=totals[stage],
        )
        for stage in counts
    ]
    result.sort(key=lambda r: (-abs(r.avg_slippage_days), catalog.sort_key(r.stage)))
    return result


def quarter_retention(
    groups: dict[str, list[Snapshot]],
    catalog: StageCatalog,
) -> list[QuarterRetention]:
    """Share of closed deals that closed in the same fiscal quarter they entered each open stage."""
    totals: dict[str, int] = defaultdict(int)
    same_quarter: dict[str, int] = defaultdict(int)

    for snaps in groups.values():
        closed = next((s for s in snaps if catalog.is_closed(s.stage)), None)
        if closed is None:
            continue
        close_quarter = fiscal_quarter(closed.resolved_close_date)

        entered: set[str] = set()
        for snap in snaps:
            if catalog.is_closed(snap.stage) or snap.stage in entered:
                continue
            entered.add(snap.stage)
            totals[snap.stage] += 1
            if fiscal_quarter(snap.snapshot_date) == close_quarter:
                same_quarter[snap.stage] += 1

    result = [
        QuarterRetention(
            stage=stage,
            total_opportunities=totals[stage],
            same_quarter_closures=same_quarter[stage],
            retention_rate=round(same_quarter[stage] / totals[stage] * 100, 1),
        )
        for stage in totals
    ]
    result.sort(key=lambda r: (-r.retention_rate, catalog.sort_key(r.stage)))
    return result
