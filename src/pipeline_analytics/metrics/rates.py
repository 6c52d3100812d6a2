"""
Win-rate and close-rate time series.

At every anchor date each opportunity is taken as of its latest snapshot on or
before the anchor. Two windows are evaluated per anchor: fiscal year to date
and the trailing twelve months.
"""

import logging
from datetime import date
from typing import Iterable, Literal, Optional, Union

from pipeline_analytics.dates import (
    DateRange,
    fiscal_year_label,
    fiscal_year_to_date,
    rolling_window,
)
from pipeline_analytics.models.opportunity import Opportunity, Snapshot, current_state
from pipeline_analytics.models.results import DealRef, Metric, RatePoint, RateWindow
from pipeline_analytics.stages import StageCatalog

logger = logging.getLogger(__name__)

RateKind = Literal["win", "close"]


def compute_rate(won: int, lost: int, open_count: int = 0) -> Metric:
    """won / (won + lost + open_count) as a percentage; missing when nothing to divide by."""
    denominator = won + lost + open_count
    if denominator <= 0:
        return Metric.missing()
    return Metric.present(round(won / denominator * 100, 1))


def snapshot_anchors(snapshots: Iterable[Snapshot]) -> list[date]:
    """Distinct snapshot dates, ascending."""
    return sorted({s.snapshot_date for s in snapshots if s.is_usable})


def _deal_ref(snap: Snapshot, opportunities: dict[str, Opportunity]) -> DealRef:
    opp = opportunities.get(snap.opportunity_id)
    return DealRef(
        opportunity_id=snap.opportunity_id,
        name=(opp.name if opp and opp.name else snap.opportunity_id),
        stage=snap.stage,
        value=snap.value,
        close_date=snap.resolved_close_date,
    )


def _window(
    states: list[Snapshot],
    window: DateRange,
    catalog: StageCatalog,
    open_count: int,
    opportunities: dict[str, Opportunity],
) -> RateWindow:
    won = [s for s in states if catalog.is_won(s.stage) and window.contains(s.resolved_close_date)]
    lost = [s for s in states if catalog.is_lost(s.stage) and window.contains(s.resolved_close_date)]
    return RateWindow(
        start_date=window.start_date,
        end_date=window.end_date,
        rate=compute_rate(len(won), len(lost), open_count),
        won_count=len(won),
        lost_count=len(lost),
        won_deals=[_deal_ref(s, opportunities) for s in won],
        lost_deals=[_deal_ref(s, opportunities) for s in lost],
    )


def _is_outlier(point: RatePoint, threshold: Optional[float]) -> bool:
    if threshold is None:
        return False
    return any(
        w.rate.is_present and w.rate.value > threshold
        for w in (point.fiscal_year_to_date, point.rolling_12_months)
    )


def rate_series(
    groups: dict[str, list[Snapshot]],
    anchors: Iterable[date],
    catalog: StageCatalog,
    kind: RateKind = "win",
    outlier_threshold: Optional[float] = 40.0,
    opportunities: Optional[Union[dict[str, Opportunity], list[Opportunity]]] = None,
) -> list[RatePoint]:
    """
    Build one RatePoint per anchor.

    Close rate adds the open pipeline as of the anchor (open stages past
    pre-sales) to the denominator. Points whose present rate exceeds
    outlier_threshold are omitted; pass None to keep all points.
    """
    if kind not in ("win", "close"):
        raise ValueError(f"Unknown rate kind: {kind!r}")
    if isinstance(opportunities, list):
        opportunities = {o.id: o for o in opportunities}
    opportunities = opportunities or {}

    points: list[RatePoint] = []
    for anchor in sorted(set(anchors)):
        states = [s for s in (current_state(snaps, anchor) for snaps in groups.values()) if s]
        open_pipeline = sum(1 for s in states if catalog.is_pipeline(s.stage))
        open_count = open_pipeline if kind == "close" else 0

        point = RatePoint(
            date=anchor,
            fiscal_year=fiscal_year_label(anchor),
            kind=kind,
            fiscal_year_to_date=_window(
                states, fiscal_year_to_date(anchor), catalog, open_count, opportunities
            ),
            rolling_12_months=_window(
                states, rolling_window(anchor, 12), catalog, open_count, opportunities
            ),
            open_pipeline=open_pipeline,
        )
        if _is_outlier(point, outlier_threshold):
            logger.info(
                "Omitting %s rate point %s: FY %.1f / rolling %.1f above %.1f",
                kind,
                anchor,
                point.fiscal_year_to_date.rate.value,
                point.rolling_12_months.rate.value,
                outlier_threshold,
            )
            continue
        points.append(point)
    return points
