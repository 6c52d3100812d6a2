"""
Analytics engine: binds settings, applies filters and date windows, and
dispatches to the aggregators. Stateless between calls.
"""

import logging
from datetime import date
from typing import Any, Callable, Iterable, Optional

from pipeline_analytics.dates import DateRange, monthly_anchors
from pipeline_analytics.filtering import FilterEngine
from pipeline_analytics.metrics import (
    close_date_slippage,
    closed_won_summary,
    closing_probability,
    duplicate_groups,
    fiscal_period_pipeline,
    loss_by_reason,
    loss_by_reason_and_stage,
    pipeline_value_by_date,
    progression_funnel,
    quarter_retention,
    rate_series,
    recent_losses,
    snapshot_anchors,
    stage_distribution,
    time_in_stage,
    value_changes,
)
from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.opportunity import PipelineDataset
from pipeline_analytics.models.results import Movement
from pipeline_analytics.models.settings import AnalyticsSettings
from pipeline_analytics.movements import detect_all, filter_movements
from pipeline_analytics.stages import StageCatalog

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    """One method per report; every method takes the dataset for that call."""

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or AnalyticsSettings()
        self.catalog = StageCatalog(self.settings)

    def _prepare(self, dataset: PipelineDataset, criteria: Optional[OpportunityFilter]) -> PipelineDataset:
        if criteria is None or criteria.is_empty:
            return dataset
        filtered = FilterEngine(criteria).filter_dataset(dataset)
        logger.debug(
            "Filter kept %d of %d opportunities",
            len(filtered.opportunities),
            len(dataset.opportunities),
        )
        return filtered

    def movements(
        self,
        dataset: PipelineDataset,
        date_range: Optional[DateRange] = None,
        criteria: Optional[OpportunityFilter] = None,
    ) -> list[Movement]:
        data = self._prepare(dataset, criteria)
        return filter_movements(detect_all(data, self.catalog), date_range)

    def stage_distribution(
        self,
        dataset: PipelineDataset,
        as_of: Optional[date] = None,
        active_only: bool = False,
        criteria: Optional[OpportunityFilter] = None,
    ):
        data = self._prepare(dataset, criteria)
        return stage_distribution(data.snapshots_by_opportunity(), self.catalog, as_of, active_only)

    def time_in_stage(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return time_in_stage(data.snapshots_by_opportunity(), self.catalog, date_range)

    def progression_funnel(self, dataset, date_range=None, criteria=None):
        return progression_funnel(self.movements(dataset, date_range, criteria), self.catalog)

    def closing_probability(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return closing_probability(data.snapshots_by_opportunity(), self.catalog, date_range)

    def value_changes(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return value_changes(data.snapshots_by_opportunity(), self.catalog, date_range)

    def rate_series(
        self,
        dataset: PipelineDataset,
        kind: str = "win",
        anchors: Optional[Iterable[date]] = None,
        date_range: Optional[DateRange] = None,
        criteria: Optional[OpportunityFilter] = None,
    ):
        """
        Win or close rate at each anchor. Without explicit anchors the
        rate_anchors policy picks them: every snapshot date, or every month
        end plus the range end. Either is limited to date_range when bounded;
        unbounded monthly anchors span the first to the last snapshot date.
        """
        data = self._prepare(dataset, criteria)
        if anchors is None:
            anchors = snapshot_anchors(data.snapshots)
            bounded = date_range is not None and date_range.bounded
            if self.settings.rate_anchors == "monthly":
                if bounded:
                    anchors = monthly_anchors(date_range.start_date, date_range.end_date)
                elif anchors:
                    anchors = monthly_anchors(anchors[0], anchors[-1])
            elif bounded:
                anchors = [a for a in anchors if date_range.contains(a)]
        return rate_series(
            data.snapshots_by_opportunity(),
            anchors,
            self.catalog,
            kind=kind,
            outlier_threshold=self.settings.rate_outlier_threshold,
            opportunities=data.opportunity_map(),
        )

    def win_rate_series(self, dataset, anchors=None, date_range=None, criteria=None):
        return self.rate_series(dataset, "win", anchors, date_range, criteria)

    def close_rate_series(self, dataset, anchors=None, date_range=None, criteria=None):
        return self.rate_series(dataset, "close", anchors, date_range, criteria)

    def loss_by_reason(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return loss_by_reason(data.snapshots_by_opportunity(), self.catalog, date_range)

    def loss_by_reason_and_stage(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return loss_by_reason_and_stage(data.snapshots_by_opportunity(), self.catalog, date_range)

    def recent_losses(self, dataset, date_range=None, criteria=None, limit: Optional[int] = None):
        data = self._prepare(dataset, criteria)
        return recent_losses(
            data.snapshots_by_opportunity(),
            self.catalog,
            opportunities=data.opportunity_map(),
            date_range=date_range,
            limit=limit,
        )

    def duplicate_groups(self, dataset, criteria=None):
        """Client groups over all opportunities; never date filtered."""
        data = self._prepare(dataset, criteria)
        return duplicate_groups(data.opportunities, data.snapshots_by_opportunity())

    def pipeline_value_by_date(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return pipeline_value_by_date(data.snapshots, self.catalog, date_range)

    def fiscal_period_pipeline(self, dataset, period: str = "quarter", criteria=None):
        data = self._prepare(dataset, criteria)
        return fiscal_period_pipeline(data.snapshots_by_opportunity(), self.catalog, period)

    def closed_won_summary(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return closed_won_summary(
            data.snapshots_by_opportunity(), self.catalog, date_range, data.opportunity_map()
        )

    def close_date_slippage(self, dataset, date_range=None, criteria=None):
        data = self._prepare(dataset, criteria)
        return close_date_slippage(data.snapshots_by_opportunity(), self.catalog, date_range)

    def quarter_retention(self, dataset, criteria=None):
        data = self._prepare(dataset, criteria)
        return quarter_retention(data.snapshots_by_opportunity(), self.catalog)

    def run(
        self,
        metric: str,
        dataset: PipelineDataset,
        date_range: Optional[DateRange] = None,
        criteria: Optional[OpportunityFilter] = None,
    ) -> Any:
        """Compute a report by name (see REPORTS)."""
        try:
            handler = REPORTS[metric]
        except KeyError:
            raise ValueError(f"Unknown report: {metric}. Available: {', '.join(sorted(REPORTS))}") from None
        return handler(self, dataset, date_range, criteria)


def _as_of(date_range: Optional[DateRange]) -> Optional[date]:
    return date_range.end_date if date_range is not None and date_range.bounded else None


ReportFn = Callable[[AnalyticsEngine, PipelineDataset, Optional[DateRange], Optional[OpportunityFilter]], Any]

REPORTS: dict[str, ReportFn] = {
    "movements": lambda e, d, r, c: e.movements(d, r, c),
    "stage-distribution": lambda e, d, r, c: e.stage_distribution(d, _as_of(r), criteria=c),
    "active-stage-distribution": lambda e, d, r, c: e.stage_distribution(
        d, _as_of(r), active_only=True, criteria=c
    ),
    "time-in-stage": lambda e, d, r, c: e.time_in_stage(d, r, c),
    "funnel": lambda e, d, r, c: e.progression_funnel(d, r, c),
    "closing-probability": lambda e, d, r, c: e.closing_probability(d, r, c),
    "value-changes": lambda e, d, r, c: e.value_changes(d, r, c),
    "win-rate": lambda e, d, r, c: e.win_rate_series(d, date_range=r, criteria=c),
    "close-rate": lambda e, d, r, c: e.close_rate_series(d, date_range=r, criteria=c),
    "loss-reasons": lambda e, d, r, c: e.loss_by_reason(d, r, c),
    "loss-reasons-by-stage": lambda e, d, r, c: e.loss_by_reason_and_stage(d, r, c),
    "recent-losses": lambda e, d, r, c: e.recent_losses(d, r, c),
    "duplicates": lambda e, d, r, c: e.duplicate_groups(d, c),
    "pipeline-value": lambda e, d, r, c: e.pipeline_value_by_date(d, r, c),
    "fiscal-quarter-pipeline": lambda e, d, r, c: e.fiscal_period_pipeline(d, "quarter", c),
    "fiscal-year-pipeline": lambda e, d, r, c: e.fiscal_period_pipeline(d, "year", c),
    "closed-won": lambda e, d, r, c: e.closed_won_summary(d, r, c),
    "slippage": lambda e, d, r, c: e.close_date_slippage(d, r, c),
    "quarter-retention": lambda e, d, r, c: e.quarter_retention(d, c),
}
