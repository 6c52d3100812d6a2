"""Aggregators over snapshot groups: stages, rates, losses, duplicates, trends, slippage."""

from pipeline_analytics.metrics.duplicates import duplicate_groups
from pipeline_analytics.metrics.losses import (
    loss_by_reason,
    loss_by_reason_and_stage,
    lost_episodes,
    recent_losses,
)
from pipeline_analytics.metrics.rates import compute_rate, rate_series, snapshot_anchors
from pipeline_analytics.metrics.slippage import close_date_slippage, quarter_retention
from pipeline_analytics.metrics.stage import (
    closing_probability,
    progression_funnel,
    stage_distribution,
    time_in_stage,
    value_changes,
)
from pipeline_analytics.metrics.trends import (
    closed_won_summary,
    fiscal_period_pipeline,
    growth_rate,
    pipeline_value_by_date,
)

__all__ = [
    "close_date_slippage",
    "closed_won_summary",
    "closing_probability",
    "compute_rate",
    "duplicate_groups",
    "fiscal_period_pipeline",
    "growth_rate",
    "loss_by_reason",
    "loss_by_reason_and_stage",
    "lost_episodes",
    "pipeline_value_by_date",
    "progression_funnel",
    "quarter_retention",
    "rate_series",
    "recent_losses",
    "snapshot_anchors",
    "stage_distribution",
    "time_in_stage",
    "value_changes",
]
