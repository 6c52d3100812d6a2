"""Data models for opportunities, snapshots, settings and metric results."""

from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.opportunity import (
    Opportunity,
    PipelineDataset,
    Snapshot,
    current_state,
    group_snapshots,
)
from pipeline_analytics.models.raw import RawRecord
from pipeline_analytics.models.results import Metric, Movement
from pipeline_analytics.models.settings import AnalyticsSettings

__all__ = [
    "AnalyticsSettings",
    "Metric",
    "Movement",
    "Opportunity",
    "OpportunityFilter",
    "PipelineDataset",
    "RawRecord",
    "Snapshot",
    "current_state",
    "group_snapshots",
]
