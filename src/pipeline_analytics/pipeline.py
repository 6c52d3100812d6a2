"""Report orchestration: load dataset → filter → compute → JSON records."""

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from pipeline_analytics.dates import DateRange
from pipeline_analytics.engine import AnalyticsEngine
from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.opportunity import PipelineDataset
from pipeline_analytics.models.settings import AnalyticsSettings
from pipeline_analytics.normalize import load_json_dataset
from pipeline_analytics.store import SnapshotStore


def load_dataset(
    *,
    db_path: Optional[Path] = None,
    input_path: Optional[Path] = None,
) -> PipelineDataset:
    """Materialize the dataset from a JSON export or the SQLite store."""
    if input_path is not None:
        return load_json_dataset(input_path)
    if db_path is None:
        raise ValueError("Either db_path or input_path is required")
    return SnapshotStore(db_path).load_dataset()


def run_report(
    metric: str,
    *,
    dataset: Optional[PipelineDataset] = None,
    db_path: Optional[Path] = None,
    input_path: Optional[Path] = None,
    settings: Optional[AnalyticsSettings] = None,
    date_range: Optional[DateRange] = None,
    criteria: Optional[OpportunityFilter] = None,
) -> Any:
    """
    Run one named report. The full snapshot history is always loaded; the
    date window is applied by the aggregators, never at load time.
    """
    if dataset is None:
        dataset = load_dataset(db_path=db_path, input_path=input_path)
    engine = AnalyticsEngine(settings)
    return engine.run(metric, dataset, date_range=date_range, criteria=criteria)


def to_records(result: Any) -> Any:
    """Turn a result (model, list of models, or plain data) into JSON-serializable data."""
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json")
    if isinstance(result, (list, tuple)):
        return [to_records(r) for r in result]
    if isinstance(result, dict):
        return {k: to_records(v) for k, v in result.items()}
    return result
