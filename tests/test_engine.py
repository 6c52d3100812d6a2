"""Tests for AnalyticsEngine dispatch and report orchestration."""

import json
from datetime import date
from pathlib import Path

import pytest

from pipeline_analytics.dates import DateRange
from pipeline_analytics.engine import REPORTS, AnalyticsEngine
from pipeline_analytics.models.filters import OpportunityFilter
from pipeline_analytics.models.results import StageCount
from pipeline_analytics.models.settings import AnalyticsSettings
from pipeline_analytics.pipeline import load_dataset, run_report, to_records


class TestAnalyticsEngine:
    """Tests for AnalyticsEngine.run."""

    def test_every_report_runs(self, sample_dataset) -> None:
        engine = AnalyticsEngine()
        window = DateRange(start_date=date(2025, 1, 1), end_date=date(2025, 3, 31))
        for name in REPORTS:
            engine.run(name, sample_dataset, date_range=window)

    def test_unknown_report(self, sample_dataset) -> None:
        with pytest.raises(ValueError, match="Unknown report"):
            AnalyticsEngine().run("forecast", sample_dataset)

    def test_stage_distribution_current_state(self, sample_dataset) -> None:
        rows = AnalyticsEngine().run("stage-distribution", sample_dataset)
        assert [(r.stage, r.count, r.total_value) for r in rows] == [
            ("Negotiation/Review", 1, 25000),
            ("Closed Won", 1, 12000),
            ("Closed Lost", 1, 5000),
        ]

    def test_stage_distribution_as_of_range_end(self, sample_dataset) -> None:
        window = DateRange(start_date=date(2025, 2, 1), end_date=date(2025, 2, 15))
        rows = AnalyticsEngine().run("active-stage-distribution", sample_dataset, date_range=window)
        assert [r.stage for r in rows] == ["Developing Champions", "ROI Analysis/Pricing"]

    def test_criteria_applied_before_aggregation(self, sample_dataset) -> None:
        rows = AnalyticsEngine().run(
            "stage-distribution", sample_dataset, criteria=OpportunityFilter(owner="alice")
        )
        assert [r.stage for r in rows] == ["Negotiation/Review", "Closed Won"]

    def test_settings_change_catalog(self, sample_dataset) -> None:
        engine = AnalyticsEngine(AnalyticsSettings(stage_order=["Discover", "ROI Analysis/Pricing"]))
        assert engine.catalog.pre_sales == "Discover"


class TestPipeline:
    """Tests for load_dataset, run_report and to_records."""

    def test_load_dataset_requires_source(self) -> None:
        with pytest.raises(ValueError):
            load_dataset()

    def test_run_report_from_json(self, sample_export, tmp_path: Path) -> None:
        path = tmp_path / "export.json"
        path.write_text(json.dumps(sample_export))
        groups = run_report("duplicates", input_path=path)
        assert len(groups) == 1
        assert groups[0].client_name == "Acme Co"
        assert groups[0].total_value == 12000

    def test_run_report_with_dataset(self, sample_dataset) -> None:
        losses = run_report("recent-losses", dataset=sample_dataset)
        assert [loss.opportunity_id for loss in losses] == ["2"]

    def test_to_records(self) -> None:
        records = to_records({"rows": [StageCount(stage="Discover", count=2, total_value=10.0)], "n": 1})
        assert records == {"rows": [{"stage": "Discover", "count": 2, "total_value": 10.0}], "n": 1}


class TestRateAnchors:
    """Tests for the rate_anchors policy."""

    def _engine(self) -> AnalyticsEngine:
        return AnalyticsEngine(AnalyticsSettings(rate_anchors="monthly", rate_outlier_threshold=None))

    def test_snapshot_dates_by_default(self, sample_dataset) -> None:
        engine = AnalyticsEngine(AnalyticsSettings(rate_outlier_threshold=None))
        points = engine.run("win-rate", sample_dataset)
        assert [p.date for p in points] == [date(2025, 1, 1), date(2025, 2, 1), date(2025, 3, 1)]

    def test_monthly_within_range(self, sample_dataset) -> None:
        window = DateRange(start_date=date(2025, 2, 1), end_date=date(2025, 3, 20))
        points = self._engine().run("close-rate", sample_dataset, date_range=window)
        assert [p.date for p in points] == [date(2025, 2, 28), date(2025, 3, 20)]

    def test_monthly_unbounded_spans_snapshots(self, sample_dataset) -> None:
        points = self._engine().run("win-rate", sample_dataset)
        assert [p.date for p in points] == [date(2025, 1, 31), date(2025, 2, 28), date(2025, 3, 1)]
