"""Unit tests for close-date slippage and quarter retention."""

from datetime import date

from pipeline_analytics.dates import DateRange
from pipeline_analytics.metrics.slippage import close_date_slippage, quarter_retention
from pipeline_analytics.models.opportunity import Snapshot, group_snapshots


def _make_snap(opp_id: str, day: date, stage: str, expected: date | None = None, **kwargs) -> Snapshot:
    return Snapshot(
        opportunity_id=opp_id, snapshot_date=day, stage=stage, expected_close_date=expected, **kwargs
    )


class TestCloseDateSlippage:
    """Tests for close_date_slippage."""

    def test_completed_stint_slippage(self, sample_dataset, catalog) -> None:
        rows = close_date_slippage(sample_dataset.snapshots_by_opportunity(), catalog)
        assert [(r.stage, r.avg_slippage_days, r.opportunity_count, r.total_slippage_days) for r in rows] == [
            ("Developing Champions", 31.0, 1, 31)
        ]

    def test_sorted_by_absolute_average(self, catalog) -> None:
        groups = group_snapshots(
            [
                _make_snap("1", date(2025, 1, 1), "Discover", date(2025, 6, 30)),
                _make_snap("1", date(2025, 2, 1), "Discover", date(2025, 6, 20)),
                _make_snap("1", date(2025, 3, 1), "Developing Champions", date(2025, 6, 20)),
                _make_snap("1", date(2025, 4, 1), "Developing Champions", date(2025, 6, 25)),
                _make_snap("1", date(2025, 5, 1), "Negotiation/Review", date(2025, 6, 25)),
            ]
        )
        rows = close_date_slippage(groups, catalog)
        assert [(r.stage, r.avg_slippage_days) for r in rows] == [
            ("Discover", -10.0),
            ("Developing Champions", 5.0),
        ]

    def test_snapshot_window(self, sample_dataset, catalog) -> None:
        rng = DateRange(start_date=date(2025, 2, 1), end_date=date(2025, 3, 31))
        rows = close_date_slippage(sample_dataset.snapshots_by_opportunity(), catalog, rng)
        assert [(r.stage, r.avg_slippage_days) for r in rows] == [("Developing Champions", 0.0)]

    def test_stint_ending_in_close_counted(self, catalog) -> None:
        groups = group_snapshots(
            [
                _make_snap("1", date(2025, 1, 1), "Discover", date(2025, 3, 1)),
                _make_snap("1", date(2025, 2, 1), "Discover", date(2025, 4, 1)),
                _make_snap("1", date(2025, 3, 1), "Closed Won", close_date=date(2025, 3, 1)),
            ]
        )
        rows = close_date_slippage(groups, catalog)
        assert [(r.stage, r.avg_slippage_days, r.opportunity_count) for r in rows] == [("Discover", 31.0, 1)]

    def test_separate_stints_of_same_stage_not_merged(self, catalog) -> None:
        groups = group_snapshots(
            [
                _make_snap("1", date(2025, 1, 1), "Discover", date(2025, 3, 1)),
                _make_snap("1", date(2025, 2, 1), "Developing Champions"),
                _make_snap("1", date(2025, 3, 1), "Discover", date(2025, 4, 1)),
                _make_snap("1", date(2025, 4, 1), "Developing Champions", date(2025, 4, 1)),
            ]
        )
        rows = close_date_slippage(groups, catalog)
        assert [(r.stage, r.avg_slippage_days, r.opportunity_count, r.total_slippage_days) for r in rows] == [
            ("Discover", 0.0, 2, 0)
        ]

    def test_empty(self, catalog) -> None:
        assert close_date_slippage({}, catalog) == []


class TestQuarterRetention:
    """Tests for quarter_retention."""

    def test_same_quarter_closures(self, sample_dataset, catalog) -> None:
        rows = quarter_retention(sample_dataset.snapshots_by_opportunity(), catalog)
        assert [(r.stage, r.total_opportunities, r.same_quarter_closures, r.retention_rate) for r in rows] == [
            ("ROI Analysis/Pricing", 1, 1, 100.0),
            ("Validation/Introduction", 1, 0, 0.0),
            ("Discover", 1, 0, 0.0),
        ]

    def test_open_opportunities_ignored(self, catalog) -> None:
        groups = group_snapshots([_make_snap("1", date(2025, 1, 1), "Discover")])
        assert quarter_retention(groups, catalog) == []

    def test_close_quarter_falls_back_to_expected_close(self, catalog) -> None:
        groups = group_snapshots(
            [
                _make_snap("1", date(2025, 1, 10), "Discover"),
                _make_snap("1", date(2025, 3, 1), "Closed Won", date(2025, 1, 20)),
            ]
        )
        rows = quarter_retention(groups, catalog)
        assert [(r.stage, r.same_quarter_closures, r.retention_rate) for r in rows] == [("Discover", 1, 100.0)]
