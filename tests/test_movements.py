"""Unit tests for stage movement detection."""

from datetime import date

from pipeline_analytics.dates import DateRange
from pipeline_analytics.models.opportunity import PipelineDataset, Snapshot
from pipeline_analytics.movements import detect_all, detect_movements, filter_movements


def _make_snap(opp_id: str, day: date | None, stage: str | None, amount: float | None = None) -> Snapshot:
    return Snapshot(opportunity_id=opp_id, snapshot_date=day, stage=stage, amount=amount)


def _won_path(opp_id: str = "1") -> list[Snapshot]:
    return [
        _make_snap(opp_id, date(2025, 1, 1), "Discover", 10000),
        _make_snap(opp_id, date(2025, 2, 1), "ROI Analysis/Pricing", 10000),
        _make_snap(opp_id, date(2025, 3, 1), "Closed Won", 12000),
    ]


class TestDetectMovements:
    """Tests for detect_movements."""

    def test_one_movement_per_stage_change(self, catalog) -> None:
        moves = detect_movements(_won_path(), catalog)
        assert [(m.from_stage, m.to_stage, m.date) for m in moves] == [
            ("Discover", "ROI Analysis/Pricing", date(2025, 2, 1)),
            ("ROI Analysis/Pricing", "Closed Won", date(2025, 3, 1)),
        ]

    def test_value_taken_from_later_snapshot(self, catalog) -> None:
        moves = detect_movements(_won_path(), catalog)
        assert moves[-1].value == 12000

    def test_same_stage_yields_nothing(self, catalog) -> None:
        snaps = [
            _make_snap("1", date(2025, 1, 1), "Discover"),
            _make_snap("1", date(2025, 2, 1), "Discover"),
        ]
        assert detect_movements(snaps, catalog) == []

    def test_closed_to_closed_suppressed(self, catalog) -> None:
        snaps = [
            _make_snap("1", date(2025, 1, 1), "Closed Won"),
            _make_snap("1", date(2025, 2, 1), "Closed Lost"),
        ]
        assert detect_movements(snaps, catalog) == []

    def test_unsorted_input_is_ordered(self, catalog) -> None:
        moves = detect_movements(list(reversed(_won_path())), catalog)
        assert [m.to_stage for m in moves] == ["ROI Analysis/Pricing", "Closed Won"]

    def test_snapshots_without_stage_or_date_skipped(self, catalog) -> None:
        snaps = [
            _make_snap("1", date(2025, 1, 1), "Discover"),
            _make_snap("1", date(2025, 1, 15), None),
            _make_snap("1", None, "Negotiation/Review"),
            _make_snap("1", date(2025, 2, 1), "Discover"),
        ]
        assert detect_movements(snaps, catalog) == []

    def test_missing_amount_values_zero(self, catalog) -> None:
        snaps = [
            _make_snap("1", date(2025, 1, 1), "Discover"),
            _make_snap("1", date(2025, 2, 1), "Developing Champions"),
        ]
        assert detect_movements(snaps, catalog)[0].value == 0.0


class TestDetectAll:
    """Tests for detect_all and filter_movements."""

    def test_sorted_by_date_then_opportunity(self, catalog) -> None:
        dataset = PipelineDataset(snapshots=_won_path("b") + _won_path("a"))
        moves = detect_all(dataset, catalog)
        assert [(m.date, m.opportunity_id) for m in moves] == [
            (date(2025, 2, 1), "a"),
            (date(2025, 2, 1), "b"),
            (date(2025, 3, 1), "a"),
            (date(2025, 3, 1), "b"),
        ]

    def test_accepts_plain_snapshot_list(self, catalog) -> None:
        assert len(detect_all(_won_path(), catalog)) == 2

    def test_filter_is_inclusive(self, catalog) -> None:
        moves = detect_all(_won_path(), catalog)
        rng = DateRange(start_date=date(2025, 2, 1), end_date=date(2025, 2, 28))
        kept = filter_movements(moves, rng)
        assert [m.date for m in kept] == [date(2025, 2, 1)]

    def test_unbounded_filter_keeps_all(self, catalog) -> None:
        moves = detect_all(_won_path(), catalog)
        assert filter_movements(moves, DateRange()) == moves
        assert filter_movements(moves, None) == moves
