"""Unit tests for loose record normalization."""

import json
import logging
from datetime import date, datetime
from pathlib import Path

import pytest

from pipeline_analytics.models.raw import RawRecord
from pipeline_analytics.normalize import (
    load_json_dataset,
    normalize_opportunity,
    normalize_records,
    normalize_snapshot,
    parse_amount,
    parse_date,
)


class TestParseDate:
    """Tests for parse_date."""

    @pytest.mark.parametrize(
        "value",
        ["2025-03-01", "2025-03-01T14:00:00", "2025-03-01T14:00:00.000Z", "03/01/2025", date(2025, 3, 1), datetime(2025, 3, 1, 9)],
    )
    def test_accepted_formats(self, value) -> None:
        assert parse_date(value) == date(2025, 3, 1)

    def test_blank_is_none(self) -> None:
        assert parse_date("  ") is None
        assert parse_date(None) is None

    def test_garbage_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_date("next tuesday")


class TestParseAmount:
    """Tests for parse_amount."""

    def test_currency_string(self) -> None:
        assert parse_amount("$12,500.50") == 12500.5

    def test_numbers_and_blank(self) -> None:
        assert parse_amount(3) == 3.0
        assert parse_amount("") is None

    def test_garbage_raises(self) -> None:
        with pytest.raises(ValueError):
            parse_amount("lots")


class TestNormalizeRows:
    """Tests for normalize_opportunity and normalize_snapshot."""

    def test_camel_case_opportunity(self) -> None:
        opp = normalize_opportunity(
            RawRecord(data={"id": 7, "opportunityId": "OPP-7", "name": "Deal", "clientName": "Acme Co", "isActive": "false"})
        )
        assert (opp.id, opp.crm_id, opp.client_name, opp.is_active) == ("7", "OPP-7", "Acme Co", False)

    def test_crm_id_used_when_id_missing(self) -> None:
        opp = normalize_opportunity({"crm_id": "OPP-9"})
        assert opp.id == "OPP-9"

    def test_opportunity_without_ids_raises(self) -> None:
        with pytest.raises(ValueError):
            normalize_opportunity({"name": "Nameless"})

    def test_snapshot_fields(self) -> None:
        snap = normalize_snapshot(
            {
                "opportunityId": 7,
                "snapshotDate": "2025-02-01",
                "stage": " Discover ",
                "amount": "1,000",
                "year1Value": 800,
                "expectedCloseDate": "2025-06-30",
                "lossReason": "",
            }
        )
        assert snap.opportunity_id == "7"
        assert snap.stage == "Discover"
        assert (snap.amount, snap.annual_value) == (1000.0, 800.0)
        assert snap.expected_close_date == date(2025, 6, 30)
        assert snap.loss_reason is None


class TestNormalizeRecords:
    """Tests for normalize_records and load_json_dataset."""

    def test_malformed_rows_skipped_and_logged(self, sample_export, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="pipeline_analytics.normalize"):
            dataset = normalize_records(sample_export["opportunities"], sample_export["snapshots"])
        assert len(dataset.opportunities) == 2
        assert len(dataset.snapshots) == 3
        assert "Skipping snapshot row 3" in caplog.text

    def test_load_json_dataset(self, sample_export, tmp_path: Path) -> None:
        path = tmp_path / "export.json"
        path.write_text(json.dumps(sample_export))
        dataset = load_json_dataset(path)
        assert dataset.snapshots[0].amount == 10000.0
        assert dataset.opportunities[1].is_active is False

    def test_load_json_rejects_list(self, tmp_path: Path) -> None:
        path = tmp_path / "export.json"
        path.write_text("[]")
        with pytest.raises(ValueError):
            load_json_dataset(path)
