"""Pytest fixtures for pipeline-analytics tests."""

from datetime import date
from typing import Any, Optional

import pytest

from pipeline_analytics.models.opportunity import Opportunity, PipelineDataset, Snapshot
from pipeline_analytics.stages import StageCatalog


def _make_snapshot(
    opp_id: str,
    snapshot_date: Optional[date],
    stage: Optional[str],
    amount: Optional[float] = None,
    **kwargs: Any,
) -> Snapshot:
    """Snapshot with the fields most tests care about."""
    return Snapshot(
        opportunity_id=opp_id,
        snapshot_date=snapshot_date,
        stage=stage,
        amount=amount,
        **kwargs,
    )


def _make_opportunity(opp_id: str, **kwargs: Any) -> Opportunity:
    defaults: dict[str, Any] = {"crm_id": f"CRM-{opp_id}", "name": f"Deal {opp_id}"}
    defaults.update(kwargs)
    return Opportunity(id=opp_id, **defaults)


@pytest.fixture
def catalog() -> StageCatalog:
    """Catalog with the default stage order."""
    return StageCatalog()


@pytest.fixture
def sample_dataset() -> PipelineDataset:
    """
    Three opportunities:
    1 - Acme Co, Alice: Discover -> ROI -> Closed Won (Mar 1 2025)
    2 - Acme Co, Bob, inactive: Validation -> Closed Lost (Price)
    3 - Globex, Alice: Developing Champions (close date slips) -> Negotiation
    """
    opportunities = [
        _make_opportunity("1", name="Acme Platform", client_name="Acme Co", owner="Alice"),
        _make_opportunity("2", name="Acme Renewal", client_name="Acme Co", owner="Bob", is_active=False),
        _make_opportunity("3", name="Globex Rollout", client_name="Globex", owner="Alice"),
    ]
    snapshots = [
        _make_snapshot("1", date(2025, 1, 1), "Discover", 10000),
        _make_snapshot("1", date(2025, 2, 1), "ROI Analysis/Pricing", 10000),
        _make_snapshot("1", date(2025, 3, 1), "Closed Won", 12000, close_date=date(2025, 3, 1)),
        _make_snapshot("2", date(2025, 1, 1), "Validation/Introduction", 5000),
        _make_snapshot(
            "2", date(2025, 2, 1), "Closed Lost", 5000, close_date=date(2025, 2, 1), loss_reason="Price"
        ),
        _make_snapshot(
            "3", date(2025, 1, 1), "Developing Champions", 20000, expected_close_date=date(2025, 6, 30)
        ),
        _make_snapshot(
            "3", date(2025, 2, 1), "Developing Champions", 20000, expected_close_date=date(2025, 7, 31)
        ),
        _make_snapshot(
            "3", date(2025, 3, 1), "Negotiation/Review", 25000, expected_close_date=date(2025, 7, 31)
        ),
    ]
    return PipelineDataset(opportunities=opportunities, snapshots=snapshots)


@pytest.fixture
def sample_export() -> dict[str, list[dict[str, Any]]]:
    """Loose camelCase export as produced by the dashboard's database dump."""
    return {
        "opportunities": [
            {"id": "1", "opportunityId": "OPP-001", "name": "Acme Platform", "clientName": "Acme Co", "owner": "Alice"},
            {"id": "2", "opportunityId": "OPP-002", "name": "Acme Renewal", "clientName": "Acme Co", "isActive": False},
        ],
        "snapshots": [
            {"opportunityId": "1", "snapshotDate": "2025-01-01", "stage": "Discover", "amount": "10,000"},
            {"opportunityId": "1", "snapshotDate": "2025-02-01T00:00:00", "stage": "Closed Won", "amount": 12000},
            {"opportunityId": "2", "snapshotDate": "2025-01-01", "stage": "Closed Lost", "lossReason": "  "},
            {"opportunityId": "2", "snapshotDate": "not a date", "stage": "Discover"},
        ],
    }
