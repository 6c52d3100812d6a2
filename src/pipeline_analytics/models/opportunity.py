"""Opportunity and snapshot models."""

from collections import defaultdict
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field


class Opportunity(BaseModel):
    """A sales opportunity. Only is_active changes after ingestion."""

    id: str = Field(..., description="Stable internal identifier")
    crm_id: str = Field(..., description="External CRM identifier")
    name: str = ""
    client_name: Optional[str] = None
    owner: Optional[str] = None
    created_date: Optional[date] = None
    is_active: bool = True


class Snapshot(BaseModel):
    """Dated, immutable record of an opportunity's state at ingestion time."""

    opportunity_id: str
    snapshot_date: Optional[date] = None
    stage: Optional[str] = None

    amount: Optional[float] = None
    annual_value: Optional[float] = Field(default=None, description="Year-1 ARR")

    expected_close_date: Optional[date] = None
    close_date: Optional[date] = None
    entered_pipeline: Optional[date] = None

    loss_reason: Optional[str] = None

    @property
    def value(self) -> float:
        return self.amount or 0.0

    @property
    def annualized_value(self) -> float:
        """Year-1 value, falling back to the amount when it was not captured."""
        if self.annual_value is not None:
            return self.annual_value
        return self.value

    @property
    def resolved_close_date(self) -> Optional[date]:
        """Actual close date, else expected close date, else snapshot date."""
        return self.close_date or self.expected_close_date or self.snapshot_date

    @property
    def is_usable(self) -> bool:
        """Snapshots without a stage or date are skipped by every computation."""
        return bool(self.stage) and self.snapshot_date is not None


class PipelineDataset(BaseModel):
    """Bounded collection of opportunities and snapshots handed to the engine."""

    opportunities: list[Opportunity] = Field(default_factory=list)
    snapshots: list[Snapshot] = Field(default_factory=list)

    def opportunity_map(self) -> dict[str, Opportunity]:
        return {o.id: o for o in self.opportunities}

    def snapshots_by_opportunity(self) -> dict[str, list[Snapshot]]:
        """Group snapshots per opportunity, each group sorted by date."""
        return group_snapshots(self.snapshots)

    def restricted_to(self, opportunity_ids: set[str]) -> "PipelineDataset":
        """Return a dataset limited to the given opportunity ids."""
        return PipelineDataset(
            opportunities=[o for o in self.opportunities if o.id in opportunity_ids],
            snapshots=[s for s in self.snapshots if s.opportunity_id in opportunity_ids],
        )


def group_snapshots(snapshots: list[Snapshot]) -> dict[str, list[Snapshot]]:
    """
    Group usable snapshots by opportunity id, sorted ascending by date.
    Snapshots with no stage or date are dropped here.
    """
    groups: dict[str, list[Snapshot]] = defaultdict(list)
    for snap in snapshots:
        if not snap.opportunity_id or not snap.is_usable:
            continue
        groups[snap.opportunity_id].append(snap)
    for items in groups.values():
        items.sort(key=lambda s: s.snapshot_date)
    return dict(groups)


def current_state(snapshots: list[Snapshot], as_of: Optional[date] = None) -> Optional[Snapshot]:
    """Latest usable snapshot, optionally only among those dated on/before as_of."""
    latest: Optional[Snapshot] = None
    for snap in snapshots:
        if not snap.is_usable:
            continue
        if as_of is not None and snap.snapshot_date > as_of:
            continue
        if latest is None or snap.snapshot_date >= latest.snapshot_date:
            latest = snap
    return latest
