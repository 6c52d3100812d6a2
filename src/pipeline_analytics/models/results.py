"""Result records produced by the aggregators. All are JSON-serializable."""

from datetime import date
from typing import Literal, Optional

from pydantic import BaseModel, Field


class Metric(BaseModel):
    """
    A computed figure that may be missing (no data) rather than zero.
    Missing metrics still carry value 0.0 so numeric consumers never see None.
    """

    status: Literal["present", "missing"] = "present"
    value: float = 0.0

    @classmethod
    def present(cls, value: float) -> "Metric":
        return cls(status="present", value=value)

    @classmethod
    def missing(cls) -> "Metric":
        return cls(status="missing", value=0.0)

    @property
    def is_present(self) -> bool:
        return self.status == "present"


class Movement(BaseModel):
    """Stage transition between two adjacent snapshots of one opportunity."""

    opportunity_id: str
    from_stage: str
    to_stage: str
    date: date
    value: float = 0.0


class StageCount(BaseModel):
    stage: str
    count: int = 0
    total_value: float = 0.0


class StageTiming(BaseModel):
    stage: str
    avg_days: float = 0.0
    opportunity_count: int = 0


class FunnelStage(BaseModel):
    stage: str
    started: int = 0
    advanced: int = 0
    stage_rate: float = Field(default=0.0, description="Percent advancing out of this stage")
    cumulative_rate: float = Field(default=0.0, description="Composed probability, percent")


class ClosingProbability(BaseModel):
    stage: str
    total_deals: int = 0
    closed_won: int = 0
    closed_lost: int = 0
    win_rate: float = 0.0


class ValueChange(BaseModel):
    from_stage: str
    transition_count: int = 0
    total_change: float = 0.0
    avg_change: float = 0.0
    change_percentage: float = 0.0
    total_annual_change: float = Field(default=0.0, description="Year-1 value delta")
    avg_annual_change: float = 0.0
    annual_change_percentage: float = 0.0


class DealRef(BaseModel):
    """Drill-down row for a closed deal counted in a rate window."""

    opportunity_id: str
    name: str
    stage: str
    value: float = 0.0
    close_date: Optional[date] = None


class RateWindow(BaseModel):
    start_date: date
    end_date: date
    rate: Metric = Field(default_factory=Metric.missing)
    won_count: int = 0
    lost_count: int = 0
    won_deals: list[DealRef] = Field(default_factory=list)
    lost_deals: list[DealRef] = Field(default_factory=list)


class RatePoint(BaseModel):
    date: date
    fiscal_year: str
    kind: Literal["win", "close"] = "win"
    fiscal_year_to_date: RateWindow
    rolling_12_months: RateWindow
    open_pipeline: int = 0


class LossReasonRow(BaseModel):
    reason: str
    count: int = 0
    total_value: float = 0.0
    percentage: float = 0.0


class LossReasonStageRow(BaseModel):
    reason: str
    previous_stage: str
    count: int = 0
    total_value: float = 0.0
    percentage: float = 0.0


class RecentLoss(BaseModel):
    opportunity_id: str
    opportunity_name: str
    client_name: Optional[str] = None
    loss_reason: str
    value: float = 0.0
    close_date: Optional[date] = None
    previous_stage: str


class DuplicateMember(BaseModel):
    id: str
    crm_id: str
    name: str
    owner: Optional[str] = None
    is_active: bool = True
    stage: Optional[str] = None
    amount: float = 0.0
    close_date: Optional[date] = None


class DuplicateGroup(BaseModel):
    client_name: str
    opportunities: list[DuplicateMember] = Field(default_factory=list)
    active_opportunities: list[DuplicateMember] = Field(default_factory=list)
    previous_opportunities: list[DuplicateMember] = Field(default_factory=list)
    total_value: float = 0.0
    total_opportunities_count: int = 0
    active_opportunities_count: int = 0


class PipelineValuePoint(BaseModel):
    date: date
    value: float = 0.0
    opportunity_count: int = 0


class FiscalPeriodValue(BaseModel):
    period: str
    value: float = 0.0
    opportunity_count: int = 0


class ClosedWonDeal(BaseModel):
    opportunity_id: str
    opportunity_name: str
    client_name: Optional[str] = None
    value: float = 0.0
    close_date: Optional[date] = None


class ClosedWonSummary(BaseModel):
    total_value: float = 0.0
    total_count: int = 0
    growth: Metric = Field(default_factory=Metric.missing)
    deals: list[ClosedWonDeal] = Field(default_factory=list)


class StageSlippage(BaseModel):
    stage: str
    avg_slippage_days: float = 0.0
    opportunity_count: int = 0
    total_slippage_days: int = 0


class QuarterRetention(BaseModel):
    stage: str
    total_opportunities: int = 0
    same_quarter_closures: int = 0
    retention_rate: float = 0.0
