"""Analytics settings: stage catalog and reporting policies."""

from pathlib import Path
from typing import Literal, Optional

try:
    import yaml
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        "PyYAML is required for settings loading. Run: poetry install"
    ) from e
from pydantic import BaseModel, Field, field_validator

DEFAULT_STAGE_ORDER = [
    "Validation/Introduction",
    "Discover",
    "Developing Champions",
    "ROI Analysis/Pricing",
    "Negotiation/Review",
]


class AnalyticsSettings(BaseModel):
    """Stage names and heuristic thresholds shared by all aggregators."""

    stage_order: list[str] = Field(
        default_factory=lambda: list(DEFAULT_STAGE_ORDER),
        description="Open stages in sales order; the first is the pre-sales stage",
    )
    closed_won_stage: str = "Closed Won"
    closed_lost_stage: str = "Closed Lost"

    # Win/close-rate points above this percentage are treated as data artifacts
    # and left out of the rate series. None keeps every point.
    rate_outlier_threshold: Optional[float] = Field(default=40.0, ge=0, le=100)

    direct_import_label: str = "Direct Import"
    unknown_reason_label: str = "Unknown"
    recent_losses_limit: int = Field(default=20, ge=1)

    # Rate series points: one per distinct snapshot date, or one per month end.
    rate_anchors: Literal["snapshots", "monthly"] = "snapshots"

    @field_validator("stage_order")
    @classmethod
    def _non_empty_order(cls, value: list[str]) -> list[str]:
        cleaned = [s.strip() for s in value if s and s.strip()]
        if not cleaned:
            raise ValueError("stage_order must name at least one stage")
        return cleaned

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AnalyticsSettings":
        """Load settings from YAML. Supports nested (stages/policies) or flat structure."""
        data = yaml.safe_load(Path(path).read_text()) or {}
        stages = data.get("stages", {}) or {}
        policies = data.get("policies", {}) or {}

        def _get(key: str, nested: dict, top: dict):
            if key in nested:
                return nested[key]
            return top.get(key)

        flat: dict = {}
        for key, nested in (
            ("stage_order", stages),
            ("closed_won_stage", stages),
            ("closed_lost_stage", stages),
            ("rate_outlier_threshold", policies),
            ("direct_import_label", policies),
            ("unknown_reason_label", policies),
            ("recent_losses_limit", policies),
            ("rate_anchors", policies),
        ):
            if key in nested or key in data:
                flat[key] = _get(key, nested, data)
        if "order" in stages and "stage_order" not in flat:
            flat["stage_order"] = stages["order"]
        return cls.model_validate(flat)
