"""Opportunity filter criteria (the dashboard's pass-through filter set)."""

from typing import Optional

from pydantic import BaseModel, Field, model_validator


class OpportunityFilter(BaseModel):
    """Unset criteria do not filter."""

    owner: Optional[str] = Field(default=None, description="Exact owner name (case-insensitive)")
    stages: list[str] = Field(default_factory=list, description="Current stage must be one of these")
    client_name: Optional[str] = Field(default=None, description="Exact client name (case-insensitive)")
    search: Optional[str] = Field(
        default=None, description="Substring of opportunity name, client name or CRM id"
    )
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @model_validator(mode="after")
    def _value_band(self) -> "OpportunityFilter":
        if (
            self.min_value is not None
            and self.max_value is not None
            and self.min_value > self.max_value
        ):
            raise ValueError(f"min_value {self.min_value} exceeds max_value {self.max_value}")
        return self

    @property
    def is_empty(self) -> bool:
        return not (
            self.owner
            or self.stages
            or self.client_name
            or self.search
            or self.min_value is not None
            or self.max_value is not None
        )
