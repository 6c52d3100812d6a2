"""Raw records before normalization."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RawRecord(BaseModel):
    """
    Loose opportunity/snapshot row as exported by the snapshot store or a
    JSON dump. Field names may be camelCase or snake_case.
    """

    model_config = ConfigDict(extra="allow")

    data: dict[str, Any] = Field(default_factory=dict)
