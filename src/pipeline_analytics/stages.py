"""Stage classification shared by every aggregator."""

from typing import Optional

from pipeline_analytics.models.settings import AnalyticsSettings


class StageCatalog:
    """
    Classifies stage labels against the configured order.
    Ordered stages are open; Closed Won/Closed Lost are terminal; anything
    else falls into the unordered "unknown" bucket.
    """

    def __init__(self, settings: Optional[AnalyticsSettings] = None):
        self.settings = settings or AnalyticsSettings()
        self.order: list[str] = list(self.settings.stage_order)
        self.won = self.settings.closed_won_stage
        self.lost = self.settings.closed_lost_stage
        self._index = {stage: i for i, stage in enumerate(self.order)}

    @property
    def pre_sales(self) -> str:
        return self.order[0]

    def index(self, stage: Optional[str]) -> Optional[int]:
        """Position in the sales order, or None for closed/unknown stages."""
        if stage is None:
            return None
        return self._index.get(stage)

    def is_won(self, stage: Optional[str]) -> bool:
        if not stage:
            return False
        return stage == self.won or "won" in stage.lower()

    def is_lost(self, stage: Optional[str]) -> bool:
        if not stage:
            return False
        return stage == self.lost or "lost" in stage.lower()

    def is_closed(self, stage: Optional[str]) -> bool:
        if not stage:
            return False
        return self.is_won(stage) or self.is_lost(stage) or "closed" in stage.lower()

    def is_open(self, stage: Optional[str]) -> bool:
        return bool(stage) and not self.is_closed(stage)

    def is_pipeline(self, stage: Optional[str]) -> bool:
        """Open and past the pre-sales stage."""
        return self.is_open(stage) and stage != self.pre_sales

    def is_known(self, stage: Optional[str]) -> bool:
        return stage in self._index

    def sort_key(self, stage: str) -> tuple[int, int, str]:
        """Ordered stages first, then unknown alphabetically, then won, then lost."""
        idx = self.index(stage)
        if idx is not None:
            return (0, idx, "")
        if self.is_won(stage):
            return (2, 0, stage)
        if self.is_closed(stage):
            return (3, 0, stage)
        return (1, 0, stage)

    def ordered(self, stages) -> list[str]:
        return sorted(stages, key=self.sort_key)
