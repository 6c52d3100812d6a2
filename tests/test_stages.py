"""Unit tests for StageCatalog."""

from pipeline_analytics.models.settings import AnalyticsSettings
from pipeline_analytics.stages import StageCatalog


class TestStageCatalog:
    """Tests for stage classification."""

    def test_pre_sales_is_first_stage(self, catalog) -> None:
        assert catalog.pre_sales == "Validation/Introduction"

    def test_closed_detection(self, catalog) -> None:
        assert catalog.is_won("Closed Won")
        assert catalog.is_lost("Closed Lost")
        assert catalog.is_closed("Closed - Duplicate")
        assert not catalog.is_closed("Discover")

    def test_pipeline_excludes_pre_sales_and_closed(self, catalog) -> None:
        assert catalog.is_pipeline("Discover")
        assert catalog.is_pipeline("Legal Review")
        assert not catalog.is_pipeline("Validation/Introduction")
        assert not catalog.is_pipeline("Closed Won")

    def test_index(self, catalog) -> None:
        assert catalog.index("Negotiation/Review") == 4
        assert catalog.index("Closed Won") is None
        assert catalog.index(None) is None

    def test_ordered(self, catalog) -> None:
        stages = ["Closed Lost", "Zeta", "Closed Won", "Discover", "Alpha", "Validation/Introduction"]
        assert catalog.ordered(stages) == [
            "Validation/Introduction",
            "Discover",
            "Alpha",
            "Zeta",
            "Closed Won",
            "Closed Lost",
        ]

    def test_custom_order(self) -> None:
        catalog = StageCatalog(AnalyticsSettings(stage_order=["Lead", "Demo"]))
        assert catalog.pre_sales == "Lead"
        assert catalog.is_pipeline("Demo")
        assert not catalog.is_known("Discover")
