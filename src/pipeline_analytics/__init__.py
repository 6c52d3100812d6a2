"""Sales pipeline snapshot analytics."""

__version__ = "0.1.0"
