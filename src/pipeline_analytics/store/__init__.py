"""Local storage for opportunities and snapshots."""

from pipeline_analytics.store.sqlite_store import SnapshotStore

__all__ = ["SnapshotStore"]
