"""Stage movement detection from snapshot sequences."""

import logging
from typing import Iterable, Optional, Union

from pipeline_analytics.dates import DateRange
from pipeline_analytics.models.opportunity import PipelineDataset, Snapshot, group_snapshots
from pipeline_analytics.models.results import Movement
from pipeline_analytics.stages import StageCatalog

logger = logging.getLogger(__name__)


def usable_sorted(snapshots: Iterable[Snapshot]) -> list[Snapshot]:
    """Drop snapshots without a stage or date and sort the rest by date."""
    usable: list[Snapshot] = []
    skipped = 0
    for snap in snapshots:
        if snap.is_usable:
            usable.append(snap)
        else:
            skipped += 1
    if skipped:
        logger.debug("Skipped %d snapshot(s) without stage or date", skipped)
    usable.sort(key=lambda s: s.snapshot_date)
    return usable


def detect_movements(
    snapshots: Iterable[Snapshot],
    catalog: Optional[StageCatalog] = None,
) -> list[Movement]:
    """
    One opportunity's snapshots -> ordered stage transitions.
    Each adjacent pair with differing stages yields a movement dated and valued
    at the later snapshot. Closed -> closed pairs are suppressed.
    """
    catalog = catalog or StageCatalog()
    ordered = usable_sorted(snapshots)
    movements: list[Movement] = []
    for prev, curr in zip(ordered, ordered[1:]):
        if prev.stage == curr.stage:
            continue
        if catalog.is_closed(prev.stage) and catalog.is_closed(curr.stage):
            continue
        movements.append(
            Movement(
                opportunity_id=curr.opportunity_id,
                from_stage=prev.stage,
                to_stage=curr.stage,
                date=curr.snapshot_date,
                value=curr.value,
            )
        )
    return movements


def detect_all(
    source: Union[PipelineDataset, dict[str, list[Snapshot]], list[Snapshot]],
    catalog: Optional[StageCatalog] = None,
) -> list[Movement]:
    """Detect movements per opportunity; result sorted by (date, opportunity id)."""
    if isinstance(source, PipelineDataset):
        groups = source.snapshots_by_opportunity()
    elif isinstance(source, dict):
        groups = source
    else:
        groups = group_snapshots(source)

    movements: list[Movement] = []
    for snaps in groups.values():
        movements.extend(detect_movements(snaps, catalog))
    movements.sort(key=lambda m: (m.date, m.opportunity_id))
    return movements


def filter_movements(movements: Iterable[Movement], date_range: Optional[DateRange]) -> list[Movement]:
    """Keep movements whose date lies in the inclusive range (all when unbounded)."""
    if date_range is None or not date_range.bounded:
        return list(movements)
    return [m for m in movements if date_range.contains(m.date)]
