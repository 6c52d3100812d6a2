"""SQLite-backed opportunity and snapshot store."""

import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from pipeline_analytics.dates import DateRange
from pipeline_analytics.models.opportunity import Opportunity, PipelineDataset, Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """
    SQLite store for opportunities and their dated snapshots.
    Opportunities upsert on id; snapshots are append-only and unique per
    (opportunity_id, snapshot_date).
    """

    def __init__(self, db_path: str | Path = "pipeline_analytics.db"):
        self._db_path = Path(db_path)
        self._ensure_schema()

    def _connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        schema_path = Path(__file__).parent / "schema.sql"
        with self._connection() as conn:
            conn.executescript(schema_path.read_text())

    def _serialize(self, model: Opportunity | Snapshot) -> str:
        return json.dumps(model.model_dump(mode="json"), default=str)

    def _deserialize_opp(self, row: sqlite3.Row) -> Opportunity:
        data = json.loads(row["data"])
        data["is_active"] = bool(row["is_active"])
        return Opportunity.model_validate(data)

    def _deserialize_snapshot(self, row: sqlite3.Row) -> Snapshot:
        return Snapshot.model_validate(json.loads(row["data"]))

    def upsert_opportunity(self, opp: Opportunity) -> bool:
        """Insert or update an opportunity. Returns True when it was new."""
        now = datetime.now(timezone.utc).isoformat()
        data_str = self._serialize(opp)
        with self._connection() as conn:
            existing = conn.execute("SELECT id FROM opportunities WHERE id = ?", (opp.id,)).fetchone()
            if existing:
                conn.execute(
                    """
                    UPDATE opportunities SET
                        crm_id = ?, client_name = ?, owner = ?, is_active = ?,
                        data = ?, last_seen_at = ?
                    WHERE id = ?
                    """,
                    (opp.crm_id, opp.client_name, opp.owner, int(opp.is_active), data_str, now, opp.id),
                )
            else:
                conn.execute(
                    """
                    INSERT INTO opportunities (id, crm_id, client_name, owner, is_active, data, first_seen_at, last_seen_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (opp.id, opp.crm_id, opp.client_name, opp.owner, int(opp.is_active), data_str, now, now),
                )
            conn.commit()
        return existing is None

    def set_active(self, opp_id: str, is_active: bool) -> None:
        """Flip the only mutable opportunity attribute."""
        with self._connection() as conn:
            row = conn.execute("SELECT data FROM opportunities WHERE id = ?", (opp_id,)).fetchone()
            if row is None:
                raise KeyError(opp_id)
            data = json.loads(row["data"])
            data["is_active"] = is_active
            conn.execute(
                "UPDATE opportunities SET is_active = ?, data = ? WHERE id = ?",
                (int(is_active), json.dumps(data, default=str), opp_id),
            )
            conn.commit()

    def add_snapshot(self, snapshot: Snapshot) -> bool:
        """Append a snapshot. Returns False if one already exists for that opportunity and date."""
        return self.add_snapshots([snapshot]) == 1

    def add_snapshots(self, snapshots: Iterable[Snapshot]) -> int:
        """Append snapshots, skipping duplicates. Returns how many were inserted."""
        now = datetime.now(timezone.utc).isoformat()
        inserted = 0
        with self._connection() as conn:
            for snap in snapshots:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO snapshots (opportunity_id, snapshot_date, stage, data, ingested_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (
                        snap.opportunity_id,
                        snap.snapshot_date.isoformat() if snap.snapshot_date else None,
                        snap.stage,
                        self._serialize(snap),
                        now,
                    ),
                )
                inserted += cursor.rowcount
            conn.commit()
        logger.debug("Inserted %d snapshot(s)", inserted)
        return inserted

    def get(self, opp_id: str) -> Optional[Opportunity]:
        """Get single opportunity by id."""
        with self._connection() as conn:
            row = conn.execute("SELECT * FROM opportunities WHERE id = ?", (opp_id,)).fetchone()
        return self._deserialize_opp(row) if row else None

    def get_opportunities(self, ids: Optional[Iterable[str]] = None) -> list[Opportunity]:
        """Return all opportunities, or only those with the given ids."""
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM opportunities ORDER BY id").fetchall()
        opps = [self._deserialize_opp(r) for r in rows]
        if ids is not None:
            wanted = set(ids)
            opps = [o for o in opps if o.id in wanted]
        return opps

    def get_snapshots(
        self,
        date_range: Optional[DateRange] = None,
        opportunity_ids: Optional[Iterable[str]] = None,
    ) -> list[Snapshot]:
        """Snapshots ordered by (opportunity_id, snapshot_date), optionally windowed on snapshot_date."""
        query = "SELECT * FROM snapshots"
        params: list = []
        if date_range is not None and date_range.bounded:
            query += " WHERE snapshot_date >= ? AND snapshot_date <= ?"
            params.extend([date_range.start_date.isoformat(), date_range.end_date.isoformat()])
        query += " ORDER BY opportunity_id, snapshot_date"
        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        snaps = [self._deserialize_snapshot(r) for r in rows]
        if opportunity_ids is not None:
            wanted = set(opportunity_ids)
            snaps = [s for s in snaps if s.opportunity_id in wanted]
        return snaps

    def snapshot_dates(self) -> list[date]:
        """Distinct snapshot dates, ascending."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT DISTINCT snapshot_date FROM snapshots WHERE snapshot_date IS NOT NULL ORDER BY snapshot_date"
            ).fetchall()
        return [date.fromisoformat(r["snapshot_date"]) for r in rows]

    def load_dataset(
        self,
        date_range: Optional[DateRange] = None,
        opportunity_ids: Optional[Iterable[str]] = None,
    ) -> PipelineDataset:
        """Materialize opportunities and snapshots for one engine call."""
        ids = set(opportunity_ids) if opportunity_ids is not None else None
        return PipelineDataset(
            opportunities=self.get_opportunities(ids),
            snapshots=self.get_snapshots(date_range, ids),
        )

    def count(self) -> dict[str, int]:
        """Row counts per table."""
        with self._connection() as conn:
            opps = conn.execute("SELECT COUNT(*) FROM opportunities").fetchone()[0]
            snaps = conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]
        return {"opportunities": opps, "snapshots": snaps}
