"""Convert loose opportunity/snapshot rows into validated models."""

import json
import logging
import re
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from pipeline_analytics.models.opportunity import Opportunity, PipelineDataset, Snapshot
from pipeline_analytics.models.raw import RawRecord

logger = logging.getLogger(__name__)

DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%m/%d/%Y",
    "%d-%b-%Y",
)

RowLike = Union[RawRecord, dict[str, Any]]


def _get(d: dict[str, Any], *keys: str) -> Any:
    """First non-empty value among keys (camelCase and snake_case variants)."""
    for key in keys:
        value = d.get(key)
        if value is not None and value != "":
            return value
    return None


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date from date/datetime objects or common string formats.
    Blank -> None; anything else unparseable raises ValueError.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text[:19], fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: {value!r}")


def parse_amount(value: Any) -> Optional[float]:
    """Parse '$12,500.00'-style amounts. Blank -> None; garbage raises ValueError."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = re.sub(r"[$,\s]", "", str(value))
    if not text:
        return None
    return float(text)


def parse_bool(value: Any, default: bool = True) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("1", "true", "yes", "y", "active")


def _data(row: RowLike) -> dict[str, Any]:
    if isinstance(row, RawRecord):
        return row.data
    return row


def normalize_opportunity(row: RowLike) -> Opportunity:
    """Map an opportunity row to Opportunity. Raises ValueError on bad data."""
    d = _data(row)
    opp_id = _text(_get(d, "id"))
    crm_id = _text(_get(d, "crm_id", "crmId", "opportunityId", "opportunity_id"))
    if not opp_id and not crm_id:
        raise ValueError("Opportunity row has neither id nor CRM id")
    return Opportunity(
        id=opp_id or crm_id,
        crm_id=crm_id or opp_id,
        name=_text(_get(d, "name", "opportunityName", "opportunity_name")) or "",
        client_name=_text(_get(d, "client_name", "clientName", "accountName", "account_name")),
        owner=_text(_get(d, "owner")),
        created_date=parse_date(_get(d, "created_date", "createdDate")),
        is_active=parse_bool(_get(d, "is_active", "isActive")),
    )


def normalize_snapshot(row: RowLike) -> Snapshot:
    """Map a snapshot row to Snapshot. Raises ValueError on bad data."""
    d = _data(row)
    opp_id = _text(_get(d, "opportunity_id", "opportunityId"))
    if not opp_id:
        raise ValueError("Snapshot row has no opportunity id")
    return Snapshot(
        opportunity_id=opp_id,
        snapshot_date=parse_date(_get(d, "snapshot_date", "snapshotDate")),
        stage=_text(_get(d, "stage")),
        amount=parse_amount(_get(d, "amount")),
        annual_value=parse_amount(_get(d, "annual_value", "year1Value", "year1_value", "year1Arr")),
        expected_close_date=parse_date(_get(d, "expected_close_date", "expectedCloseDate")),
        close_date=parse_date(_get(d, "close_date", "closeDate")),
        entered_pipeline=parse_date(_get(d, "entered_pipeline", "enteredPipeline")),
        loss_reason=_text(_get(d, "loss_reason", "lossReason")),
    )


def normalize_records(
    opportunity_rows: Iterable[RowLike],
    snapshot_rows: Iterable[RowLike],
) -> PipelineDataset:
    """Normalize all rows, skipping (and logging) the malformed ones."""
    opportunities: list[Opportunity] = []
    for i, row in enumerate(opportunity_rows):
        try:
            opportunities.append(normalize_opportunity(row))
        except (ValueError, ValidationError) as e:
            logger.warning("Skipping opportunity row %d: %s", i, e)

    snapshots: list[Snapshot] = []
    for i, row in enumerate(snapshot_rows):
        try:
            snapshots.append(normalize_snapshot(row))
        except (ValueError, ValidationError) as e:
            logger.warning("Skipping snapshot row %d: %s", i, e)

    return PipelineDataset(opportunities=opportunities, snapshots=snapshots)


def load_json_dataset(path: str | Path) -> PipelineDataset:
    """Load {"opportunities": [...], "snapshots": [...]} from a JSON file."""
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected an object with opportunities and snapshots")
    return normalize_records(data.get("opportunities") or [], data.get("snapshots") or [])
