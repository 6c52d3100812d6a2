"""
Fiscal calendar and period selector resolution.

Fiscal year runs Feb 1 - Jan 31 and is labelled by the calendar year it ends
in (Feb 2025 - Jan 2026 is FY2026). Quarters: Q1 Feb-Apr, Q2 May-Jul,
Q3 Aug-Oct, Q4 Nov-Jan.
"""

import logging
import re
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, model_validator

logger = logging.getLogger(__name__)

FISCAL_YEAR_START_MONTH = 2


class PeriodSelector(str, Enum):
    """Symbolic reporting periods offered by the dashboard filters."""

    ALL_TIME = "all-time"
    LAST_1_MONTH = "last-1-month"
    LAST_3_MONTHS = "last-3-months"
    LAST_6_MONTHS = "last-6-months"
    LAST_12_MONTHS = "last-12-months"
    MONTH_TO_DATE = "month-to-date"
    FQ_TO_DATE = "fq-to-date"
    FY_TO_DATE = "fy-to-date"
    LAST_FQ = "last-fq"
    LAST_FY = "last-fy"
    CUSTOM = "custom"


_ROLLING_MONTHS = {
    PeriodSelector.LAST_1_MONTH: 1,
    PeriodSelector.LAST_3_MONTHS: 3,
    PeriodSelector.LAST_6_MONTHS: 6,
    PeriodSelector.LAST_12_MONTHS: 12,
}


class DateRange(BaseModel):
    """Inclusive [start_date, end_date]; both absent means unbounded."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @model_validator(mode="after")
    def _both_or_neither(self) -> "DateRange":
        if (self.start_date is None) != (self.end_date is None):
            raise ValueError("start_date and end_date must both be set or both be absent")
        if self.start_date is not None and self.start_date > self.end_date:
            raise ValueError(f"start_date {self.start_date} is after end_date {self.end_date}")
        return self

    @property
    def bounded(self) -> bool:
        return self.start_date is not None

    def contains(self, value: Optional[date]) -> bool:
        """Inclusive membership; an unbounded range contains every date but None."""
        if value is None:
            return False
        if not self.bounded:
            return True
        return self.start_date <= value <= self.end_date


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def parse_selector(value: "PeriodSelector | str") -> PeriodSelector:
    """
    Accept enum members, ids ("fy-to-date"), compact ids ("fytodate") or
    dashboard labels ("FY to Date", "Last 12 months").
    """
    if isinstance(value, PeriodSelector):
        return value
    key = re.sub(r"[^a-z0-9]", "", str(value).lower())
    for selector in PeriodSelector:
        if selector.value.replace("-", "") == key:
            return selector
    raise ValueError(f"Unknown period selector: {value!r}")


def fiscal_year_start(day: date | datetime) -> date:
    """Feb 1 of the fiscal year containing day."""
    day = _as_date(day)
    year = day.year if day.month >= FISCAL_YEAR_START_MONTH else day.year - 1
    return date(year, FISCAL_YEAR_START_MONTH, 1)


def fiscal_year_end(day: date | datetime) -> date:
    """Jan 31 closing the fiscal year containing day."""
    return fiscal_year_start(day) + relativedelta(years=1) - timedelta(days=1)


def fiscal_year_label(day: date | datetime) -> str:
    return f"FY{fiscal_year_start(day).year + 1}"


def fiscal_quarter_number(day: date | datetime) -> int:
    day = _as_date(day)
    return (day.month - FISCAL_YEAR_START_MONTH) % 12 // 3 + 1


def fiscal_quarter(day: date | datetime) -> tuple[str, int]:
    """(fiscal year label, quarter number) for day."""
    return fiscal_year_label(day), fiscal_quarter_number(day)


def fiscal_quarter_label(day: date | datetime) -> str:
    fy, quarter = fiscal_quarter(day)
    return f"{fy} Q{quarter}"


def fiscal_quarter_start(day: date | datetime) -> date:
    """First day of the fiscal quarter containing day (Nov 1 for January)."""
    quarter = fiscal_quarter_number(day)
    return fiscal_year_start(day) + relativedelta(months=3 * (quarter - 1))


def fiscal_quarter_end(day: date | datetime) -> date:
    return fiscal_quarter_start(day) + relativedelta(months=3) - timedelta(days=1)


def resolve_date_range(
    selector: "PeriodSelector | str",
    now: date | datetime,
    custom_start: Optional[date] = None,
    custom_end: Optional[date] = None,
) -> DateRange:
    """
    Map a period selector and reference instant to a concrete window.
    Custom without both bounds falls back to FY to date.
    """
    selector = parse_selector(selector)
    today = _as_date(now)

    if selector is PeriodSelector.ALL_TIME:
        return DateRange()

    if selector is PeriodSelector.CUSTOM:
        if custom_start is not None and custom_end is not None:
            start, end = _as_date(custom_start), _as_date(custom_end)
            if start > end:
                raise ValueError(f"Custom range start {start} is after end {end}")
            return DateRange(start_date=start, end_date=end)
        logger.info("Custom period without both bounds; falling back to FY to date")
        selector = PeriodSelector.FY_TO_DATE

    if selector in _ROLLING_MONTHS:
        return DateRange(
            start_date=today - relativedelta(months=_ROLLING_MONTHS[selector]),
            end_date=today,
        )

    if selector is PeriodSelector.MONTH_TO_DATE:
        return DateRange(start_date=today.replace(day=1), end_date=today)

    if selector is PeriodSelector.FQ_TO_DATE:
        return DateRange(start_date=fiscal_quarter_start(today), end_date=today)

    if selector is PeriodSelector.FY_TO_DATE:
        return DateRange(start_date=fiscal_year_start(today), end_date=today)

    if selector is PeriodSelector.LAST_FQ:
        current_start = fiscal_quarter_start(today)
        return DateRange(
            start_date=current_start - relativedelta(months=3),
            end_date=current_start - timedelta(days=1),
        )

    if selector is PeriodSelector.LAST_FY:
        current_start = fiscal_year_start(today)
        return DateRange(
            start_date=current_start - relativedelta(years=1),
            end_date=current_start - timedelta(days=1),
        )

    raise ValueError(f"Unhandled period selector: {selector}")


def rolling_window(anchor: date, months: int = 12) -> DateRange:
    """[anchor - months, anchor] using calendar month arithmetic."""
    anchor = _as_date(anchor)
    return DateRange(start_date=anchor - relativedelta(months=months), end_date=anchor)


def fiscal_year_to_date(anchor: date) -> DateRange:
    anchor = _as_date(anchor)
    return DateRange(start_date=fiscal_year_start(anchor), end_date=anchor)


def monthly_anchors(start: date, end: date) -> list[date]:
    """Month-end dates within [start, end], closed with end itself."""
    start, end = _as_date(start), _as_date(end)
    if start > end:
        return []
    anchors: list[date] = []
    month_end = start.replace(day=1) + relativedelta(months=1) - timedelta(days=1)
    while month_end <= end:
        anchors.append(month_end)
        month_end = month_end.replace(day=1) + relativedelta(months=2) - timedelta(days=1)
    if not anchors or anchors[-1] != end:
        anchors.append(end)
    return anchors
