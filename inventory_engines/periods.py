"""
inventory_engines.periods -- Reporting date ranges.

Pure: the caller supplies ``today``; nothing here reads the system clock.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime, timezone
from enum import Enum

# Lower bound of the ``all_time`` preset
ALL_TIME_START = date(2000, 1, 1)


class ReportPeriod(str, Enum):
    """Named reporting windows."""

    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    LAST_3_MONTHS = "last_3_months"
    YEAR_TO_DATE = "year_to_date"
    ALL_TIME = "all_time"


@dataclass(frozen=True)
class DateRange:
    """Calendar dates, inclusive at both ends."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if isinstance(self.start, datetime) or isinstance(self.end, datetime):
            raise TypeError("DateRange bounds are dates, not datetimes")
        if self.start > self.end:
            raise ValueError(f"DateRange start {self.start} is after end {self.end}")

    def contains(self, moment: date | datetime) -> bool:
        """Whether ``moment`` (an aware datetime is read in UTC) falls in the range."""
        if isinstance(moment, datetime):
            if moment.tzinfo is not None:
                moment = moment.astimezone(timezone.utc)
            moment = moment.date()
        return self.start <= moment <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


def _shift_month(day: date, months: int) -> date:
    """First day of the month ``months`` away from ``day``'s month."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def resolve_period(period: ReportPeriod | str, today: date) -> DateRange:
    """
    Turn a preset into a concrete DateRange.

    ``last_month`` is the whole previous calendar month; every other preset
    ends on ``today``.

    Raises:
        ValueError: unknown preset name.
    """
    period = ReportPeriod(period)
    if isinstance(today, datetime):
        today = today.date()

    if period is ReportPeriod.LAST_MONTH:
        start = _shift_month(today, -1)
        end = date(start.year, start.month, monthrange(start.year, start.month)[1])
        return DateRange(start, end)
    if period is ReportPeriod.LAST_3_MONTHS:
        return DateRange(_shift_month(today, -3), today)
    if period is ReportPeriod.YEAR_TO_DATE:
        return DateRange(date(today.year, 1, 1), today)
    if period is ReportPeriod.ALL_TIME:
        return DateRange(ALL_TIME_START, today)
    return DateRange(_shift_month(today, 0), today)
