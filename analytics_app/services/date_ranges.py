"""
Named reporting periods and growth arithmetic.

Periods resolve against server-local "now" into an inclusive
[start, end] pair of naive datetimes.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional
import math


class TimePeriod(str, Enum):
    TODAY = "today"
    YESTERDAY = "yesterday"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"
    LAST_90_DAYS = "last_90_days"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"
    THIS_YEAR = "this_year"
    CUSTOM = "custom"


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class InvalidDateRange(ValueError):
    """Raised when a period cannot be resolved from the given dates"""


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    def days(self) -> int:
        """Number of calendar days touched by the range"""
        return (self.end.date() - self.start.date()).days + 1

    def previous(self) -> "DateRange":
        """
        The same number of whole calendar days, ending the day before this one starts.

        Rollups are keyed by date, so the two windows never share a day.
        """
        first_day = self.start.replace(hour=0, minute=0, second=0, microsecond=0)
        return DateRange(start=first_day - timedelta(days=self.days()), end=first_day - _ONE_MS)


_ONE_MS = timedelta(milliseconds=1)


def _to_local_naive(value: datetime) -> datetime:
    """Stored timestamps are naive server-local time"""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def resolve_date_range(
    period: TimePeriod,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> DateRange:
    """
    Resolve a named period to concrete instants.

    Raises:
        InvalidDateRange: custom period without both dates, or start after end
    """
    now = now or datetime.now()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    period = TimePeriod(period)

    if period == TimePeriod.TODAY:
        return DateRange(today, today + timedelta(days=1) - _ONE_MS)

    if period == TimePeriod.YESTERDAY:
        yesterday = today - timedelta(days=1)
        return DateRange(yesterday, today - _ONE_MS)

    if period == TimePeriod.LAST_7_DAYS:
        return DateRange(today - timedelta(days=7), now)

    if period == TimePeriod.LAST_30_DAYS:
        return DateRange(today - timedelta(days=30), now)

    if period == TimePeriod.LAST_90_DAYS:
        return DateRange(today - timedelta(days=90), now)

    if period == TimePeriod.THIS_MONTH:
        return DateRange(today.replace(day=1), now)

    if period == TimePeriod.LAST_MONTH:
        first_of_this_month = today.replace(day=1)
        first_of_last_month = (first_of_this_month - timedelta(days=1)).replace(day=1)
        return DateRange(first_of_last_month, first_of_this_month - _ONE_MS)

    if period == TimePeriod.THIS_YEAR:
        return DateRange(today.replace(month=1, day=1), now)

    # custom
    if start_date is None or end_date is None:
        raise InvalidDateRange("Start date and end date are required for custom period")
    start_date, end_date = _to_local_naive(start_date), _to_local_naive(end_date)
    if start_date > end_date:
        raise InvalidDateRange("Start date must not be after end date")
    return DateRange(start_date, end_date)


def calculate_growth(current: float, previous: float) -> int:
    """
    Percent change from previous to current, rounded half up.

    A previous value of zero reports 100 when anything happened since, else 0.
    """
    if previous == 0:
        return 100 if current > 0 else 0
    return int(math.floor((current - previous) / previous * 100 + 0.5))
