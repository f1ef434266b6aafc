"""Report time ranges, filters and range normalization."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from uuid import UUID

ONE_DAY = timedelta(days=1)


class GroupBy(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @classmethod
    def parse(cls, value: str | None) -> GroupBy:
        """Lenient parse: anything other than week/month buckets by day."""

        normalized = (value or "").strip().lower()
        if normalized == cls.WEEK.value:
            return cls.WEEK
        if normalized == cls.MONTH.value:
            return cls.MONTH
        return cls.DAY


@dataclass(frozen=True, slots=True)
class DateRange:
    """Half-open ``[start, end)`` interval. Unset bounds are filled by normalization."""

    start: datetime | None = None
    end: datetime | None = None

    @property
    def hours(self) -> float:
        if self.start is None or self.end is None:
            return 0.0
        return (self.end - self.start).total_seconds() / 3600.0


@dataclass(frozen=True, slots=True)
class AnalyticsFilter:
    period: DateRange = DateRange()
    contractor_id: UUID | None = None
    driver_id: UUID | None = None
    polygon_id: UUID | None = None
    camera_id: UUID | None = None
    violation_type: str | None = None
    group_by: GroupBy = GroupBy.DAY


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive timestamps as UTC and convert aware ones to UTC."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RangeNormalizer:
    """Clamp caller-supplied ranges to configured default and maximum widths.

    Invalid input is corrected, never rejected, and normalizing an already
    normalized range returns it unchanged.
    """

    def __init__(self, default_days: int, max_days: int) -> None:
        self.default_width = timedelta(days=default_days)
        self.max_width = timedelta(days=max_days)

    def normalize_range(self, rng: DateRange, *, now: datetime | None = None) -> DateRange:
        end = as_utc(rng.end) or as_utc(now) or utc_now()
        start = as_utc(rng.start) or end - self.default_width
        if end < start:
            start = end - ONE_DAY
        if end - start > self.max_width:
            start = end - self.max_width
        return DateRange(start=start, end=end)

    def normalize_filter(self, filter_: AnalyticsFilter, *, now: datetime | None = None) -> AnalyticsFilter:
        return replace(filter_, period=self.normalize_range(filter_.period, now=now))


def bucket_start(value: datetime, group_by: GroupBy) -> datetime:
    """Truncate a timestamp to its bucket: day, ISO week (Monday) or month."""

    day = as_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)
    if group_by is GroupBy.WEEK:
        return day - timedelta(days=day.weekday())
    if group_by is GroupBy.MONTH:
        return day.replace(day=1)
    return day
