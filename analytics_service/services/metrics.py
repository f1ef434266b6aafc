"""Numeric rules shared by every aggregator."""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

from analytics_service.core.filters import DateRange, GroupBy, as_utc, bucket_start
from analytics_service.schemas.analytics import EntityMetric, SeriesPoint

SECONDS_PER_HOUR = 3600.0


def finite_or_zero(value: float | int | None) -> float:
    """Clamp NaN, infinities and missing values to zero."""

    if value is None:
        return 0.0
    result = float(value)
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def safe_ratio(numerator: float | int | None, denominator: float | int | None) -> float:
    if not denominator:
        return 0.0
    return finite_or_zero(finite_or_zero(numerator) / float(denominator))


def shares(counts: Sequence[int]) -> list[float]:
    total = sum(counts)
    return [safe_ratio(count, total) for count in counts]


def heat_intensities(counts: Sequence[int]) -> list[float]:
    """Each count relative to the largest one in the same response."""

    peak = max(counts, default=0)
    return [safe_ratio(count, peak) for count in counts]


def idle_hours(period: DateRange, last_activity: datetime | None) -> float:
    """Hours between the last activity and the end of the range, never negative.

    With no activity in range the whole range width is idle.
    """

    if last_activity is None:
        return max(0.0, finite_or_zero(period.hours))
    delta = (period.end - as_utc(last_activity)).total_seconds() / SECONDS_PER_HOUR
    return max(0.0, finite_or_zero(delta))


def duration_minutes(entry_at: datetime, exit_at: datetime | None) -> float:
    finished = as_utc(exit_at) if exit_at is not None else as_utc(entry_at)
    return (finished - as_utc(entry_at)).total_seconds() / 60.0


def mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return finite_or_zero(sum(values) / len(values))


def discrete_percentile(values: Iterable[float], fraction: float) -> float:
    """Smallest value whose cumulative share reaches ``fraction``; no interpolation."""

    ordered = sorted(values)
    if not ordered:
        return 0.0
    rank = math.ceil(round(fraction * len(ordered), 9))
    index = min(max(rank - 1, 0), len(ordered) - 1)
    return finite_or_zero(ordered[index])


def entity_metrics(rows: Sequence[Any]) -> list[EntityMetric]:
    """Build ranked entities from ``entity_id``/``name``/``trips``/``volume`` rows."""

    counts = [int(row.trips or 0) for row in rows]
    return [
        EntityMetric(
            id=row.entity_id,
            name=row.name,
            count=count,
            volume=finite_or_zero(getattr(row, "volume", 0)),
            share=share,
        )
        for row, count, share in zip(rows, counts, shares(counts))
    ]


def rebucket(
    rows: Iterable[Any],
    group_by: GroupBy,
    *,
    count_field: str,
    value_field: str | None = None,
) -> list[SeriesPoint]:
    """Fold daily rollup rows into ascending day/week/month points.

    Without ``value_field`` a point's value equals its count.
    """

    counts: dict[datetime, int] = {}
    values: dict[datetime, float] = {}
    for row in rows:
        bucket = bucket_start(row.bucket, group_by)
        count = int(getattr(row, count_field) or 0)
        counts[bucket] = counts.get(bucket, 0) + count
        value = finite_or_zero(getattr(row, value_field)) if value_field else float(count)
        values[bucket] = values.get(bucket, 0.0) + value
    return [SeriesPoint(bucket=bucket, count=counts[bucket], value=values[bucket]) for bucket in sorted(counts)]
