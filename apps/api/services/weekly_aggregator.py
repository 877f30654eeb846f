"""
Weekly Training Load Aggregator

Buckets completed sets into Monday-aligned weeks:
- Volume (sum of reps x weight)
- Set count
- Workout count (distinct sessions with a set in the week)
- Average intensity: unweighted mean of per-set Epley intensity (% of estimated 1RM)

Weeks without sets are omitted from aggregate_weeks(); fill_weeks() produces the
continuous zero-filled series that spike/deload detection and charts need.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID
import logging

from services.training_log import LoggedSet, relative_intensity, week_start

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeekBucket:
    """Aggregated training for one Monday-aligned week."""
    week_start: date
    total_volume: float
    total_sets: int
    workout_count: int
    average_intensity: float  # % of estimated 1RM, 0 when no loaded sets

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)


class _WeekAccumulator:
    def __init__(self, start: date):
        self.start = start
        self.volume = 0.0
        self.sets = 0
        self.intensity_sum = 0.0
        self.intensity_count = 0
        self.sessions: Set[UUID] = set()

    def add(self, logged: LoggedSet) -> None:
        self.volume += logged.volume
        self.sets += 1
        self.sessions.add(logged.session.id)
        intensity = relative_intensity(logged.weight, logged.reps)
        if intensity is not None:
            self.intensity_sum += intensity
            self.intensity_count += 1

    def to_bucket(self) -> WeekBucket:
        average = self.intensity_sum / self.intensity_count if self.intensity_count else 0.0
        return WeekBucket(
            week_start=self.start,
            total_volume=self.volume,
            total_sets=self.sets,
            workout_count=len(self.sessions),
            average_intensity=average,
        )


def aggregate_weeks(sets: Iterable[LoggedSet]) -> List[WeekBucket]:
    """
    Aggregate completed sets into weekly buckets, ascending by week start.

    Sets from the same Monday-to-Sunday window always share a bucket,
    regardless of time of day. Empty input yields an empty list.
    """
    weeks: Dict[date, _WeekAccumulator] = {}
    for logged in sets:
        key = week_start(logged.performed_at)
        acc = weeks.get(key)
        if acc is None:
            acc = weeks[key] = _WeekAccumulator(key)
        acc.add(logged)

    buckets = [weeks[key].to_bucket() for key in sorted(weeks)]
    logger.debug(f"Aggregated {len(buckets)} training weeks")
    return buckets


def empty_week(start: date) -> WeekBucket:
    return WeekBucket(
        week_start=start,
        total_volume=0.0,
        total_sets=0,
        workout_count=0,
        average_intensity=0.0,
    )


def week_range(first: date, last: date) -> List[date]:
    """Monday week starts from ``first`` to ``last`` inclusive."""
    first = first - timedelta(days=first.weekday())
    last = last - timedelta(days=last.weekday())
    weeks = []
    current = first
    while current <= last:
        weeks.append(current)
        current += timedelta(weeks=1)
    return weeks


def trailing_week_starts(as_of: datetime, count: int) -> List[date]:
    """The ``count`` week starts ending with the week containing ``as_of``, oldest first."""
    current = week_start(as_of)
    return [current - timedelta(weeks=offset) for offset in range(count - 1, -1, -1)]


def fill_weeks(
    buckets: Iterable[WeekBucket],
    first: Optional[date] = None,
    last: Optional[date] = None,
) -> List[WeekBucket]:
    """
    Zero-fill the gaps in a bucket list.

    Bounds default to the first and last observed weeks. Buckets outside the
    bounds are dropped.
    """
    by_week = {b.week_start: b for b in buckets}
    if first is None or last is None:
        if not by_week:
            return []
        first = first or min(by_week)
        last = last or max(by_week)
    return [by_week.get(start, empty_week(start)) for start in week_range(first, last)]
