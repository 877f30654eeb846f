"""
Shared intermediate stages for one analysis call.

An AnalysisContext wraps a snapshot with the instant the analysis is "as of" and
its lookback window, and memoizes the joins and aggregates that several analyzers
consume (completed sets, weekly buckets, per-body-part volume). Each call builds
its own context, so concurrent analyses share no mutable state.
"""

from datetime import datetime, timedelta
from functools import cached_property
from typing import Dict, List, Optional

from services.training_log import (
    BODY_PART_ORDER,
    BodyPart,
    LoggedSet,
    TrainingLogSnapshot,
    WorkoutSessionRecord,
    as_utc,
    utc_now,
)
from services.weekly_aggregator import WeekBucket, aggregate_weeks


def body_part_volumes(sets: List[LoggedSet]) -> Dict[BodyPart, float]:
    """Total volume per target body part; exercises without a target are skipped."""
    volumes: Dict[BodyPart, float] = {}
    for logged in sets:
        part = logged.body_part
        if part is None:
            continue
        volumes[part] = volumes.get(part, 0.0) + logged.volume
    return dict(sorted(volumes.items(), key=lambda item: BODY_PART_ORDER[item[0]]))


class AnalysisContext:
    """
    Snapshot + as-of instant + lookback, with memoized derived stages.

    Args:
        snapshot: Training log fetched at call start
        as_of: Reference instant for every time-relative rule (defaults to now, UTC)
        lookback_weeks: Window length for windowed stages; None means all history
    """

    def __init__(
        self,
        snapshot: TrainingLogSnapshot,
        as_of: Optional[datetime] = None,
        lookback_weeks: Optional[int] = None,
    ):
        self.snapshot = snapshot
        self.as_of = as_utc(as_of) if as_of is not None else utc_now()
        self.lookback_weeks = lookback_weeks

    @property
    def user_id(self):
        return self.snapshot.user_id

    @cached_property
    def window_start(self) -> Optional[datetime]:
        if self.lookback_weeks is None:
            return None
        return self.as_of - timedelta(weeks=self.lookback_weeks)

    @cached_property
    def all_sets(self) -> List[LoggedSet]:
        """Completed sets up to ``as_of``, all history."""
        return [s for s in self.snapshot.completed_sets() if s.performed_at <= self.as_of]

    @cached_property
    def window_sets(self) -> List[LoggedSet]:
        """Completed sets inside the lookback window."""
        if self.window_start is None:
            return self.all_sets
        return [s for s in self.all_sets if s.performed_at >= self.window_start]

    @cached_property
    def completed_sessions(self) -> List[WorkoutSessionRecord]:
        """Completed sessions up to ``as_of``, all history, by completion time."""
        return [
            s for s in self.snapshot.completed_sessions()
            if as_utc(s.completed_at) <= self.as_of
        ]

    @cached_property
    def window_sessions(self) -> List[WorkoutSessionRecord]:
        if self.window_start is None:
            return self.completed_sessions
        return [
            s for s in self.completed_sessions
            if as_utc(s.completed_at) >= self.window_start
        ]

    @cached_property
    def weekly_buckets(self) -> List[WeekBucket]:
        """Observed weeks inside the lookback window."""
        return aggregate_weeks(self.window_sets)

    @cached_property
    def window_body_part_volumes(self) -> Dict[BodyPart, float]:
        return body_part_volumes(self.window_sets)

    def sets_within_days(self, days: int) -> List[LoggedSet]:
        """Completed sets from the trailing ``days`` days (any lookback)."""
        start = self.as_of - timedelta(days=days)
        return [s for s in self.all_sets if s.performed_at >= start]

    def sessions_within_days(self, days: int) -> List[WorkoutSessionRecord]:
        start = self.as_of - timedelta(days=days)
        return [s for s in self.completed_sessions if as_utc(s.completed_at) >= start]
