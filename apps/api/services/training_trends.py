"""
Training Trends & Strength Records

Progress-over-time views of the training log:
- Weekly progress: workouts, volume and week-over-week volume change
- Exercise progression: max weight per session for each exercise
- Personal records: heaviest set per exercise with its Epley estimated 1RM
- Recent PRs and top improvements over the last 30 days
- Volume summary, most performed exercises and muscle-group balance
- Training-day streaks (current and best)

Weekly progress and exercise progression use the lookback window; records,
improvements, volume summary and streaks use all history up to as_of.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set
from uuid import UUID
import logging

from services.analysis_context import AnalysisContext
from services.training_log import (
    LoggedSet,
    MuscleGroup,
    WorkoutSessionRecord,
    as_utc,
    estimate_one_rep_max,
)

logger = logging.getLogger(__name__)

RECENT_DAYS = 30
RECENT_PR_LIMIT = 5
TOP_IMPROVEMENT_LIMIT = 3
MOST_PERFORMED_LIMIT = 10
OTHER_MUSCLE_GROUP = "other"


@dataclass
class WeeklyProgress:
    week_start: date
    workouts: int
    volume: float
    improvement: float  # % volume change vs the previous observed week


@dataclass
class ProgressPoint:
    performed_at: datetime  # Session start
    max_weight: float


@dataclass
class ExerciseProgress:
    exercise_id: UUID
    exercise_name: str
    data_points: List[ProgressPoint] = field(default_factory=list)


@dataclass
class PersonalRecord:
    exercise_id: UUID
    exercise_name: str
    max_weight: float
    max_reps: int  # Reps of the heaviest set
    estimated_one_rep_max: float
    last_performed: datetime


@dataclass
class RecentRecord:
    exercise_name: str
    weight: float
    reps: int
    performed_at: datetime


@dataclass
class Improvement:
    exercise_name: str
    improvement: float  # %
    previous_max: float
    recent_max: float


@dataclass
class VolumeSummary:
    total_volume: float = 0.0
    weekly_volume: float = 0.0  # Trailing 7 days
    average_reps: float = 0.0  # Per set
    average_sets: float = 0.0  # Per exercise instance


@dataclass
class ExerciseFrequency:
    exercise_id: UUID
    exercise_name: str
    count: int  # Completed sets
    muscle_group: Optional[MuscleGroup] = None


@dataclass
class MuscleGroupVolume:
    muscle_group: str
    volume: float
    percentage: float


@dataclass
class StreakSummary:
    current_streak: int = 0
    best_streak: int = 0


@dataclass
class TrainingTrends:
    weekly_progress: List[WeeklyProgress] = field(default_factory=list)
    exercise_progress: List[ExerciseProgress] = field(default_factory=list)
    personal_records: List[PersonalRecord] = field(default_factory=list)
    recent_records: List[RecentRecord] = field(default_factory=list)
    top_improvements: List[Improvement] = field(default_factory=list)
    volume_summary: VolumeSummary = field(default_factory=VolumeSummary)
    most_performed: List[ExerciseFrequency] = field(default_factory=list)
    muscle_group_balance: List[MuscleGroupVolume] = field(default_factory=list)
    streaks: StreakSummary = field(default_factory=StreakSummary)


def weekly_progress(context: AnalysisContext) -> List[WeeklyProgress]:
    progress = []
    previous_volume: Optional[float] = None
    for week in context.weekly_buckets:
        improvement = 0.0
        if previous_volume:
            improvement = (week.total_volume - previous_volume) / previous_volume * 100
        progress.append(WeeklyProgress(
            week_start=week.week_start,
            workouts=week.workout_count,
            volume=week.total_volume,
            improvement=improvement,
        ))
        previous_volume = week.total_volume
    return progress


def exercise_progress(sets: List[LoggedSet]) -> List[ExerciseProgress]:
    """
    Max weight per session for each exercise.

    Exercises are ordered by how many sessions included them; sessions where
    the exercise had no loaded set are skipped.
    """
    names: Dict[UUID, str] = {}
    per_session: Dict[UUID, Dict[UUID, ProgressPoint]] = {}
    sessions_seen: Dict[UUID, Set[UUID]] = {}

    for logged in sets:
        exercise_id = logged.exercise.id
        names[exercise_id] = logged.exercise.name
        sessions_seen.setdefault(exercise_id, set()).add(logged.session.id)
        if logged.weight <= 0:
            continue
        points = per_session.setdefault(exercise_id, {})
        point = points.get(logged.session.id)
        if point is None:
            points[logged.session.id] = ProgressPoint(
                performed_at=as_utc(logged.session.started_at),
                max_weight=logged.weight,
            )
        elif logged.weight > point.max_weight:
            point.max_weight = logged.weight

    ordered = sorted(
        sessions_seen,
        key=lambda exercise_id: (-len(sessions_seen[exercise_id]), names[exercise_id], str(exercise_id)),
    )
    return [
        ExerciseProgress(
            exercise_id=exercise_id,
            exercise_name=names[exercise_id],
            data_points=sorted(per_session.get(exercise_id, {}).values(), key=lambda p: p.performed_at),
        )
        for exercise_id in ordered
    ]


def personal_records(sets: List[LoggedSet]) -> List[PersonalRecord]:
    """Heaviest set per exercise, ordered by estimated 1RM (highest first)."""
    records: Dict[UUID, PersonalRecord] = {}
    for logged in sets:
        exercise_id = logged.exercise.id
        record = records.get(exercise_id)
        if record is None:
            records[exercise_id] = PersonalRecord(
                exercise_id=exercise_id,
                exercise_name=logged.exercise.name,
                max_weight=logged.weight,
                max_reps=logged.reps,
                estimated_one_rep_max=0.0,
                last_performed=logged.performed_at,
            )
            continue
        if logged.weight > record.max_weight:
            record.max_weight = logged.weight
            record.max_reps = logged.reps
        if logged.performed_at > record.last_performed:
            record.last_performed = logged.performed_at

    for record in records.values():
        record.estimated_one_rep_max = estimate_one_rep_max(record.max_weight, record.max_reps)

    return sorted(
        records.values(),
        key=lambda r: (-r.estimated_one_rep_max, r.exercise_name, str(r.exercise_id)),
    )


def recent_records(sets: List[LoggedSet], since: datetime) -> List[RecentRecord]:
    """Heaviest set per exercise since ``since``, newest first, at most five."""
    best: Dict[UUID, LoggedSet] = {}
    for logged in sets:
        if logged.performed_at < since:
            continue
        current = best.get(logged.exercise.id)
        if current is None or logged.weight > current.weight:
            best[logged.exercise.id] = logged

    newest = sorted(best.values(), key=lambda s: (s.performed_at, str(s.record.id)), reverse=True)
    return [
        RecentRecord(
            exercise_name=s.exercise.name,
            weight=s.weight,
            reps=s.reps,
            performed_at=s.performed_at,
        )
        for s in newest[:RECENT_PR_LIMIT]
    ]


def top_improvements(sets: List[LoggedSet], since: datetime) -> List[Improvement]:
    """
    Max weight since ``since`` against the max before it, best three by %.

    Only exercises performed in both periods with a loaded earlier max count.
    """
    names: Dict[UUID, str] = {}
    before: Dict[UUID, float] = {}
    after: Dict[UUID, float] = {}
    for logged in sets:
        exercise_id = logged.exercise.id
        names[exercise_id] = logged.exercise.name
        bucket = after if logged.performed_at >= since else before
        bucket[exercise_id] = max(bucket.get(exercise_id, 0.0), logged.weight)

    improvements = []
    for exercise_id, previous in before.items():
        recent = after.get(exercise_id)
        if recent is None or previous <= 0 or recent <= previous:
            continue
        improvements.append(Improvement(
            exercise_name=names[exercise_id],
            improvement=(recent - previous) / previous * 100,
            previous_max=previous,
            recent_max=recent,
        ))

    improvements.sort(key=lambda i: (-i.improvement, i.exercise_name))
    return improvements[:TOP_IMPROVEMENT_LIMIT]


def volume_summary(sets: List[LoggedSet], week_ago: datetime) -> VolumeSummary:
    if not sets:
        return VolumeSummary()
    instances = {s.instance.id for s in sets}
    return VolumeSummary(
        total_volume=sum(s.volume for s in sets),
        weekly_volume=sum(s.volume for s in sets if s.performed_at >= week_ago),
        average_reps=sum(s.reps for s in sets) / len(sets),
        average_sets=len(sets) / len(instances),
    )


def most_performed(sets: List[LoggedSet]) -> List[ExerciseFrequency]:
    counts: Dict[UUID, ExerciseFrequency] = {}
    for logged in sets:
        exercise = logged.exercise
        entry = counts.get(exercise.id)
        if entry is None:
            entry = counts[exercise.id] = ExerciseFrequency(
                exercise_id=exercise.id,
                exercise_name=exercise.name,
                count=0,
                muscle_group=exercise.muscle_group,
            )
        entry.count += 1
    ranked = sorted(counts.values(), key=lambda e: (-e.count, e.exercise_name, str(e.exercise_id)))
    return ranked[:MOST_PERFORMED_LIMIT]


def muscle_group_balance(sets: List[LoggedSet]) -> List[MuscleGroupVolume]:
    """Volume per muscle group; exercises without one fall under "other"."""
    volumes: Dict[str, float] = {}
    for logged in sets:
        group = logged.exercise.muscle_group
        key = group.value if group is not None else OTHER_MUSCLE_GROUP
        volumes[key] = volumes.get(key, 0.0) + logged.volume

    total = sum(volumes.values())
    balance = [
        MuscleGroupVolume(
            muscle_group=group,
            volume=volume,
            percentage=volume / total * 100 if total > 0 else 0.0,
        )
        for group, volume in volumes.items()
    ]
    balance.sort(key=lambda m: (-m.volume, m.muscle_group))
    return balance


def training_days(sessions: Iterable[WorkoutSessionRecord]) -> List[date]:
    """Distinct UTC dates on which a completed session started, ascending."""
    return sorted({as_utc(s.started_at).date() for s in sessions})


def current_streak(days: List[date], today: date) -> int:
    """
    Consecutive training days ending today, or yesterday if today is not
    (yet) a training day.
    """
    trained = set(days)
    if today in trained:
        day = today
    elif today - timedelta(days=1) in trained:
        day = today - timedelta(days=1)
    else:
        return 0

    streak = 0
    while day in trained:
        streak += 1
        day -= timedelta(days=1)
    return streak


def best_streak(days: List[date]) -> int:
    best = run = 0
    previous: Optional[date] = None
    for day in days:
        run = run + 1 if previous is not None and day - previous == timedelta(days=1) else 1
        best = max(best, run)
        previous = day
    return best


def streak_summary(context: AnalysisContext) -> StreakSummary:
    days = training_days(context.completed_sessions)
    return StreakSummary(
        current_streak=current_streak(days, context.as_of.date()),
        best_streak=best_streak(days),
    )


def analyze_trends(context: AnalysisContext) -> TrainingTrends:
    all_sets = context.all_sets
    recent_since = context.as_of - timedelta(days=RECENT_DAYS)

    trends = TrainingTrends(
        weekly_progress=weekly_progress(context),
        exercise_progress=exercise_progress(context.window_sets),
        personal_records=personal_records(all_sets),
        recent_records=recent_records(all_sets, recent_since),
        top_improvements=top_improvements(all_sets, recent_since),
        volume_summary=volume_summary(all_sets, context.as_of - timedelta(days=7)),
        most_performed=most_performed(all_sets),
        muscle_group_balance=muscle_group_balance(all_sets),
        streaks=streak_summary(context),
    )
    logger.debug(
        f"Trends for {context.user_id}: {len(trends.weekly_progress)} weeks, "
        f"{len(trends.personal_records)} records"
    )
    return trends
