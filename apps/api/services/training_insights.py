"""
Training Insights

Dashboard-level summaries of the training log:
- General stats: workout count and time, average duration, favourite
  training days and hours, streaks
- Exercise recommendations: exercises from the user's library for body parts
  that have gone untrained or fallen behind on volume (last 30 days)
- Dashboard insights: the biggest opposing-pair imbalance, the most neglected
  body part, the heaviest set and the highest-volume body part (last 30 days)

Workout time comes from session start/completion timestamps. Weekdays and
hours are read in UTC.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from services.analysis_context import AnalysisContext
from services.body_part_analysis import OPPOSING_PAIRS
from services.training_log import (
    BODY_PART_ORDER,
    BodyPart,
    ExerciseDefinition,
    LoggedSet,
    WorkoutSessionRecord,
    as_utc,
    days_between,
)
from services.training_trends import best_streak, current_streak, training_days

logger = logging.getLogger(__name__)

INSIGHT_WINDOW_DAYS = 30
FREQUENT_SLOT_LIMIT = 3
RECOMMENDATION_LIMIT = 5

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


# =============================================================================
# TYPES
# =============================================================================

class RecommendationPriority(str, Enum):
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


PRIORITY_ORDER: Dict[RecommendationPriority, int] = {
    RecommendationPriority.HIGH: 0,
    RecommendationPriority.MODERATE: 1,
    RecommendationPriority.LOW: 2,
}


class InsightType(str, Enum):
    IMBALANCE = "imbalance"
    UNDERTRAINED = "undertrained"
    PERSONAL_RECORD = "pr"
    PERFORMING = "performing"


class InsightSeverity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    POSITIVE = "positive"


@dataclass
class WorkoutTime:
    """Minutes spent training."""
    this_week: int = 0  # trailing 7 days
    this_month: int = 0  # trailing 30 days
    all_time: int = 0


@dataclass
class FrequentSlot:
    label: str  # "Monday" or "18:00"
    count: int


@dataclass
class GeneralStats:
    total_workouts: int = 0
    total_workout_time: WorkoutTime = field(default_factory=WorkoutTime)
    total_exercises: int = 0
    average_workout_duration: int = 0  # minutes
    most_frequent_days: List[FrequentSlot] = field(default_factory=list)
    most_frequent_hours: List[FrequentSlot] = field(default_factory=list)
    best_streak: int = 0
    current_streak: int = 0


@dataclass
class ExerciseRecommendation:
    body_part: BodyPart
    label: str
    reason: str
    priority: RecommendationPriority
    exercises: List[str]
    # None when the body part was not trained inside the window at all
    days_since_last_trained: Optional[int]
    volume_deficit: float  # % below the average body part; negative when above


@dataclass
class DashboardInsight:
    insight_type: InsightType
    body_part: BodyPart
    title: str
    description: str
    value: str
    severity: InsightSeverity


# =============================================================================
# GENERAL STATS
# =============================================================================

def session_minutes(session: WorkoutSessionRecord) -> float:
    return (as_utc(session.completed_at) - as_utc(session.started_at)).total_seconds() / 60


def workout_time(sessions: Sequence[WorkoutSessionRecord], as_of: datetime) -> WorkoutTime:
    """Minutes per trailing window, bucketed by session start."""
    week_start = as_of - timedelta(days=7)
    month_start = as_of - timedelta(days=30)
    week = month = total = 0.0
    for session in sessions:
        minutes = session_minutes(session)
        started = as_utc(session.started_at)
        total += minutes
        if started >= week_start:
            week += minutes
        if started >= month_start:
            month += minutes
    return WorkoutTime(this_week=round(week), this_month=round(month), all_time=round(total))


def most_frequent(counts: Dict[int, int], label, limit: int = FREQUENT_SLOT_LIMIT) -> List[FrequentSlot]:
    """Top slots by count; ties go to the earlier weekday/hour."""
    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [FrequentSlot(label=label(slot), count=count) for slot, count in ranked[:limit]]


def frequent_days(sessions: Sequence[WorkoutSessionRecord]) -> List[FrequentSlot]:
    counts: Dict[int, int] = {}
    for session in sessions:
        weekday = as_utc(session.started_at).weekday()
        counts[weekday] = counts.get(weekday, 0) + 1
    return most_frequent(counts, lambda weekday: WEEKDAY_NAMES[weekday])


def frequent_hours(sessions: Sequence[WorkoutSessionRecord]) -> List[FrequentSlot]:
    counts: Dict[int, int] = {}
    for session in sessions:
        hour = as_utc(session.started_at).hour
        counts[hour] = counts.get(hour, 0) + 1
    return most_frequent(counts, lambda hour: f"{hour:02d}:00")


def general_stats(context: AnalysisContext) -> GeneralStats:
    """Workout counts, time and habits over all completed sessions up to as_of."""
    sessions = context.completed_sessions
    if not sessions:
        return GeneralStats()

    session_ids = {s.id for s in sessions}
    exercises_logged = sum(1 for i in context.snapshot.exercise_instances if i.session_id in session_ids)
    time = workout_time(sessions, context.as_of)
    days = training_days(sessions)

    stats = GeneralStats(
        total_workouts=len(sessions),
        total_workout_time=time,
        total_exercises=exercises_logged,
        average_workout_duration=round(sum(session_minutes(s) for s in sessions) / len(sessions)),
        most_frequent_days=frequent_days(sessions),
        most_frequent_hours=frequent_hours(sessions),
        best_streak=best_streak(days),
        current_streak=current_streak(days, context.as_of.date()),
    )
    logger.debug(f"General stats for {context.user_id}: {stats.total_workouts} workouts, {time.all_time} min")
    return stats


# =============================================================================
# EXERCISE RECOMMENDATIONS
# =============================================================================

def _recent_body_part_activity(
    sets: Sequence[LoggedSet],
) -> Tuple[Dict[BodyPart, float], Dict[BodyPart, datetime]]:
    volumes: Dict[BodyPart, float] = {}
    last_trained: Dict[BodyPart, datetime] = {}
    for logged in sets:
        part = logged.body_part
        if part is None:
            continue
        volumes[part] = volumes.get(part, 0.0) + logged.volume
        if part not in last_trained or logged.performed_at > last_trained[part]:
            last_trained[part] = logged.performed_at
    return volumes, last_trained


def recommendation_priority(
    days_since: Optional[int],
    volume_deficit: float,
) -> Optional[Tuple[RecommendationPriority, str]]:
    """
    Priority and reason for one body part, or None when it needs no attention.

    Flagged when untrained for more than 7 days or more than 20% below the
    average body-part volume. Staleness outranks volume.
    """
    stale_days = days_since if days_since is not None else INSIGHT_WINDOW_DAYS + 1
    if stale_days <= 7 and volume_deficit <= 20:
        return None

    if days_since is None:
        return RecommendationPriority.HIGH, f"Not trained in the last {INSIGHT_WINDOW_DAYS} days"
    if days_since > 21:
        return RecommendationPriority.HIGH, f"Not trained for {days_since} days"
    if days_since > 14:
        return RecommendationPriority.MODERATE, f"Last trained {days_since} days ago"
    if volume_deficit > 40:
        return RecommendationPriority.HIGH, f"Volume {volume_deficit:.0f}% below average"
    if volume_deficit > 20:
        return RecommendationPriority.MODERATE, "Low training volume"
    return RecommendationPriority.LOW, f"Last trained {days_since} days ago"


def recommend_exercises(
    context: AnalysisContext,
    library: Sequence[ExerciseDefinition],
    limit: int = RECOMMENDATION_LIMIT,
) -> List[ExerciseRecommendation]:
    """
    Exercises to add for neglected body parts, most urgent first.

    Only body parts that have at least one exercise in ``library`` are
    considered. Volume deficit compares each of them with their mean volume
    over the last 30 days.
    """
    by_part: Dict[BodyPart, List[str]] = {}
    for exercise in library:
        if exercise.target_body_part is not None:
            by_part.setdefault(exercise.target_body_part, []).append(exercise.name)
    if not by_part:
        return []

    volumes, last_trained = _recent_body_part_activity(context.sets_within_days(INSIGHT_WINDOW_DAYS))
    average = sum(volumes.get(part, 0.0) for part in by_part) / len(by_part)

    recommendations = []
    for part in sorted(by_part, key=lambda p: BODY_PART_ORDER[p]):
        volume = volumes.get(part, 0.0)
        deficit = (average - volume) / average * 100 if average > 0 else 0.0
        days_since = days_between(last_trained[part], context.as_of) if part in last_trained else None

        flagged = recommendation_priority(days_since, deficit)
        if flagged is None:
            continue
        priority, reason = flagged
        recommendations.append(ExerciseRecommendation(
            body_part=part,
            label=part.label,
            reason=reason,
            priority=priority,
            exercises=sorted(by_part[part]),
            days_since_last_trained=days_since,
            volume_deficit=round(deficit, 2),
        ))

    # Never-trained parts sort as the stalest
    recommendations.sort(key=lambda r: (
        PRIORITY_ORDER[r.priority],
        -(r.days_since_last_trained if r.days_since_last_trained is not None else INSIGHT_WINDOW_DAYS + 1),
    ))
    return recommendations[:limit]


# =============================================================================
# DASHBOARD INSIGHTS
# =============================================================================

def imbalance_insight(volumes: Dict[BodyPart, float]) -> Optional[DashboardInsight]:
    """The opposing pair with the largest volume ratio above 1.25, reported on the weaker side."""
    best: Optional[DashboardInsight] = None
    best_ratio = 1.25
    for part1, part2 in OPPOSING_PAIRS:
        volume1 = volumes.get(part1, 0.0)
        volume2 = volumes.get(part2, 0.0)
        if volume1 <= 0 or volume2 <= 0:
            continue
        stronger, weaker = (part1, part2) if volume1 > volume2 else (part2, part1)
        ratio = max(volume1, volume2) / min(volume1, volume2)
        if ratio <= best_ratio:
            continue
        best_ratio = ratio
        percentage = f"{(ratio - 1) * 100:.0f}%"
        if ratio > 1.5:
            severity = InsightSeverity.HIGH
        elif ratio > 1.35:
            severity = InsightSeverity.MODERATE
        else:
            severity = InsightSeverity.LOW
        best = DashboardInsight(
            insight_type=InsightType.IMBALANCE,
            body_part=weaker,
            title="Imbalance detected",
            description=f"{stronger.label} is {percentage} stronger",
            value=percentage,
            severity=severity,
        )
    return best


def undertrained_insight(last_trained: Dict[BodyPart, datetime], as_of: datetime) -> Optional[DashboardInsight]:
    """The body part trained longest ago, if that was more than 7 days ago."""
    stalest: Optional[Tuple[BodyPart, int]] = None
    for part in sorted(last_trained, key=lambda p: BODY_PART_ORDER[p]):
        days_since = days_between(last_trained[part], as_of)
        if days_since > 7 and (stalest is None or days_since > stalest[1]):
            stalest = (part, days_since)
    if stalest is None:
        return None

    part, days_since = stalest
    if days_since > 30:
        severity = InsightSeverity.HIGH
    elif days_since > 14:
        severity = InsightSeverity.MODERATE
    else:
        severity = InsightSeverity.LOW
    return DashboardInsight(
        insight_type=InsightType.UNDERTRAINED,
        body_part=part,
        title="Neglected body part",
        description=f"Last trained {days_since} days ago",
        value=f"{days_since}d",
        severity=severity,
    )


def heaviest_set_insight(sets: Sequence[LoggedSet]) -> Optional[DashboardInsight]:
    heaviest: Optional[LoggedSet] = None
    for logged in sets:
        if logged.body_part is None or logged.weight <= 0 or logged.reps <= 0:
            continue
        if heaviest is None or logged.weight > heaviest.weight:
            heaviest = logged
    if heaviest is None:
        return None
    return DashboardInsight(
        insight_type=InsightType.PERSONAL_RECORD,
        body_part=heaviest.body_part,
        title="Best lift",
        description=heaviest.exercise.name,
        value=f"{heaviest.weight:g}kg",
        severity=InsightSeverity.POSITIVE,
    )


def top_volume_insight(volumes: Dict[BodyPart, float]) -> Optional[DashboardInsight]:
    trained = {part: volume for part, volume in volumes.items() if volume > 0}
    if not trained:
        return None
    part = max(trained, key=lambda p: (trained[p], -BODY_PART_ORDER[p]))
    return DashboardInsight(
        insight_type=InsightType.PERFORMING,
        body_part=part,
        title="Most trained",
        description=f"Highest volume in the last {INSIGHT_WINDOW_DAYS} days",
        value=f"{trained[part] / 1000:.1f}k kg",
        severity=InsightSeverity.POSITIVE,
    )


def dashboard_insights(context: AnalysisContext) -> List[DashboardInsight]:
    """At most one insight of each type, in the order imbalance, undertrained, PR, performing."""
    recent = context.sets_within_days(INSIGHT_WINDOW_DAYS)
    volumes, last_trained = _recent_body_part_activity(recent)

    candidates = [
        imbalance_insight(volumes),
        undertrained_insight(last_trained, context.as_of),
        heaviest_set_insight(recent),
        top_volume_insight(volumes),
    ]
    insights = [insight for insight in candidates if insight is not None]
    logger.debug(f"Dashboard insights for {context.user_id}: {[i.insight_type.value for i in insights]}")
    return insights
