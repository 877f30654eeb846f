"""
Goal Evaluator

Evaluates user-declared training goals over a trailing timeframe
(weekly = last 7 days, monthly = last 30 days):

- volume:             total volume for the goal's body part
- frequency:          completed sessions that trained the body part
                      (all completed sessions when the goal has no body part)
- specific_exercises: how many of the named exercises were performed

Progress = min(current / target, 1) x 100.

Also computes the fixed milestone badges (workout count, day streak, total volume).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID
import logging

from core.exceptions import InvalidParameterError
from services.analysis_context import AnalysisContext
from services.training_log import BodyPart
from services.training_trends import current_streak, training_days

logger = logging.getLogger(__name__)


class GoalType(str, Enum):
    VOLUME = "volume"
    FREQUENCY = "frequency"
    SPECIFIC_EXERCISES = "specific_exercises"


class GoalTimeframe(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def days(self) -> int:
        return 7 if self == GoalTimeframe.WEEKLY else 30


@dataclass(frozen=True)
class Goal:
    """A training goal over a trailing timeframe."""
    goal_type: GoalType
    timeframe: GoalTimeframe
    target_value: Optional[float] = None
    target_exercises: Tuple[str, ...] = ()
    body_part: Optional[BodyPart] = None
    id: Optional[UUID] = None


@dataclass
class GoalProgress:
    goal: Goal
    current_value: float
    progress: float  # 0-100
    is_achieved: bool


@dataclass
class Milestone:
    """A fixed achievement badge."""
    id: str
    title: str
    description: str
    target: float
    progress: float  # Current value, capped at target
    unlocked: bool


@dataclass
class GoalsReport:
    goals: List[GoalProgress] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)


# (id, title, description, metric, target)
MILESTONES: List[Tuple[str, str, str, str, float]] = [
    ("first-workout", "First Workout", "Complete your first workout", "workouts", 1),
    ("10-workouts", "Consistent", "Complete 10 workouts", "workouts", 10),
    ("50-workouts", "Experienced", "Complete 50 workouts", "workouts", 50),
    ("100-workouts", "Legend", "Complete 100 workouts", "workouts", 100),
    ("7-day-streak", "Weekly Streak", "Train 7 days in a row", "streak", 7),
    ("30-day-streak", "Month of Power", "Train 30 days in a row", "streak", 30),
    ("volume-10k", "Lifter", "Lift a total of 10,000 kg", "volume", 10000),
    ("volume-100k", "Atlas", "Lift a total of 100,000 kg", "volume", 100000),
]


def _parse_enum(enum_cls, value: Any, parameter: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidParameterError(parameter, f"Unknown {parameter} '{value}' (expected one of: {allowed})")


def parse_goal(
    goal_type: Any,
    timeframe: Any,
    target_value: Optional[float] = None,
    target_exercises: Optional[Sequence[str]] = None,
    body_part: Any = None,
    goal_id: Optional[UUID] = None,
) -> Goal:
    """
    Build a Goal from raw values.

    Raises:
        InvalidParameterError: unknown type/timeframe/body part, a volume or
            frequency goal without a target value, or target exercises that
            are not a list of names
    """
    parsed_type = _parse_enum(GoalType, goal_type, "goal_type")
    parsed_timeframe = _parse_enum(GoalTimeframe, timeframe, "timeframe")
    parsed_part = _parse_enum(BodyPart, body_part, "body_part") if body_part is not None else None

    if parsed_type in (GoalType.VOLUME, GoalType.FREQUENCY) and target_value is None:
        raise InvalidParameterError("target_value", f"A {parsed_type.value} goal needs a target value")

    # A JSON list in the store; scalars are rejected, not split into characters
    if target_exercises is None:
        exercises: Tuple[str, ...] = ()
    elif isinstance(target_exercises, (list, tuple)) and all(isinstance(name, str) for name in target_exercises):
        exercises = tuple(target_exercises)
    else:
        raise InvalidParameterError("target_exercises", "must be a list of exercise names")

    return Goal(
        goal_type=parsed_type,
        timeframe=parsed_timeframe,
        target_value=target_value,
        target_exercises=exercises,
        body_part=parsed_part,
        id=goal_id,
    )


def progress_percent(current: float, target: float) -> float:
    """min(current / target, 1) x 100, and 0 for a non-positive target."""
    if target <= 0:
        return 0.0
    return min(current / target, 1.0) * 100


def evaluate_goal(goal: Goal, context: AnalysisContext) -> GoalProgress:
    """Evaluate one goal as of ``context.as_of``."""
    days = goal.timeframe.days

    if goal.goal_type == GoalType.SPECIFIC_EXERCISES:
        wanted = set(goal.target_exercises)
        if not wanted:
            return GoalProgress(goal=goal, current_value=0, progress=0.0, is_achieved=False)
        performed = {s.exercise.name for s in context.sets_within_days(days)} & wanted
        count = len(performed)
        return GoalProgress(
            goal=goal,
            current_value=count,
            progress=progress_percent(count, len(wanted)),
            is_achieved=count >= len(wanted),
        )

    if goal.goal_type == GoalType.VOLUME:
        current = sum(
            s.volume for s in context.sets_within_days(days)
            if goal.body_part is None or s.body_part == goal.body_part
        )
    else:
        sessions = context.sessions_within_days(days)
        if goal.body_part is None:
            current = len(sessions)
        else:
            session_ids = {s.id for s in sessions}
            current = len({
                s.session.id for s in context.all_sets
                if s.session.id in session_ids and s.body_part == goal.body_part
            })

    target = goal.target_value or 0.0
    return GoalProgress(
        goal=goal,
        current_value=current,
        progress=progress_percent(current, target),
        is_achieved=current >= target,
    )


def evaluate_milestones(context: AnalysisContext) -> List[Milestone]:
    sessions = context.completed_sessions
    metrics = {
        "workouts": float(len(sessions)),
        "streak": float(current_streak(training_days(sessions), context.as_of.date())),
        "volume": sum(s.volume for s in context.all_sets),
    }
    return [
        Milestone(
            id=milestone_id,
            title=title,
            description=description,
            target=target,
            progress=min(metrics[metric], target),
            unlocked=metrics[metric] >= target,
        )
        for milestone_id, title, description, metric, target in MILESTONES
    ]


def evaluate_goals(goals: Sequence[Goal], context: AnalysisContext) -> GoalsReport:
    report = GoalsReport(
        goals=[evaluate_goal(goal, context) for goal in goals],
        milestones=evaluate_milestones(context),
    )
    logger.debug(
        f"Goals for {context.user_id}: {sum(1 for g in report.goals if g.is_achieved)}/"
        f"{len(report.goals)} achieved, {sum(1 for m in report.milestones if m.unlocked)} milestones"
    )
    return report
