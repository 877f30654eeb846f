"""
Training Log Model

Immutable, in-memory view of a user's workout history as read from the log store:
- Workout sessions (start, optional completion)
- Exercise instances performed in a session, joined to their exercise definition
- Set records (reps, weight, completed flag, side, timestamp)

Everything downstream (weekly load, periodization, body-part balance, injury risk,
symmetry, goals, trends) is derived from a TrainingLogSnapshot and never writes back.

Conventions:
- Only completed sets from completed sessions contribute to derived metrics.
- Volume of a set = reps x weight (bodyweight sets have weight 0, so volume 0).
- A set's effective date is its creation timestamp.
- Naive timestamps are interpreted as UTC.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple
from uuid import UUID


class BodyPart(str, Enum):
    """Target body part of an exercise (closed set)."""
    QUADS = "quads"
    HAMSTRINGS = "hamstrings"
    GLUTES = "glutes"
    CHEST = "chest"
    BACK = "back"
    BICEPS = "biceps"
    TRICEPS = "triceps"
    SHOULDERS = "shoulders"
    CALVES = "calves"
    CORE = "core"
    FOREARMS = "forearms"
    NECK = "neck"
    ADDUCTORS = "adductors"
    ABDUCTORS = "abductors"

    @property
    def label(self) -> str:
        return BODY_PART_LABELS[self]


BODY_PART_LABELS: Dict[BodyPart, str] = {
    BodyPart.QUADS: "Quadriceps",
    BodyPart.HAMSTRINGS: "Hamstrings",
    BodyPart.GLUTES: "Glutes",
    BodyPart.CHEST: "Chest",
    BodyPart.BACK: "Back",
    BodyPart.BICEPS: "Biceps",
    BodyPart.TRICEPS: "Triceps",
    BodyPart.SHOULDERS: "Shoulders",
    BodyPart.CALVES: "Calves",
    BodyPart.CORE: "Core",
    BodyPart.FOREARMS: "Forearms",
    BodyPart.NECK: "Neck",
    BodyPart.ADDUCTORS: "Adductors",
    BodyPart.ABDUCTORS: "Abductors",
}

# Declaration order, used wherever output must be deterministic
BODY_PART_ORDER: Dict[BodyPart, int] = {part: i for i, part in enumerate(BodyPart)}


class SetSide(str, Enum):
    """Which side of the body a set was performed with."""
    LEFT = "left"
    RIGHT = "right"
    NONE = "none"


class MuscleGroup(str, Enum):
    """Coarse exercise classification used by workout templates."""
    UPPER = "upper"
    LOWER = "lower"
    LEGS = "legs"
    CARDIO = "cardio"


def as_utc(value: datetime) -> datetime:
    """Normalize a timestamp to an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def set_volume(reps: int, weight: float) -> float:
    """Volume (training load proxy) of a single set."""
    return reps * weight


def estimate_one_rep_max(weight: float, reps: int) -> float:
    """
    Estimated one-rep max using the Epley formula.

    1RM = weight * (1 + reps / 30)
    """
    return weight * (1 + reps / 30)


def relative_intensity(weight: float, reps: int) -> Optional[float]:
    """
    Intensity of a set as a percentage of its estimated 1RM.

    Returns None for sets without load or reps, where the estimate is undefined.
    """
    if weight <= 0 or reps <= 0:
        return None
    return weight / estimate_one_rep_max(weight, reps) * 100


@dataclass(frozen=True)
class ExerciseDefinition:
    """An exercise as defined in the user's library."""
    id: UUID
    name: str
    target_body_part: Optional[BodyPart] = None
    is_unilateral: bool = False
    muscle_group: Optional[MuscleGroup] = None


@dataclass(frozen=True)
class WorkoutSessionRecord:
    """One workout, from start to (optional) completion."""
    id: UUID
    user_id: UUID
    started_at: datetime
    completed_at: Optional[datetime] = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True)
class ExerciseInstance:
    """An exercise performed within exactly one session."""
    id: UUID
    session_id: UUID
    exercise: ExerciseDefinition


@dataclass(frozen=True)
class SetRecord:
    """A single logged set."""
    id: UUID
    exercise_instance_id: UUID
    reps: int
    weight: float
    completed: bool
    created_at: datetime
    side: SetSide = SetSide.NONE
    rir: Optional[int] = None  # Reps in reserve; stored only

    @property
    def volume(self) -> float:
        return set_volume(self.reps, self.weight)


@dataclass(frozen=True)
class LoggedSet:
    """A set joined to the exercise instance and session it belongs to."""
    record: SetRecord
    instance: ExerciseInstance
    session: WorkoutSessionRecord

    @property
    def exercise(self) -> ExerciseDefinition:
        return self.instance.exercise

    @property
    def body_part(self) -> Optional[BodyPart]:
        return self.instance.exercise.target_body_part

    @property
    def performed_at(self) -> datetime:
        return as_utc(self.record.created_at)

    @property
    def volume(self) -> float:
        return self.record.volume

    @property
    def reps(self) -> int:
        return self.record.reps

    @property
    def weight(self) -> float:
        return self.record.weight

    @property
    def side(self) -> SetSide:
        return self.record.side


@dataclass(frozen=True)
class TrainingLogSnapshot:
    """
    Everything fetched for one analysis call.

    The snapshot is taken once at call start; analyzers treat it as read-only.
    """
    user_id: UUID
    sessions: Tuple[WorkoutSessionRecord, ...] = ()
    exercise_instances: Tuple[ExerciseInstance, ...] = ()
    sets: Tuple[SetRecord, ...] = ()
    captured_at: datetime = field(default_factory=utc_now)

    @property
    def is_empty(self) -> bool:
        return not self.sessions

    @property
    def high_water_mark(self) -> Optional[datetime]:
        """Newest set timestamp in the snapshot (cache-key component)."""
        if not self.sets:
            return None
        return max(as_utc(s.created_at) for s in self.sets)

    def completed_sessions(self) -> List[WorkoutSessionRecord]:
        """Completed sessions ordered by completion time."""
        sessions = [s for s in self.sessions if s.is_completed]
        return sorted(sessions, key=lambda s: (as_utc(s.completed_at), str(s.id)))

    def completed_sets(self) -> List[LoggedSet]:
        """
        Join completed sets to their instance and session.

        Sets whose instance or session is missing from the snapshot, or whose
        session was never completed, are skipped. Ordered by set timestamp.
        """
        sessions = {s.id: s for s in self.sessions if s.is_completed}
        instances = {i.id: i for i in self.exercise_instances}

        joined: List[LoggedSet] = []
        for record in self.sets:
            if not record.completed:
                continue
            instance = instances.get(record.exercise_instance_id)
            if instance is None:
                continue
            session = sessions.get(instance.session_id)
            if session is None:
                continue
            joined.append(LoggedSet(record=record, instance=instance, session=session))

        joined.sort(key=lambda s: (s.performed_at, str(s.record.id)))
        return joined


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed between two instants (floored)."""
    return int((as_utc(later) - as_utc(earlier)) // timedelta(days=1))


def week_start(value: datetime) -> date:
    """Monday of the ISO week containing ``value`` (UTC)."""
    day = as_utc(value).date()
    return day - timedelta(days=day.weekday())
