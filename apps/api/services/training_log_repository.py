"""
Training Log Repository

Read-only access to the workout log store:
- Sessions for a user within a time range
- Exercise instances for a set of sessions, joined to their exercise definitions
- Completed sets for a set of exercise instances
- The user's exercise library and active goals

Rows are converted into the immutable records of services.training_log.
Store failures surface as SourceDataError; nothing is retried here.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional, Sequence
from uuid import UUID
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import InvalidParameterError, SourceDataError
from models import BodyPartGoal, Exercise, ExerciseLog, SetLog, WorkoutSession
from services.goal_evaluator import Goal, parse_goal
from services.training_log import (
    BodyPart,
    ExerciseDefinition,
    ExerciseInstance,
    MuscleGroup,
    SetRecord,
    SetSide,
    TrainingLogSnapshot,
    WorkoutSessionRecord,
    as_utc,
    utc_now,
)

logger = logging.getLogger(__name__)


def to_body_part(value: Optional[str]) -> Optional[BodyPart]:
    """Unknown or empty values mean "no target body part"."""
    if not value:
        return None
    try:
        return BodyPart(value)
    except ValueError:
        logger.debug(f"Ignoring unknown body part '{value}'")
        return None


def to_muscle_group(value: Optional[str]) -> Optional[MuscleGroup]:
    if not value:
        return None
    try:
        return MuscleGroup(value)
    except ValueError:
        return None


def to_side(value: Optional[str]) -> SetSide:
    if value == SetSide.LEFT.value:
        return SetSide.LEFT
    if value == SetSide.RIGHT.value:
        return SetSide.RIGHT
    return SetSide.NONE


def to_definition(row: Exercise) -> ExerciseDefinition:
    return ExerciseDefinition(
        id=row.id,
        name=row.name,
        target_body_part=to_body_part(row.target_body_part),
        is_unilateral=bool(row.is_unilateral),
        muscle_group=to_muscle_group(row.muscle_group),
    )


class TrainingLogRepository:
    """
    Queries the workout log store for one user's training history.

    Args:
        db: SQLAlchemy session (never committed)
    """

    def __init__(self, db: Session):
        self.db = db

    @contextmanager
    def _reading(self, operation: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            logger.error(f"Workout log query failed ({operation}): {e}")
            raise SourceDataError(operation, str(e)) from e

    def sessions_for_user(
        self,
        user_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[WorkoutSessionRecord]:
        """Sessions started within [start, end], oldest first. Open bounds mean unbounded."""
        with self._reading("sessions"):
            query = self.db.query(WorkoutSession).filter(WorkoutSession.user_id == user_id)
            if start is not None:
                query = query.filter(WorkoutSession.started_at >= start)
            if end is not None:
                query = query.filter(WorkoutSession.started_at <= end)
            rows = query.order_by(WorkoutSession.started_at, WorkoutSession.id).all()

        return [
            WorkoutSessionRecord(
                id=row.id,
                user_id=row.user_id,
                started_at=as_utc(row.started_at),
                completed_at=as_utc(row.completed_at) if row.completed_at else None,
            )
            for row in rows
        ]

    def exercise_instances(self, session_ids: Sequence[UUID]) -> List[ExerciseInstance]:
        """Exercise instances of the given sessions with their definitions."""
        if not session_ids:
            return []

        with self._reading("exercise_instances"):
            rows = (
                self.db.query(ExerciseLog, Exercise)
                .join(Exercise, ExerciseLog.exercise_id == Exercise.id)
                .filter(ExerciseLog.workout_session_id.in_(list(session_ids)))
                .order_by(ExerciseLog.workout_session_id, ExerciseLog.position, ExerciseLog.id)
                .all()
            )

        return [
            ExerciseInstance(id=log.id, session_id=log.workout_session_id, exercise=to_definition(exercise))
            for log, exercise in rows
        ]

    def completed_sets(self, instance_ids: Sequence[UUID]) -> List[SetRecord]:
        """Completed sets of the given exercise instances, by creation time."""
        if not instance_ids:
            return []

        with self._reading("sets"):
            rows = (
                self.db.query(SetLog)
                .filter(
                    SetLog.exercise_log_id.in_(list(instance_ids)),
                    SetLog.completed.is_(True),
                )
                .order_by(SetLog.created_at, SetLog.id)
                .all()
            )

        return [
            SetRecord(
                id=row.id,
                exercise_instance_id=row.exercise_log_id,
                reps=row.reps,
                weight=row.weight or 0.0,
                completed=True,
                created_at=as_utc(row.created_at),
                side=to_side(row.side),
                rir=row.rir,
            )
            for row in rows
        ]

    def fetch_snapshot(
        self,
        user_id: UUID,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> TrainingLogSnapshot:
        """
        Everything one analysis needs, read once at call start.

        Args:
            user_id: Owner of the training log
            start: Earliest session start to include (None = all history)
            end: Latest session start to include (None = now)
        """
        captured_at = utc_now()
        sessions = self.sessions_for_user(user_id, start, end)
        instances = self.exercise_instances([s.id for s in sessions])
        sets = self.completed_sets([i.id for i in instances])

        logger.debug(
            f"Fetched snapshot for {user_id}: {len(sessions)} sessions, "
            f"{len(instances)} exercises, {len(sets)} sets"
        )
        return TrainingLogSnapshot(
            user_id=user_id,
            sessions=tuple(sessions),
            exercise_instances=tuple(instances),
            sets=tuple(sets),
            captured_at=captured_at,
        )

    def latest_set_timestamp(self, user_id: UUID) -> Optional[datetime]:
        """Newest completed set timestamp for the user (None for an empty log)."""
        with self._reading("latest_set_timestamp"):
            latest = (
                self.db.query(func.max(SetLog.created_at))
                .join(ExerciseLog, SetLog.exercise_log_id == ExerciseLog.id)
                .join(WorkoutSession, ExerciseLog.workout_session_id == WorkoutSession.id)
                .filter(
                    WorkoutSession.user_id == user_id,
                    SetLog.completed.is_(True),
                )
                .scalar()
            )
        return as_utc(latest) if latest is not None else None

    def fetch_exercise_library(self, user_id: UUID) -> List[ExerciseDefinition]:
        """Exercises the user has defined, by name. Built-in exercises are not included."""
        with self._reading("exercise_library"):
            rows = (
                self.db.query(Exercise)
                .filter(Exercise.user_id == user_id)
                .order_by(Exercise.name, Exercise.id)
                .all()
            )
        return [to_definition(row) for row in rows]

    def fetch_active_goals(self, user_id: UUID) -> List[Goal]:
        """Active stored goals, newest first. Rows that do not describe a valid goal are skipped."""
        with self._reading("goals"):
            rows = (
                self.db.query(BodyPartGoal)
                .filter(
                    BodyPartGoal.user_id == user_id,
                    BodyPartGoal.is_active.is_(True),
                )
                .order_by(BodyPartGoal.created_at.desc(), BodyPartGoal.id)
                .all()
            )

        goals = []
        for row in rows:
            try:
                goals.append(parse_goal(
                    goal_type=row.goal_type,
                    timeframe=row.timeframe,
                    target_value=row.target_value,
                    target_exercises=row.target_exercises,
                    body_part=row.body_part or None,
                    goal_id=row.id,
                ))
            except InvalidParameterError as e:
                logger.warning(f"Skipping stored goal {row.id}: {e}")
        return goals
