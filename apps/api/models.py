from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, DateTime, ForeignKey, Text, Index, JSON, Uuid
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base
import uuid


# Tables of the workout log store. The analytics engine only reads them;
# rows are written by the workout logging application.


class Exercise(Base):
    __tablename__ = "exercise"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=True, index=True)  # NULL for built-in exercises
    name = Column(Text, nullable=False)
    # One of the 14 body parts (quads, hamstrings, ... abductors); free text in the store
    target_body_part = Column(Text, nullable=True)
    is_unilateral = Column(Boolean, default=False, nullable=False)
    muscle_group = Column(Text, nullable=True)  # 'upper', 'lower', 'legs', 'cardio'
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class WorkoutSession(Base):
    __tablename__ = "workout_session"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)  # NULL while in progress
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    exercise_logs = relationship("ExerciseLog", back_populates="session")

    __table_args__ = (
        Index("ix_workout_session_user_started", "user_id", "started_at"),
    )


class ExerciseLog(Base):
    """An exercise performed within one workout session."""
    __tablename__ = "exercise_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workout_session_id = Column(Uuid(as_uuid=True), ForeignKey("workout_session.id"), nullable=False, index=True)
    exercise_id = Column(Uuid(as_uuid=True), ForeignKey("exercise.id"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)  # Order within the session

    session = relationship("WorkoutSession", back_populates="exercise_logs")
    exercise = relationship("Exercise")
    sets = relationship("SetLog", back_populates="exercise_log")


class SetLog(Base):
    __tablename__ = "set_log"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    exercise_log_id = Column(Uuid(as_uuid=True), ForeignKey("exercise_log.id"), nullable=False, index=True)
    set_number = Column(Integer, default=1, nullable=False)
    reps = Column(Integer, nullable=False)
    weight = Column(Float, nullable=True)  # kg; NULL or 0 for bodyweight
    completed = Column(Boolean, default=False, nullable=False)
    side = Column(Text, nullable=True)  # 'left', 'right' (unilateral only); NULL = 'none'
    rir = Column(Integer, nullable=True)  # Reps in reserve
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    exercise_log = relationship("ExerciseLog", back_populates="sets")

    __table_args__ = (
        CheckConstraint("reps >= 0", name="ck_set_log_reps_non_negative"),
        CheckConstraint("weight IS NULL OR weight >= 0", name="ck_set_log_weight_non_negative"),
    )


class BodyPartGoal(Base):
    __tablename__ = "body_part_goal"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    body_part = Column(Text, nullable=True)
    goal_type = Column(Text, nullable=False)  # 'volume', 'frequency', 'specific_exercises'
    target_value = Column(Float, nullable=True)
    target_exercises = Column(JSON, nullable=True)  # List of exercise names
    timeframe = Column(Text, nullable=False)  # 'weekly', 'monthly'
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
