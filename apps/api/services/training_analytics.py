"""
Training Analytics Service

Entry point for every training analysis. Each call:
1. Validates its parameters (InvalidParameterError)
2. Reads one snapshot of the user's training log (SourceDataError on failure)
3. Builds an AnalysisContext pinned to an as-of instant
4. Runs the pure analyzer over it

Calls share no mutable state, so analyses for the same user can run concurrently.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, TypeVar
from uuid import UUID
import logging

from sqlalchemy.orm import Session

from core.config import settings
from core.exceptions import InvalidParameterError
from services.analysis_context import AnalysisContext
from services.body_part_analysis import HISTORY_WEEKS, BodyPartAnalysis, analyze_body_parts
from services.goal_evaluator import Goal, GoalsReport, evaluate_goals
from services.injury_risk import InjuryRiskSummary, analyze_injury_risk
from services.periodization import PeriodizationSummary, analyze_periodization
from services.symmetry_analysis import SymmetrySummary, analyze_symmetry
from services.training_insights import (
    INSIGHT_WINDOW_DAYS,
    DashboardInsight,
    ExerciseRecommendation,
    GeneralStats,
    dashboard_insights,
    general_stats,
    recommend_exercises,
)
from services.training_log import ExerciseDefinition, as_utc, utc_now
from services.training_log_repository import TrainingLogRepository
from services.training_trends import TrainingTrends, analyze_trends
from services.weekly_aggregator import WeekBucket, fill_weeks

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sessions can start shortly before the window and log sets inside it
SESSION_START_SLACK = timedelta(days=1)


@dataclass
class WeeklyLoad:
    weeks: List[WeekBucket] = field(default_factory=list)
    lookback_weeks: int = 0


def validate_lookback(lookback_weeks: int) -> int:
    """
    Raises:
        InvalidParameterError: not an integer, or outside 1..ANALYTICS_MAX_LOOKBACK_WEEKS
    """
    if isinstance(lookback_weeks, bool) or not isinstance(lookback_weeks, int):
        raise InvalidParameterError("lookback_weeks", "must be an integer number of weeks")
    if lookback_weeks < 1:
        raise InvalidParameterError("lookback_weeks", "must be at least 1 week")
    if lookback_weeks > settings.ANALYTICS_MAX_LOOKBACK_WEEKS:
        raise InvalidParameterError(
            "lookback_weeks",
            f"must be at most {settings.ANALYTICS_MAX_LOOKBACK_WEEKS} weeks",
        )
    return lookback_weeks


class TrainingAnalyticsService:
    """
    Read-only training analytics for one workout log store.

    Args:
        db: SQLAlchemy session for the log store
        repository: Optional repository override (defaults to TrainingLogRepository(db))
    """

    def __init__(self, db: Optional[Session] = None, repository: Optional[TrainingLogRepository] = None):
        if repository is None:
            if db is None:
                raise ValueError("Either db or repository is required")
            repository = TrainingLogRepository(db)
        self.repository = repository

    def high_water_mark(self, user_id: UUID) -> Optional[datetime]:
        """Newest completed set timestamp; changes whenever a set is logged."""
        return self.repository.latest_set_timestamp(user_id)

    def active_goals(self, user_id: UUID) -> List[Goal]:
        return self.repository.fetch_active_goals(user_id)

    def exercise_library(self, user_id: UUID) -> List[ExerciseDefinition]:
        return self.repository.fetch_exercise_library(user_id)

    def _run(
        self,
        analysis: str,
        user_id: UUID,
        analyzer: Callable[[AnalysisContext], T],
        lookback_weeks: Optional[int],
        fetch_weeks: Optional[int],
        as_of: Optional[datetime],
        fetch_days: Optional[int] = None,
    ) -> T:
        as_of = as_utc(as_of) if as_of is not None else utc_now()
        start = None
        if fetch_weeks is not None:
            start = as_of - timedelta(weeks=fetch_weeks) - SESSION_START_SLACK
        elif fetch_days is not None:
            start = as_of - timedelta(days=fetch_days) - SESSION_START_SLACK

        logger.info(f"Running {analysis} analysis for user {user_id} (lookback={lookback_weeks} weeks)")
        snapshot = self.repository.fetch_snapshot(user_id, start=start, end=as_of)
        context = AnalysisContext(snapshot, as_of=as_of, lookback_weeks=lookback_weeks)
        return analyzer(context)

    def _lookback(self, lookback_weeks: Optional[int]) -> int:
        if lookback_weeks is None:
            return settings.ANALYTICS_DEFAULT_LOOKBACK_WEEKS
        return validate_lookback(lookback_weeks)

    def weekly_load(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
        fill_gaps: bool = False,
    ) -> WeeklyLoad:
        """Monday-aligned weekly buckets; ``fill_gaps`` adds zero weeks between observed ones."""
        weeks = self._lookback(lookback_weeks)

        def analyzer(context: AnalysisContext) -> WeeklyLoad:
            buckets = context.weekly_buckets
            return WeeklyLoad(
                weeks=fill_weeks(buckets) if fill_gaps else list(buckets),
                lookback_weeks=weeks,
            )

        return self._run("weekly_load", user_id, analyzer, weeks, weeks, as_of)

    def periodization(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> PeriodizationSummary:
        weeks = self._lookback(lookback_weeks)
        return self._run("periodization", user_id, analyze_periodization, weeks, weeks, as_of)

    def body_parts(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> BodyPartAnalysis:
        """Body-part balance over all history, or the last ``lookback_weeks`` when given."""
        weeks = validate_lookback(lookback_weeks) if lookback_weeks is not None else None
        fetch_weeks = max(weeks, HISTORY_WEEKS + 1) if weeks is not None else None
        return self._run("body_parts", user_id, analyze_body_parts, weeks, fetch_weeks, as_of)

    def injury_risk(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> InjuryRiskSummary:
        weeks = self._lookback(lookback_weeks)
        return self._run("injury_risk", user_id, analyze_injury_risk, weeks, weeks, as_of)

    def symmetry(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> SymmetrySummary:
        weeks = self._lookback(lookback_weeks)
        imbalance = settings.SYMMETRY_IMBALANCE_THRESHOLD
        high_risk = settings.SYMMETRY_HIGH_RISK_THRESHOLD
        if high_risk < imbalance:
            raise InvalidParameterError(
                "SYMMETRY_HIGH_RISK_THRESHOLD",
                "must not be below SYMMETRY_IMBALANCE_THRESHOLD",
            )

        def analyzer(context: AnalysisContext) -> SymmetrySummary:
            return analyze_symmetry(context, imbalance, high_risk)

        return self._run("symmetry", user_id, analyzer, weeks, weeks, as_of)

    def goals(
        self,
        user_id: UUID,
        goals: Optional[Sequence[Goal]] = None,
        as_of: Optional[datetime] = None,
    ) -> GoalsReport:
        """
        Evaluate goals and milestones over all history.

        Without explicit ``goals`` the user's active stored goals are evaluated.
        """
        if goals is None:
            goals = self.active_goals(user_id)
        goal_list = list(goals)

        def analyzer(context: AnalysisContext) -> GoalsReport:
            return evaluate_goals(goal_list, context)

        return self._run("goals", user_id, analyzer, None, None, as_of)

    def trends(
        self,
        user_id: UUID,
        lookback_weeks: Optional[int] = None,
        as_of: Optional[datetime] = None,
    ) -> TrainingTrends:
        """Weekly progress over the lookback window; records and streaks over all history."""
        weeks = self._lookback(lookback_weeks)
        return self._run("trends", user_id, analyze_trends, weeks, None, as_of)

    def general_stats(self, user_id: UUID, as_of: Optional[datetime] = None) -> GeneralStats:
        """Workout count, time, habits and streaks over all history."""
        return self._run("general_stats", user_id, general_stats, None, None, as_of)

    def recommendations(
        self,
        user_id: UUID,
        library: Optional[Sequence[ExerciseDefinition]] = None,
        as_of: Optional[datetime] = None,
    ) -> List[ExerciseRecommendation]:
        """
        Exercises for body parts neglected over the last 30 days.

        Without an explicit ``library`` the user's stored exercises are used.
        """
        if library is None:
            library = self.exercise_library(user_id)
        exercises = list(library)

        def analyzer(context: AnalysisContext) -> List[ExerciseRecommendation]:
            return recommend_exercises(context, exercises)

        return self._run("recommendations", user_id, analyzer, None, None, as_of, fetch_days=INSIGHT_WINDOW_DAYS)

    def insights(self, user_id: UUID, as_of: Optional[datetime] = None) -> List[DashboardInsight]:
        """Imbalance, neglect, best lift and top body part over the last 30 days."""
        return self._run("insights", user_id, dashboard_insights, None, None, as_of, fetch_days=INSIGHT_WINDOW_DAYS)
