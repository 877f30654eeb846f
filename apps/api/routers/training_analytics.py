"""
Training Analytics Router

Read-only training analytics for a user's workout log:
- Weekly load buckets
- Periodization phases and next-phase recommendation
- Body-part balance, undertraining and 12-week history
- Injury risk factors and score
- Left/right symmetry of unilateral exercises
- Goal progress and milestones
- Trends, personal records and streaks
- General stats, exercise recommendations and dashboard insights

Results are cached per (analysis, user, lookback, newest set timestamp), so a newly
logged set always produces a fresh result. Stored goals and the exercise library are
fingerprinted into the key as well.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Any, Callable, List, Optional, Type
from uuid import UUID
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict
import logging

from core.cache import analytics_cache_key, get_cache, input_fingerprint, set_cache
from core.config import settings
from core.database import get_db
from services.body_part_analysis import UndertrainedSeverity
from services.goal_evaluator import GoalTimeframe, GoalType, parse_goal
from services.injury_risk import RiskFactorType, RiskLevel
from services.periodization import PhaseType
from services.symmetry_analysis import StrongerSide, SymmetryRisk
from services.training_analytics import TrainingAnalyticsService
from services.training_insights import InsightSeverity, InsightType, RecommendationPriority
from services.training_log import BodyPart, MuscleGroup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/analytics", tags=["Training Analytics"])


def get_analytics_service(db: Session = Depends(get_db)) -> TrainingAnalyticsService:
    return TrainingAnalyticsService(db)


# ============ Response Models ============

class AnalyticsModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class WeekBucketResponse(AnalyticsModel):
    week_start: date
    week_end: date
    total_volume: float
    total_sets: int
    workout_count: int
    average_intensity: float  # % of estimated 1RM


class WeeklyLoadResponse(AnalyticsModel):
    lookback_weeks: int
    weeks: List[WeekBucketResponse]


class TrainingPhaseResponse(AnalyticsModel):
    phase_type: PhaseType
    week_start: date
    week_end: date
    volume: float
    intensity: float
    week_count: int
    characteristics: List[str]
    recommendation: str


class PeriodizationResponse(AnalyticsModel):
    current_phase: Optional[TrainingPhaseResponse] = None
    phase_history: List[TrainingPhaseResponse]
    weeks_since_phase_change: int
    recommended_next_phase: PhaseType
    recommendation: str


class BodyPartAggregateResponse(AnalyticsModel):
    body_part: BodyPart
    volume: float
    percentage: float
    exercise_count: int
    last_trained: datetime
    times_this_week: int
    times_this_month: int


class BodyPartImbalanceResponse(AnalyticsModel):
    muscle_group: str
    part1: BodyPart
    part2: BodyPart
    volume1: float
    volume2: float
    difference: float
    is_imbalanced: bool


class UndertrainedBodyPartResponse(AnalyticsModel):
    body_part: BodyPart
    days_since_last_trained: int
    severity: UndertrainedSeverity
    times_this_month: int


class VolumeShareResponse(AnalyticsModel):
    body_part: BodyPart
    volume: float
    percentage: float


class WeeklyVolumeResponse(AnalyticsModel):
    week: date
    volume: float


class BodyPartHistoryResponse(AnalyticsModel):
    body_part: BodyPart
    weekly_data: List[WeeklyVolumeResponse]


class BodyPartAnalysisResponse(AnalyticsModel):
    body_parts: List[BodyPartAggregateResponse]
    imbalances: List[BodyPartImbalanceResponse]
    undertrained_parts: List[UndertrainedBodyPartResponse]
    volume_distribution: List[VolumeShareResponse]
    recommendations: List[str]
    progress_history: List[BodyPartHistoryResponse]


class RiskFactorResponse(AnalyticsModel):
    factor_type: RiskFactorType
    severity: RiskLevel
    description: str
    recommendation: str
    body_part: Optional[BodyPart] = None
    value: Optional[float] = None


class InjuryRiskResponse(AnalyticsModel):
    overall_risk: RiskLevel
    risk_score: int
    factors: List[RiskFactorResponse]
    volume_spikes: List[RiskFactorResponse]
    imbalances: List[RiskFactorResponse]
    overtraining_indicators: List[RiskFactorResponse]
    neglected_stabilizers: List[RiskFactorResponse]


class SideStatsResponse(AnalyticsModel):
    volume: float
    average_weight: float
    average_reps: float
    set_count: int


class SymmetryMetricResponse(AnalyticsModel):
    exercise_id: UUID
    exercise_name: str
    left: SideStatsResponse
    right: SideStatsResponse
    imbalance_percentage: float
    stronger_side: StrongerSide
    risk_level: SymmetryRisk


class SymmetrySummaryResponse(AnalyticsModel):
    total_unilateral_exercises: int
    exercises_with_imbalance: int
    average_imbalance: float
    worst_imbalance: Optional[SymmetryMetricResponse] = None
    metrics: List[SymmetryMetricResponse]


class GoalResponse(AnalyticsModel):
    id: Optional[UUID] = None
    goal_type: GoalType
    timeframe: GoalTimeframe
    target_value: Optional[float] = None
    target_exercises: List[str]
    body_part: Optional[BodyPart] = None


class GoalProgressResponse(AnalyticsModel):
    goal: GoalResponse
    current_value: float
    progress: float
    is_achieved: bool


class MilestoneResponse(AnalyticsModel):
    id: str
    title: str
    description: str
    target: float
    progress: float
    unlocked: bool


class GoalsReportResponse(AnalyticsModel):
    goals: List[GoalProgressResponse]
    milestones: List[MilestoneResponse]


class GoalRequest(BaseModel):
    goal_type: str
    timeframe: str
    target_value: Optional[float] = None
    target_exercises: Optional[List[str]] = None
    body_part: Optional[str] = None


class GoalsEvaluationRequest(BaseModel):
    goals: List[GoalRequest]


class WeeklyProgressResponse(AnalyticsModel):
    week_start: date
    workouts: int
    volume: float
    improvement: float


class ProgressPointResponse(AnalyticsModel):
    performed_at: datetime
    max_weight: float


class ExerciseProgressResponse(AnalyticsModel):
    exercise_id: UUID
    exercise_name: str
    data_points: List[ProgressPointResponse]


class PersonalRecordResponse(AnalyticsModel):
    exercise_id: UUID
    exercise_name: str
    max_weight: float
    max_reps: int
    estimated_one_rep_max: float
    last_performed: datetime


class RecentRecordResponse(AnalyticsModel):
    exercise_name: str
    weight: float
    reps: int
    performed_at: datetime


class ImprovementResponse(AnalyticsModel):
    exercise_name: str
    improvement: float
    previous_max: float
    recent_max: float


class VolumeSummaryResponse(AnalyticsModel):
    total_volume: float
    weekly_volume: float
    average_reps: float
    average_sets: float


class ExerciseFrequencyResponse(AnalyticsModel):
    exercise_id: UUID
    exercise_name: str
    count: int
    muscle_group: Optional[MuscleGroup] = None


class MuscleGroupVolumeResponse(AnalyticsModel):
    muscle_group: str
    volume: float
    percentage: float


class StreakSummaryResponse(AnalyticsModel):
    current_streak: int
    best_streak: int


class TrainingTrendsResponse(AnalyticsModel):
    weekly_progress: List[WeeklyProgressResponse]
    exercise_progress: List[ExerciseProgressResponse]
    personal_records: List[PersonalRecordResponse]
    recent_records: List[RecentRecordResponse]
    top_improvements: List[ImprovementResponse]
    volume_summary: VolumeSummaryResponse
    most_performed: List[ExerciseFrequencyResponse]
    muscle_group_balance: List[MuscleGroupVolumeResponse]
    streaks: StreakSummaryResponse


class WorkoutTimeResponse(AnalyticsModel):
    this_week: int  # minutes
    this_month: int
    all_time: int


class FrequentSlotResponse(AnalyticsModel):
    label: str
    count: int


class GeneralStatsResponse(AnalyticsModel):
    total_workouts: int
    total_workout_time: WorkoutTimeResponse
    total_exercises: int
    average_workout_duration: int  # minutes
    most_frequent_days: List[FrequentSlotResponse]
    most_frequent_hours: List[FrequentSlotResponse]
    best_streak: int
    current_streak: int


class ExerciseRecommendationResponse(AnalyticsModel):
    body_part: BodyPart
    label: str
    reason: str
    priority: RecommendationPriority
    exercises: List[str]
    days_since_last_trained: Optional[int] = None
    volume_deficit: float


class RecommendationsResponse(AnalyticsModel):
    recommendations: List[ExerciseRecommendationResponse]


class DashboardInsightResponse(AnalyticsModel):
    insight_type: InsightType
    body_part: BodyPart
    title: str
    description: str
    value: str
    severity: InsightSeverity


class InsightsResponse(AnalyticsModel):
    insights: List[DashboardInsightResponse]


# ============ Helpers ============

def _cached(
    analysis: str,
    user_id: UUID,
    lookback_weeks: Optional[int],
    as_of: Optional[datetime],
    service: TrainingAnalyticsService,
    compute: Callable[[], Any],
    response_model: Type[AnalyticsModel],
    inputs: Optional[str] = None,
):
    """Serve from cache when the input has not changed, otherwise compute and store."""
    key = analytics_cache_key(
        analysis,
        user_id,
        lookback_weeks,
        service.high_water_mark(user_id),
        as_of=as_of,
        inputs=inputs,
    )
    cached_result = get_cache(key)
    if cached_result is not None:
        logger.debug(f"Cache hit for {key}")
        return cached_result

    response = response_model.model_validate(compute())
    set_cache(key, response.model_dump(mode="json"), ttl=settings.CACHE_TTL_ANALYTICS)
    return response


# ============ Endpoints ============

@router.get("/{user_id}/weekly-load", response_model=WeeklyLoadResponse)
async def get_weekly_load(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks"),
    fill_gaps: bool = Query(False, description="Zero-fill weeks without sets"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """
    Weekly training load (volume, sets, workouts, average intensity).

    Weeks start on Monday. Weeks without sets are omitted unless ``fill_gaps`` is set.
    """
    return _cached(
        "weekly_load:filled" if fill_gaps else "weekly_load",
        user_id, lookback_weeks, as_of, service,
        lambda: service.weekly_load(user_id, lookback_weeks, as_of=as_of, fill_gaps=fill_gaps),
        WeeklyLoadResponse,
    )


@router.get("/{user_id}/periodization", response_model=PeriodizationResponse)
async def get_periodization(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Phase history (accumulation/intensification/deload/transition) and next-phase recommendation."""
    return _cached(
        "periodization", user_id, lookback_weeks, as_of, service,
        lambda: service.periodization(user_id, lookback_weeks, as_of=as_of),
        PeriodizationResponse,
    )


@router.get("/{user_id}/body-parts", response_model=BodyPartAnalysisResponse)
async def get_body_parts(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks (default: all history)"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Volume distribution, opposing-pair imbalances, undertrained parts and 12-week history."""
    return _cached(
        "body_parts", user_id, lookback_weeks, as_of, service,
        lambda: service.body_parts(user_id, lookback_weeks, as_of=as_of),
        BodyPartAnalysisResponse,
    )


@router.get("/{user_id}/injury-risk", response_model=InjuryRiskResponse)
async def get_injury_risk(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Injury risk score (0-100), level and contributing factors."""
    return _cached(
        "injury_risk", user_id, lookback_weeks, as_of, service,
        lambda: service.injury_risk(user_id, lookback_weeks, as_of=as_of),
        InjuryRiskResponse,
    )


@router.get("/{user_id}/symmetry", response_model=SymmetrySummaryResponse)
async def get_symmetry(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Left/right balance of unilateral exercises, worst imbalance first."""
    return _cached(
        "symmetry", user_id, lookback_weeks, as_of, service,
        lambda: service.symmetry(user_id, lookback_weeks, as_of=as_of),
        SymmetrySummaryResponse,
    )


@router.get("/{user_id}/goals", response_model=GoalsReportResponse)
async def get_goals(
    user_id: UUID,
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Progress of the user's active goals, plus milestone badges."""
    goals = service.active_goals(user_id)
    return _cached(
        "goals", user_id, None, as_of, service,
        lambda: service.goals(user_id, goals=goals, as_of=as_of),
        GoalsReportResponse,
        inputs=input_fingerprint(goals),
    )


@router.post("/{user_id}/goals/evaluate", response_model=GoalsReportResponse)
async def evaluate_goals(
    user_id: UUID,
    request: GoalsEvaluationRequest,
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Evaluate ad-hoc goal definitions without storing them."""
    goals = [
        parse_goal(
            goal_type=g.goal_type,
            timeframe=g.timeframe,
            target_value=g.target_value,
            target_exercises=g.target_exercises,
            body_part=g.body_part,
        )
        for g in request.goals
    ]
    return GoalsReportResponse.model_validate(service.goals(user_id, goals=goals, as_of=as_of))


@router.get("/{user_id}/trends", response_model=TrainingTrendsResponse)
async def get_trends(
    user_id: UUID,
    lookback_weeks: Optional[int] = Query(None, description="Window length in weeks for weekly progress"),
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Weekly progress, exercise progression, personal records, improvements and streaks."""
    return _cached(
        "trends", user_id, lookback_weeks, as_of, service,
        lambda: service.trends(user_id, lookback_weeks, as_of=as_of),
        TrainingTrendsResponse,
    )


@router.get("/{user_id}/stats", response_model=GeneralStatsResponse)
async def get_general_stats(
    user_id: UUID,
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Workout count and time, average duration, favourite days and hours, streaks."""
    return _cached(
        "general_stats", user_id, None, as_of, service,
        lambda: service.general_stats(user_id, as_of=as_of),
        GeneralStatsResponse,
    )


@router.get("/{user_id}/recommendations", response_model=RecommendationsResponse)
async def get_recommendations(
    user_id: UUID,
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Up to five body parts to bring back into training, with exercises from the user's library."""
    library = service.exercise_library(user_id)
    return _cached(
        "recommendations", user_id, None, as_of, service,
        lambda: {"recommendations": service.recommendations(user_id, library=library, as_of=as_of)},
        RecommendationsResponse,
        inputs=input_fingerprint(library),
    )


@router.get("/{user_id}/insights", response_model=InsightsResponse)
async def get_insights(
    user_id: UUID,
    as_of: Optional[datetime] = None,
    service: TrainingAnalyticsService = Depends(get_analytics_service),
):
    """Dashboard highlights for the last 30 days."""
    return _cached(
        "insights", user_id, None, as_of, service,
        lambda: {"insights": service.insights(user_id, as_of=as_of)},
        InsightsResponse,
    )
