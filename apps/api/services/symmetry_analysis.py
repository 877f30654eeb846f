"""
Left/Right Symmetry Analyzer

Compares left and right sets of unilateral exercises in the lookback window.

Imbalance % = |left volume - right volume| / max(left, right) x 100
Risk tier:
- low:      below the imbalance threshold (15%)
- moderate: below the high-risk threshold (25% by default, configurable)
- high:     otherwise
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
from uuid import UUID
import logging

from services.analysis_context import AnalysisContext
from services.body_part_analysis import pair_difference
from services.training_log import LoggedSet, SetSide

logger = logging.getLogger(__name__)

DEFAULT_IMBALANCE_THRESHOLD = 15.0
DEFAULT_HIGH_RISK_THRESHOLD = 25.0


class SymmetryRisk(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class StrongerSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"
    BALANCED = "balanced"


@dataclass
class SideStats:
    volume: float = 0.0
    average_weight: float = 0.0
    average_reps: float = 0.0
    set_count: int = 0


@dataclass
class SymmetryMetric:
    """Left vs right comparison for one unilateral exercise."""
    exercise_id: UUID
    exercise_name: str
    left: SideStats
    right: SideStats
    imbalance_percentage: float
    stronger_side: StrongerSide
    risk_level: SymmetryRisk


@dataclass
class SymmetrySummary:
    total_unilateral_exercises: int = 0
    exercises_with_imbalance: int = 0
    average_imbalance: float = 0.0
    worst_imbalance: Optional[SymmetryMetric] = None
    metrics: List[SymmetryMetric] = field(default_factory=list)


def side_stats(sets: List[LoggedSet]) -> SideStats:
    if not sets:
        return SideStats()
    return SideStats(
        volume=sum(s.volume for s in sets),
        average_weight=sum(s.weight for s in sets) / len(sets),
        average_reps=sum(s.reps for s in sets) / len(sets),
        set_count=len(sets),
    )


def stronger_side(left_volume: float, right_volume: float) -> StrongerSide:
    if left_volume > right_volume:
        return StrongerSide.LEFT
    if right_volume > left_volume:
        return StrongerSide.RIGHT
    return StrongerSide.BALANCED


def symmetry_risk(
    imbalance: float,
    imbalance_threshold: float = DEFAULT_IMBALANCE_THRESHOLD,
    high_risk_threshold: float = DEFAULT_HIGH_RISK_THRESHOLD,
) -> SymmetryRisk:
    if imbalance < imbalance_threshold:
        return SymmetryRisk.LOW
    if imbalance < high_risk_threshold:
        return SymmetryRisk.MODERATE
    return SymmetryRisk.HIGH


def analyze_symmetry(
    context: AnalysisContext,
    imbalance_threshold: float = DEFAULT_IMBALANCE_THRESHOLD,
    high_risk_threshold: float = DEFAULT_HIGH_RISK_THRESHOLD,
) -> SymmetrySummary:
    """
    Per-exercise symmetry metrics, worst imbalance first, plus a summary.

    Exercises without any left or right set are not reported. A side with no
    volume against a side with volume is a 100% imbalance.
    """
    by_exercise: Dict[UUID, Dict[SetSide, List[LoggedSet]]] = {}
    names: Dict[UUID, str] = {}
    for logged in context.window_sets:
        if not logged.exercise.is_unilateral or logged.side == SetSide.NONE:
            continue
        exercise_id = logged.exercise.id
        names[exercise_id] = logged.exercise.name
        sides = by_exercise.setdefault(exercise_id, {SetSide.LEFT: [], SetSide.RIGHT: []})
        sides[logged.side].append(logged)

    metrics = []
    for exercise_id, sides in by_exercise.items():
        left = side_stats(sides[SetSide.LEFT])
        right = side_stats(sides[SetSide.RIGHT])
        imbalance = pair_difference(left.volume, right.volume)
        metrics.append(SymmetryMetric(
            exercise_id=exercise_id,
            exercise_name=names[exercise_id],
            left=left,
            right=right,
            imbalance_percentage=imbalance,
            stronger_side=stronger_side(left.volume, right.volume),
            risk_level=symmetry_risk(imbalance, imbalance_threshold, high_risk_threshold),
        ))

    if not metrics:
        return SymmetrySummary()

    metrics.sort(key=lambda m: (-m.imbalance_percentage, m.exercise_name, str(m.exercise_id)))

    summary = SymmetrySummary(
        total_unilateral_exercises=len(metrics),
        exercises_with_imbalance=sum(1 for m in metrics if m.imbalance_percentage >= imbalance_threshold),
        average_imbalance=sum(m.imbalance_percentage for m in metrics) / len(metrics),
        worst_imbalance=metrics[0],
        metrics=metrics,
    )
    logger.debug(
        f"Symmetry for {context.user_id}: {summary.total_unilateral_exercises} exercises, "
        f"{summary.exercises_with_imbalance} imbalanced"
    )
    return summary
