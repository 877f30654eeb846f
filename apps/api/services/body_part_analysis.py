"""
Body-Part Analyzer

Uses all training history up to as_of (or the lookback window, when one is given) for:
- Volume per body part and share of total volume
- Opposing-pair imbalance (chest/back, quads/hamstrings, biceps/triceps, abductors/adductors)
- Undertrained parts (warning at 14+ days since last trained, critical at 30+)
- Recommendation messages

And a fixed trailing 12-week window for the per-body-part weekly volume history,
zero-filled so every tracked part has exactly 12 entries, oldest first.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple
import logging

from services.analysis_context import AnalysisContext
from services.training_log import (
    BODY_PART_ORDER,
    BodyPart,
    LoggedSet,
    days_between,
    week_start,
)
from services.weekly_aggregator import trailing_week_starts

logger = logging.getLogger(__name__)


OPPOSING_PAIRS: List[Tuple[BodyPart, BodyPart]] = [
    (BodyPart.CHEST, BodyPart.BACK),
    (BodyPart.QUADS, BodyPart.HAMSTRINGS),
    (BodyPart.BICEPS, BodyPart.TRICEPS),
    (BodyPart.ABDUCTORS, BodyPart.ADDUCTORS),
]

IMBALANCE_THRESHOLD = 20.0
CRITICAL_IMBALANCE_THRESHOLD = 30.0
UNDERTRAINED_WARNING_DAYS = 14
UNDERTRAINED_CRITICAL_DAYS = 30
LOW_SHARE_THRESHOLD = 3.0
HISTORY_WEEKS = 12


class UndertrainedSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class BodyPartAggregate:
    """Totals for one body part over the analysed period."""
    body_part: BodyPart
    volume: float
    percentage: float  # Share of total volume, 0-100
    exercise_count: int  # Distinct exercises that trained it
    last_trained: datetime
    times_this_week: int  # Sets in the trailing 7 days
    times_this_month: int  # Sets in the trailing 30 days


@dataclass
class VolumeShare:
    body_part: BodyPart
    volume: float
    percentage: float


@dataclass
class BodyPartImbalance:
    """Volume comparison of one opposing pair."""
    muscle_group: str  # e.g. "Chest vs Back"
    part1: BodyPart
    part2: BodyPart
    volume1: float
    volume2: float
    difference: float  # |v1 - v2| / max(v1, v2), 0-100
    is_imbalanced: bool

    @property
    def weaker_part(self) -> BodyPart:
        return self.part1 if self.volume1 < self.volume2 else self.part2

    @property
    def is_critical(self) -> bool:
        return self.is_imbalanced and self.difference > CRITICAL_IMBALANCE_THRESHOLD


@dataclass
class UndertrainedBodyPart:
    body_part: BodyPart
    days_since_last_trained: int
    severity: UndertrainedSeverity
    times_this_month: int


@dataclass
class WeeklyVolume:
    week: date
    volume: float


@dataclass
class BodyPartHistory:
    body_part: BodyPart
    weekly_data: List[WeeklyVolume] = field(default_factory=list)


@dataclass
class BodyPartAnalysis:
    body_parts: List[BodyPartAggregate] = field(default_factory=list)
    imbalances: List[BodyPartImbalance] = field(default_factory=list)
    undertrained_parts: List[UndertrainedBodyPart] = field(default_factory=list)
    volume_distribution: List[VolumeShare] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    progress_history: List[BodyPartHistory] = field(default_factory=list)


def pair_difference(volume1: float, volume2: float) -> float:
    """Percentage difference of two volumes relative to the larger one (0 if both are 0)."""
    larger = max(volume1, volume2)
    if larger <= 0:
        return 0.0
    return abs(volume1 - volume2) / larger * 100


def share_of(volume: float, total: float) -> float:
    return volume / total * 100 if total > 0 else 0.0


class _PartAccumulator:
    def __init__(self, part: BodyPart):
        self.part = part
        self.volume = 0.0
        self.exercises: Set = set()
        self.last_trained: Optional[datetime] = None
        self.times_this_week = 0
        self.times_this_month = 0


def aggregate_body_parts(
    sets: List[LoggedSet],
    as_of: datetime,
) -> List[BodyPartAggregate]:
    """
    Per-body-part totals over ``sets``, in body-part declaration order.

    Parts are included once they have any completed set, even at zero volume.
    """
    week_ago = as_of - timedelta(days=7)
    month_ago = as_of - timedelta(days=30)

    parts: Dict[BodyPart, _PartAccumulator] = {}
    for logged in sets:
        part = logged.body_part
        if part is None:
            continue
        acc = parts.get(part)
        if acc is None:
            acc = parts[part] = _PartAccumulator(part)
        acc.volume += logged.volume
        acc.exercises.add(logged.exercise.id)
        if acc.last_trained is None or logged.performed_at > acc.last_trained:
            acc.last_trained = logged.performed_at
        if logged.performed_at >= week_ago:
            acc.times_this_week += 1
        if logged.performed_at >= month_ago:
            acc.times_this_month += 1

    total = sum(acc.volume for acc in parts.values())
    return [
        BodyPartAggregate(
            body_part=acc.part,
            volume=acc.volume,
            percentage=share_of(acc.volume, total),
            exercise_count=len(acc.exercises),
            last_trained=acc.last_trained,
            times_this_week=acc.times_this_week,
            times_this_month=acc.times_this_month,
        )
        for acc in sorted(parts.values(), key=lambda a: BODY_PART_ORDER[a.part])
    ]


def volume_distribution(aggregates: List[BodyPartAggregate]) -> List[VolumeShare]:
    """Share of total volume for parts with any volume, largest first."""
    shares = [
        VolumeShare(body_part=a.body_part, volume=a.volume, percentage=a.percentage)
        for a in aggregates
        if a.volume > 0
    ]
    shares.sort(key=lambda s: (-s.volume, BODY_PART_ORDER[s.body_part]))
    return shares


def detect_imbalances(volumes: Dict[BodyPart, float]) -> List[BodyPartImbalance]:
    """Compare each opposing pair where both sides have volume."""
    imbalances = []
    for part1, part2 in OPPOSING_PAIRS:
        volume1 = volumes.get(part1, 0.0)
        volume2 = volumes.get(part2, 0.0)
        if volume1 <= 0 or volume2 <= 0:
            continue
        difference = pair_difference(volume1, volume2)
        imbalances.append(BodyPartImbalance(
            muscle_group=f"{part1.label} vs {part2.label}",
            part1=part1,
            part2=part2,
            volume1=volume1,
            volume2=volume2,
            difference=difference,
            is_imbalanced=difference > IMBALANCE_THRESHOLD,
        ))
    return imbalances


def detect_undertrained(
    aggregates: List[BodyPartAggregate],
    as_of: datetime,
) -> List[UndertrainedBodyPart]:
    """Parts with history whose last set is 14+ days old (critical at 30+)."""
    undertrained = []
    for aggregate in aggregates:
        days = days_between(aggregate.last_trained, as_of)
        if days < UNDERTRAINED_WARNING_DAYS:
            continue
        severity = (
            UndertrainedSeverity.CRITICAL
            if days >= UNDERTRAINED_CRITICAL_DAYS
            else UndertrainedSeverity.WARNING
        )
        undertrained.append(UndertrainedBodyPart(
            body_part=aggregate.body_part,
            days_since_last_trained=days,
            severity=severity,
            times_this_month=aggregate.times_this_month,
        ))
    return undertrained


def build_recommendations(
    imbalances: List[BodyPartImbalance],
    undertrained: List[UndertrainedBodyPart],
    distribution: List[VolumeShare],
) -> List[str]:
    recommendations = []

    for imbalance in imbalances:
        if imbalance.is_critical:
            recommendations.append(
                f"Increase training for {imbalance.weaker_part.label}: significant imbalance "
                f"detected ({imbalance.difference:.0f}%)"
            )

    for part in undertrained:
        if part.severity == UndertrainedSeverity.CRITICAL:
            recommendations.append(
                f"{part.body_part.label}: not trained for {part.days_since_last_trained} days"
            )

    low_share = [s for s in distribution if s.percentage < LOW_SHARE_THRESHOLD]
    if low_share:
        names = ", ".join(s.body_part.label for s in low_share)
        recommendations.append(f"Consider increasing volume for: {names}")

    if not any(i.is_imbalanced for i in imbalances):
        recommendations.append("Great work! Your training is well balanced")
    if not undertrained:
        recommendations.append("Excellent training frequency: every body part is trained regularly")

    return recommendations


def weekly_history(
    sets: List[LoggedSet],
    as_of: datetime,
    weeks: int = HISTORY_WEEKS,
) -> List[BodyPartHistory]:
    """
    Weekly volume per body part over the trailing ``weeks`` weeks.

    Only parts with a set in the window are tracked. Every tracked part gets
    exactly ``weeks`` entries, oldest first, with zero for weeks without sets.
    """
    starts = trailing_week_starts(as_of, weeks)
    first = starts[0]

    volumes: Dict[BodyPart, Dict[date, float]] = {}
    for logged in sets:
        part = logged.body_part
        if part is None:
            continue
        key = week_start(logged.performed_at)
        if key < first:
            continue
        by_week = volumes.setdefault(part, {})
        by_week[key] = by_week.get(key, 0.0) + logged.volume

    return [
        BodyPartHistory(
            body_part=part,
            weekly_data=[WeeklyVolume(week=start, volume=volumes[part].get(start, 0.0)) for start in starts],
        )
        for part in sorted(volumes, key=lambda p: BODY_PART_ORDER[p])
    ]


def analyze_body_parts(context: AnalysisContext) -> BodyPartAnalysis:
    """
    Full body-part analysis as of ``context.as_of``.

    Balance and undertraining use the lookback window, which is all history
    unless the context sets one. The weekly history always covers the trailing
    12 weeks.
    """
    history = weekly_history(context.all_sets, context.as_of)
    aggregates = aggregate_body_parts(context.window_sets, context.as_of)
    if not aggregates:
        return BodyPartAnalysis(progress_history=history)

    volumes = {a.body_part: a.volume for a in aggregates}
    imbalances = detect_imbalances(volumes)
    undertrained = detect_undertrained(aggregates, context.as_of)
    distribution = volume_distribution(aggregates)

    analysis = BodyPartAnalysis(
        body_parts=aggregates,
        imbalances=imbalances,
        undertrained_parts=undertrained,
        volume_distribution=distribution,
        recommendations=build_recommendations(imbalances, undertrained, distribution),
        progress_history=history,
    )

    logger.debug(
        f"Body-part analysis for {context.user_id}: {len(aggregates)} parts, "
        f"{sum(1 for i in imbalances if i.is_imbalanced)} imbalanced, {len(undertrained)} undertrained"
    )
    return analysis
