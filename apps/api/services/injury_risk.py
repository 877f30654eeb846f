"""
Injury Risk Analyzer

Four independent detectors over the lookback window (default 12 weeks):

1. Volume spikes: week-over-week volume increase >50% (high) or >30% (moderate)
2. Imbalances: opposing-pair volume difference >40% (high) or >25% (moderate)
3. Overtraining: 6+ sessions in the last 7 days, or no deload in the last 6+ weeks
4. Neglected stabilizers: core, forearms, calves, neck, adductors, abductors

Scoring:
- high = 25, moderate = 15, low = 5 points per factor, capped at 100
- Overall risk: <30 low, <60 moderate, otherwise high
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional
import logging

from services.analysis_context import AnalysisContext
from services.body_part_analysis import OPPOSING_PAIRS, pair_difference, share_of
from services.training_log import BodyPart
from services.weekly_aggregator import WeekBucket, fill_weeks, trailing_week_starts

logger = logging.getLogger(__name__)


class RiskLevel(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"


class RiskFactorType(str, Enum):
    VOLUME_SPIKE = "volume_spike"
    IMBALANCE = "imbalance"
    OVERTRAINING = "overtraining"
    NEGLECTED_STABILIZER = "neglected_stabilizer"


STABILIZERS: List[BodyPart] = [
    BodyPart.CORE,
    BodyPart.FOREARMS,
    BodyPart.CALVES,
    BodyPart.NECK,
    BodyPart.ADDUCTORS,
    BodyPart.ABDUCTORS,
]

SEVERITY_POINTS: Dict[RiskLevel, int] = {
    RiskLevel.HIGH: 25,
    RiskLevel.MODERATE: 15,
    RiskLevel.LOW: 5,
}
MAX_RISK_SCORE = 100

SPIKE_HIGH = 50.0
SPIKE_MODERATE = 30.0
IMBALANCE_HIGH = 40.0
IMBALANCE_MODERATE = 25.0
SESSIONS_HIGH = 7
SESSIONS_MODERATE = 6
DELOAD_SCAN_WEEKS = 8
DELOAD_MIN_OBSERVED_WEEKS = 6
DELOAD_REDUCTION = 20.0
STABILIZER_LOW_SHARE = 2.0


@dataclass
class RiskFactor:
    """One detected injury risk factor."""
    factor_type: RiskFactorType
    severity: RiskLevel
    description: str
    recommendation: str
    body_part: Optional[BodyPart] = None
    value: Optional[float] = None


@dataclass
class InjuryRiskSummary:
    overall_risk: RiskLevel
    risk_score: int  # 0-100
    factors: List[RiskFactor] = field(default_factory=list)
    volume_spikes: List[RiskFactor] = field(default_factory=list)
    imbalances: List[RiskFactor] = field(default_factory=list)
    overtraining_indicators: List[RiskFactor] = field(default_factory=list)
    neglected_stabilizers: List[RiskFactor] = field(default_factory=list)


def detect_volume_spikes(weeks: List[WeekBucket]) -> List[RiskFactor]:
    """Week-over-week increases over a continuous (zero-filled) series."""
    factors = []
    for prev, curr in zip(weeks, weeks[1:]):
        if prev.total_volume <= 0:
            continue
        increase = (curr.total_volume - prev.total_volume) / prev.total_volume * 100
        if increase > SPIKE_HIGH:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.VOLUME_SPIKE,
                severity=RiskLevel.HIGH,
                description=f"Sharp training volume increase of {increase:.0f}% in the week of {curr.week_start.isoformat()}",
                recommendation="Reduce training volume by 20-30% next week to give your body time to adapt.",
                value=increase,
            ))
        elif increase > SPIKE_MODERATE:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.VOLUME_SPIKE,
                severity=RiskLevel.MODERATE,
                description=f"Significant training volume increase of {increase:.0f}% in the week of {curr.week_start.isoformat()}",
                recommendation="Monitor fatigue and consider holding volume steady next week.",
                value=increase,
            ))
    return factors


def detect_imbalances(volumes: Dict[BodyPart, float]) -> List[RiskFactor]:
    """Opposing-pair imbalances; the factor's body part is the dominant side."""
    factors = []
    for part1, part2 in OPPOSING_PAIRS:
        volume1 = volumes.get(part1, 0.0)
        volume2 = volumes.get(part2, 0.0)
        if volume1 <= 0 or volume2 <= 0:
            continue
        difference = pair_difference(volume1, volume2)
        dominant, weaker = (part1, part2) if volume1 > volume2 else (part2, part1)
        if difference > IMBALANCE_HIGH:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.IMBALANCE,
                severity=RiskLevel.HIGH,
                body_part=dominant,
                description=f"Significant imbalance between {part1.label} and {part2.label} ({difference:.0f}%)",
                recommendation=f"Increase training volume for {weaker.label} by 30-50%.",
                value=difference,
            ))
        elif difference > IMBALANCE_MODERATE:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.IMBALANCE,
                severity=RiskLevel.MODERATE,
                body_part=dominant,
                description=f"Imbalance between {part1.label} and {part2.label} ({difference:.0f}%)",
                recommendation=f"Consider adding 1-2 exercises for {weaker.label}.",
                value=difference,
            ))
    return factors


def had_deload(volumes: List[float]) -> bool:
    """True if any week dropped by 20% or more from a non-zero predecessor."""
    for prev, curr in zip(volumes, volumes[1:]):
        if prev > 0 and (prev - curr) / prev * 100 >= DELOAD_REDUCTION:
            return True
    return False


def detect_overtraining(context: AnalysisContext) -> List[RiskFactor]:
    factors = []

    recent = len(context.sessions_within_days(7))
    if recent >= SESSIONS_HIGH:
        factors.append(RiskFactor(
            factor_type=RiskFactorType.OVERTRAINING,
            severity=RiskLevel.HIGH,
            description=f"Very high training frequency: {recent} sessions in the last week",
            recommendation="Schedule 1-2 rest days. Your body needs time to recover.",
            value=float(recent),
        ))
    elif recent >= SESSIONS_MODERATE:
        factors.append(RiskFactor(
            factor_type=RiskFactorType.OVERTRAINING,
            severity=RiskLevel.MODERATE,
            description=f"High training frequency: {recent} sessions in the last week",
            recommendation="Consider a rest day or a light recovery session.",
            value=float(recent),
        ))

    # Last 8 completed weeks, excluding the week in progress
    starts = trailing_week_starts(context.as_of, DELOAD_SCAN_WEEKS + 1)[:-1]
    weeks = fill_weeks(context.weekly_buckets, starts[0], starts[-1])
    observed = sum(1 for w in weeks if w.total_sets > 0)
    if observed >= DELOAD_MIN_OBSERVED_WEEKS and not had_deload([w.total_volume for w in weeks]):
        factors.append(RiskFactor(
            factor_type=RiskFactorType.OVERTRAINING,
            severity=RiskLevel.MODERATE,
            description="No deload in the last 6+ weeks",
            recommendation="Plan a deload week (cut volume by 40-50%) to prevent overload.",
        ))

    return factors


def detect_neglected_stabilizers(
    volumes: Dict[BodyPart, float],
    total_volume: float,
) -> List[RiskFactor]:
    factors = []
    for stabilizer in STABILIZERS:
        volume = volumes.get(stabilizer, 0.0)
        if volume <= 0:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.NEGLECTED_STABILIZER,
                severity=RiskLevel.MODERATE,
                body_part=stabilizer,
                description=f"Completely neglected stabilizer: {stabilizer.label}",
                recommendation=f"Add exercises for {stabilizer.label} to improve stability and prevent injury.",
                value=0.0,
            ))
            continue
        percentage = share_of(volume, total_volume)
        if percentage < STABILIZER_LOW_SHARE:
            factors.append(RiskFactor(
                factor_type=RiskFactorType.NEGLECTED_STABILIZER,
                severity=RiskLevel.LOW,
                body_part=stabilizer,
                description=f"Low share of {stabilizer.label} in your training ({percentage:.1f}%)",
                recommendation=f"Consider adding more work for {stabilizer.label}.",
                value=percentage,
            ))
    return factors


def risk_score(factors: List[RiskFactor]) -> int:
    """Sum of severity points, capped at 100. Never decreases as factors are added."""
    return min(sum(SEVERITY_POINTS[f.severity] for f in factors), MAX_RISK_SCORE)


def risk_level(score: int) -> RiskLevel:
    if score < 30:
        return RiskLevel.LOW
    if score < 60:
        return RiskLevel.MODERATE
    return RiskLevel.HIGH


def summarize(factors: List[RiskFactor]) -> InjuryRiskSummary:
    score = risk_score(factors)
    return InjuryRiskSummary(
        overall_risk=risk_level(score),
        risk_score=score,
        factors=factors,
        volume_spikes=[f for f in factors if f.factor_type == RiskFactorType.VOLUME_SPIKE],
        imbalances=[f for f in factors if f.factor_type == RiskFactorType.IMBALANCE],
        overtraining_indicators=[f for f in factors if f.factor_type == RiskFactorType.OVERTRAINING],
        neglected_stabilizers=[f for f in factors if f.factor_type == RiskFactorType.NEGLECTED_STABILIZER],
    )


def analyze_injury_risk(context: AnalysisContext) -> InjuryRiskSummary:
    """
    Injury risk over the context's lookback window.

    No completed sessions in the window is low risk with a zero score.
    """
    if not context.window_sessions:
        return InjuryRiskSummary(overall_risk=RiskLevel.LOW, risk_score=0)

    volumes = context.window_body_part_volumes
    total_volume = sum(s.volume for s in context.window_sets)

    factors: List[RiskFactor] = []
    factors.extend(detect_volume_spikes(fill_weeks(context.weekly_buckets)))
    factors.extend(detect_imbalances(volumes))
    factors.extend(detect_overtraining(context))
    factors.extend(detect_neglected_stabilizers(volumes, total_volume))

    summary = summarize(factors)
    logger.debug(
        f"Injury risk for {context.user_id}: {len(factors)} factors, "
        f"score={summary.risk_score}, risk={summary.overall_risk.value}"
    )
    return summary
