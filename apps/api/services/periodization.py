"""
Periodization Phase Classifier

Labels each observed training week against the window's mean volume and mean
intensity, merges consecutive weeks with the same label into TrainingPhase
intervals, and recommends the next phase.

Week classification (ratios to the window mean):
- deload:          volume < 60%
- intensification: intensity > 110% and volume < 110%
- accumulation:    volume > 110% and intensity < 110%
- transition:      anything else (balanced week)

Recommendation:
- More than 6 weeks since the last deload forces a deload (safety override).
- Accumulation: continue for 4 weeks, then intensify.
- Intensification: continue for 3 weeks, then deload.
- Deload: start a new accumulation block.
- Transition: follow on from the phase before it.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from services.analysis_context import AnalysisContext
from services.weekly_aggregator import WeekBucket

logger = logging.getLogger(__name__)


class PhaseType(str, Enum):
    """Training phase of a run of weeks."""
    ACCUMULATION = "accumulation"
    INTENSIFICATION = "intensification"
    DELOAD = "deload"
    TRANSITION = "transition"


DELOAD_VOLUME_RATIO = 0.6
HIGH_RATIO = 1.1
MAX_WEEKS_WITHOUT_DELOAD = 6
ACCUMULATION_BLOCK_WEEKS = 4
INTENSIFICATION_BLOCK_WEEKS = 3


PHASE_PROFILES: Dict[PhaseType, Tuple[List[str], str]] = {
    PhaseType.ACCUMULATION: (
        [
            "High training volume",
            "Moderate intensity",
            "Building work capacity",
            "More reps at lighter loads",
        ],
        "Keep accumulating for 3-4 weeks, then move into an intensification block.",
    ),
    PhaseType.INTENSIFICATION: (
        [
            "High intensity (heavier loads)",
            "Reduced training volume",
            "Fewer reps at heavier loads",
            "Focus on maximal strength",
        ],
        "Intensification should last 2-3 weeks. Follow it with a deload week.",
    ),
    PhaseType.DELOAD: (
        [
            "Substantially reduced volume",
            "Recovery period",
            "Allows supercompensation",
            "Prepares for the next cycle",
        ],
        "A deload week is key for recovery. Return to accumulation afterwards.",
    ),
    PhaseType.TRANSITION: (
        [
            "Balanced volume and intensity",
            "Bridge between phases",
            "Good for maintaining fitness",
        ],
        "Decide whether to push volume (accumulation) or intensity (intensification) next.",
    ),
}


@dataclass
class TrainingPhase:
    """A run of consecutive weeks sharing one classification."""
    phase_type: PhaseType
    week_start: date  # First member week
    week_end: date    # Start of the last member week
    volume: float     # Sum over member weeks
    intensity: float  # Mean of member weeks' average intensity
    week_count: int
    characteristics: List[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass
class PeriodizationSummary:
    """Current phase, phase history and what to do next."""
    current_phase: Optional[TrainingPhase]
    phase_history: List[TrainingPhase]
    weeks_since_phase_change: int
    recommended_next_phase: PhaseType
    recommendation: str


def _ratio(value: float, mean: float) -> float:
    # A window with no volume (or no loaded sets) has nothing to compare against
    return value / mean if mean > 0 else 1.0


def classify_week(week: WeekBucket, mean_volume: float, mean_intensity: float) -> PhaseType:
    """Classify one week relative to the window means."""
    volume_ratio = _ratio(week.total_volume, mean_volume)
    intensity_ratio = _ratio(week.average_intensity, mean_intensity)

    if volume_ratio < DELOAD_VOLUME_RATIO:
        return PhaseType.DELOAD
    if intensity_ratio > HIGH_RATIO and volume_ratio < HIGH_RATIO:
        return PhaseType.INTENSIFICATION
    if volume_ratio > HIGH_RATIO and intensity_ratio < HIGH_RATIO:
        return PhaseType.ACCUMULATION
    return PhaseType.TRANSITION


def classify_weeks(weeks: Sequence[WeekBucket]) -> List[PhaseType]:
    """Classify every week against the mean of the whole observed window."""
    if not weeks:
        return []
    mean_volume = sum(w.total_volume for w in weeks) / len(weeks)
    mean_intensity = sum(w.average_intensity for w in weeks) / len(weeks)
    return [classify_week(w, mean_volume, mean_intensity) for w in weeks]


def build_phase(phase_type: PhaseType, weeks: Sequence[WeekBucket]) -> TrainingPhase:
    characteristics, recommendation = PHASE_PROFILES[phase_type]
    return TrainingPhase(
        phase_type=phase_type,
        week_start=weeks[0].week_start,
        week_end=weeks[-1].week_start,
        volume=sum(w.total_volume for w in weeks),
        intensity=sum(w.average_intensity for w in weeks) / len(weeks),
        week_count=len(weeks),
        characteristics=list(characteristics),
        recommendation=recommendation,
    )


def identify_phases(weeks: Sequence[WeekBucket]) -> List[TrainingPhase]:
    """
    Merge consecutive same-labelled weeks into phases.

    Args:
        weeks: Observed weekly buckets, ascending

    Returns:
        Phases in chronological order (empty for no weeks)
    """
    labels = classify_weeks(weeks)
    phases: List[TrainingPhase] = []

    run_start = 0
    for i in range(1, len(weeks) + 1):
        if i == len(weeks) or labels[i] != labels[run_start]:
            phases.append(build_phase(labels[run_start], weeks[run_start:i]))
            run_start = i

    return phases


def weeks_since_last_deload(phases: Sequence[TrainingPhase]) -> int:
    """Observed weeks after the most recent deload phase (all weeks if none)."""
    weeks = 0
    for phase in reversed(phases):
        if phase.phase_type == PhaseType.DELOAD:
            break
        weeks += phase.week_count
    return weeks


def _weeks(n: int) -> str:
    return f"{n} week" if n == 1 else f"{n} weeks"


def recommend_next_phase(
    current: Optional[TrainingPhase],
    weeks_in_phase: int,
    history: Sequence[TrainingPhase],
) -> Tuple[PhaseType, str]:
    """
    Recommend the next phase type and explain why.

    Args:
        current: Most recent phase (None when there is no history)
        weeks_in_phase: Weeks elapsed since the current phase started
        history: All phases, chronological, ending with ``current``
    """
    if current is None:
        return (
            PhaseType.ACCUMULATION,
            "Start with an accumulation phase: high volume, moderate intensity for 3-4 weeks.",
        )

    since_deload = weeks_since_last_deload(history)
    if since_deload > MAX_WEEKS_WITHOUT_DELOAD:
        return (
            PhaseType.DELOAD,
            f"It has been {_weeks(since_deload)} since your last deload. "
            "Take a recovery week at 40-50% of your usual volume to avoid overtraining "
            "and prepare for the next cycle.",
        )

    if current.phase_type == PhaseType.ACCUMULATION:
        if weeks_in_phase >= ACCUMULATION_BLOCK_WEEKS:
            return (
                PhaseType.INTENSIFICATION,
                f"You have completed {_weeks(weeks_in_phase)} of accumulation. "
                "Move to intensification: cut volume by about 30% and go heavier with fewer reps.",
            )
        return (
            PhaseType.ACCUMULATION,
            f"You are {_weeks(weeks_in_phase)} into accumulation. Continue for "
            f"{_weeks(ACCUMULATION_BLOCK_WEEKS - weeks_in_phase)} before intensifying.",
        )

    if current.phase_type == PhaseType.INTENSIFICATION:
        if weeks_in_phase >= INTENSIFICATION_BLOCK_WEEKS:
            return (
                PhaseType.DELOAD,
                f"You have completed {_weeks(weeks_in_phase)} of intensification. "
                "Time for a deload: halve the volume and drop intensity by about 20%.",
            )
        return (
            PhaseType.INTENSIFICATION,
            f"You are {_weeks(weeks_in_phase)} into intensification. Continue for "
            f"{_weeks(INTENSIFICATION_BLOCK_WEEKS - weeks_in_phase)} before deloading.",
        )

    if current.phase_type == PhaseType.DELOAD:
        return (
            PhaseType.ACCUMULATION,
            "After the deload, start a new cycle with 3-4 weeks of accumulation.",
        )

    # Transition: infer the natural next step from the phase before it
    if len(history) >= 2:
        previous = history[-2].phase_type
        if previous == PhaseType.ACCUMULATION:
            return (
                PhaseType.INTENSIFICATION,
                "Move from transition into intensification: heavier loads, less volume.",
            )
        if previous == PhaseType.INTENSIFICATION:
            return (
                PhaseType.DELOAD,
                "After intensification, take a deload week before the next cycle.",
            )
    return (
        PhaseType.ACCUMULATION,
        "Start a new cycle with accumulation: high volume, moderate intensity.",
    )


def analyze_periodization(context: AnalysisContext) -> PeriodizationSummary:
    """
    Phase history and next-phase recommendation for the context's lookback window.

    With no observed weeks there is no current phase and accumulation is recommended.
    """
    phases = identify_phases(context.weekly_buckets)
    current = phases[-1] if phases else None

    weeks_in_phase = 0
    if current is not None:
        elapsed_days = (context.as_of.date() - current.week_start).days
        weeks_in_phase = max(0, elapsed_days // 7)

    next_phase, recommendation = recommend_next_phase(current, weeks_in_phase, phases)

    logger.debug(
        f"Periodization for {context.user_id}: {len(phases)} phases, "
        f"current={current.phase_type.value if current else None}, next={next_phase.value}"
    )

    return PeriodizationSummary(
        current_phase=current,
        phase_history=phases,
        weeks_since_phase_change=weeks_in_phase,
        recommended_next_phase=next_phase,
        recommendation=recommendation,
    )
