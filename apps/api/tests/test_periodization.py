"""
Unit tests for the Periodization Phase Classifier

Tests week classification, phase merging and next-phase recommendations.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from typing import List

from services.analysis_context import AnalysisContext
from services.periodization import (
    MAX_WEEKS_WITHOUT_DELOAD,
    PhaseType,
    TrainingPhase,
    analyze_periodization,
    build_phase,
    classify_week,
    classify_weeks,
    identify_phases,
    recommend_next_phase,
    weeks_since_last_deload,
)
from services.training_log import BodyPart
from services.weekly_aggregator import WeekBucket
from fixtures.training_log_fixtures import TrainingLogBuilder


UTC = timezone.utc
FIRST_WEEK = date(2024, 5, 6)


def make_weeks(volumes: List[float], intensities: List[float] = None) -> List[WeekBucket]:
    intensities = intensities or [80.0] * len(volumes)
    return [
        WeekBucket(
            week_start=FIRST_WEEK + timedelta(weeks=i),
            total_volume=volume,
            total_sets=10,
            workout_count=3,
            average_intensity=intensity,
        )
        for i, (volume, intensity) in enumerate(zip(volumes, intensities))
    ]


def make_phase(phase_type: PhaseType, week_count: int, start: date = FIRST_WEEK) -> TrainingPhase:
    weeks = [
        WeekBucket(start + timedelta(weeks=i), 1000.0, 10, 3, 80.0)
        for i in range(week_count)
    ]
    return build_phase(phase_type, weeks)


class TestClassifyWeek:

    def test_deload_below_sixty_percent_of_mean_volume(self):
        week = make_weeks([50])[0]
        assert classify_week(week, mean_volume=100, mean_intensity=80) == PhaseType.DELOAD

    def test_intensification_high_intensity_without_high_volume(self):
        week = make_weeks([100], [90])[0]
        assert classify_week(week, mean_volume=100, mean_intensity=80) == PhaseType.INTENSIFICATION

    def test_accumulation_high_volume_without_high_intensity(self):
        week = make_weeks([120], [80])[0]
        assert classify_week(week, mean_volume=100, mean_intensity=80) == PhaseType.ACCUMULATION

    def test_transition_when_balanced(self):
        week = make_weeks([100], [80])[0]
        assert classify_week(week, mean_volume=100, mean_intensity=80) == PhaseType.TRANSITION

    def test_high_volume_and_high_intensity_is_transition(self):
        week = make_weeks([130], [95])[0]
        assert classify_week(week, mean_volume=100, mean_intensity=80) == PhaseType.TRANSITION

    def test_zero_means_do_not_divide_by_zero(self):
        week = make_weeks([0], [0])[0]
        assert classify_week(week, mean_volume=0, mean_intensity=0) == PhaseType.TRANSITION


class TestClassifyWeeks:

    def test_single_dip_is_the_only_deload(self):
        labels = classify_weeks(make_weeks([100, 105, 102, 40, 98, 101]))

        assert labels[3] == PhaseType.DELOAD
        assert labels.count(PhaseType.DELOAD) == 1

    def test_empty(self):
        assert classify_weeks([]) == []


class TestIdentifyPhases:

    def test_consecutive_weeks_merge(self):
        phases = identify_phases(make_weeks([100, 105, 102, 40, 98, 101]))

        assert [p.phase_type for p in phases] == [
            PhaseType.TRANSITION,
            PhaseType.ACCUMULATION,
            PhaseType.DELOAD,
            PhaseType.TRANSITION,
            PhaseType.ACCUMULATION,
        ]
        accumulation = phases[1]
        assert accumulation.week_count == 2
        assert accumulation.volume == pytest.approx(207)
        assert accumulation.intensity == pytest.approx(80)
        assert accumulation.week_start == FIRST_WEEK + timedelta(weeks=1)
        assert accumulation.week_end == FIRST_WEEK + timedelta(weeks=2)
        assert accumulation.characteristics
        assert accumulation.recommendation

    def test_no_weeks_no_phases(self):
        assert identify_phases([]) == []

    def test_phases_cover_every_week(self):
        weeks = make_weeks([100, 120, 130, 50, 100, 90, 140, 60])
        phases = identify_phases(weeks)
        assert sum(p.week_count for p in phases) == len(weeks)


class TestRecommendNextPhase:

    def test_no_history_starts_accumulation(self):
        phase, text = recommend_next_phase(None, 0, [])
        assert phase == PhaseType.ACCUMULATION
        assert text

    def test_accumulation_continues_before_four_weeks(self):
        current = make_phase(PhaseType.ACCUMULATION, 2)
        phase, text = recommend_next_phase(current, 2, [current])
        assert phase == PhaseType.ACCUMULATION
        assert "2 weeks" in text

    def test_accumulation_switches_after_four_weeks(self):
        current = make_phase(PhaseType.ACCUMULATION, 4)
        phase, _ = recommend_next_phase(current, 4, [make_phase(PhaseType.DELOAD, 1), current])
        assert phase == PhaseType.INTENSIFICATION

    def test_intensification_continues_before_three_weeks(self):
        current = make_phase(PhaseType.INTENSIFICATION, 1)
        phase, _ = recommend_next_phase(current, 1, [current])
        assert phase == PhaseType.INTENSIFICATION

    def test_intensification_then_deload(self):
        current = make_phase(PhaseType.INTENSIFICATION, 3)
        phase, _ = recommend_next_phase(current, 3, [current])
        assert phase == PhaseType.DELOAD

    def test_deload_then_accumulation(self):
        current = make_phase(PhaseType.DELOAD, 1)
        phase, _ = recommend_next_phase(current, 1, [current])
        assert phase == PhaseType.ACCUMULATION

    @pytest.mark.parametrize("previous,expected", [
        (PhaseType.ACCUMULATION, PhaseType.INTENSIFICATION),
        (PhaseType.INTENSIFICATION, PhaseType.DELOAD),
        (PhaseType.DELOAD, PhaseType.ACCUMULATION),
    ])
    def test_transition_follows_previous_phase(self, previous, expected):
        history = [make_phase(previous, 1), make_phase(PhaseType.TRANSITION, 1)]
        phase, _ = recommend_next_phase(history[-1], 0, history)
        assert phase == expected

    def test_lone_transition_starts_accumulation(self):
        current = make_phase(PhaseType.TRANSITION, 2)
        phase, _ = recommend_next_phase(current, 2, [current])
        assert phase == PhaseType.ACCUMULATION

    def test_forced_deload_after_six_weeks_without_one(self):
        history = [make_phase(PhaseType.TRANSITION, 4), make_phase(PhaseType.ACCUMULATION, 3)]
        assert weeks_since_last_deload(history) == 7

        phase, text = recommend_next_phase(history[-1], 1, history)

        assert phase == PhaseType.DELOAD
        assert "7 weeks" in text

    def test_recent_deload_prevents_override(self):
        history = [
            make_phase(PhaseType.ACCUMULATION, 5),
            make_phase(PhaseType.DELOAD, 1),
            make_phase(PhaseType.ACCUMULATION, 2),
        ]
        assert weeks_since_last_deload(history) == 2
        assert weeks_since_last_deload(history) <= MAX_WEEKS_WITHOUT_DELOAD

        phase, _ = recommend_next_phase(history[-1], 2, history)
        assert phase == PhaseType.ACCUMULATION


class TestAnalyzePeriodization:

    AS_OF = datetime(2024, 6, 12, 12, tzinfo=UTC)

    def test_no_training_reports_no_phase(self):
        context = TrainingLogBuilder().context(as_of=self.AS_OF, lookback_weeks=12)

        summary = analyze_periodization(context)

        assert summary.current_phase is None
        assert summary.phase_history == []
        assert summary.weeks_since_phase_change == 0
        assert summary.recommended_next_phase == PhaseType.ACCUMULATION

    def build_six_weeks(self) -> TrainingLogBuilder:
        log = TrainingLogBuilder()
        squat = log.exercise("Squat", BodyPart.QUADS)
        # Same reps every week keeps intensity constant; volumes 100, 105, 102, 40, 98, 101
        for i, weight in enumerate([20, 21, 20.4, 8, 19.6, 20.2]):
            log.workout(datetime(2024, 5, 7, 10, tzinfo=UTC) + timedelta(weeks=i), squat, reps=5, weight=weight)
        return log

    def test_phase_history_from_logged_weeks(self):
        summary = analyze_periodization(self.build_six_weeks().context(as_of=self.AS_OF, lookback_weeks=12))

        types = [p.phase_type for p in summary.phase_history]
        assert types.count(PhaseType.DELOAD) == 1
        assert summary.phase_history[types.index(PhaseType.DELOAD)].week_start == date(2024, 5, 27)
        assert summary.current_phase == summary.phase_history[-1]
        assert summary.current_phase.week_start == date(2024, 6, 10)
        assert summary.weeks_since_phase_change == 0

    def test_weeks_since_phase_change_uses_as_of(self):
        log = TrainingLogBuilder()
        squat = log.exercise("Squat", BodyPart.QUADS)
        log.workout(datetime(2024, 5, 20, 10, tzinfo=UTC), squat, reps=5, weight=100)

        summary = analyze_periodization(log.context(as_of=self.AS_OF, lookback_weeks=12))

        # Phase started Monday 2024-05-20, 23 days before as_of
        assert summary.weeks_since_phase_change == 3

    def test_lookback_limits_the_window(self):
        summary = analyze_periodization(self.build_six_weeks().context(as_of=self.AS_OF, lookback_weeks=2))
        assert sum(p.week_count for p in summary.phase_history) == 2

    def test_repeated_analysis_is_identical(self):
        snapshot = self.build_six_weeks().snapshot()

        first = analyze_periodization(AnalysisContext(snapshot, as_of=self.AS_OF, lookback_weeks=12))
        second = analyze_periodization(AnalysisContext(snapshot, as_of=self.AS_OF, lookback_weeks=12))

        assert first == second
