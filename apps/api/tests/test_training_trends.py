"""
Unit tests for Training Trends & Strength Records
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from services.training_log import BodyPart, MuscleGroup
from services.training_trends import (
    TrainingTrends,
    analyze_trends,
    best_streak,
    current_streak,
    exercise_progress,
    most_performed,
    muscle_group_balance,
    personal_records,
    recent_records,
    top_improvements,
    volume_summary,
    weekly_progress,
)
from fixtures.training_log_fixtures import TrainingLogBuilder


UTC = timezone.utc
AS_OF = datetime(2024, 6, 12, 12, tzinfo=UTC)
TODAY = AS_OF.date()


class TestStreaks:

    def test_streak_including_today(self):
        days = [TODAY - timedelta(days=i) for i in range(3)]
        assert current_streak(days, TODAY) == 3

    def test_streak_continues_from_yesterday(self):
        days = [TODAY - timedelta(days=i) for i in range(1, 5)]
        assert current_streak(days, TODAY) == 4

    def test_streak_broken(self):
        assert current_streak([TODAY - timedelta(days=2)], TODAY) == 0
        assert current_streak([], TODAY) == 0

    def test_best_streak(self):
        days = [
            date(2024, 5, 1), date(2024, 5, 2),
            date(2024, 5, 10), date(2024, 5, 11), date(2024, 5, 12), date(2024, 5, 13),
            date(2024, 6, 1),
        ]
        assert best_streak(days) == 4
        assert best_streak([]) == 0


class TestRecords:

    def build_log(self) -> TrainingLogBuilder:
        log = TrainingLogBuilder()
        bench = log.exercise("Bench Press", BodyPart.CHEST, muscle_group=MuscleGroup.UPPER)
        squat = log.exercise("Squat", BodyPart.QUADS, muscle_group=MuscleGroup.LOWER)
        log.workout(AS_OF - timedelta(days=60), bench, reps=5, weight=80)
        log.workout(AS_OF - timedelta(days=40), squat, reps=5, weight=100)
        log.workout(AS_OF - timedelta(days=10), bench, reps=3, weight=90)
        log.workout(AS_OF - timedelta(days=5), squat, reps=5, weight=100)
        return log

    def test_personal_records_by_estimated_max(self):
        sets = self.build_log().context(as_of=AS_OF).all_sets

        records = personal_records(sets)

        assert [r.exercise_name for r in records] == ["Squat", "Bench Press"]
        bench = records[1]
        assert bench.max_weight == 90
        assert bench.max_reps == 3
        assert bench.estimated_one_rep_max == pytest.approx(99)
        assert bench.last_performed == AS_OF - timedelta(days=10)

    def test_recent_records_newest_first(self):
        sets = self.build_log().context(as_of=AS_OF).all_sets

        recent = recent_records(sets, AS_OF - timedelta(days=30))

        assert [r.exercise_name for r in recent] == ["Squat", "Bench Press"]
        assert recent[1].weight == 90

    def test_recent_records_limited_to_five(self):
        log = TrainingLogBuilder()
        for i in range(7):
            log.workout(AS_OF - timedelta(days=i + 1), log.exercise(f"Exercise {i}"), reps=5, weight=10)

        recent = recent_records(log.context(as_of=AS_OF).all_sets, AS_OF - timedelta(days=30))

        assert len(recent) == 5
        assert recent[0].exercise_name == "Exercise 0"

    def test_improvements_need_both_periods(self):
        sets = self.build_log().context(as_of=AS_OF).all_sets

        improvements = top_improvements(sets, AS_OF - timedelta(days=30))

        # Squat did not improve; only bench qualifies
        assert len(improvements) == 1
        assert improvements[0].exercise_name == "Bench Press"
        assert improvements[0].improvement == pytest.approx(12.5)
        assert improvements[0].previous_max == 80
        assert improvements[0].recent_max == 90


class TestSummaries:

    def test_volume_summary(self):
        log = TrainingLogBuilder()
        bench = log.exercise("Bench Press", BodyPart.CHEST)
        log.workout(AS_OF - timedelta(days=2), bench, reps=10, weight=50, sets=3)  # 1500
        log.workout(AS_OF - timedelta(days=9), bench, reps=6, weight=50)          # 300

        summary = volume_summary(log.context(as_of=AS_OF).all_sets, AS_OF - timedelta(days=7))

        assert summary.total_volume == 1800
        assert summary.weekly_volume == 1500
        assert summary.average_reps == 9
        assert summary.average_sets == 2

    def test_empty_volume_summary(self):
        assert volume_summary([], AS_OF).total_volume == 0

    def test_most_performed_by_set_count(self):
        log = TrainingLogBuilder()
        log.workout(AS_OF - timedelta(days=1), log.exercise("Curl"), reps=10, weight=10, sets=2)
        log.workout(AS_OF - timedelta(days=2), log.exercise("Squat"), reps=5, weight=100, sets=5)

        ranked = most_performed(log.context(as_of=AS_OF).all_sets)

        assert [(e.exercise_name, e.count) for e in ranked] == [("Squat", 5), ("Curl", 2)]

    def test_muscle_group_balance_with_other(self):
        log = TrainingLogBuilder()
        log.workout(AS_OF - timedelta(days=1), log.exercise("Squat", muscle_group=MuscleGroup.LEGS), reps=5, weight=120)
        log.workout(AS_OF - timedelta(days=2), log.exercise("Farmer Carry"), reps=1, weight=200)

        balance = muscle_group_balance(log.context(as_of=AS_OF).all_sets)

        assert [(m.muscle_group, m.volume) for m in balance] == [("legs", 600), ("other", 200)]
        assert balance[0].percentage == pytest.approx(75)


class TestProgress:

    def test_weekly_progress_improvement(self):
        log = TrainingLogBuilder()
        squat = log.exercise("Squat", BodyPart.QUADS)
        log.workout(datetime(2024, 5, 28, 10, tzinfo=UTC), squat, reps=10, weight=100)  # 1000
        log.workout(datetime(2024, 6, 4, 10, tzinfo=UTC), squat, reps=10, weight=120)   # 1200

        progress = weekly_progress(log.context(as_of=AS_OF, lookback_weeks=12))

        assert [p.week_start for p in progress] == [date(2024, 5, 27), date(2024, 6, 3)]
        assert progress[0].improvement == 0
        assert progress[1].improvement == pytest.approx(20)
        assert progress[1].workouts == 1

    def test_exercise_progress_per_session(self):
        log = TrainingLogBuilder()
        squat = log.exercise("Squat", BodyPart.QUADS)
        plank = log.exercise("Plank", BodyPart.CORE)
        first = log.session(AS_OF - timedelta(days=8))
        log.log(first, squat, reps=5, weight=100)
        log.log(first, squat, reps=3, weight=110)
        second = log.session(AS_OF - timedelta(days=1))
        log.log(second, squat, reps=5, weight=105)
        log.log(second, plank, reps=1, weight=0)

        progress = exercise_progress(log.context(as_of=AS_OF).all_sets)

        assert [p.exercise_name for p in progress] == ["Squat", "Plank"]
        assert [(p.performed_at, p.max_weight) for p in progress[0].data_points] == [
            (AS_OF - timedelta(days=8), 110),
            (AS_OF - timedelta(days=1), 105),
        ]
        assert progress[1].data_points == []


class TestAnalyzeTrends:

    def test_no_history(self):
        assert analyze_trends(TrainingLogBuilder().context(as_of=AS_OF, lookback_weeks=12)) == TrainingTrends()

    def test_streaks_from_sessions(self):
        log = TrainingLogBuilder()
        squat = log.exercise("Squat", BodyPart.QUADS)
        for day in [1, 2, 3, 10, 11]:
            log.workout(AS_OF - timedelta(days=day), squat, reps=5, weight=100)

        trends = analyze_trends(log.context(as_of=AS_OF, lookback_weeks=12))

        assert trends.streaks.current_streak == 3
        assert trends.streaks.best_streak == 3
