"""
Integration tests for the Training Analytics API endpoints

The workout log store is replaced by a mocked repository and Redis by an
in-memory dict, so these run without Postgres or Redis.
"""
import pytest
from fastapi.testclient import TestClient
from datetime import datetime, timezone
from unittest.mock import MagicMock
from uuid import uuid4

from main import app
from core.cache import analytics_cache_key, input_fingerprint
from core.exceptions import SourceDataError
from routers import training_analytics
from routers.training_analytics import get_analytics_service
from services.goal_evaluator import Goal, GoalTimeframe, GoalType
from services.training_analytics import TrainingAnalyticsService
from services.training_log import BodyPart, SetSide
from fixtures.training_log_fixtures import TrainingLogBuilder

client = TestClient(app)

UTC = timezone.utc
AS_OF = "2024-06-12T12:00:00Z"
HIGH_WATER_MARK = datetime(2024, 6, 11, 10, 1, tzinfo=UTC)


@pytest.fixture
def log():
    builder = TrainingLogBuilder()
    squat = builder.exercise("Squat", BodyPart.QUADS)
    lunge = builder.exercise("Lunge", BodyPart.QUADS, unilateral=True)
    builder.workout(datetime(2024, 6, 4, 10, tzinfo=UTC), squat, reps=5, weight=100, sets=3)
    session = builder.workout(datetime(2024, 6, 11, 10, tzinfo=UTC), squat, reps=5, weight=110, sets=2)
    builder.log(session, lunge, reps=10, weight=30, side=SetSide.LEFT)
    builder.log(session, lunge, reps=10, weight=20, side=SetSide.RIGHT)
    return builder


@pytest.fixture
def repository(log):
    repo = MagicMock()
    repo.fetch_snapshot.return_value = log.snapshot()
    repo.fetch_active_goals.return_value = []
    repo.fetch_exercise_library.return_value = []
    repo.latest_set_timestamp.return_value = HIGH_WATER_MARK
    return repo


@pytest.fixture
def cache(monkeypatch):
    """In-memory stand-in for Redis."""
    store = {}
    monkeypatch.setattr(training_analytics, "get_cache", lambda key: store.get(key))

    def fake_set_cache(key, value, ttl=None):
        store[key] = value
        return True

    monkeypatch.setattr(training_analytics, "set_cache", fake_set_cache)
    return store


@pytest.fixture(autouse=True)
def service(repository, cache):
    service = TrainingAnalyticsService(repository=repository)
    app.dependency_overrides[get_analytics_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


class TestAnalyticsEndpoints:
    """GET /v1/analytics/{user_id}/..."""

    def test_weekly_load(self):
        response = client.get(
            f"/v1/analytics/{uuid4()}/weekly-load",
            params={"lookback_weeks": 4, "as_of": AS_OF},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["lookback_weeks"] == 4
        assert [w["week_start"] for w in data["weeks"]] == ["2024-06-03", "2024-06-10"]
        assert data["weeks"][0]["total_volume"] == 1500
        assert data["weeks"][1]["total_sets"] == 4
        assert data["weeks"][1]["week_end"] == "2024-06-16"

    def test_periodization(self):
        response = client.get(f"/v1/analytics/{uuid4()}/periodization", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        # Two near-identical weeks merge into one transition phase
        assert data["current_phase"]["phase_type"] == "transition"
        assert data["current_phase"]["week_start"] == "2024-06-03"
        assert data["current_phase"]["week_end"] == "2024-06-10"
        assert data["current_phase"]["week_count"] == 2
        assert data["recommended_next_phase"] == "accumulation"

    def test_body_parts(self):
        response = client.get(f"/v1/analytics/{uuid4()}/body-parts", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["body_parts"][0]["body_part"] == "quads"
        assert data["body_parts"][0]["volume"] == 3100
        assert len(data["progress_history"][0]["weekly_data"]) == 12

    def test_injury_risk(self):
        response = client.get(f"/v1/analytics/{uuid4()}/injury-risk", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["overall_risk"] in {"low", "moderate", "high"}
        assert 0 <= data["risk_score"] <= 100
        assert len(data["neglected_stabilizers"]) == 6

    def test_symmetry(self):
        response = client.get(f"/v1/analytics/{uuid4()}/symmetry", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["total_unilateral_exercises"] == 1
        worst = data["worst_imbalance"]
        assert worst["exercise_name"] == "Lunge"
        assert worst["stronger_side"] == "left"
        assert worst["risk_level"] == "high"
        assert worst["left"]["volume"] == 300

    def test_goals(self):
        response = client.get(f"/v1/analytics/{uuid4()}/goals", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["goals"] == []
        milestones = {m["id"]: m for m in data["milestones"]}
        assert milestones["first-workout"]["unlocked"] is True

    def test_trends(self):
        response = client.get(f"/v1/analytics/{uuid4()}/trends", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["personal_records"][0]["exercise_name"] == "Squat"
        assert data["personal_records"][0]["max_weight"] == 110
        assert data["streaks"]["current_streak"] == 1

    def test_general_stats(self):
        response = client.get(f"/v1/analytics/{uuid4()}/stats", params={"as_of": AS_OF})

        assert response.status_code == 200
        data = response.json()
        assert data["total_workouts"] == 2
        assert data["total_exercises"] == 4
        assert data["average_workout_duration"] == 60
        assert data["total_workout_time"]["all_time"] == 120
        assert data["most_frequent_days"][0] == {"label": "Tuesday", "count": 2}
        assert data["current_streak"] == 1

    def test_recommendations(self, repository, log):
        repository.fetch_exercise_library.return_value = [
            TrainingLogBuilder().exercise("Bench Press", BodyPart.CHEST),
        ] + log.library()

        response = client.get(f"/v1/analytics/{uuid4()}/recommendations", params={"as_of": AS_OF})

        assert response.status_code == 200
        recommendations = response.json()["recommendations"]
        assert len(recommendations) == 1
        assert recommendations[0]["body_part"] == "chest"
        assert recommendations[0]["priority"] == "high"
        assert recommendations[0]["exercises"] == ["Bench Press"]
        assert recommendations[0]["days_since_last_trained"] is None

    def test_insights(self):
        response = client.get(f"/v1/analytics/{uuid4()}/insights", params={"as_of": AS_OF})

        assert response.status_code == 200
        insights = response.json()["insights"]
        assert [i["insight_type"] for i in insights] == ["pr", "performing"]
        assert insights[0]["value"] == "110kg"
        assert insights[1]["value"] == "3.1k kg"
        assert insights[1]["severity"] == "positive"

    def test_invalid_user_id(self):
        response = client.get("/v1/analytics/not-a-uuid/weekly-load")
        assert response.status_code == 422


class TestGoalEvaluation:
    """POST /v1/analytics/{user_id}/goals/evaluate"""

    def test_evaluate_ad_hoc_goals(self, repository):
        body = {
            "goals": [
                {"goal_type": "volume", "timeframe": "weekly", "target_value": 2000, "body_part": "quads"},
                {"goal_type": "specific_exercises", "timeframe": "weekly", "target_exercises": ["Squat", "Lunge"]},
            ]
        }

        response = client.post(f"/v1/analytics/{uuid4()}/goals/evaluate", json=body, params={"as_of": AS_OF})

        assert response.status_code == 200
        goals = response.json()["goals"]
        assert goals[0]["current_value"] == 1600
        assert goals[0]["progress"] == 80
        assert goals[1]["is_achieved"] is True
        repository.fetch_active_goals.assert_not_called()

    def test_unknown_goal_type(self):
        body = {"goals": [{"goal_type": "distance", "timeframe": "weekly", "target_value": 5}]}

        response = client.post(f"/v1/analytics/{uuid4()}/goals/evaluate", json=body)

        assert response.status_code == 422
        assert response.json()["error_code"] == "VALIDATION_ERROR"


class TestErrors:

    def test_invalid_lookback(self, repository):
        response = client.get(f"/v1/analytics/{uuid4()}/injury-risk", params={"lookback_weeks": 0})

        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "VALIDATION_ERROR"
        assert "lookback_weeks" in data["detail"]
        repository.fetch_snapshot.assert_not_called()

    def test_store_unavailable(self, repository):
        repository.fetch_snapshot.side_effect = SourceDataError("sessions", "connection refused")

        response = client.get(f"/v1/analytics/{uuid4()}/trends")

        assert response.status_code == 503
        assert response.json()["error_code"] == "SOURCE_UNAVAILABLE"


class TestCaching:

    def test_second_request_is_served_from_cache(self, repository, cache):
        user_id = uuid4()
        params = {"lookback_weeks": 4, "as_of": AS_OF}

        first = client.get(f"/v1/analytics/{user_id}/weekly-load", params=params)
        second = client.get(f"/v1/analytics/{user_id}/weekly-load", params=params)

        assert first.json() == second.json()
        assert repository.fetch_snapshot.call_count == 1
        assert analytics_cache_key(
            "weekly_load", user_id, 4, HIGH_WATER_MARK,
            as_of=datetime(2024, 6, 12, 12, tzinfo=UTC),
        ) in cache

    def test_new_set_invalidates(self, repository):
        user_id = uuid4()
        params = {"lookback_weeks": 4, "as_of": AS_OF}

        client.get(f"/v1/analytics/{user_id}/weekly-load", params=params)
        repository.latest_set_timestamp.return_value = datetime(2024, 6, 12, 9, tzinfo=UTC)
        client.get(f"/v1/analytics/{user_id}/weekly-load", params=params)

        assert repository.fetch_snapshot.call_count == 2

    def test_lookback_is_part_of_the_key(self, repository):
        user_id = uuid4()

        client.get(f"/v1/analytics/{user_id}/weekly-load", params={"lookback_weeks": 4, "as_of": AS_OF})
        client.get(f"/v1/analytics/{user_id}/weekly-load", params={"lookback_weeks": 8, "as_of": AS_OF})

        assert repository.fetch_snapshot.call_count == 2

    def test_new_goal_invalidates(self, repository):
        user_id = uuid4()

        first = client.get(f"/v1/analytics/{user_id}/goals", params={"as_of": AS_OF})
        repository.fetch_active_goals.return_value = [
            Goal(GoalType.FREQUENCY, GoalTimeframe.WEEKLY, target_value=2),
        ]
        second = client.get(f"/v1/analytics/{user_id}/goals", params={"as_of": AS_OF})

        assert first.json()["goals"] == []
        assert len(second.json()["goals"]) == 1
        assert repository.fetch_snapshot.call_count == 2

    def test_unchanged_goals_are_served_from_cache(self, repository):
        user_id = uuid4()
        repository.fetch_active_goals.return_value = [
            Goal(GoalType.FREQUENCY, GoalTimeframe.WEEKLY, target_value=2),
        ]

        client.get(f"/v1/analytics/{user_id}/goals", params={"as_of": AS_OF})
        client.get(f"/v1/analytics/{user_id}/goals", params={"as_of": AS_OF})

        assert repository.fetch_snapshot.call_count == 1

    def test_library_change_invalidates_recommendations(self, repository):
        user_id = uuid4()

        client.get(f"/v1/analytics/{user_id}/recommendations", params={"as_of": AS_OF})
        repository.fetch_exercise_library.return_value = [
            TrainingLogBuilder().exercise("Bench Press", BodyPart.CHEST),
        ]
        response = client.get(f"/v1/analytics/{user_id}/recommendations", params={"as_of": AS_OF})

        assert repository.fetch_snapshot.call_count == 2
        assert response.json()["recommendations"][0]["body_part"] == "chest"


class TestCacheKey:

    def test_empty_log_key(self):
        key = analytics_cache_key("trends", "u1", 12, None)
        assert key == "analytics:trends:u1:hwm:none:weeks:12"

    def test_key_includes_high_water_mark(self):
        key = analytics_cache_key("trends", "u1", None, HIGH_WATER_MARK)
        assert key == "analytics:trends:u1:hwm:2024-06-11T10:01:00+00:00"

    def test_key_includes_input_fingerprint(self):
        goals = [Goal(GoalType.FREQUENCY, GoalTimeframe.WEEKLY, target_value=2)]

        key = analytics_cache_key("goals", "u1", None, None, inputs=input_fingerprint(goals))

        assert key == f"analytics:goals:u1:hwm:none:inputs:{input_fingerprint(goals)}"
        assert input_fingerprint(goals) == input_fingerprint(list(goals))
        assert input_fingerprint(goals) != input_fingerprint([])


def test_ping():
    response = client.get("/ping")
    assert response.status_code == 200
    assert response.json() == {"pong": True}


def test_health():
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
