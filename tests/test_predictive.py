"""Tests for forecasting helpers, trend analysis and completion probabilities."""

from datetime import date, datetime, timedelta
from types import SimpleNamespace

import pytest

from donext.models import today
from donext.services.predictive import (
    HISTORY_WEEKS,
    confidence_band,
    detect_anomalies,
    exponential_smoothing,
    habit_adherence,
    linear_trend,
    moving_average,
    performance_insights,
    standard_deviation,
    task_completion_probability,
)
from tests.conftest import create_habit, create_task


class TestStatistics:
    def test_linear_trend(self):
        assert linear_trend([1, 2, 3, 4]) == pytest.approx(1.0)
        assert linear_trend([4, 4, 4]) == 0
        assert linear_trend([5]) == 0

    def test_exponential_smoothing(self):
        assert exponential_smoothing([10, 20]) == pytest.approx(13.0)
        assert exponential_smoothing([]) == 0

    def test_moving_average_uses_last_window(self):
        assert moving_average([1, 2, 3, 4, 5, 6]) == pytest.approx(4.5)
        assert moving_average([2]) == 2

    def test_standard_deviation(self):
        assert standard_deviation([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
        assert standard_deviation([]) == 10

    def test_confidence_band_is_clamped(self):
        assert confidence_band(95, [0, 10]) == {"lower": 85, "upper": 100}
        assert confidence_band(5, [0, 10]) == {"lower": 0, "upper": 15}


def metric(day, score):
    return {"date": f"2024-01-{day:02d}", "productivityScore": score}


class TestAnomalies:
    def test_spike_is_high_severity_peak(self):
        metrics = [metric(d, 50) for d in range(1, 21)] + [metric(21, 100)]
        anomalies = detect_anomalies(metrics)
        assert anomalies == [{"date": "2024-01-21", "type": "peak", "severity": "high", "value": 100}]

    def test_flat_series_has_no_anomalies(self):
        assert detect_anomalies([metric(d, 40) for d in range(1, 10)]) == []
        assert detect_anomalies([]) == []

    def test_insights(self):
        insights = performance_insights(
            {"productivity": 0.5, "habitCompletion": 0.1},
            [{"type": "peak"}],
        )
        assert insights[0].startswith("Your productivity is trending upward")
        assert "1 peak performance day(s)" in insights[1]
        assert insights[2] == "Your habit consistency is improving - great progress!"


class TestProbabilities:
    def test_habit_adherence_without_history(self):
        assert habit_adherence(set(), date(2024, 6, 30)) == 0.4

    def test_habit_adherence_full_month(self):
        as_of = date(2024, 6, 30)
        days = {as_of - timedelta(days=i) for i in range(30)}
        assert habit_adherence(days, as_of) == 1

    def test_task_probability_adjustments(self):
        now = datetime(2024, 6, 1)
        urgent = SimpleNamespace(priority="High", deadline=now + timedelta(days=1))
        assert task_completion_probability(urgent, 0.6, now) == 0.85

        someday = SimpleNamespace(priority="Low", deadline=now + timedelta(days=30))
        assert task_completion_probability(someday, 0.6, now) == 0.4

        assert task_completion_probability(SimpleNamespace(priority="High", deadline=None), 0.95, now) == 1


class TestPredictiveApi:
    def test_forecast_shape(self, user_client):
        task = create_task(user_client)
        user_client.post(f"/api/tasks/toggle/{task['id']}")

        forecast = user_client.get("/api/analytics/predictive?days=14").get_json()["forecast"]
        assert forecast["forecastPeriod"] == 14
        weekly = forecast["historicalPatterns"]["weeklyData"]
        assert len(weekly["taskCompletions"]) == HISTORY_WEEKS
        assert weekly["taskCompletions"][-1] == 1
        assert set(forecast["forecasts"]) == {"taskCompletion", "habitCompletion", "productivityScore", "goalProgress"}
        for band in forecast["confidence"].values():
            assert 0 <= band["lower"] <= band["upper"] <= 100

    def test_trends_for_week(self, user_client):
        trends = user_client.get("/api/analytics/predictive?type=trends&period=week").get_json()["trends"]
        assert trends["period"] == "week"
        assert len(trends["dailyMetrics"]) == 7
        assert trends["dailyMetrics"][-1]["date"] == today().isoformat()

    def test_invalid_parameters(self, user_client):
        assert user_client.get("/api/analytics/predictive?type=trends&period=decade").status_code == 400
        assert user_client.get("/api/analytics/predictive?days=0").status_code == 400
        assert user_client.get("/api/analytics/predictive?type=tarot").status_code == 400

    def test_new_habit_is_flagged(self, user_client):
        create_habit(user_client)
        body = user_client.get("/api/analytics/predictive?type=habitPredictions").get_json()
        assert body["predictions"][0]["adherenceProbability"] == 0.4
        assert body["predictions"][0]["riskLevel"] == "medium"
        assert len(body["highRiskHabits"]) == 1

    def test_predict_task_completion(self, user_client, other_client):
        mine = create_task(user_client, priority="High")
        theirs = create_task(other_client)

        response = user_client.post("/api/analytics/predictive", json={
            "action": "predictTaskCompletion", "taskIds": [mine["id"], theirs["id"]],
        })
        predictions = response.get_json()["predictions"]
        assert predictions[0]["baseRate"] == 0
        assert predictions[0]["completionProbability"] == 0.1
        assert predictions[1] == {"taskId": theirs["id"], "error": "Task not found"}

    def test_predict_requires_task_ids(self, user_client):
        response = user_client.post("/api/analytics/predictive", json={"action": "predictTaskCompletion", "taskIds": []})
        assert response.status_code == 400
