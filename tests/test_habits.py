"""Tests for habits, completions, streaks and the daily routine."""

from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from donext.models import HabitCompletion, today
from donext.services.habits import current_streak, longest_streak, toggle_habit
from tests.conftest import create_habit


class TestStreaks:
    def test_current_streak_counts_back_from_today(self):
        as_of = date(2024, 3, 10)
        days = {date(2024, 3, 10), date(2024, 3, 9), date(2024, 3, 8), date(2024, 3, 5)}
        assert current_streak(days, as_of) == 3

    def test_current_streak_is_zero_when_today_missing(self):
        as_of = date(2024, 3, 10)
        assert current_streak({date(2024, 3, 9), date(2024, 3, 8)}, as_of) == 0

    def test_longest_streak(self):
        days = {date(2024, 1, d) for d in (1, 2, 3, 7, 8, 9, 10, 20)}
        assert longest_streak(days) == 4

    def test_longest_streak_empty(self):
        assert longest_streak(set()) == 0


class TestHabitCrud:
    def test_create_with_defaults(self, user_client):
        habit = create_habit(user_client)
        assert habit["icon"] == "🧘"
        assert habit["frequency"] == "Daily"
        assert habit["goalValue"] == 1
        assert habit["goalUnit"] == "times"
        assert habit["reminderTime"] == "08:00"

    def test_missing_category_rejected(self, user_client):
        assert user_client.post("/api/habits", json={"name": "Run"}).status_code == 400

    def test_update_and_delete(self, user_client):
        habit = create_habit(user_client)
        user_client.post(f"/api/habits/toggle/{habit['id']}")

        response = user_client.put(f"/api/habits/{habit['id']}", json={"name": "Read more", "goalValue": 3})
        assert response.get_json()["habit"]["name"] == "Read more"
        assert response.get_json()["habit"]["goalValue"] == 3

        assert user_client.delete(f"/api/habits/{habit['id']}").status_code == 200
        assert user_client.get("/api/habits").get_json()["habits"] == []

    def test_null_category_rejected(self, user_client):
        habit = create_habit(user_client)
        response = user_client.put(f"/api/habits/{habit['id']}", json={"category": None})
        assert response.status_code == 400
        assert "category cannot be null" in response.get_json()["details"][0]["message"]
        assert user_client.get("/api/habits").get_json()["habits"][0]["category"] == "Study"

    def test_foreign_habit_not_found(self, user_client, other_client):
        habit = create_habit(user_client)
        assert other_client.post(f"/api/habits/toggle/{habit['id']}").status_code == 404
        assert other_client.delete(f"/api/habits/{habit['id']}").status_code == 404


class TestHabitToggle:
    def test_toggle_alternates(self, user_client):
        habit = create_habit(user_client)
        url = f"/api/habits/toggle/{habit['id']}"

        assert user_client.post(url).get_json()["completed"] is True
        assert user_client.post(url).get_json()["completed"] is False
        assert user_client.post(url).get_json()["completed"] is True

        listed = user_client.get("/api/habits").get_json()["habits"][0]
        assert listed["completedToday"] is True
        assert listed["streak"] == 1

    def test_toggle_for_specific_date(self, user_client):
        habit = create_habit(user_client)
        yesterday = (today() - timedelta(days=1)).isoformat()

        user_client.post(f"/api/habits/toggle/{habit['id']}", json={"date": yesterday})
        user_client.post(f"/api/habits/toggle/{habit['id']}")

        listed = user_client.get("/api/habits").get_json()["habits"][0]
        assert listed["streak"] == 2
        assert len(listed["completions"]) == 2

    def test_one_completion_per_day(self, user_client, session):
        habit = create_habit(user_client)
        user_client.post(f"/api/habits/toggle/{habit['id']}")

        session.add(HabitCompletion(habit_id=habit["id"], date=today()))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()

    def test_toggle_survives_concurrent_insert(self):
        session = MagicMock()
        session.query.return_value.filter.return_value.first.return_value = MagicMock(id=5)
        session.query.return_value.filter_by.return_value.first.return_value = None
        session.commit.side_effect = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

        assert toggle_habit(session, 1, 5, date(2024, 1, 1)) is True
        session.rollback.assert_called_once()


class TestRoutine:
    def _create_step(self, client, **fields):
        body = {"time": "07:00", "task": "Stretch", "icon": "🤸", "category": "Morning", **fields}
        response = client.post("/api/routine", json=body)
        assert response.status_code == 201
        return response.get_json()["step"]

    def test_steps_listed_by_time(self, user_client):
        self._create_step(user_client, time="21:00", task="Journal")
        self._create_step(user_client, time="06:30", task="Wake up")
        steps = user_client.get("/api/routine").get_json()["steps"]
        assert [s["task"] for s in steps] == ["Wake up", "Journal"]

    def test_toggle_step(self, user_client):
        step = self._create_step(user_client)
        assert user_client.post(f"/api/routine/toggle/{step['id']}").get_json()["completed"] is True
        assert user_client.get("/api/routine").get_json()["steps"][0]["completed"] is True

        assert user_client.post(f"/api/routine/toggle/{step['id']}").get_json()["completed"] is False
        assert user_client.get("/api/routine").get_json()["steps"][0]["completed"] is False

    def test_update_and_delete_step(self, user_client):
        step = self._create_step(user_client)
        updated = user_client.put(f"/api/routine/{step['id']}", json={"active": False}).get_json()["step"]
        assert updated["active"] is False
        assert user_client.put(f"/api/routine/{step['id']}", json={"time": None}).status_code == 400

        user_client.post(f"/api/routine/toggle/{step['id']}")
        assert user_client.delete(f"/api/routine/{step['id']}").status_code == 200
        assert user_client.get("/api/routine").get_json()["steps"] == []

    def test_foreign_step_not_found(self, user_client, other_client):
        step = self._create_step(user_client)
        assert other_client.post(f"/api/routine/toggle/{step['id']}").status_code == 404
