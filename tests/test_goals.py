"""Tests for SMART goals, progress and milestones."""

from datetime import datetime, timedelta

from donext.models import Goal, utcnow
from donext.schemas import GoalCreateSchema
from donext.services.goals import validate_smart

FUTURE = "2099-01-01T00:00:00Z"


def create_goal(client, **fields):
    body = {"action": "create", "title": "Run a marathon", "timeBound": FUTURE, **fields}
    response = client.post("/api/goals", json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()["goal"]


def update_progress(client, goal_id, **fields):
    return client.post("/api/goals", json={"action": "updateProgress", "goalId": goal_id, **fields})


class TestSmartValidation:
    def test_valid_goal(self):
        data = GoalCreateSchema(title="Save", measurable="Money", target_value=1000, unit="EUR",
                                time_bound=datetime(2099, 1, 1))
        assert validate_smart(data, now=datetime(2024, 1, 1)) == []

    def test_measurable_needs_target_and_unit(self):
        data = GoalCreateSchema(title="Save", measurable="Money", time_bound=datetime(2099, 1, 1))
        assert validate_smart(data, now=datetime(2024, 1, 1)) == [
            "Measurable goals need a target value and unit",
        ]

    def test_deadline_required_and_in_future(self):
        assert validate_smart(GoalCreateSchema(title="x"), now=datetime(2024, 1, 1)) == ["Deadline is required"]
        past = GoalCreateSchema(title="x", time_bound=datetime(2023, 1, 1))
        assert validate_smart(past, now=datetime(2024, 1, 1)) == ["Deadline must be in the future"]

    def test_past_deadline_rejected_by_api(self, user_client):
        response = user_client.post("/api/goals", json={
            "action": "create", "title": "Too late", "timeBound": "2000-01-01T00:00:00Z",
        })
        assert response.status_code == 400
        assert response.get_json()["details"][0]["message"] == "Deadline must be in the future"


class TestGoalLifecycle:
    def test_create_fills_defaults(self, user_client):
        goal = create_goal(user_client, targetValue=42, unit="km", currentValue=21)
        assert goal["status"] == "Active"
        assert goal["specific"] == "Run a marathon"
        assert goal["relevant"] == "Personal development goal"
        assert goal["progress"] == 50

    def test_progress_reaching_target_completes_goal(self, user_client):
        goal = create_goal(user_client, targetValue=10, unit="books")
        body = update_progress(user_client, goal["id"], currentValue=12).get_json()["goal"]
        assert body["progress"] == 100
        assert body["status"] == "Completed"
        assert body["completedAt"] is not None

    def test_archived_goal_is_not_auto_completed(self, user_client):
        goal = create_goal(user_client, targetValue=10, unit="books")
        update_progress(user_client, goal["id"], status="Archived")
        body = update_progress(user_client, goal["id"], currentValue=10).get_json()["goal"]
        assert body["status"] == "Archived"

    def test_invalid_transition_is_conflict(self, user_client):
        goal = create_goal(user_client)
        update_progress(user_client, goal["id"], status="Archived")
        response = update_progress(user_client, goal["id"], status="Completed")
        assert response.status_code == 409
        assert response.get_json()["code"] == "INVALID_TRANSITION"

    def test_reopening_clears_completed_at(self, user_client):
        goal = create_goal(user_client)
        update_progress(user_client, goal["id"], status="Completed")
        body = update_progress(user_client, goal["id"], status="Active").get_json()["goal"]
        assert body["completedAt"] is None

    def test_foreign_goal_not_found(self, user_client, other_client):
        goal = create_goal(user_client)
        assert update_progress(other_client, goal["id"], currentValue=1).status_code == 404

    def test_unknown_action(self, user_client):
        assert user_client.post("/api/goals", json={"action": "explode"}).status_code == 400


class TestMilestones:
    def _milestone(self, client, goal_id, title, **fields):
        response = client.post("/api/goals", json={
            "action": "createMilestone", "goalId": goal_id, "title": title, "targetValue": 10, **fields,
        })
        assert response.status_code == 201
        return response.get_json()["milestone"]

    def test_goal_progress_follows_milestones(self, user_client):
        goal = create_goal(user_client)
        first = self._milestone(user_client, goal["id"], "Half")
        second = self._milestone(user_client, goal["id"], "Full")

        body = user_client.post("/api/goals", json={
            "action": "updateMilestone", "milestoneId": first["id"], "currentValue": 10,
        }).get_json()
        assert body["milestone"]["completed"] is True
        assert body["goal"]["progress"] == 50
        assert body["goal"]["status"] == "Active"

        body = user_client.post("/api/goals", json={
            "action": "updateMilestone", "milestoneId": second["id"], "completed": True,
        }).get_json()
        assert body["goal"]["progress"] == 100
        assert body["goal"]["status"] == "Completed"

    def test_milestone_on_foreign_goal(self, user_client, other_client):
        goal = create_goal(user_client)
        response = other_client.post("/api/goals", json={
            "action": "createMilestone", "goalId": goal["id"], "title": "Sneaky", "targetValue": 1,
        })
        assert response.status_code == 404


class TestGoalQueries:
    def test_overdue_upcoming_and_analytics(self, user_client, session):
        overdue = create_goal(user_client, title="Overdue", category="Health")
        soon = create_goal(user_client, title="Soon", category="Health")
        create_goal(user_client, title="Later", priority="High")

        session.get(Goal, overdue["id"]).deadline = utcnow() - timedelta(days=2)
        session.get(Goal, soon["id"]).deadline = utcnow() + timedelta(days=3)
        session.commit()

        rows = user_client.get("/api/goals?type=overdue").get_json()["goals"]
        assert [g["title"] for g in rows] == ["Overdue"]

        rows = user_client.get("/api/goals?type=upcoming").get_json()["goals"]
        assert [g["title"] for g in rows] == ["Soon"]

        analytics = user_client.get("/api/goals?type=analytics").get_json()["analytics"]
        assert analytics["totalGoals"] == 3
        assert analytics["overdueGoals"] == 1
        assert analytics["categories"] == {"Health": 2, "Uncategorized": 1}

    def test_filter_by_status(self, user_client):
        goal = create_goal(user_client, title="Done")
        create_goal(user_client, title="Open")
        update_progress(user_client, goal["id"], status="Completed")

        rows = user_client.get("/api/goals?status=Completed").get_json()["goals"]
        assert [g["title"] for g in rows] == ["Done"]
        assert user_client.get("/api/goals?status=Bogus").status_code == 400
