"""Tests for calendar providers and sync, with the provider HTTP calls mocked."""

from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from donext.errors import ExternalServiceError
from donext.models import CalendarConnection, utcnow
from donext.services.calendar_providers import (
    AppleCalendarProvider,
    GoogleCalendarProvider,
    OutlookCalendarProvider,
)
from tests.conftest import create_task

REQUEST = "donext.services.calendar_providers.requests.request"

ICS = (
    b"BEGIN:VCALENDAR\r\n"
    b"VERSION:2.0\r\n"
    b"PRODID:-//Test//EN\r\n"
    b"BEGIN:VEVENT\r\n"
    b"UID:evt-1\r\n"
    b"SUMMARY:Dentist\r\n"
    b"DTSTART:20240601T090000Z\r\n"
    b"DTEND:20240601T100000Z\r\n"
    b"LOCATION:Main St\r\n"
    b"END:VEVENT\r\n"
    b"BEGIN:VEVENT\r\n"
    b"UID:evt-2\r\n"
    b"SUMMARY:Holiday\r\n"
    b"DTSTART;VALUE=DATE:20240602\r\n"
    b"DTEND;VALUE=DATE:20240603\r\n"
    b"END:VEVENT\r\n"
    b"END:VCALENDAR\r\n"
)


def fake_response(payload=None, content=b"", status=200):
    response = MagicMock()
    response.ok = status < 400
    response.status_code = status
    response.reason = "OK" if status < 400 else "Unauthorized"
    response.json.return_value = payload if payload is not None else {}
    response.content = content
    return response


def google_api(events):
    """Route mocked ``requests.request`` calls like the Google endpoints would."""
    def handler(method, url, **kwargs):
        if url.endswith("/token"):
            return fake_response({"access_token": "tok", "refresh_token": "ref", "expires_in": 3600})
        if url.endswith("/calendars/primary"):
            return fake_response({"id": "alice@gmail.com"})
        if url.endswith("/events") and method == "GET":
            return fake_response({"items": events})
        if url.endswith("/events") and method == "POST":
            return fake_response({"id": "remote-1"})
        return fake_response()
    return handler


STANDUP = {
    "id": "g1",
    "summary": "Standup",
    "start": {"dateTime": "2024-06-01T09:00:00+02:00"},
    "end": {"dateTime": "2024-06-01T09:15:00+02:00"},
}


def connect(client, provider="google"):
    response = client.post("/api/calendar", json={"action": "connect", "provider": provider, "authCode": "code-123"})
    return response


class TestProviders:
    @patch(REQUEST)
    def test_google_events_normalized_to_utc(self, mock_request):
        mock_request.return_value = fake_response({"items": [
            STANDUP,
            {"id": "g2", "start": {"date": "2024-06-02"}, "end": {"date": "2024-06-03"}},
        ]})

        events = GoogleCalendarProvider().fetch_events("primary", "tok")
        assert events[0]["start"] == datetime(2024, 6, 1, 7, 0)
        assert events[0]["is_all_day"] is False
        assert events[1]["title"] == "(no title)"
        assert events[1]["is_all_day"] is True

        headers = mock_request.call_args.kwargs["headers"]
        assert headers["Authorization"] == "Bearer tok"

    @patch(REQUEST)
    def test_outlook_uses_graph_fields(self, mock_request):
        mock_request.return_value = fake_response({"value": [{
            "id": "o1",
            "subject": "Review",
            "bodyPreview": "Quarterly",
            "location": {"displayName": "Room 4"},
            "start": {"dateTime": "2024-06-01T10:00:00.0000000"},
            "end": {"dateTime": "2024-06-01T11:00:00.0000000"},
            "isAllDay": False,
        }]})

        events = OutlookCalendarProvider().fetch_events("calendar", "tok")
        assert events[0]["title"] == "Review"
        assert events[0]["location"] == "Room 4"
        assert events[0]["end"] == datetime(2024, 6, 1, 11, 0)

    @patch(REQUEST)
    def test_apple_parses_ics(self, mock_request):
        mock_request.return_value = fake_response(content=ICS)

        events = AppleCalendarProvider().fetch_events("home", "tok")
        by_id = {e["external_id"]: e for e in events}
        assert by_id["evt-1"]["title"] == "Dentist"
        assert by_id["evt-1"]["start"] == datetime(2024, 6, 1, 9, 0)
        assert by_id["evt-1"]["location"] == "Main St"
        assert by_id["evt-2"]["is_all_day"] is True
        assert by_id["evt-2"]["start"] == datetime(2024, 6, 2)

    @patch(REQUEST)
    def test_apple_push_sends_ics(self, mock_request):
        mock_request.return_value = fake_response()
        event = SimpleNamespace(
            id=7, title="Dentist", description=None, location="Main St",
            start=datetime(2024, 6, 1, 9), end=datetime(2024, 6, 1, 10), attendees=["bob@example.com"],
        )

        uid = AppleCalendarProvider().push_event("home", "tok", event)
        assert uid == "donext-7@donext"
        method, url = mock_request.call_args.args
        assert method == "PUT"
        assert url.endswith("/home/calendar.ics/donext-7@donext")
        body = mock_request.call_args.kwargs["data"]
        assert b"SUMMARY:Dentist" in body
        assert b"mailto:bob@example.com" in body

    @patch(REQUEST)
    def test_http_errors_become_external_service_errors(self, mock_request):
        mock_request.return_value = fake_response(status=401)
        with pytest.raises(ExternalServiceError):
            GoogleCalendarProvider().fetch_events("primary", "tok")

        mock_request.side_effect = requests.ConnectionError("down")
        with pytest.raises(ExternalServiceError):
            GoogleCalendarProvider().fetch_events("primary", "tok")

    @patch(REQUEST)
    def test_primary_calendar_falls_back_to_default(self, mock_request):
        mock_request.return_value = fake_response(status=500)
        assert GoogleCalendarProvider().primary_calendar_id("tok") == "primary"


class TestConnectAndSync:
    @patch(REQUEST)
    def test_connect_runs_initial_sync(self, mock_request, user_client):
        mock_request.side_effect = google_api([STANDUP])

        response = connect(user_client)
        assert response.status_code == 201
        connection = response.get_json()["connection"]
        assert connection["calendarId"] == "alice@gmail.com"
        assert connection["lastSync"] is not None
        assert "accessToken" not in connection

        events = user_client.get("/api/calendar?type=events").get_json()["events"]
        assert [e["title"] for e in events] == ["Standup"]
        assert events[0]["externalId"] == "g1"

    @patch(REQUEST)
    def test_connect_survives_failed_initial_sync(self, mock_request, user_client):
        handler = google_api([])

        def failing_events(method, url, **kwargs):
            if url.endswith("/events"):
                return fake_response(status=503)
            return handler(method, url, **kwargs)

        mock_request.side_effect = failing_events
        response = connect(user_client)
        assert response.status_code == 201
        assert response.get_json()["connection"]["lastSync"] is None

    def test_unsupported_provider(self, user_client):
        assert connect(user_client, provider="yahoo").status_code == 400

    @patch(REQUEST)
    def test_resync_updates_instead_of_duplicating(self, mock_request, user_client):
        mock_request.side_effect = google_api([STANDUP])
        connection_id = connect(user_client).get_json()["connection"]["id"]

        mock_request.side_effect = google_api([dict(STANDUP, summary="Standup (moved)")])
        result = user_client.get(f"/api/calendar?type=sync&connectionId={connection_id}").get_json()["sync"]
        assert result["created"] == 0
        assert result["updated"] == 1

        events = user_client.get("/api/calendar?type=events").get_json()["events"]
        assert [e["title"] for e in events] == ["Standup (moved)"]

    @patch(REQUEST)
    def test_disabled_connection_is_skipped(self, mock_request, user_client):
        mock_request.side_effect = google_api([])
        connection_id = connect(user_client).get_json()["connection"]["id"]

        body = user_client.patch("/api/calendar", json={"connectionId": connection_id, "enabled": False}).get_json()
        assert body["connection"]["syncEnabled"] is False

        calls = mock_request.call_count
        result = user_client.get(f"/api/calendar?type=sync&connectionId={connection_id}").get_json()["sync"]
        assert result["skipped"] is True
        assert mock_request.call_count == calls

    @patch(REQUEST)
    def test_expired_token_fails_sync(self, mock_request, user_client, session):
        mock_request.side_effect = google_api([])
        connection_id = connect(user_client).get_json()["connection"]["id"]
        session.get(CalendarConnection, connection_id).token_expiry = utcnow() - timedelta(minutes=5)
        session.commit()

        response = user_client.get(f"/api/calendar?type=sync&connectionId={connection_id}")
        assert response.status_code == 502
        assert response.get_json()["code"] == "EXTERNAL_SERVICE_ERROR"

        results = user_client.post("/api/calendar", json={"action": "syncAll"}).get_json()["results"]
        assert "expired" in results[0]["error"]

    @patch(REQUEST)
    def test_foreign_connection_not_found(self, mock_request, user_client, other_client):
        mock_request.side_effect = google_api([])
        connection_id = connect(user_client).get_json()["connection"]["id"]
        assert other_client.get(f"/api/calendar?type=sync&connectionId={connection_id}").status_code == 404
        assert other_client.delete(f"/api/calendar?connectionId={connection_id}").status_code == 404


class TestEvents:
    def _event(self, client, **fields):
        body = {
            "action": "createEvent", "title": "Focus block",
            "start": "2024-06-01T09:00:00Z", "end": "2024-06-01T10:00:00Z", **fields,
        }
        return client.post("/api/calendar", json=body)

    def test_local_event(self, user_client):
        task = create_task(user_client)
        response = self._event(user_client, taskId=task["id"], eventType="Task", reminders=[10])
        assert response.status_code == 201
        event = response.get_json()["event"]
        assert event["taskId"] == task["id"]
        assert event["externalId"] is None

    def test_end_must_follow_start(self, user_client):
        response = self._event(user_client, end="2024-06-01T08:00:00Z")
        assert response.status_code == 400

    def test_task_must_be_owned(self, user_client, other_client):
        task = create_task(other_client)
        assert self._event(user_client, taskId=task["id"]).status_code == 404

    def test_events_filtered_by_range(self, user_client):
        self._event(user_client, title="June")
        self._event(user_client, title="July", start="2024-07-01T09:00:00Z", end="2024-07-01T10:00:00Z")
        rows = user_client.get(
            "/api/calendar?type=events&startDate=2024-06-15T00:00:00Z&endDate=2024-07-15T00:00:00Z"
        ).get_json()["events"]
        assert [e["title"] for e in rows] == ["July"]

    @patch(REQUEST)
    def test_connected_event_is_pushed_and_deleted_remotely(self, mock_request, user_client):
        mock_request.side_effect = google_api([])
        connection_id = connect(user_client).get_json()["connection"]["id"]

        event = self._event(user_client, connectionId=connection_id).get_json()["event"]
        assert event["externalId"] == "remote-1"

        assert user_client.delete(f"/api/calendar?eventId={event['id']}").status_code == 200
        method, url = mock_request.call_args.args
        assert method == "DELETE"
        assert url.endswith("/events/remote-1")

    def test_update_event(self, user_client):
        event = self._event(user_client).get_json()["event"]
        body = user_client.post("/api/calendar", json={
            "action": "updateEvent", "eventId": event["id"], "title": "Deep work", "end": "2024-06-01T11:00:00Z",
        }).get_json()["event"]
        assert body["title"] == "Deep work"
        assert body["end"] == "2024-06-01T11:00:00"

        response = user_client.post("/api/calendar", json={
            "action": "updateEvent", "eventId": event["id"], "end": "2024-06-01T08:00:00Z",
        })
        assert response.status_code == 400

    def test_update_event_rejects_null_times(self, user_client):
        event = self._event(user_client).get_json()["event"]
        for field in ("start", "end", "title"):
            response = user_client.post("/api/calendar", json={
                "action": "updateEvent", "eventId": event["id"], field: None,
            })
            assert response.status_code == 400

        events = user_client.get("/api/calendar?type=events").get_json()["events"]
        assert events[0]["start"] == "2024-06-01T09:00:00"

    def test_disconnect_removes_events(self, user_client):
        with patch(REQUEST, side_effect=google_api([STANDUP])):
            connection_id = connect(user_client).get_json()["connection"]["id"]

        assert user_client.delete(f"/api/calendar?connectionId={connection_id}").status_code == 200
        assert user_client.get("/api/calendar?type=events").get_json()["events"] == []
        assert user_client.get("/api/calendar").get_json()["connections"] == []
