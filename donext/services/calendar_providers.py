"""Calendar provider adapters for Google Calendar, Microsoft Graph and iCloud.

Each adapter speaks one provider's HTTP API through ``requests`` and turns
its events into plain dicts. ``calendar_sync`` only ever talks to the
``CalendarProvider`` interface and picks the adapter via ``get_provider``.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timedelta, timezone

import requests
from flask import current_app
from icalendar import Calendar as iCalendar
from icalendar import Event as iEvent
from icalendar import vCalAddress

from donext.errors import ExternalServiceError, ValidationError
from donext.models import utcnow

logger = logging.getLogger(__name__)


def _to_naive_utc(value) -> datetime | None:
    """Accept ISO strings, dates or datetimes and return naive UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        # Graph sends seven fractional digits; fromisoformat takes at most six
        value = re.sub(r"(\.\d{6})\d+", r"\1", value.replace("Z", "+00:00"))
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


class CalendarProvider:
    """Interface every provider adapter implements."""

    name = ""
    token_url = ""
    token_scope: str | None = None
    default_calendar_id = ""

    def __init__(self, client_id: str = "", client_secret: str = "", redirect_uri: str = "", timeout: int = 15):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    # --- HTTP helpers ---

    def _request(self, method: str, url: str, access_token: str | None = None, **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        try:
            response = requests.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ExternalServiceError(f"{self.name} request failed: {e}") from e
        if not response.ok:
            raise ExternalServiceError(f"{self.name} API error: {response.status_code} {response.reason}")
        return response

    # --- OAuth ---

    def exchange_code(self, auth_code: str) -> dict:
        data = {
            "code": auth_code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        if self.token_scope:
            data["scope"] = self.token_scope
        payload = self._request("POST", self.token_url, data=data).json()
        expires_in = int(payload.get("expires_in", 3600))
        return {
            "access_token": payload["access_token"],
            "refresh_token": payload.get("refresh_token"),
            "token_expiry": utcnow() + timedelta(seconds=expires_in),
        }

    def primary_calendar_id(self, access_token: str) -> str:
        try:
            return self._lookup_primary_calendar(access_token) or self.default_calendar_id
        except ExternalServiceError as e:
            logger.warning("Primary calendar lookup failed for %s: %s", self.name, e)
            return self.default_calendar_id

    def _lookup_primary_calendar(self, access_token: str) -> str | None:
        raise NotImplementedError

    # --- events ---

    def fetch_events(self, calendar_id: str, access_token: str) -> list[dict]:
        raise NotImplementedError

    def push_event(self, calendar_id: str, access_token: str, event) -> str | None:
        """Create ``event`` remotely and return the provider's id for it."""
        raise NotImplementedError

    def delete_event(self, calendar_id: str, access_token: str, external_id: str) -> None:
        raise NotImplementedError


class GoogleCalendarProvider(CalendarProvider):
    name = "google"
    token_url = "https://oauth2.googleapis.com/token"
    default_calendar_id = "primary"
    api = "https://www.googleapis.com/calendar/v3"

    def _lookup_primary_calendar(self, access_token):
        return self._request("GET", f"{self.api}/calendars/primary", access_token).json().get("id")

    def fetch_events(self, calendar_id, access_token):
        items = self._request(
            "GET", f"{self.api}/calendars/{calendar_id}/events", access_token,
            params={"maxResults": 100, "singleEvents": "true"},
        ).json().get("items", [])

        events = []
        for item in items:
            start = item.get("start", {})
            end = item.get("end", {})
            events.append({
                "external_id": item["id"],
                "title": item.get("summary") or "(no title)",
                "description": item.get("description"),
                "location": item.get("location"),
                "start": _to_naive_utc(start.get("dateTime") or start.get("date")),
                "end": _to_naive_utc(end.get("dateTime") or end.get("date")),
                "is_all_day": "date" in start and "dateTime" not in start,
            })
        return events

    def push_event(self, calendar_id, access_token, event):
        body = {
            "summary": event.title,
            "description": event.description,
            "location": event.location,
            "start": {"dateTime": event.start.isoformat() + "Z", "timeZone": "UTC"},
            "end": {"dateTime": event.end.isoformat() + "Z", "timeZone": "UTC"},
            "attendees": [{"email": email} for email in event.attendees or []],
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "popup", "minutes": m} for m in event.reminders or []],
            },
        }
        return self._request("POST", f"{self.api}/calendars/{calendar_id}/events", access_token, json=body).json().get("id")

    def delete_event(self, calendar_id, access_token, external_id):
        self._request("DELETE", f"{self.api}/calendars/{calendar_id}/events/{external_id}", access_token)


class OutlookCalendarProvider(CalendarProvider):
    name = "outlook"
    token_url = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    token_scope = "Calendars.ReadWrite offline_access"
    default_calendar_id = "calendar"
    api = "https://graph.microsoft.com/v1.0"

    def _lookup_primary_calendar(self, access_token):
        calendars = self._request(
            "GET", f"{self.api}/me/calendars", access_token,
            params={"$filter": "isDefaultCalendar eq true"},
        ).json().get("value", [])
        return calendars[0]["id"] if calendars else None

    def fetch_events(self, calendar_id, access_token):
        items = self._request(
            "GET", f"{self.api}/me/calendars/{calendar_id}/events", access_token,
            params={"$top": 100},
        ).json().get("value", [])

        return [
            {
                "external_id": item["id"],
                "title": item.get("subject") or "(no title)",
                "description": item.get("bodyPreview"),
                "location": (item.get("location") or {}).get("displayName"),
                "start": _to_naive_utc((item.get("start") or {}).get("dateTime")),
                "end": _to_naive_utc((item.get("end") or {}).get("dateTime")),
                "is_all_day": bool(item.get("isAllDay")),
            }
            for item in items
        ]

    def push_event(self, calendar_id, access_token, event):
        body = {
            "subject": event.title,
            "body": {"contentType": "HTML", "content": event.description or ""},
            "start": {"dateTime": event.start.isoformat(), "timeZone": "UTC"},
            "end": {"dateTime": event.end.isoformat(), "timeZone": "UTC"},
            "attendees": [
                {"emailAddress": {"address": email}, "type": "required"}
                for email in event.attendees or []
            ],
            "isAllDay": bool(event.is_all_day),
            "isReminderOn": bool(event.reminders),
            "reminderMinutesBeforeStart": (event.reminders or [15])[0],
            "categories": [event.event_type or "Event"],
        }
        if event.location:
            body["location"] = {"displayName": event.location}
        return self._request(
            "POST", f"{self.api}/me/calendars/{calendar_id}/events", access_token, json=body
        ).json().get("id")

    def delete_event(self, calendar_id, access_token, external_id):
        self._request("DELETE", f"{self.api}/me/calendars/{calendar_id}/events/{external_id}", access_token)


class AppleCalendarProvider(CalendarProvider):
    name = "apple"
    token_url = "https://appleid.apple.com/auth/oauth2/token"
    default_calendar_id = "icloud-calendar"
    api = "https://caldav.icloud.com"

    def _lookup_primary_calendar(self, access_token):
        # iCloud exposes no default-calendar lookup; the well-known probe only checks the token
        self._request("PROPFIND", f"{self.api}/.well-known/caldav", access_token, headers={"Depth": "0"})
        return None

    def _calendar_url(self, calendar_id):
        return f"{self.api}/calendars/user/{calendar_id}/calendar.ics"

    def fetch_events(self, calendar_id, access_token):
        response = self._request("GET", self._calendar_url(calendar_id), access_token)
        try:
            cal = iCalendar.from_ical(response.content)
        except ValueError as e:
            raise ExternalServiceError(f"apple returned an unreadable calendar: {e}") from e

        events = []
        for component in cal.walk("VEVENT"):
            start = component.decoded("DTSTART", None)
            end = component.decoded("DTEND", None) or start
            events.append({
                "external_id": str(component.get("UID")),
                "title": str(component.get("SUMMARY", "(no title)")),
                "description": str(component["DESCRIPTION"]) if "DESCRIPTION" in component else None,
                "location": str(component["LOCATION"]) if "LOCATION" in component else None,
                "start": _to_naive_utc(start),
                "end": _to_naive_utc(end),
                "is_all_day": isinstance(start, date) and not isinstance(start, datetime),
            })
        return events

    def push_event(self, calendar_id, access_token, event):
        uid = f"donext-{event.id}@donext"
        ical_event = iEvent()
        ical_event.add("uid", uid)
        ical_event.add("summary", event.title)
        ical_event.add("dtstart", event.start.replace(tzinfo=timezone.utc))
        ical_event.add("dtend", event.end.replace(tzinfo=timezone.utc))
        ical_event.add("dtstamp", datetime.now(timezone.utc))
        if event.description:
            ical_event.add("description", event.description)
        if event.location:
            ical_event.add("location", event.location)
        for email in event.attendees or []:
            ical_event.add("attendee", vCalAddress(f"mailto:{email}"))

        cal = iCalendar()
        cal.add("prodid", "-//DoNext//Calendar Sync//EN")
        cal.add("version", "2.0")
        cal.add_component(ical_event)

        self._request(
            "PUT", f"{self._calendar_url(calendar_id)}/{uid}", access_token,
            headers={"Content-Type": "text/calendar"}, data=cal.to_ical(),
        )
        return uid

    def delete_event(self, calendar_id, access_token, external_id):
        self._request("DELETE", f"{self._calendar_url(calendar_id)}/{external_id}", access_token)


PROVIDERS = {
    "google": GoogleCalendarProvider,
    "outlook": OutlookCalendarProvider,
    "apple": AppleCalendarProvider,
}

PROVIDER_INFO = [
    {"id": "google", "name": "Google Calendar", "features": ["two_way_sync", "reminders", "attendees"]},
    {"id": "outlook", "name": "Outlook Calendar", "features": ["two_way_sync", "reminders", "attendees"]},
    {"id": "apple", "name": "Apple Calendar", "features": ["two_way_sync", "attendees"]},
]


def get_provider(name: str) -> CalendarProvider:
    """Return the adapter for ``name`` configured from the app's OAuth settings."""
    provider_cls = PROVIDERS.get(name.lower())
    if provider_cls is None:
        raise ValidationError(f"Unsupported provider: {name}")
    settings = current_app.config.get("CALENDAR_PROVIDERS", {}).get(provider_cls.name, {})
    return provider_cls(timeout=current_app.config.get("PROVIDER_TIMEOUT", 15), **settings)
