"""External calendar collaborator with Protocol pattern for dependency injection.

Provides GoogleCalendarClient (service-account REST client) and
NullCalendarClient (no-op when no calendar is configured).
"""

import json
import logging
from datetime import UTC, datetime
from typing import Protocol
from urllib.parse import quote

import httpx
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from ..config import settings
from ..exceptions import CollaboratorUnavailable

logger = logging.getLogger(__name__)

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
WRITE_SCOPE = "https://www.googleapis.com/auth/calendar"
MAX_RESULTS = 100


def rfc3339(value: datetime) -> str:
    normalized = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    return normalized.astimezone(UTC).isoformat().replace("+00:00", "Z")


class CalendarClient(Protocol):
    """Calendar collaborator interface."""

    def list_events(self, time_min: datetime, time_max: datetime) -> list[dict]: ...
    def create_event(self, event: dict) -> dict | None: ...
    def update_event(self, event_id: str, event: dict) -> dict | None: ...
    def delete_event(self, event_id: str) -> bool: ...


class GoogleCalendarClient:
    """Google Calendar v3 over httpx, authenticated with a service account."""

    def __init__(self, service_account_info: dict, calendar_id: str, timeout: float = 10.0) -> None:
        self.calendar_id = calendar_id
        self._credentials = service_account.Credentials.from_service_account_info(
            service_account_info,
            scopes=[WRITE_SCOPE],
        )
        self._timeout = timeout

    @property
    def _events_url(self) -> str:
        return f"{CALENDAR_API_BASE}/calendars/{quote(self.calendar_id, safe='')}/events"

    def _access_token(self) -> str:
        if not self._credentials.valid:
            try:
                self._credentials.refresh(GoogleAuthRequest())
            except GoogleAuthError as exc:
                raise CollaboratorUnavailable("calendar", f"Google token refresh failed: {exc}") from exc
        return self._credentials.token

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self._access_token()}"}
        try:
            with httpx.Client(timeout=self._timeout) as client:
                response = client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            raise CollaboratorUnavailable("calendar", f"Calendar request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Calendar API error %d: %s", response.status_code, response.text[:300])
            raise CollaboratorUnavailable("calendar", f"Calendar API returned {response.status_code}")
        return response

    def list_events(self, time_min: datetime, time_max: datetime) -> list[dict]:
        """Expanded (single) events between the two instants, ordered by start."""
        response = self._request(
            "GET",
            self._events_url,
            params={
                "timeMin": rfc3339(time_min),
                "timeMax": rfc3339(time_max),
                "singleEvents": "true",
                "orderBy": "startTime",
                "maxResults": MAX_RESULTS,
            },
        )
        try:
            items = response.json().get("items", [])
        except (ValueError, AttributeError) as exc:
            raise CollaboratorUnavailable("calendar", f"Calendar API returned an unreadable body: {exc}") from exc
        return items if isinstance(items, list) else []

    def create_event(self, event: dict) -> dict | None:
        data = self._request("POST", self._events_url, json=event).json()
        return {"id": data.get("id"), "html_link": data.get("htmlLink")}

    def update_event(self, event_id: str, event: dict) -> dict | None:
        data = self._request("PATCH", f"{self._events_url}/{quote(event_id, safe='')}", json=event).json()
        return {"id": data.get("id"), "html_link": data.get("htmlLink")}

    def delete_event(self, event_id: str) -> bool:
        self._request("DELETE", f"{self._events_url}/{quote(event_id, safe='')}")
        return True


class NullCalendarClient:
    """No-op calendar for when no Google calendar is configured."""

    def list_events(self, time_min: datetime, time_max: datetime) -> list[dict]:
        return []

    def create_event(self, event: dict) -> dict | None:
        return None

    def update_event(self, event_id: str, event: dict) -> dict | None:
        return None

    def delete_event(self, event_id: str) -> bool:
        return False


def create_calendar_client() -> CalendarClient:
    """Factory: create the appropriate calendar client based on configuration."""
    if not settings.calendar_configured:
        logger.info("Google Calendar not configured, using NullCalendarClient")
        return NullCalendarClient()
    try:
        info = json.loads(settings.google_service_account_json)
        return GoogleCalendarClient(info, settings.google_calendar_id, settings.google_timeout_seconds)
    except (ValueError, KeyError) as exc:
        logger.error("Invalid Google service account credentials: %s", exc)
        return NullCalendarClient()
