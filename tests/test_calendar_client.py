"""Tests for the calendar collaborator clients."""

from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import httpx
import pytest

from interview_scheduler.exceptions import CollaboratorUnavailable
from interview_scheduler.integrations.calendar import (
    GoogleCalendarClient,
    NullCalendarClient,
    create_calendar_client,
    rfc3339,
)

CALENDAR_MODULE = "interview_scheduler.integrations.calendar"


class TestNullCalendarClient:
    def test_list_returns_empty(self):
        assert NullCalendarClient().list_events(datetime.now(UTC), datetime.now(UTC)) == []

    def test_writes_are_noops(self):
        calendar = NullCalendarClient()
        assert calendar.create_event({"summary": "x"}) is None
        assert calendar.update_event("e1", {"summary": "x"}) is None
        assert calendar.delete_event("e1") is False


class TestRfc3339:
    def test_aware_converted_to_utc(self):
        value = datetime(2026, 3, 10, 13, 0, tzinfo=timezone(timedelta(hours=-4)))
        assert rfc3339(value) == "2026-03-10T17:00:00Z"

    def test_naive_treated_as_utc(self):
        assert rfc3339(datetime(2026, 3, 10, 17, 0)) == "2026-03-10T17:00:00Z"


class TestFactory:
    def test_unconfigured_returns_null(self):
        with patch(f"{CALENDAR_MODULE}.settings") as mock_settings:
            mock_settings.calendar_configured = False
            assert isinstance(create_calendar_client(), NullCalendarClient)

    def test_bad_credentials_fall_back_to_null(self):
        with patch(f"{CALENDAR_MODULE}.settings") as mock_settings:
            mock_settings.calendar_configured = True
            mock_settings.google_service_account_json = "{not json"
            assert isinstance(create_calendar_client(), NullCalendarClient)

    def test_configured_returns_google(self):
        with (
            patch(f"{CALENDAR_MODULE}.settings") as mock_settings,
            patch(f"{CALENDAR_MODULE}.service_account.Credentials.from_service_account_info") as from_info,
        ):
            mock_settings.calendar_configured = True
            mock_settings.google_service_account_json = '{"client_email": "bot@example.iam"}'
            mock_settings.google_calendar_id = "me@example.com"
            mock_settings.google_timeout_seconds = 5.0
            client = create_calendar_client()
        assert isinstance(client, GoogleCalendarClient)
        assert client.calendar_id == "me@example.com"
        assert from_info.call_args.args[0] == {"client_email": "bot@example.iam"}


def _response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    response.text = str(payload)
    return response


@pytest.fixture
def google():
    """GoogleCalendarClient with valid credentials and a patched httpx.Client."""
    with (
        patch(f"{CALENDAR_MODULE}.service_account.Credentials.from_service_account_info") as from_info,
        patch(f"{CALENDAR_MODULE}.httpx.Client") as client_cls,
    ):
        credentials = MagicMock(valid=True, token="tok-123")
        from_info.return_value = credentials
        http = MagicMock()
        client_cls.return_value.__enter__.return_value = http
        client = GoogleCalendarClient({"client_email": "bot@example.iam"}, "me@example.com")
        yield client, http


class TestGoogleCalendarClient:
    def test_list_events_params(self, google):
        client, http = google
        http.request.return_value = _response(payload={"items": [{"id": "a"}]})

        events = client.list_events(
            datetime(2026, 3, 10, 4, 0, tzinfo=UTC),
            datetime(2026, 3, 11, 4, 0, tzinfo=UTC),
        )

        assert events == [{"id": "a"}]
        method, url = http.request.call_args.args
        kwargs = http.request.call_args.kwargs
        assert method == "GET"
        assert url.endswith("/calendars/me%40example.com/events")
        assert kwargs["headers"] == {"Authorization": "Bearer tok-123"}
        assert kwargs["params"]["timeMin"] == "2026-03-10T04:00:00Z"
        assert kwargs["params"]["singleEvents"] == "true"
        assert kwargs["params"]["orderBy"] == "startTime"

    def test_list_without_items(self, google):
        client, http = google
        http.request.return_value = _response(payload={})
        assert client.list_events(datetime.now(UTC), datetime.now(UTC)) == []

    def test_create_returns_id_and_link(self, google):
        client, http = google
        http.request.return_value = _response(payload={"id": "evt1", "htmlLink": "https://cal/evt1"})
        assert client.create_event({"summary": "Interview"}) == {"id": "evt1", "html_link": "https://cal/evt1"}
        assert http.request.call_args.args[0] == "POST"
        assert http.request.call_args.kwargs["json"] == {"summary": "Interview"}

    def test_update_and_delete_target_event(self, google):
        client, http = google
        http.request.return_value = _response(payload={"id": "evt1"})
        client.update_event("evt1", {"summary": "Moved"})
        assert http.request.call_args.args[0] == "PATCH"
        assert http.request.call_args.args[1].endswith("/events/evt1")

        assert client.delete_event("evt1") is True
        assert http.request.call_args.args[0] == "DELETE"

    def test_http_error_status(self, google):
        client, http = google
        http.request.return_value = _response(status_code=503, payload={"error": "backend"})
        with pytest.raises(CollaboratorUnavailable) as exc_info:
            client.list_events(datetime.now(UTC), datetime.now(UTC))
        assert exc_info.value.collaborator == "calendar"
        assert "503" in exc_info.value.message

    def test_unreadable_body(self, google):
        client, http = google
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        http.request.return_value = response
        with pytest.raises(CollaboratorUnavailable) as exc_info:
            client.list_events(datetime.now(UTC), datetime.now(UTC))
        assert exc_info.value.collaborator == "calendar"

    def test_transport_error(self, google):
        client, http = google
        http.request.side_effect = httpx.ConnectTimeout("timed out")
        with pytest.raises(CollaboratorUnavailable):
            client.create_event({"summary": "Interview"})

    def test_expired_token_refreshed(self, google):
        client, http = google
        client._credentials.valid = False
        http.request.return_value = _response(payload={"items": []})
        client.list_events(datetime.now(UTC), datetime.now(UTC))
        client._credentials.refresh.assert_called_once()
