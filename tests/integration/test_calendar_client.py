import re
from datetime import UTC, datetime, timedelta

import pytest

from app.models.domain.calendar_domain import CalendarSyncOptions
from app.services.calendar.google_client import (
    GoogleCalendarError,
    GoogleCalendarService,
    IntegrationUnusableError,
)
from app.services.google_oauth_service import GOOGLE_TOKEN_URL

EVENTS_URL = re.compile(r"https://www\.googleapis\.com/calendar/v3/calendars/primary/events.*")

WINDOW = CalendarSyncOptions.from_days(30, 30, now=datetime(2024, 5, 1, tzinfo=UTC))


def _event(event_id, attendees=("a@x.com",), status="confirmed"):
    return {
        "id": event_id,
        "status": status,
        "summary": f"Event {event_id}",
        "start": {"dateTime": "2024-05-01T10:00:00Z"},
        "end": {"dateTime": "2024-05-01T10:30:00Z"},
        "attendees": [{"email": email} for email in attendees],
    }


@pytest.mark.asyncio
async def test_list_events_filters_cancelled_and_solo_events(httpx_mock, integration_factory):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        json={
            "items": [
                _event("keep"),
                _event("solo", attendees=()),
                _event("gone", status="cancelled"),
            ]
        },
    )

    async with GoogleCalendarService() as service:
        events = await service.list_events(integration_factory(), WINDOW)

    assert [event.id for event in events] == ["keep"]
    request = httpx_mock.get_request()
    assert request.headers["Authorization"] == "Bearer access-token"
    assert request.url.params["singleEvents"] == "true"
    assert request.url.params["orderBy"] == "startTime"
    assert request.url.params["timeMin"] == WINDOW.start_date.isoformat()


@pytest.mark.asyncio
async def test_list_events_follows_page_tokens(httpx_mock, integration_factory):
    httpx_mock.add_response(
        method="GET", url=EVENTS_URL, json={"items": [_event("e1")], "nextPageToken": "p2"}
    )
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": [_event("e2")]})

    async with GoogleCalendarService() as service:
        events = await service.list_events(integration_factory(), WINDOW)

    assert [event.id for event in events] == ["e1", "e2"]
    second = httpx_mock.get_requests()[1]
    assert second.url.params["pageToken"] == "p2"


@pytest.mark.asyncio
async def test_expiring_token_is_refreshed_and_persisted_first(httpx_mock, integration_factory):
    integration = integration_factory(token_expires_at=datetime.now(UTC) + timedelta(seconds=30))
    persisted = []

    async def on_tokens(integration_id, update):
        # Nothing may hit the events endpoint before the new token is stored
        persisted.append((integration_id, update, len(httpx_mock.get_requests())))

    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "fresh-token", "token_type": "Bearer", "expires_in": 3600},
    )
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": [_event("e1")]})

    async with GoogleCalendarService(on_tokens=on_tokens) as service:
        events = await service.list_events(integration, WINDOW)

    assert len(events) == 1
    assert len(persisted) == 1
    integration_id, update, requests_before = persisted[0]
    assert integration_id == integration.id
    assert update.access_token == "fresh-token"
    assert update.refresh_token is None
    assert requests_before == 1
    assert integration.access_token == "fresh-token"
    assert integration.refresh_token == "refresh-token"
    events_request = httpx_mock.get_requests(url=EVENTS_URL)[0]
    assert events_request.headers["Authorization"] == "Bearer fresh-token"


@pytest.mark.asyncio
async def test_unauthorized_response_refreshes_and_retries_once(httpx_mock, integration_factory):
    updates = []

    async def on_tokens(integration_id, update):
        updates.append(update)

    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=401,
        json={"error": {"code": 401, "message": "Invalid Credentials"}},
    )
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={
            "access_token": "fresh-token",
            "refresh_token": "rotated-refresh",
            "token_type": "Bearer",
            "expires_in": 3600,
        },
    )
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": [_event("e1")]})

    integration = integration_factory()
    async with GoogleCalendarService(on_tokens=on_tokens) as service:
        events = await service.list_events(integration, WINDOW)

    assert [event.id for event in events] == ["e1"]
    assert [update.refresh_token for update in updates] == ["rotated-refresh"]
    assert integration.refresh_token == "rotated-refresh"


@pytest.mark.asyncio
async def test_second_unauthorized_response_is_an_error(httpx_mock, integration_factory):
    for _ in range(2):
        httpx_mock.add_response(
            method="GET",
            url=EVENTS_URL,
            status_code=401,
            json={"error": {"code": 401, "message": "Invalid Credentials"}},
        )
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        json={"access_token": "fresh-token", "token_type": "Bearer", "expires_in": 3600},
    )

    async with GoogleCalendarService() as service:
        with pytest.raises(GoogleCalendarError) as exc:
            await service.list_events(integration_factory(), WINDOW)

    assert exc.value.status_code == 401
    assert "reconnect" in str(exc.value).lower()


@pytest.mark.asyncio
async def test_forbidden_response_maps_to_access_denied(httpx_mock, integration_factory):
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_URL,
        status_code=403,
        json={"error": {"code": 403, "message": "Insufficient Permission"}},
    )

    async with GoogleCalendarService() as service:
        with pytest.raises(GoogleCalendarError) as exc:
            await service.list_events(integration_factory(), WINDOW)

    assert exc.value.error_code == "403"
    assert str(exc.value) == "Calendar access denied. Please check permissions."


@pytest.mark.asyncio
async def test_refresh_rejected_by_google_is_calendar_error(httpx_mock, integration_factory):
    httpx_mock.add_response(
        method="POST",
        url=GOOGLE_TOKEN_URL,
        status_code=400,
        json={"error": "invalid_grant", "error_description": "Token has been revoked"},
    )

    integration = integration_factory(token_expires_at=datetime.now(UTC) - timedelta(minutes=1))
    async with GoogleCalendarService() as service:
        with pytest.raises(GoogleCalendarError) as exc:
            await service.list_events(integration, WINDOW)

    assert exc.value.error_code == "invalid_grant"
    assert integration.access_token == "access-token"


@pytest.mark.asyncio
async def test_expired_token_without_refresh_token_is_unusable(integration_factory):
    integration = integration_factory(
        refresh_token=None, token_expires_at=datetime.now(UTC) - timedelta(minutes=5)
    )

    async with GoogleCalendarService() as service:
        with pytest.raises(IntegrationUnusableError):
            await service.list_events(integration, WINDOW)


@pytest.mark.asyncio
async def test_token_inside_buffer_without_refresh_token_is_still_used(
    httpx_mock, integration_factory
):
    integration = integration_factory(
        refresh_token=None, token_expires_at=datetime.now(UTC) + timedelta(seconds=30)
    )
    httpx_mock.add_response(method="GET", url=EVENTS_URL, json={"items": [_event("e1")]})

    async with GoogleCalendarService(token_refresh_buffer_seconds=60) as service:
        events = await service.list_events(integration, WINDOW)

    assert [event.id for event in events] == ["e1"]
    assert httpx_mock.get_request().headers["Authorization"] == "Bearer access-token"
    assert integration.is_usable()
