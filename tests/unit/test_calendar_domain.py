"""
Tests for calendar and integration domain models.
"""

from datetime import UTC, datetime, timedelta

from app.features.calendar_sync.domain import (
    SYNC_MODES,
    CalendarEvent,
    CalendarSyncOptions,
    IntegrationRecord,
    TokenUpdate,
    resolve_sync_mode,
)


def test_event_normalization_tolerates_missing_fields():
    event = CalendarEvent({"id": "bare"})

    assert event.summary is None
    assert event.attendees == []
    assert event.organizer is None
    assert event.conference_data is None
    assert event.status == "confirmed"
    assert event.duration_minutes() is None
    assert not event.has_attendees()


def test_event_attendees_and_organizer():
    event = CalendarEvent(
        {
            "id": "evt",
            "attendees": [
                {"email": "Me@x.com", "self": True, "responseStatus": "accepted"},
                {"email": "them@x.com", "displayName": "Them", "organizer": True},
                "not-a-dict",
            ],
            "organizer": {"email": "them@x.com", "displayName": "Them"},
        }
    )

    assert event.attendee_emails() == ["Me@x.com", "them@x.com"]
    assert event.attendees[0].is_self is True
    assert event.attendees[1].display_name == "Them"
    assert event.organizer.email == "them@x.com"
    assert event.organizer.is_self is False


def test_duration_minutes_rounds_and_requires_datetimes():
    timed = CalendarEvent(
        {
            "id": "timed",
            "start": {"dateTime": "2024-05-01T10:00:00+02:00"},
            "end": {"dateTime": "2024-05-01T08:45:20Z"},
        }
    )
    all_day = CalendarEvent(
        {"id": "all-day", "start": {"date": "2024-05-01"}, "end": {"date": "2024-05-02"}}
    )

    assert timed.duration_minutes() == 45
    assert all_day.duration_minutes() is None
    assert all_day.is_all_day()


def test_conference_data_first_uri():
    event = CalendarEvent(
        {
            "id": "conf",
            "conferenceData": {
                "conferenceId": "abc-defg-hij",
                "conferenceSolution": {"name": "Zoom"},
                "entryPoints": [{"entryPointType": "phone"}, {"uri": "https://zoom.us/j/1"}],
            },
        }
    )

    assert event.conference_data.conference_id == "abc-defg-hij"
    assert event.conference_data.first_uri() == "https://zoom.us/j/1"


def test_sync_mode_presets():
    assert (SYNC_MODES["nightly"].lookback_days, SYNC_MODES["nightly"].lookforward_days) == (7, 30)
    assert (SYNC_MODES["onboarding"].lookback_days, SYNC_MODES["onboarding"].lookforward_days) == (
        365,
        90,
    )
    assert (SYNC_MODES["manual"].lookback_days, SYNC_MODES["manual"].lookforward_days) == (30, 60)
    assert (
        SYNC_MODES["historical"].lookback_days,
        SYNC_MODES["historical"].lookforward_days,
    ) == (730, 30)


def test_unknown_mode_falls_back_to_nightly():
    assert resolve_sync_mode("weekly").name == "nightly"
    assert resolve_sync_mode(None).name == "nightly"
    assert resolve_sync_mode(" Onboarding ").name == "onboarding"


def test_sync_options_from_days():
    now = datetime(2024, 6, 1, 12, tzinfo=UTC)

    options = CalendarSyncOptions.from_days(365, 90, now=now, max_results=500)

    assert options.start_date == now - timedelta(days=365)
    assert options.end_date == now + timedelta(days=90)
    assert options.max_results == 500
    assert options.include_declined is False


def test_integration_usability():
    past = datetime.now(UTC) - timedelta(minutes=5)

    expired_no_refresh = IntegrationRecord(
        id="i1", user_id="u1", access_token="a", refresh_token=None, token_expires_at=past
    )
    expired_with_refresh = IntegrationRecord(
        id="i2", user_id="u2", access_token="a", refresh_token="r", token_expires_at=past
    )
    no_expiry = IntegrationRecord(id="i3", user_id="u3", access_token="a")

    assert expired_no_refresh.is_usable() is False
    assert expired_with_refresh.is_usable() is True
    assert no_expiry.is_usable() is True


def test_integration_is_expired_with_buffer():
    soon = datetime.now(UTC) + timedelta(seconds=30)
    integration = IntegrationRecord(id="i", user_id="u", access_token="a", token_expires_at=soon)

    assert integration.is_expired() is False
    assert integration.is_expired(buffer_seconds=60) is True


def test_apply_tokens_keeps_refresh_token_when_not_reissued():
    integration = IntegrationRecord(id="i", user_id="u", access_token="old", refresh_token="r1")
    expires_at = datetime.now(UTC) + timedelta(hours=1)

    integration.apply_tokens(TokenUpdate(access_token="new", expires_at=expires_at))

    assert integration.access_token == "new"
    assert integration.refresh_token == "r1"
    assert integration.token_expires_at == expires_at
