"""
Tests for the per-user sync pipeline and its sync log.
"""

from datetime import UTC, datetime, timedelta

import pytest

from app.features.calendar_sync.domain import ContactSnapshot
from app.features.calendar_sync.services.contact_index import ContactIndexError
from app.services.calendar.google_client import GoogleCalendarError


@pytest.mark.asyncio
async def test_successful_run_finalizes_log(
    store, sync_components, calendar_factory, integration_factory, event_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    store.add_contact("user-1", ContactSnapshot(id="c1", email="a@x.com"))
    calendar_factory.events_by_user["user-1"] = [
        event_factory("evt1"),
        event_factory("evt2", emails=("nobody@x.com",)),
    ]

    result = await sync_components.user_sync.sync_user_calendar_with_range(
        integration, "manual", 30, 60
    )

    assert result.events_processed == 2
    assert result.artifacts_created == 1
    assert result.contacts_updated == ["c1"]

    log = store.sync_logs[0]
    assert log["id"] == result.sync_log_id
    assert log["status"] == "completed"
    assert log["events_processed"] == 2
    assert log["artifacts_created"] == 1
    assert log["contacts_updated"] == ["c1"]
    assert log["metadata"]["sync_type"] == "manual"
    assert log["metadata"]["date_range"]["lookbackDays"] == 30
    assert log["metadata"]["artifacts_updated"] == 0
    assert "sync_completed_at" in log["metadata"]


@pytest.mark.asyncio
async def test_every_matched_contact_is_counted_as_updated(
    store, sync_components, calendar_factory, integration_factory, event_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    store.add_contact("user-1", ContactSnapshot(id="c1", email="a@x.com"))
    store.add_contact("user-1", ContactSnapshot(id="c2", email="b@x.com"))
    calendar_factory.events_by_user["user-1"] = [
        event_factory("evt1", emails=("a@x.com", "b@x.com")),
    ]

    result = await sync_components.user_sync.sync_user_calendar_with_range(
        integration, "manual", 30, 60
    )

    assert result.contacts_updated == ["c1", "c2"]
    assert store.sync_logs[0]["contacts_updated"] == ["c1", "c2"]
    # The meeting itself belongs to the first matched contact only
    assert [a["contact_id"] for a in store.artifacts] == ["c1"]


@pytest.mark.asyncio
async def test_window_is_relative_to_run_clock(
    store, sync_components, calendar_factory, integration_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    now = datetime(2024, 6, 1, tzinfo=UTC)

    await sync_components.user_sync.sync_user_calendar_with_range(
        integration, "onboarding", 365, 90, now=now
    )

    _, options = calendar_factory.calls[0]
    assert options.start_date == now - timedelta(days=365)
    assert options.end_date == now + timedelta(days=90)


@pytest.mark.asyncio
async def test_fetch_failure_marks_log_failed(
    store, sync_components, calendar_factory, integration_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    calendar_factory.errors_by_user["user-1"] = GoogleCalendarError(
        "Calendar access denied. Please check permissions.", status_code=403
    )

    with pytest.raises(GoogleCalendarError):
        await sync_components.user_sync.sync_user_calendar_with_range(
            integration, "nightly", 7, 30
        )

    log = store.sync_logs[0]
    assert log["status"] == "failed"
    assert "access denied" in log["errors"][-1]["error"]


@pytest.mark.asyncio
async def test_contact_query_failure_fails_run(
    store, sync_components, calendar_factory, integration_factory, event_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    store.fail_contacts_for.add("user-1")
    calendar_factory.events_by_user["user-1"] = [event_factory("evt1")]

    with pytest.raises(ContactIndexError):
        await sync_components.user_sync.sync_user_calendar_with_range(
            integration, "nightly", 7, 30
        )

    assert store.sync_logs[0]["status"] == "failed"
    assert store.artifacts == []


@pytest.mark.asyncio
async def test_self_contact_attendee_creates_no_artifact(
    store, sync_components, calendar_factory, integration_factory, event_factory
):
    integration = store.add_integration(integration_factory("user-1"))
    store.add_contact("user-1", ContactSnapshot(id="me", email="me@x.com"), is_self=True)
    calendar_factory.events_by_user["user-1"] = [event_factory("evt1", emails=("me@x.com",))]

    result = await sync_components.user_sync.sync_user_calendar_with_range(
        integration, "nightly", 7, 30
    )

    assert result.events_processed == 1
    assert result.artifacts_created == 0
    assert result.contacts_updated == []
    assert store.artifacts == []
