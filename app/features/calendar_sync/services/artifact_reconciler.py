"""
Meeting artifact reconciliation.

Each matched calendar event becomes exactly one meeting artifact owned by
its primary (first) matched contact. Re-running over the same events
updates the artifacts in place instead of creating duplicates.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from app.features.calendar_sync.domain import (
    CalendarEvent,
    ContactEmailMatch,
    ReconcileError,
    ReconcileResult,
)
from app.features.calendar_sync.repository.artifact_repository import ArtifactRepository
from app.features.calendar_sync.repository.contact_repository import ContactRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MEETING_TITLE = "Meeting"


def build_meeting_metadata(event: CalendarEvent, now: datetime | None = None) -> dict[str, Any]:
    """Artifact metadata blob for one event; absent optional fields are omitted."""
    now = now or datetime.now(UTC)

    organizer = None
    if event.organizer is not None:
        organizer = {
            "email": event.organizer.email,
            "name": event.organizer.display_name,
            "self": event.organizer.is_self,
        }

    conference = None
    if event.conference_data is not None:
        conference = {
            "type": "google_meet" if event.hangout_link else "other",
            "join_url": event.hangout_link or event.conference_data.first_uri(),
            "conference_id": event.conference_data.conference_id,
        }

    metadata: dict[str, Any] = {
        "title": event.summary,
        "attendees": [a.display_name or a.email for a in event.attendees],
        "attendee_emails": [a.email for a in event.attendees],
        "meeting_date": event.start.value,
        "location": event.location,
        "google_calendar_id": event.id,
        "google_calendar_link": event.hangout_link,
        "google_calendar_html_link": event.html_link,
        "organizer": organizer,
        "duration_minutes": event.duration_minutes(),
        "recurring_event_id": event.recurring_event_id,
        "conference_data": conference,
        "calendar_source": "google",
        "last_synced_at": now.isoformat(),
    }
    return {key: value for key, value in metadata.items() if value is not None}


class MeetingArtifactReconciler:
    def __init__(
        self,
        artifacts: type[ArtifactRepository] = ArtifactRepository,
        contacts: type[ContactRepository] = ContactRepository,
    ):
        self.artifacts = artifacts
        self.contacts = contacts

    async def reconcile(
        self,
        event_matches: dict[str, list[ContactEmailMatch]],
        events: Iterable[CalendarEvent],
        user_id: str,
    ) -> ReconcileResult:
        """
        Create or update one meeting artifact per matched event.

        Per-event failures are collected in the result and do not stop the
        loop.
        """
        result = ReconcileResult()

        for event in events:
            matches = event_matches.get(event.id) if event.id else None
            if not matches:
                continue

            primary = matches[0]
            try:
                created = await self._upsert_meeting(event, primary, user_id)
            except Exception as e:
                logger.error(
                    "Failed to reconcile meeting artifact",
                    user_id=user_id,
                    event_id=event.id,
                    contact_id=primary.contact_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                result.errors.append(ReconcileError(event_id=event.id, error=str(e)))
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        logger.info(
            "Meeting artifacts reconciled",
            user_id=user_id,
            created=result.created,
            updated=result.updated,
            error_count=len(result.errors),
        )
        return result

    async def _upsert_meeting(
        self, event: CalendarEvent, primary: ContactEmailMatch, user_id: str
    ) -> bool:
        """Returns True when a new artifact was inserted."""
        content = event.summary or DEFAULT_MEETING_TITLE
        metadata = build_meeting_metadata(event)
        timestamp = event.start.value

        existing_id = await self.artifacts.find_meeting_id(primary.contact_id, event.id)
        if existing_id:
            await self.artifacts.update_meeting(existing_id, content, metadata, timestamp)
            logger.debug("Meeting artifact updated", event_id=event.id, artifact_id=existing_id)
            return False

        artifact_id = await self.artifacts.insert_meeting(
            user_id, primary.contact_id, content, metadata, timestamp
        )
        logger.debug("Meeting artifact created", event_id=event.id, artifact_id=artifact_id)

        await self._create_notes_action(user_id, primary.contact_id, artifact_id, event)
        return True

    async def _create_notes_action(
        self, user_id: str, contact_id: str, artifact_id: str, event: CalendarEvent
    ) -> None:
        # Best effort: a missing goal or failed insert never fails the artifact
        try:
            goal_id = await self.contacts.find_goal_id(contact_id)
            if not goal_id:
                logger.debug(
                    "No goal for contact, skipping meeting notes action",
                    contact_id=contact_id,
                    event_id=event.id,
                )
                return

            await self.artifacts.insert_session_action(
                user_id,
                contact_id,
                goal_id,
                artifact_id,
                {
                    "meeting_title": event.summary or DEFAULT_MEETING_TITLE,
                    "google_calendar_id": event.id,
                    "created_from": "calendar_sync",
                    "auto_created": True,
                },
            )
        except Exception as e:
            logger.warning(
                "Failed to create meeting notes action",
                user_id=user_id,
                contact_id=contact_id,
                event_id=event.id,
                error=str(e),
            )
