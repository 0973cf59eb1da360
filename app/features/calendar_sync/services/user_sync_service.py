"""
Per-user calendar sync pipeline.

fetch events -> build contact index -> match -> reconcile -> finalize log,
strictly in that order for one user.
"""

from collections.abc import Callable
from datetime import datetime

from app.config import settings
from app.features.calendar_sync.domain import (
    CalendarSyncOptions,
    ContactEmailMatch,
    IntegrationRecord,
    UserSyncResult,
)
from app.features.calendar_sync.services.artifact_reconciler import MeetingArtifactReconciler
from app.features.calendar_sync.services.contact_index import ContactIndexBuilder
from app.features.calendar_sync.services.credential_store import CredentialStore, credential_store
from app.features.calendar_sync.services.matcher import match_events_to_contacts
from app.features.calendar_sync.services.sync_log_recorder import SyncLogRecorder
from app.infrastructure.observability.logging import get_logger
from app.services.calendar.google_client import GoogleCalendarService

logger = get_logger(__name__)

CalendarClientFactory = Callable[..., GoogleCalendarService]


def matched_contact_ids(event_matches: dict[str, list[ContactEmailMatch]]) -> list[str]:
    """Unique ids of every matched contact, in first-seen order."""
    seen: dict[str, None] = {}
    for matches in event_matches.values():
        for match in matches:
            seen.setdefault(match.contact_id, None)
    return list(seen)


class UserCalendarSyncService:
    def __init__(
        self,
        credentials: CredentialStore | None = None,
        index_builder: ContactIndexBuilder | None = None,
        reconciler: MeetingArtifactReconciler | None = None,
        recorder: SyncLogRecorder | None = None,
        calendar_client_factory: CalendarClientFactory = GoogleCalendarService,
        max_results: int | None = None,
    ):
        self.credentials = credentials or credential_store
        self.index_builder = index_builder or ContactIndexBuilder()
        self.reconciler = reconciler or MeetingArtifactReconciler()
        self.recorder = recorder or SyncLogRecorder()
        self.calendar_client_factory = calendar_client_factory
        self.max_results = max_results or settings.CALENDAR_SYNC_MAX_RESULTS

    async def sync_user_calendar_with_range(
        self,
        integration: IntegrationRecord,
        sync_type: str,
        lookback_days: int,
        lookforward_days: int,
        now: datetime | None = None,
    ) -> UserSyncResult:
        """
        Run the full pipeline for one user over [now - lookback, now + lookforward].

        Raises whatever stopped the run after the sync log has been marked
        failed; the caller decides how that is reported.
        """
        user_id = integration.user_id
        options = CalendarSyncOptions.from_days(
            lookback_days, lookforward_days, now=now, max_results=self.max_results
        )

        sync_log_id = await self.recorder.start(
            user_id, sync_type, options, lookback_days, lookforward_days
        )
        logger.info(
            "User calendar sync started",
            user_id=user_id,
            sync_log_id=sync_log_id,
            sync_type=sync_type,
            lookback_days=lookback_days,
            lookforward_days=lookforward_days,
        )

        try:
            client_factory = self.calendar_client_factory
            async with client_factory(on_tokens=self.credentials.update_tokens) as client:
                events = await client.list_events(integration, options)

            email_index = await self.index_builder.build(user_id)
            event_matches = match_events_to_contacts(events, email_index)
            reconcile_result = await self.reconciler.reconcile(event_matches, events, user_id)

            result = UserSyncResult(
                user_id=user_id,
                sync_log_id=sync_log_id,
                events_processed=len(events),
                artifacts_created=reconcile_result.created,
                artifacts_updated=reconcile_result.updated,
                contacts_updated=matched_contact_ids(event_matches),
                errors=reconcile_result.errors,
            )
        except Exception as e:
            logger.error(
                "User calendar sync failed",
                user_id=user_id,
                sync_log_id=sync_log_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self.recorder.fail(sync_log_id, str(e))
            raise

        await self.recorder.complete(result)
        logger.info(
            "User calendar sync completed",
            user_id=user_id,
            sync_log_id=sync_log_id,
            events_processed=result.events_processed,
            artifacts_created=result.artifacts_created,
            artifacts_updated=result.artifacts_updated,
            event_error_count=len(result.errors),
        )
        return result
