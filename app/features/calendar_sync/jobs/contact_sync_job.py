"""
Contact-specific sync jobs.

Drains a page of pending contact_specific_sync_jobs rows. Each job pulls
the user's calendar over the job's window and reconciles only the events
that include one of the contact's known emails.
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.calendar_sync.domain import CalendarSyncOptions, ContactSyncJob
from app.features.calendar_sync.repository.contact_sync_job_repository import (
    ContactSyncJobRepository,
    ContactSyncJobRepositoryError,
)
from app.features.calendar_sync.services.artifact_reconciler import MeetingArtifactReconciler
from app.features.calendar_sync.services.contact_index import build_email_index
from app.features.calendar_sync.services.credential_store import (
    CredentialStore,
    credential_store,
)
from app.features.calendar_sync.services.matcher import match_events_to_contacts
from app.features.calendar_sync.services.user_sync_service import CalendarClientFactory
from app.infrastructure.observability.logging import get_logger, log_sync_outcome
from app.services.calendar.google_client import GoogleCalendarService

logger = get_logger(__name__)

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class ContactSyncJobProcessor:
    def __init__(
        self,
        jobs: type[ContactSyncJobRepository] = ContactSyncJobRepository,
        credentials: CredentialStore | None = None,
        reconciler: MeetingArtifactReconciler | None = None,
        calendar_client_factory: CalendarClientFactory = GoogleCalendarService,
        page_size: int | None = None,
        job_delay_seconds: float | None = None,
        max_results: int | None = None,
    ):
        self.jobs = jobs
        self.credentials = credentials or credential_store
        self.reconciler = reconciler or MeetingArtifactReconciler()
        self.calendar_client_factory = calendar_client_factory
        self.page_size = page_size or settings.CONTACT_SYNC_JOB_PAGE_SIZE
        self.job_delay_seconds = (
            settings.CONTACT_SYNC_JOB_DELAY_SECONDS
            if job_delay_seconds is None
            else job_delay_seconds
        )
        self.max_results = max_results or settings.CONTACT_SYNC_MAX_RESULTS

    async def run(self) -> dict[str, Any]:
        """Process up to page_size pending jobs, oldest first."""
        pending = await self.jobs.fetch_pending(self.page_size)

        if not pending:
            logger.info("No pending contact sync jobs")
            return {
                "success": True,
                "message": "No pending jobs to process",
                "jobsProcessed": 0,
                "timestamp": datetime.now(UTC).isoformat(),
            }

        logger.info("Processing contact sync jobs", job_count=len(pending))

        outcomes: list[dict[str, Any]] = []
        for position, job in enumerate(pending):
            if position > 0 and self.job_delay_seconds > 0:
                await asyncio.sleep(self.job_delay_seconds)

            outcome = await self.process_job(job)
            if outcome is not None:
                outcomes.append(outcome)

        success_count = sum(1 for outcome in outcomes if outcome["status"] == STATUS_SUCCESS)
        error_count = len(outcomes) - success_count

        logger.info(
            "Contact sync jobs processed",
            total_jobs=len(outcomes),
            success_count=success_count,
            error_count=error_count,
        )

        return {
            "success": True,
            "message": f"Processed {len(outcomes)} contact sync jobs",
            "summary": {
                "totalJobs": len(outcomes),
                "successCount": success_count,
                "errorCount": error_count,
            },
            "jobs": outcomes,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def process_job(self, job: ContactSyncJob) -> dict[str, Any] | None:
        """
        Run one job to a terminal state.

        Returns None when another worker claimed the job first. A store
        failure while claiming leaves the job pending for the next run.
        """
        try:
            await self.jobs.mark_processing(job.id)
        except ContactSyncJobRepositoryError as e:
            logger.info("Contact sync job already claimed", job_id=job.id, error=str(e))
            return None
        except DatabaseError as e:
            logger.error(
                "Failed to claim contact sync job",
                job_id=job.id,
                error=str(e),
                operation=e.operation,
            )
            return self._outcome(job, STATUS_ERROR, message=f"Failed to claim job: {e}")

        try:
            sync_results = await self._sync_contact(job)
            await self.jobs.mark_completed(job.id, sync_results)
        except Exception as e:
            error = str(e) or type(e).__name__
            log_sync_outcome(
                "contact_job",
                "failed",
                job_id=job.id,
                contact_id=job.contact_id,
                user_id=job.user_id,
                error=error,
                error_type=type(e).__name__,
            )
            try:
                await self.jobs.mark_failed(job.id, error)
            except Exception as mark_error:
                logger.error(
                    "Failed to mark contact sync job failed", job_id=job.id, error=str(mark_error)
                )
            return self._outcome(job, STATUS_ERROR, message=error)

        log_sync_outcome(
            "contact_job",
            "completed",
            job_id=job.id,
            contact_id=job.contact_id,
            user_id=job.user_id,
            events_processed=sync_results["eventsProcessed"],
            artifacts_created=sync_results["artifactsCreated"],
        )
        return self._outcome(
            job,
            STATUS_SUCCESS,
            eventsProcessed=sync_results["eventsProcessed"],
            artifactsCreated=sync_results["artifactsCreated"],
            message=(
                f"Synced {sync_results['eventsProcessed']} events, "
                f"created {sync_results['artifactsCreated']} artifacts"
            ),
        )

    @staticmethod
    def _outcome(job: ContactSyncJob, status: str, **fields) -> dict[str, Any]:
        return {
            "jobId": job.id,
            "contactId": job.contact_id,
            "contactName": job.contact.name,
            "status": status,
            **fields,
        }

    async def _sync_contact(self, job: ContactSyncJob) -> dict[str, Any]:
        # IntegrationNotFoundError propagates and fails the job before any fetch
        integration = await self.credentials.get_integration(job.user_id)

        options = CalendarSyncOptions.from_days(
            job.lookback_days, job.lookforward_days, max_results=self.max_results
        )

        async with self.calendar_client_factory(on_tokens=self.credentials.update_tokens) as client:
            events = await client.list_events(integration, options)

        event_matches = match_events_to_contacts(events, build_email_index([job.contact]))
        contact_events = [event for event in events if event.id in event_matches]

        logger.info(
            "Contact events matched",
            job_id=job.id,
            contact_id=job.contact_id,
            events_fetched=len(events),
            events_matched=len(contact_events),
            trigger=job.sync_options.get("trigger"),
        )

        result = await self.reconciler.reconcile(event_matches, contact_events, job.user_id)

        return {
            "eventsProcessed": len(events),
            "artifactsCreated": result.created,
            "artifactsUpdated": result.updated,
            "errors": [error.to_dict() for error in result.errors],
            "completedAt": datetime.now(UTC).isoformat(),
        }
