"""
Calendar Sync Job: pulls Google Calendar events for every connected user.

Users are processed in fixed-size batches. Within a batch each user starts
after a staggered delay and runs concurrently; batches run one after the
other with a pause in between. One user's failure never affects another's.
"""

import asyncio
import time
from datetime import UTC, datetime
from typing import Any

from app.config import settings
from app.features.calendar_sync.domain import IntegrationRecord, resolve_sync_mode
from app.features.calendar_sync.services.credential_store import CredentialStore, credential_store
from app.features.calendar_sync.services.user_sync_service import UserCalendarSyncService
from app.infrastructure.observability.logging import get_logger, log_sync_outcome
from app.services.calendar.google_client import IntegrationUnusableError

logger = get_logger(__name__)

UNUSABLE_INTEGRATION_MESSAGE = "Access token expired and no refresh token available"

MAX_DETAILS = 50
MAX_ERRORS = 25

STATUS_SUCCESS = "success"
STATUS_ERROR = "error"
STATUS_SKIPPED = "skipped"


class CalendarSyncJobError(Exception):
    """Setup failure that stops the whole run (not a per-user failure)."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class CalendarSyncMetrics:
    """Per-run outcome tracking."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = time.monotonic()
        self.total_users = 0
        self.success_count = 0
        self.error_count = 0
        self.skipped_count = 0
        self.details: list[dict[str, Any]] = []
        self.errors: list[dict[str, Any]] = []

    def record_success(self, user_id: str, result) -> None:
        self.success_count += 1
        self.details.append(
            {
                "userId": user_id,
                "status": STATUS_SUCCESS,
                "eventsProcessed": result.events_processed,
                "artifactsCreated": result.artifacts_created,
                "artifactsUpdated": result.artifacts_updated,
                "message": (
                    f"Processed {result.events_processed} events, "
                    f"created {result.artifacts_created} artifacts"
                ),
            }
        )
        log_sync_outcome(
            "user",
            STATUS_SUCCESS,
            user_id=user_id,
            events_processed=result.events_processed,
            artifacts_created=result.artifacts_created,
            artifacts_updated=result.artifacts_updated,
        )

    def record_skipped(self, user_id: str, reason: str) -> None:
        self.skipped_count += 1
        self.details.append({"userId": user_id, "status": STATUS_SKIPPED, "message": reason})
        log_sync_outcome("user", STATUS_SKIPPED, user_id=user_id, reason=reason)

    def record_error(self, user_id: str, error: str) -> None:
        self.error_count += 1
        self.details.append({"userId": user_id, "status": STATUS_ERROR, "message": error})
        self.errors.append({"userId": user_id, "error": error})
        log_sync_outcome("user", STATUS_ERROR, user_id=user_id, error=error)

    def processing_time_ms(self) -> int:
        return int((time.monotonic() - self.start_time) * 1000)

    def summary(self) -> dict[str, int]:
        return {
            "totalUsers": self.total_users,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "skippedCount": self.skipped_count,
            "processingTimeMs": self.processing_time_ms(),
        }


class CalendarSyncJob:
    """
    Batch orchestrator for calendar sync.

    Args:
        user_sync: Per-user pipeline
        credentials: Source of integrations to sync
        batch_size / user_delay_seconds / batch_delay_seconds: Pacing
            (defaults from settings)
    """

    def __init__(
        self,
        user_sync: UserCalendarSyncService | None = None,
        credentials: CredentialStore | None = None,
        batch_size: int | None = None,
        user_delay_seconds: float | None = None,
        batch_delay_seconds: float | None = None,
    ):
        self.credentials = credentials or credential_store
        self.user_sync = user_sync or UserCalendarSyncService(credentials=self.credentials)
        self.batch_size = max(1, batch_size or settings.CALENDAR_SYNC_BATCH_SIZE)
        self.user_delay_seconds = (
            settings.CALENDAR_SYNC_USER_DELAY_SECONDS
            if user_delay_seconds is None
            else user_delay_seconds
        )
        self.batch_delay_seconds = (
            settings.CALENDAR_SYNC_BATCH_DELAY_SECONDS
            if batch_delay_seconds is None
            else batch_delay_seconds
        )
        self.metrics = CalendarSyncMetrics()

    async def run(
        self,
        mode: str | None = None,
        lookback_days: int | None = None,
        lookforward_days: int | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Sync every connected user (or just user_id) once.

        Explicit lookback/lookforward values override the mode's preset.

        Raises:
            CalendarSyncJobError: If the integrations cannot be listed
        """
        preset = resolve_sync_mode(mode)
        lookback = preset.lookback_days if lookback_days is None else lookback_days
        lookforward = preset.lookforward_days if lookforward_days is None else lookforward_days
        now = now or datetime.now(UTC)

        self.metrics.reset()
        config = {
            "mode": preset.name,
            "description": preset.description,
            "lookbackDays": lookback,
            "lookforwardDays": lookforward,
            "batchSize": self.batch_size,
            "delayBetweenUsers": int(self.user_delay_seconds * 1000),
            "delayBetweenBatches": int(self.batch_delay_seconds * 1000),
            "userId": user_id,
        }

        logger.info("Starting calendar sync job", **config)

        try:
            integrations = await self.credentials.list_integrations(user_id=user_id)
        except Exception as e:
            logger.error(
                "Failed to load calendar integrations", error=str(e), error_type=type(e).__name__
            )
            raise CalendarSyncJobError(
                f"Failed to load calendar integrations: {e}", operation="list_integrations"
            ) from e

        self.metrics.total_users = len(integrations)
        if integrations:
            await self._process_in_batches(integrations, preset.name, lookback, lookforward, now)
        else:
            logger.info("No calendar integrations to sync", user_id=user_id)

        summary = self.metrics.summary()
        logger.info("Calendar sync job completed", mode=preset.name, **summary)

        return {
            "success": True,
            "message": (
                f"Calendar sync completed: {summary['successCount']} successful, "
                f"{summary['errorCount']} errors, {summary['skippedCount']} skipped"
            ),
            "summary": summary,
            "details": self.metrics.details[:MAX_DETAILS],
            "errors": self.metrics.errors[:MAX_ERRORS],
            "timestamp": datetime.now(UTC).isoformat(),
            "config": config,
        }

    async def _process_in_batches(
        self,
        integrations: list[IntegrationRecord],
        sync_type: str,
        lookback: int,
        lookforward: int,
        now: datetime,
    ) -> None:
        batches = [
            integrations[i : i + self.batch_size]
            for i in range(0, len(integrations), self.batch_size)
        ]

        logger.info(
            "Processing users in batches",
            total_users=len(integrations),
            batch_count=len(batches),
            batch_size=self.batch_size,
        )

        for batch_num, batch in enumerate(batches, 1):
            logger.debug("Processing batch", batch_number=batch_num, batch_size=len(batch))

            tasks = [
                self._sync_user(integration, index, sync_type, lookback, lookforward, now)
                for index, integration in enumerate(batch)
            ]
            await asyncio.gather(*tasks)

            if batch_num < len(batches) and self.batch_delay_seconds > 0:
                await asyncio.sleep(self.batch_delay_seconds)

    async def _sync_user(
        self,
        integration: IntegrationRecord,
        index: int,
        sync_type: str,
        lookback: int,
        lookforward: int,
        now: datetime,
    ) -> None:
        """Never raises; every outcome is recorded on the metrics."""
        user_id = integration.user_id

        delay = index * self.user_delay_seconds
        if delay > 0:
            await asyncio.sleep(delay)

        if not integration.is_usable(now=now):
            self.metrics.record_skipped(user_id, UNUSABLE_INTEGRATION_MESSAGE)
            return

        try:
            result = await self.user_sync.sync_user_calendar_with_range(
                integration, sync_type, lookback, lookforward, now=now
            )
        except IntegrationUnusableError as e:
            self.metrics.record_skipped(user_id, str(e))
        except Exception as e:
            self.metrics.record_error(user_id, str(e) or type(e).__name__)
        else:
            self.metrics.record_success(user_id, result)
