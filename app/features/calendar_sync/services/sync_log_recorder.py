"""
Sync log recorder: one in_progress row per user run, finalized once.
"""

from datetime import UTC, datetime
from typing import Any

from app.features.calendar_sync.domain import CalendarSyncOptions, UserSyncResult
from app.features.calendar_sync.repository.sync_log_repository import SyncLogRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class SyncLogRecorder:
    def __init__(self, repository: type[SyncLogRepository] = SyncLogRepository):
        self.repository = repository

    async def start(
        self,
        user_id: str,
        sync_type: str,
        options: CalendarSyncOptions,
        lookback_days: int,
        lookforward_days: int,
    ) -> str:
        metadata = {
            "sync_type": sync_type,
            "date_range": {
                "start": options.start_date.isoformat(),
                "end": options.end_date.isoformat(),
                "lookbackDays": lookback_days,
                "lookforwardDays": lookforward_days,
            },
        }
        return await self.repository.create(user_id, metadata)

    async def complete(self, result: UserSyncResult) -> None:
        await self.repository.finalize(
            result.sync_log_id,
            "completed",
            events_processed=result.events_processed,
            artifacts_created=result.artifacts_created,
            contacts_updated=result.contacts_updated,
            errors=[error.to_dict() for error in result.errors],
            metadata=self._result_metadata(result),
        )

    async def fail(
        self,
        sync_log_id: str,
        error: str,
        result: UserSyncResult | None = None,
    ) -> None:
        """Finalize as failed; logging failures here must not mask the original error."""
        errors: list[dict[str, Any]] = [item.to_dict() for item in result.errors] if result else []
        errors.append({"error": error, "timestamp": datetime.now(UTC).isoformat()})
        try:
            await self.repository.finalize(
                sync_log_id,
                "failed",
                events_processed=result.events_processed if result else 0,
                artifacts_created=result.artifacts_created if result else 0,
                contacts_updated=result.contacts_updated if result else [],
                errors=errors,
                metadata=self._result_metadata(result) if result else {},
            )
        except Exception as e:
            logger.error("Failed to finalize sync log", sync_log_id=sync_log_id, error=str(e))

    @staticmethod
    def _result_metadata(result: UserSyncResult) -> dict[str, Any]:
        return {
            "events_processed": result.events_processed,
            "artifacts_created": result.artifacts_created,
            "artifacts_updated": result.artifacts_updated,
            "contacts_updated": result.contacts_updated,
            "sync_completed_at": datetime.now(UTC).isoformat(),
        }

