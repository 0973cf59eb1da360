"""
Persistence for calendar_sync_logs.

A log row is inserted in_progress at the start of a user's run and written
exactly once more when the run finishes.
"""

from typing import Any

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, to_jsonb
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class SyncLogRepositoryError(DatabaseError):
    """Raised when a sync log row cannot be created."""


class SyncLogRepository:
    @classmethod
    async def create(cls, user_id: str, metadata: dict[str, Any]) -> str:
        query = """
            INSERT INTO calendar_sync_logs (user_id, status, sync_started_at, metadata)
            VALUES (%s, 'in_progress', NOW(), %s::jsonb)
            RETURNING id
        """
        row = await fetch_one(query, (user_id, to_jsonb(metadata)))
        if not row:
            raise SyncLogRepositoryError("Failed to create sync log", operation="create_sync_log")

        sync_log_id = str(row["id"])
        logger.debug("Sync log created", user_id=user_id, sync_log_id=sync_log_id)
        return sync_log_id

    @classmethod
    async def finalize(
        cls,
        sync_log_id: str,
        status: str,
        events_processed: int,
        artifacts_created: int,
        contacts_updated: list[str],
        errors: list[dict[str, Any]],
        metadata: dict[str, Any],
    ) -> None:
        """Write the terminal status; metadata is merged into what create() stored."""
        query = """
            UPDATE calendar_sync_logs
            SET status = %s,
                events_processed = %s,
                artifacts_created = %s,
                contacts_updated = %s,
                errors = %s::jsonb,
                metadata = COALESCE(metadata, '{}'::jsonb) || %s::jsonb,
                sync_completed_at = NOW()
            WHERE id = %s
        """
        await execute_query(
            query,
            (
                status,
                events_processed,
                artifacts_created,
                contacts_updated,
                to_jsonb(errors),
                to_jsonb(metadata),
                sync_log_id,
            ),
        )
        logger.debug("Sync log finalized", sync_log_id=sync_log_id, status=status)

    @classmethod
    async def recent_for_user(cls, user_id: str, limit: int = 10) -> list[dict[str, Any]]:
        query = """
            SELECT id, status, sync_started_at, sync_completed_at,
                   events_processed, artifacts_created, contacts_updated,
                   errors, metadata
            FROM calendar_sync_logs
            WHERE user_id = %s
            ORDER BY sync_started_at DESC NULLS LAST
            LIMIT %s
        """
        return await fetch_all(query, (user_id, limit))
