"""
Persistence for contact_specific_sync_jobs.

Jobs move pending -> processing -> completed | failed. processed_at is
stamped on every transition.
"""

from typing import Any

from app.db.helpers import DatabaseError, execute_query, fetch_all, to_jsonb
from app.features.calendar_sync.domain import ContactSnapshot, ContactSyncJob
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ContactSyncJobRepositoryError(DatabaseError):
    """More specific exception for job queue failures."""


class ContactSyncJobRepository:
    @classmethod
    def _row_to_job(cls, row: dict) -> ContactSyncJob:
        contact = ContactSnapshot(
            id=str(row["contact_id"]),
            name=row.get("contact_name"),
            email=row.get("contact_email"),
            email_addresses=list(row.get("contact_email_addresses") or []),
            linked_emails=list(row.get("contact_linked_emails") or []),
        )
        return ContactSyncJob(
            id=str(row["id"]),
            contact_id=str(row["contact_id"]),
            user_id=str(row["user_id"]),
            status=row.get("status") or "pending",
            sync_options=row.get("sync_options") or {},
            metadata=row.get("metadata") or {},
            created_at=row.get("created_at"),
            contact=contact,
        )

    @classmethod
    async def fetch_pending(cls, limit: int) -> list[ContactSyncJob]:
        """Oldest pending jobs, each joined with its contact's known emails."""
        query = """
            SELECT
                j.id, j.contact_id, j.user_id, j.status, j.sync_options,
                j.metadata, j.created_at,
                c.name AS contact_name,
                c.email AS contact_email,
                COALESCE(c.email_addresses, ARRAY[]::text[]) AS contact_email_addresses,
                COALESCE(
                    array_agg(ce.email) FILTER (WHERE ce.email IS NOT NULL),
                    ARRAY[]::text[]
                ) AS contact_linked_emails
            FROM contact_specific_sync_jobs j
            JOIN contacts c ON c.id = j.contact_id
            LEFT JOIN contact_emails ce ON ce.contact_id = c.id
            WHERE j.status = 'pending'
            GROUP BY j.id, c.id
            ORDER BY j.created_at ASC
            LIMIT %s
        """
        rows = await fetch_all(query, (limit,))
        return [cls._row_to_job(row) for row in rows]

    @classmethod
    async def mark_processing(cls, job_id: str) -> None:
        query = """
            UPDATE contact_specific_sync_jobs
            SET status = 'processing',
                processed_at = NOW()
            WHERE id = %s AND status = 'pending'
        """
        claimed = await execute_query(query, (job_id,))
        if not claimed:
            raise ContactSyncJobRepositoryError(
                f"Job {job_id} is no longer pending", operation="mark_processing", recoverable=False
            )
        logger.info("Contact sync job processing", job_id=job_id)

    @classmethod
    async def mark_completed(cls, job_id: str, sync_results: dict[str, Any]) -> None:
        """Mark completed and merge sync_results into the job's metadata."""
        query = """
            UPDATE contact_specific_sync_jobs
            SET status = 'completed',
                processed_at = NOW(),
                error_message = NULL,
                metadata = COALESCE(metadata, '{}'::jsonb) || %s::jsonb
            WHERE id = %s
        """
        await execute_query(query, (to_jsonb({"sync_results": sync_results}), job_id))
        logger.info("Contact sync job completed", job_id=job_id)

    @classmethod
    async def mark_failed(cls, job_id: str, error_message: str) -> None:
        truncated_error = (error_message or "Unknown error")[:500]
        query = """
            UPDATE contact_specific_sync_jobs
            SET status = 'failed',
                processed_at = NOW(),
                error_message = %s
            WHERE id = %s
        """
        await execute_query(query, (truncated_error, job_id))
        logger.warning("Contact sync job failed", job_id=job_id, error=truncated_error)
