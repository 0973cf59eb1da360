"""
Persistence for meeting artifacts and their follow-up session actions.
"""

from datetime import datetime
from typing import Any

from app.db.helpers import DatabaseError, execute_query, fetch_one, fetch_val, to_jsonb
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

MEETING_ARTIFACT_TYPE = "meeting"
MEETING_NOTES_ACTION = "add_meeting_notes"


class ArtifactRepositoryError(DatabaseError):
    """Raised when a meeting artifact write does not land."""


class ArtifactRepository:
    @classmethod
    async def find_meeting_id(cls, contact_id: str, google_calendar_id: str) -> str | None:
        """Existing meeting artifact for (contact, external event), if any."""
        query = """
            SELECT id
            FROM artifacts
            WHERE contact_id = %s
              AND type = %s
              AND metadata->>'google_calendar_id' = %s
            ORDER BY created_at ASC
            LIMIT 1
        """
        artifact_id = await fetch_val(
            query, (contact_id, MEETING_ARTIFACT_TYPE, google_calendar_id)
        )
        return str(artifact_id) if artifact_id else None

    @classmethod
    async def insert_meeting(
        cls,
        user_id: str,
        contact_id: str,
        content: str,
        metadata: dict[str, Any],
        timestamp: datetime | str | None,
    ) -> str:
        query = """
            INSERT INTO artifacts (
                user_id, contact_id, type, content, metadata, timestamp, ai_parsing_status
            )
            VALUES (%s, %s, %s, %s, %s::jsonb, COALESCE(%s::timestamptz, NOW()), 'pending')
            RETURNING id
        """
        row = await fetch_one(
            query,
            (user_id, contact_id, MEETING_ARTIFACT_TYPE, content, to_jsonb(metadata), timestamp),
        )
        if not row:
            raise ArtifactRepositoryError(
                "Failed to insert meeting artifact", operation="insert_meeting"
            )
        return str(row["id"])

    @classmethod
    async def update_meeting(
        cls,
        artifact_id: str,
        content: str,
        metadata: dict[str, Any],
        timestamp: datetime | str | None,
    ) -> None:
        """Rewrite content, metadata and timestamp; AI parsing state is left alone."""
        query = """
            UPDATE artifacts
            SET content = %s,
                metadata = %s::jsonb,
                timestamp = COALESCE(%s::timestamptz, timestamp),
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(query, (content, to_jsonb(metadata), timestamp, artifact_id))
        if not updated:
            raise ArtifactRepositoryError(
                f"Meeting artifact {artifact_id} not found", operation="update_meeting"
            )

    @classmethod
    async def insert_session_action(
        cls,
        user_id: str,
        contact_id: str,
        goal_id: str,
        artifact_id: str,
        action_data: dict[str, Any],
    ) -> None:
        """Orphaned pending action; a later relationship session picks it up."""
        query = """
            INSERT INTO session_actions (
                user_id, session_id, action_type, contact_id, goal_id,
                meeting_artifact_id, action_data, status
            )
            VALUES (%s, NULL, %s, %s, %s, %s, %s::jsonb, 'pending')
        """
        await execute_query(
            query,
            (
                user_id,
                MEETING_NOTES_ACTION,
                contact_id,
                goal_id,
                artifact_id,
                to_jsonb(action_data),
            ),
        )
        logger.info(
            "Meeting notes session action created",
            user_id=user_id,
            contact_id=contact_id,
            artifact_id=artifact_id,
        )
