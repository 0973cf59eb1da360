"""
Persistence for user_integrations rows used by calendar sync.
"""

from app.db.helpers import DatabaseError, execute_query, fetch_all, fetch_one, with_db_retry
from app.features.calendar_sync.domain import (
    GOOGLE_CALENDAR_PROVIDER,
    IntegrationRecord,
    TokenUpdate,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class IntegrationRepositoryError(DatabaseError):
    """Raised when integration rows cannot be read or written."""


class IntegrationRepository:
    SELECT_COLUMNS = """
        id, user_id, integration_type, access_token, refresh_token,
        token_expires_at, metadata, created_at, updated_at
    """

    @classmethod
    def _row_to_integration(cls, row: dict | None) -> IntegrationRecord | None:
        if not row:
            return None

        return IntegrationRecord(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            integration_type=row.get("integration_type") or GOOGLE_CALENDAR_PROVIDER,
            access_token=row.get("access_token") or "",
            refresh_token=row.get("refresh_token"),
            token_expires_at=row.get("token_expires_at"),
            metadata=row.get("metadata") or {},
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
        )

    @classmethod
    @with_db_retry(max_retries=2)
    async def get_for_user(
        cls, user_id: str, provider: str = GOOGLE_CALENDAR_PROVIDER
    ) -> IntegrationRecord | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM user_integrations
            WHERE user_id = %s AND integration_type = %s
            ORDER BY updated_at DESC NULLS LAST
            LIMIT 1
        """
        row = await fetch_one(query, (user_id, provider))
        return cls._row_to_integration(row)

    @classmethod
    @with_db_retry(max_retries=2)
    async def list_active(
        cls, provider: str = GOOGLE_CALENDAR_PROVIDER, user_id: str | None = None
    ) -> list[IntegrationRecord]:
        """All integrations for a provider, optionally narrowed to one user."""
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM user_integrations
            WHERE integration_type = %s
        """
        params: tuple = (provider,)
        if user_id:
            query += " AND user_id = %s"
            params = (provider, user_id)
        query += " ORDER BY created_at ASC"

        rows = await fetch_all(query, params)
        return [cls._row_to_integration(row) for row in rows]

    @classmethod
    async def update_tokens(cls, integration_id: str, update: TokenUpdate) -> None:
        """
        Persist newly issued tokens.

        The access token is always written. The refresh token and expiry are
        only overwritten when the provider supplied them.
        """
        query = """
            UPDATE user_integrations
            SET access_token = %s,
                refresh_token = COALESCE(%s, refresh_token),
                token_expires_at = COALESCE(%s, token_expires_at),
                updated_at = NOW()
            WHERE id = %s
        """
        updated = await execute_query(
            query,
            (update.access_token, update.refresh_token, update.expires_at, integration_id),
        )
        if not updated:
            raise IntegrationRepositoryError(
                f"Integration {integration_id} not found", operation="update_tokens"
            )

        logger.info(
            "Integration tokens persisted",
            integration_id=integration_id,
            refresh_token_rotated=bool(update.refresh_token),
        )
