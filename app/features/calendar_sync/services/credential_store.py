"""
Credential store adapter for calendar integrations.

Thin seam over IntegrationRepository so the sync pipeline, the job
processor and the calendar client's token callback share one entry point.
"""

from app.features.calendar_sync.domain import (
    GOOGLE_CALENDAR_PROVIDER,
    IntegrationRecord,
    TokenUpdate,
)
from app.features.calendar_sync.repository.integration_repository import IntegrationRepository
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class IntegrationNotFoundError(Exception):
    """User has no stored integration for the provider."""

    def __init__(self, user_id: str, provider: str = GOOGLE_CALENDAR_PROVIDER):
        super().__init__(f"No Google Calendar integration found for user {user_id}")
        self.user_id = user_id
        self.provider = provider


class CredentialStore:
    def __init__(self, repository: type[IntegrationRepository] = IntegrationRepository):
        self.repository = repository

    async def get_integration(
        self, user_id: str, provider: str = GOOGLE_CALENDAR_PROVIDER
    ) -> IntegrationRecord:
        integration = await self.repository.get_for_user(user_id, provider)
        if integration is None:
            logger.warning("Integration not found", user_id=user_id, provider=provider)
            raise IntegrationNotFoundError(user_id, provider)
        return integration

    async def list_integrations(
        self, user_id: str | None = None, provider: str = GOOGLE_CALENDAR_PROVIDER
    ) -> list[IntegrationRecord]:
        return await self.repository.list_active(provider, user_id=user_id)

    async def update_tokens(self, integration_id: str, update: TokenUpdate) -> None:
        """Token callback handed to GoogleCalendarService."""
        await self.repository.update_tokens(integration_id, update)


credential_store = CredentialStore()
