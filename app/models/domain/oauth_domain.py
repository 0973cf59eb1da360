# models/domain/oauth_domain.py
"""
OAuth integration domain models for the Google Calendar integration.
Mirrors the user_integrations row the sync engine reads and writes.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field


class IntegrationRecord(BaseModel):
    """Stored credential set linking one user to one provider."""

    id: str
    user_id: str
    integration_type: str = "google_calendar"
    access_token: str = ""
    refresh_token: str | None = None
    token_expires_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_expired(self, buffer_seconds: int = 0, now: datetime | None = None) -> bool:
        """Check if the access token is expired (or will be within buffer_seconds)."""
        if not self.token_expires_at:
            return False
        now = now or datetime.now(UTC)
        expires_at = self.token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=UTC)
        return now + timedelta(seconds=buffer_seconds) >= expires_at

    def is_refreshable(self) -> bool:
        return bool(self.refresh_token)

    def is_usable(self, now: datetime | None = None) -> bool:
        """An expired access token with no refresh token cannot be used this run."""
        if self.is_refreshable():
            return True
        return bool(self.access_token) and not self.is_expired(now=now)

    def apply_tokens(self, update: "TokenUpdate") -> None:
        """Adopt freshly issued credentials in memory after they were persisted."""
        self.access_token = update.access_token
        if update.refresh_token:
            self.refresh_token = update.refresh_token
        if update.expires_at:
            self.token_expires_at = update.expires_at


class TokenUpdate(BaseModel):
    """New credentials issued by the provider during a call."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
