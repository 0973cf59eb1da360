# app/models/api/calendar_response.py
"""
Calendar sync API response models.
Used by routes for output formatting.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CalendarIntegrationStatus(BaseModel):
    """Connection state of the user's Google Calendar integration."""

    connected: bool = Field(..., description="Whether a calendar integration exists")
    connectedAt: datetime | None = Field(None, description="When the integration was created")
    lastUpdated: datetime | None = Field(None, description="When tokens were last written")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Integration metadata")


class SyncLogEntry(BaseModel):
    id: str
    status: str | None = None
    sync_started_at: datetime | None = None
    sync_completed_at: datetime | None = None
    events_processed: int | None = None
    artifacts_created: int | None = None
    contacts_updated: list[str] | None = None
    errors: Any = None
    metadata: dict[str, Any] | None = None


class CalendarSyncStatusResponse(BaseModel):
    """Response for GET /calendar/sync/status."""

    integration: CalendarIntegrationStatus
    recentSyncs: list[SyncLogEntry] = Field(
        default_factory=list, description="Most recent sync logs, newest first"
    )
