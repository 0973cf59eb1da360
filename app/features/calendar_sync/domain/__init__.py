"""
Domain subpackage for the calendar sync feature.

Provider-level shapes (events, sync options, integration credentials) are
re-exported from app.models.domain so feature code has a single import site.
"""

from app.models.domain.calendar_domain import CalendarEvent, CalendarSyncOptions
from app.models.domain.oauth_domain import IntegrationRecord, TokenUpdate

from .models import (
    DEFAULT_SYNC_MODE,
    GOOGLE_CALENDAR_PROVIDER,
    MATCH_CONFIDENCE_EXACT,
    SYNC_MODES,
    ContactEmailMatch,
    ContactSnapshot,
    ContactSyncJob,
    ReconcileError,
    ReconcileResult,
    SyncMode,
    UserSyncResult,
    resolve_sync_mode,
)

__all__ = [
    "DEFAULT_SYNC_MODE",
    "GOOGLE_CALENDAR_PROVIDER",
    "MATCH_CONFIDENCE_EXACT",
    "SYNC_MODES",
    "CalendarEvent",
    "CalendarSyncOptions",
    "ContactEmailMatch",
    "ContactSnapshot",
    "ContactSyncJob",
    "IntegrationRecord",
    "ReconcileError",
    "ReconcileResult",
    "SyncMode",
    "TokenUpdate",
    "UserSyncResult",
    "resolve_sync_mode",
]
