"""
Domain models for the calendar sync feature.

Plain dataclasses shared by repositories, services, jobs and the API
layer. Provider event shapes live in app.models.domain.calendar_domain.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

GOOGLE_CALENDAR_PROVIDER = "google_calendar"
MATCH_CONFIDENCE_EXACT = 1.0


@dataclass(frozen=True, slots=True)
class SyncMode:
    name: str
    lookback_days: int
    lookforward_days: int
    description: str


SYNC_MODES: dict[str, SyncMode] = {
    "nightly": SyncMode("nightly", 7, 30, "Regular maintenance sync"),
    "onboarding": SyncMode("onboarding", 365, 90, "Comprehensive onboarding sync"),
    "manual": SyncMode("manual", 30, 60, "Manual user-triggered sync"),
    "historical": SyncMode("historical", 730, 30, "Deep historical analysis"),
}
DEFAULT_SYNC_MODE = "nightly"


def resolve_sync_mode(mode: str | None) -> SyncMode:
    """Look up a preset by name; unknown or empty names fall back to nightly."""
    name = (mode or DEFAULT_SYNC_MODE).strip().lower()
    return SYNC_MODES.get(name, SYNC_MODES[DEFAULT_SYNC_MODE])


@dataclass(slots=True)
class ContactSnapshot:
    """Contact row plus every email address associated with it."""

    id: str
    name: str | None = None
    email: str | None = None
    email_addresses: list[str] = field(default_factory=list)
    linked_emails: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ContactEmailMatch:
    contact_id: str
    contact: ContactSnapshot
    matched_emails: list[str]
    confidence: float = MATCH_CONFIDENCE_EXACT


@dataclass(slots=True)
class ReconcileError:
    event_id: str
    error: str
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> dict[str, str]:
        return {"eventId": self.event_id, "error": self.error, "timestamp": self.timestamp}


@dataclass(slots=True)
class ReconcileResult:
    created: int = 0
    updated: int = 0
    errors: list[ReconcileError] = field(default_factory=list)


@dataclass(slots=True)
class UserSyncResult:
    """Outcome of one user's pipeline run."""

    user_id: str
    sync_log_id: str | None
    events_processed: int
    artifacts_created: int
    artifacts_updated: int
    contacts_updated: list[str]
    errors: list[ReconcileError] = field(default_factory=list)


@dataclass(slots=True)
class ContactSyncJob:
    """A contact_specific_sync_jobs row joined with its contact."""

    id: str
    contact_id: str
    user_id: str
    status: str
    sync_options: dict[str, Any]
    metadata: dict[str, Any]
    created_at: datetime | None
    contact: ContactSnapshot

    @property
    def lookback_days(self) -> int:
        return int(self.sync_options.get("lookbackDays", 0) or 0)

    @property
    def lookforward_days(self) -> int:
        return int(self.sync_options.get("lookforwardDays", 0) or 0)
