"""
Service layer for the calendar sync feature.
"""

from .artifact_reconciler import MeetingArtifactReconciler, build_meeting_metadata
from .contact_index import ContactIndexBuilder, ContactIndexError, build_email_index
from .credential_store import CredentialStore, IntegrationNotFoundError, credential_store
from .matcher import match_events_to_contacts
from .sync_log_recorder import SyncLogRecorder
from .user_sync_service import UserCalendarSyncService

__all__ = [
    "ContactIndexBuilder",
    "ContactIndexError",
    "CredentialStore",
    "IntegrationNotFoundError",
    "MeetingArtifactReconciler",
    "SyncLogRecorder",
    "UserCalendarSyncService",
    "build_email_index",
    "build_meeting_metadata",
    "credential_store",
    "match_events_to_contacts",
]
