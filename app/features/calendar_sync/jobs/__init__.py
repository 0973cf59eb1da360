"""
Job runners for the calendar sync feature.
"""

from .batch_sync_job import CalendarSyncJob, CalendarSyncJobError
from .contact_sync_job import ContactSyncJobProcessor

__all__ = ["CalendarSyncJob", "CalendarSyncJobError", "ContactSyncJobProcessor"]
