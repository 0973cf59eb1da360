"""
Calendar sync feature package.

Everything needed to pull Google Calendar events into meeting artifacts
lives here: domain models, repositories, services, jobs and the HTTP
routers that trigger them.
"""

from .api.router import functions_router, status_router  # noqa: F401
from .jobs.batch_sync_job import CalendarSyncJob, CalendarSyncJobError  # noqa: F401
from .jobs.contact_sync_job import ContactSyncJobProcessor  # noqa: F401
