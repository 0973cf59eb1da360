"""
Calendar sync routes.

Scheduled entry points (POST /functions/...) are called by cron with the
shared secret as a bearer token. The status route is for signed-in users.
"""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from app.auth.verify import auth_dependency, cron_auth_dependency
from app.features.calendar_sync.jobs.batch_sync_job import CalendarSyncJob
from app.features.calendar_sync.jobs.contact_sync_job import ContactSyncJobProcessor
from app.features.calendar_sync.repository.integration_repository import IntegrationRepository
from app.features.calendar_sync.repository.sync_log_repository import SyncLogRepository
from app.infrastructure.observability.logging import get_logger
from app.models.api.calendar_request import CalendarSyncRequest
from app.models.api.calendar_response import (
    CalendarIntegrationStatus,
    CalendarSyncStatusResponse,
    SyncLogEntry,
)

logger = get_logger(__name__)

functions_router = APIRouter(
    prefix="/functions",
    tags=["calendar-sync"],
    dependencies=[Depends(cron_auth_dependency)],
)
status_router = APIRouter(prefix="/calendar/sync", tags=["calendar-sync"])

RECENT_SYNC_LOG_LIMIT = 10


def get_calendar_sync_job() -> CalendarSyncJob:
    return CalendarSyncJob()


def get_contact_sync_processor() -> ContactSyncJobProcessor:
    return ContactSyncJobProcessor()


def _failure_response(error: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": str(error) or type(error).__name__,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def _read_sync_request(request: Request) -> CalendarSyncRequest:
    """Missing or malformed JSON falls back to nightly defaults."""
    try:
        payload = await request.json()
    except ValueError:
        payload = {}

    if not isinstance(payload, dict):
        payload = {}

    try:
        return CalendarSyncRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.errors(include_url=False),
        ) from e


async def _run_calendar_sync(job: CalendarSyncJob, body: CalendarSyncRequest) -> Any:
    try:
        return await job.run(
            mode=body.mode,
            lookback_days=body.lookback_days,
            lookforward_days=body.lookforward_days,
            user_id=body.user_id,
        )
    except Exception as e:
        logger.error("Calendar sync invocation failed", error=str(e), error_type=type(e).__name__)
        return _failure_response(e)


@functions_router.post("/calendar-sync")
async def calendar_sync(
    request: Request, job: CalendarSyncJob = Depends(get_calendar_sync_job)
) -> Any:
    body = await _read_sync_request(request)
    return await _run_calendar_sync(job, body)


@functions_router.post("/nightly-calendar-sync")
async def nightly_calendar_sync(job: CalendarSyncJob = Depends(get_calendar_sync_job)) -> Any:
    return await _run_calendar_sync(job, CalendarSyncRequest(mode="nightly"))


@functions_router.post("/process-contact-sync-jobs")
async def process_contact_sync_jobs(
    processor: ContactSyncJobProcessor = Depends(get_contact_sync_processor),
) -> Any:
    try:
        return await processor.run()
    except Exception as e:
        logger.error(
            "Contact sync job processing failed", error=str(e), error_type=type(e).__name__
        )
        return _failure_response(e)


@status_router.get("/status", response_model=CalendarSyncStatusResponse)
async def get_calendar_sync_status(claims: dict = Depends(auth_dependency)):
    """Integration state plus the most recent sync logs for the caller."""
    user_id = claims.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has no subject")

    integration = await IntegrationRepository.get_for_user(user_id)
    logs = await SyncLogRepository.recent_for_user(user_id, limit=RECENT_SYNC_LOG_LIMIT)

    return CalendarSyncStatusResponse(
        integration=CalendarIntegrationStatus(
            connected=integration is not None,
            connectedAt=integration.created_at if integration else None,
            lastUpdated=integration.updated_at if integration else None,
            metadata=integration.metadata if integration else {},
        ),
        recentSyncs=[SyncLogEntry(**{**row, "id": str(row["id"])}) for row in logs],
    )
