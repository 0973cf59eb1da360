"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, opens the database pool, runs the job once and exits. Lets cron
drive the same sync code the HTTP entry points use.
"""

import asyncio
import json
import os
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from app.db.pool import db_pool
from app.features.calendar_sync.jobs import CalendarSyncJob, ContactSyncJobProcessor
from app.infrastructure.observability.logging import get_logger, setup_logging

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[Any]]


async def run_calendar_sync() -> dict:
    return await CalendarSyncJob().run(
        mode=os.getenv("CALENDAR_SYNC_MODE"),
        user_id=os.getenv("CALENDAR_SYNC_USER_ID") or None,
    )


async def run_nightly_calendar_sync() -> dict:
    return await CalendarSyncJob().run(mode="nightly")


async def run_contact_sync_jobs() -> dict:
    return await ContactSyncJobProcessor().run()


JOB_REGISTRY: dict[str, JobCoroutine] = {
    "calendar_sync": run_calendar_sync,
    "nightly_calendar_sync": run_nightly_calendar_sync,
    "contact_sync_jobs": run_contact_sync_jobs,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "nightly_calendar_sync").strip().lower()


async def run_worker(job_name: str | None = None) -> Any:
    """Run the requested job once with the database pool open."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)

    opened_pool = False
    if not db_pool.initialized:
        await db_pool.initialize()
        opened_pool = True

    try:
        result = await JOB_REGISTRY[name]()
    finally:
        if opened_pool:
            await db_pool.close()

    logger.info("Background worker finished", job=name)
    return result


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
    job_name = _resolve_job_name()
    result = asyncio.run(run_worker(job_name))
    if result is not None:
        print(json.dumps(result, default=str))


if __name__ == "__main__":
    main()
