"""
APScheduler Configuration

Background sync with the spreadsheet endpoint:
- a one-off download shortly after startup
- a sync pass on a fixed interval

Jobs are only registered when SYNC_ENABLED is set and an endpoint URL
is configured. Failures are logged and reflected in the sync status;
they never stop the scheduler.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from hr_portal.config import settings

logger = logging.getLogger(__name__)

# Job stores
jobstores = {
    'default': MemoryJobStore()
}

# Executors
executors = {
    'default': AsyncIOExecutor(),
}

# Job defaults
job_defaults = {
    'coalesce': True,  # Combine multiple pending executions into one
    'max_instances': 1,  # Only one instance of each job at a time
    'misfire_grace_time': 60,  # Allow 60 seconds grace time for misfires
}

# Create scheduler
scheduler = AsyncIOScheduler(
    jobstores=jobstores,
    executors=executors,
    job_defaults=job_defaults,
    timezone='Asia/Kolkata'
)


async def run_sync_job():
    """Scheduled sync pass against the remote dataset."""
    from hr_portal.database import get_db_session
    from hr_portal.services.storage_service import StorageRepository
    from hr_portal.services.sync_service import SyncService

    try:
        async with get_db_session() as db:
            result = await SyncService(StorageRepository(db)).sync()
        logger.info(f"Sync job finished: {result.state.value} ({result.last_action.value})")
    except Exception as e:
        logger.error(f"Sync job failed: {e}")


async def run_startup_download():
    """Pull the remote dataset once after startup."""
    from hr_portal.database import get_db_session
    from hr_portal.services.storage_service import StorageRepository
    from hr_portal.services.sync_service import SyncService

    try:
        async with get_db_session() as db:
            applied = await SyncService(StorageRepository(db)).download_from_cloud()
        logger.info(f"Startup download {'applied remote data' if applied else 'found nothing to apply'}")
    except Exception as e:
        logger.error(f"Startup download failed: {e}")


def start_scheduler():
    """Start the background scheduler and register the sync jobs."""
    if scheduler.running:
        return

    if settings.SYNC_ENABLED and settings.SYNC_ENDPOINT_URL:
        scheduler.add_job(
            run_startup_download,
            'date',
            run_date=datetime.now(scheduler.timezone) + timedelta(seconds=settings.SYNC_STARTUP_DELAY_SECONDS),
            id='startup_download',
            name='Download Remote Dataset',
            replace_existing=True,
        )

        scheduler.add_job(
            run_sync_job,
            'interval',
            seconds=settings.SYNC_INTERVAL_SECONDS,
            id='dataset_sync',
            name='Sync Dataset',
            replace_existing=True,
        )
    else:
        logger.info("Spreadsheet sync disabled, no background jobs registered")

    scheduler.start()
    logger.info("Background job scheduler started")

    # Log all scheduled jobs
    jobs = scheduler.get_jobs()
    for job in jobs:
        logger.info(f"Scheduled job: {job.name} - Next run: {job.next_run_time}")


def shutdown_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Background job scheduler stopped")


def get_job_status():
    """Get status of all scheduled jobs."""
    jobs = scheduler.get_jobs()
    return [
        {
            'id': job.id,
            'name': job.name,
            'next_run_time': str(job.next_run_time) if job.next_run_time else None,
            'trigger': str(job.trigger),
        }
        for job in jobs
    ]
