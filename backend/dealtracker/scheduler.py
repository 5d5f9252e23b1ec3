"""
APScheduler setup. One in-process daily job.
"""

import logging
import os
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from dealtracker.config import get_settings
from dealtracker.services.deals_job import run_daily_deals_job

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

settings = get_settings()

DAILY_JOB_ID = "daily_deals_search"


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        tz = os.environ.get('TZ', 'UTC')
        logger.info(f"Scheduler using timezone: {tz}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=tz
        )

        _setup_scheduled_jobs(scheduler)

    return scheduler


def _setup_scheduled_jobs(sched: AsyncIOScheduler):
    sched.add_job(
        scheduled_deals_job,
        trigger=CronTrigger(hour=settings.job_cron_hour, minute=settings.job_cron_minute),
        id=DAILY_JOB_ID,
        name=f'Daily Deals Search ({settings.job_cron_hour:02d}:{settings.job_cron_minute:02d})',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    logger.info(
        f"Scheduled jobs configured: daily deals search at "
        f"{settings.job_cron_hour:02d}:{settings.job_cron_minute:02d} (local time)"
    )


async def scheduled_deals_job():
    """Entry point for the cron trigger; the job records its own failures."""
    logger.info("Starting scheduled daily deals job")
    result = await run_daily_deals_job()
    if result.success:
        logger.info(
            f"Scheduled job done: {result.rules_processed} rules, "
            f"{result.deals_found} deals, {result.notifications_sent} notifications"
        )
    else:
        logger.error(f"Scheduled job failed: {result.error}")


def start_scheduler():
    """Start the scheduler (call this from FastAPI startup)."""
    scheduler_instance = get_scheduler()

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")

        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
    scheduler = None


def get_scheduler_status() -> dict:
    """Get scheduler status for the jobs API."""
    if scheduler is None or not scheduler.running:
        return {
            "running": False,
            "jobs": [],
            "next_run": None
        }

    jobs = []
    next_run = None

    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })
        if job.next_run_time and (next_run is None or job.next_run_time < next_run):
            next_run = job.next_run_time

    return {
        "running": True,
        "jobs": jobs,
        "next_run": next_run.isoformat() if next_run else None
    }
