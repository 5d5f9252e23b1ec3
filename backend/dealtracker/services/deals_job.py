"""
Daily deals job: discovery -> persistence -> push alerts -> rule
notifications -> job log.

Every run is recorded in job_logs. Per-rule, per-deal and per-channel
failures are logged and skipped; anything that escapes marks the run as
errored.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from dealtracker.database import SessionLocal
from dealtracker.models import DealRecord, JobLog, JobStatus, MonitoringRule
from dealtracker.services.deals_service import DealsService, group_deals_by_rule, group_deals_by_user
from dealtracker.services.notification import NotificationDispatcher
from dealtracker.services.push_alerts import PushAlertService

logger = logging.getLogger(__name__)

JOB_TYPE = "daily_deals_search"

_job_lock = asyncio.Lock()


@dataclass
class JobResult:
    success: bool
    rules_processed: int = 0
    deals_found: int = 0
    notifications_sent: int = 0
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


def is_job_running() -> bool:
    return _job_lock.locked()


def _create_job_log(db: Session) -> JobLog:
    job_log = JobLog(
        job_type=JOB_TYPE,
        status=JobStatus.RUNNING,
        rules_processed=0,
        deals_found=0,
        notifications_sent=0,
        started_at=datetime.utcnow(),
    )
    db.add(job_log)
    db.commit()
    db.refresh(job_log)
    return job_log


def _mark_notified(db: Session, deals: list):
    ids = [d.record_id for d in deals if d.record_id is not None]
    if not ids:
        return
    now = datetime.utcnow()
    db.query(DealRecord).filter(DealRecord.id.in_(ids)).update(
        {DealRecord.notified_at: now}, synchronize_session=False
    )
    db.commit()


async def _notify_rules(db: Session, job_id: int, deals: list, dispatcher: NotificationDispatcher) -> int:
    notifications_sent = 0

    for user_id, user_deals in group_deals_by_user(deals).items():
        user_rules = {
            rule.id: rule
            for rule in db.query(MonitoringRule).filter(MonitoringRule.user_id == user_id).all()
        }

        for rule_id, rule_deals in group_deals_by_rule(user_deals).items():
            rule = user_rules.get(rule_id)
            if not rule:
                continue

            result = await dispatcher.send_notifications(rule, rule_deals)
            if result.any_sent:
                notifications_sent += 1
                _mark_notified(db, rule_deals)
                logger.info(f"[Job {job_id}] Sent notification for rule {rule_id} ({len(rule_deals)} deals)")

    return notifications_sent


async def run_daily_deals_job(
    db: Optional[Session] = None,
    deals_service: Optional[DealsService] = None,
    dispatcher: Optional[NotificationDispatcher] = None,
    push_service: Optional[PushAlertService] = None,
) -> JobResult:
    """Run the whole pipeline once. Concurrent triggers are refused."""
    if _job_lock.locked():
        logger.warning("Daily deals job already running, skipping trigger")
        return JobResult(success=False, error="Job already running")

    async with _job_lock:
        owns_session = db is None
        if owns_session:
            db = SessionLocal()

        owns_deals_service = deals_service is None
        owns_dispatcher = dispatcher is None
        deals_service = deals_service or DealsService(db)
        dispatcher = dispatcher or NotificationDispatcher()
        push_service = push_service or PushAlertService(db)

        start_time = time.monotonic()
        job_log: Optional[JobLog] = None

        try:
            job_log = _create_job_log(db)
            job_id = job_log.id
            logger.info(f"[Job {job_id}] Starting daily deals search...")

            result = await deals_service.process_all_rules()
            logger.info(
                f"[Job {job_id}] Processed {result.rules_processed} rules, found {result.deals_found} deals"
            )

            push_result = await push_service.process_push_alerts(result.deals)
            logger.info(
                f"[Job {job_id}] Processed push alerts: {push_result.alerts_triggered} triggered, "
                f"{push_result.notifications_sent} sent"
            )

            notifications_sent = await _notify_rules(db, job_id, result.deals, dispatcher)

            execution_time = int((time.monotonic() - start_time) * 1000)
            job_log.status = JobStatus.SUCCESS
            job_log.rules_processed = result.rules_processed
            job_log.deals_found = result.deals_found
            job_log.notifications_sent = notifications_sent
            job_log.execution_time = execution_time
            job_log.completed_at = datetime.utcnow()
            db.commit()

            logger.info(
                f"[Job {job_id}] Completed successfully in {execution_time}ms. "
                f"Sent {notifications_sent} notifications."
            )

            return JobResult(
                success=True,
                rules_processed=result.rules_processed,
                deals_found=result.deals_found,
                notifications_sent=notifications_sent,
            )

        except Exception as e:
            execution_time = int((time.monotonic() - start_time) * 1000)
            error_message = str(e) or type(e).__name__
            job_id = job_log.id if job_log is not None else None
            logger.exception(f"[Job {job_id}] Failed: {error_message}")

            if job_log is not None:
                db.rollback()
                job_log.status = JobStatus.ERROR
                job_log.error_message = error_message
                job_log.execution_time = execution_time
                job_log.completed_at = datetime.utcnow()
                db.commit()

            return JobResult(success=False, error=error_message)

        finally:
            if owns_deals_service:
                await deals_service.close()
            if owns_dispatcher:
                await dispatcher.close()
            if owns_session:
                db.close()


async def trigger_manual_job() -> JobResult:
    logger.info("Manually triggering daily deals job...")
    result = await run_daily_deals_job()
    logger.info(f"Manual job result: {result}")
    return result
