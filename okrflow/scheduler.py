"""
In-process scheduler for the reminder and scoring jobs.

Every tick walks all organizations and runs each job whose last run
(``settings["jobs"]``) is older than its cadence. There is no cross-process
coordination: run a single API process with the scheduler enabled, or
disable it and call the cron endpoints instead.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select

from okrflow.config import get_settings
from okrflow.db import DbClient, OrganizationRow
from okrflow.jobs import run_reminder_job, run_scoring_job

logger = logging.getLogger(__name__)

JOB_ID = "okr_jobs"

_run_lock = threading.Lock()
_scheduler: Optional[BackgroundScheduler] = None
_scheduler_lock = threading.Lock()


def _parse_iso(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_due(last_run, cadence_hours: float, now: datetime) -> bool:
    last = _parse_iso(last_run)
    return last is None or now - last > timedelta(hours=cadence_hours)


def run_jobs_once(db: DbClient, now: Optional[datetime] = None) -> Optional[dict]:
    """
    One scheduler tick. Returns None when another tick is still running,
    otherwise counts of the jobs that ran.
    """
    if not _run_lock.acquire(blocking=False):
        logger.info("scheduler: previous run still in progress, skipping")
        return None
    try:
        settings = get_settings()
        now = now or datetime.now(timezone.utc)
        result = {"orgs": 0, "reminder_runs": 0, "scoring_runs": 0}
        with db.Session() as session:
            orgs = session.execute(select(OrganizationRow)).scalars().all()
            result["orgs"] = len(orgs)
            for org in orgs:
                stored = dict(org.settings or {})
                jobs = dict(stored.get("jobs") or {})
                changed = False

                if _is_due(jobs.get("last_reminder_run"), settings.reminder_cadence_hours, now):
                    try:
                        with session.begin_nested():
                            run_reminder_job(session, org.id, now.date())
                        jobs["last_reminder_run"] = now.isoformat()
                        result["reminder_runs"] += 1
                        changed = True
                    except Exception:
                        logger.exception("scheduler: reminder job failed org=%s", org.id)

                if _is_due(jobs.get("last_scoring_run"), settings.scoring_cadence_hours, now):
                    try:
                        with session.begin_nested():
                            run_scoring_job(session, org.id)
                        jobs["last_scoring_run"] = now.isoformat()
                        result["scoring_runs"] += 1
                        changed = True
                    except Exception:
                        logger.exception("scheduler: scoring job failed org=%s", org.id)

                if changed:
                    stored["jobs"] = jobs
                    org.settings = stored
                session.commit()
        return result
    finally:
        _run_lock.release()


def _tick(db: DbClient) -> None:
    try:
        run_jobs_once(db)
    except Exception:
        logger.exception("scheduler run failed")


def ensure_background_scheduler(db: DbClient) -> Optional[BackgroundScheduler]:
    """Start the interval scheduler once per process; first tick fires immediately."""
    global _scheduler
    settings = get_settings()
    if settings.disable_internal_scheduler:
        logger.info("scheduler: disabled by configuration")
        return None
    with _scheduler_lock:
        if _scheduler is not None:
            return _scheduler
        scheduler = BackgroundScheduler(daemon=True)
        scheduler.add_job(
            func=_tick,
            args=[db],
            trigger=IntervalTrigger(seconds=settings.scheduler_interval_seconds),
            id=JOB_ID,
            name="Run OKR reminder and scoring jobs",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )
        scheduler.start()
        logger.info(
            "scheduler: started, interval=%ss", settings.scheduler_interval_seconds
        )
        _scheduler = scheduler
        return scheduler


def shutdown_background_scheduler() -> None:
    global _scheduler
    with _scheduler_lock:
        if _scheduler is None:
            return
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("scheduler: stopped")
