"""
Per-organization background jobs: objective scoring and weekly check-in
reminders. Both run inside the caller's session; the caller commits.
"""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from okrflow.dates import utc_today, week_start
from okrflow.db import KeyResultRow, ObjectiveRow
from okrflow.notifications import create_notification
from okrflow.org_settings import merge_notification_settings
from okrflow.progress import calc_progress, objective_score, scored_status
from okrflow.types import NotificationType, ObjectiveStatus, ProgressType

logger = logging.getLogger(__name__)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


def run_scoring_job(session: Session, org_id: str, cycle: Optional[str] = None) -> dict:
    started = time.monotonic()
    stmt = (
        select(ObjectiveRow)
        .where(ObjectiveRow.org_id == org_id)
        .options(selectinload(ObjectiveRow.key_results))
    )
    if cycle:
        stmt = stmt.where(ObjectiveRow.cycle == cycle)

    updated = 0
    for objective in session.execute(stmt).scalars():
        manual = objective.progress_type == ProgressType.MANUAL.value
        if not manual and not objective.key_results:
            continue
        if manual:
            progress = round(objective.progress or 0)
        else:
            progress = calc_progress(
                [
                    {"current": kr.current or 0, "target": kr.target, "weight": kr.weight}
                    for kr in objective.key_results
                ]
            )
            objective.progress = progress
        objective.score = objective_score(progress)
        objective.status = scored_status(progress, ObjectiveStatus(objective.status)).value
        updated += 1

    session.flush()
    ms = _elapsed_ms(started)
    logger.info("scoring job org=%s cycle=%s updated=%d ms=%d", org_id, cycle, updated, ms)
    return {"updated_count": updated, "ms": ms}


def run_reminder_job(session: Session, org_id: str, today: Optional[date] = None) -> dict:
    started = time.monotonic()
    this_week = week_start(today or utc_today())
    key_results = session.execute(
        select(KeyResultRow)
        .join(ObjectiveRow, KeyResultRow.objective_id == ObjectiveRow.id)
        .where(ObjectiveRow.org_id == org_id)
        .options(
            selectinload(KeyResultRow.objective).selectinload(ObjectiveRow.owner),
            selectinload(KeyResultRow.check_ins),
        )
    ).scalars().all()

    reminders = 0
    for kr in key_results:
        latest = max((ci.week_start for ci in kr.check_ins), default=None)
        if latest is not None and latest >= this_week:
            continue
        owner = kr.objective.owner
        if not owner:
            continue
        prefs = merge_notification_settings(owner.notification_settings)
        if not prefs["push_check_in_reminders"]:
            continue
        create_notification(
            session,
            user_id=owner.id,
            type=NotificationType.CHECKIN_DUE,
            message=f'Weekly check-in due for "{kr.objective.title}"',
            metadata={"key_result_id": kr.id, "objective_id": kr.objective_id},
        )
        reminders += 1

    ms = _elapsed_ms(started)
    logger.info("reminder job org=%s reminders=%d ms=%d", org_id, reminders, ms)
    return {"reminders": reminders, "ms": ms}
