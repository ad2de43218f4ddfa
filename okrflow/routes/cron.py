"""
Externally triggered reminder and scoring runs.

GET is meant for hosted cron services and requires ``Authorization: Bearer
<CRON_SECRET>``. POST accepts either the ``x-cron-secret`` header or a
manager session, which is limited to the caller's own organization.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Header
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select

from okrflow.auth import get_current_user, require_org, security
from okrflow.config import get_settings
from okrflow.db import DbClient, OrganizationRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.jobs import run_reminder_job, run_scoring_job
from okrflow.rbac import is_manager_or_higher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["cron"])


@dataclass
class CronCaller:
    is_cron: bool
    org_id: Optional[str] = None


def _secret_matches(provided: Optional[str]) -> bool:
    expected = get_settings().cron_secret
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided, expected)


def cron_bearer(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> CronCaller:
    if credentials is None or not _secret_matches(credentials.credentials):
        raise errors.unauthorized()
    return CronCaller(is_cron=True)


def cron_or_manager(
    x_cron_secret: Optional[str] = Header(default=None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DbClient = Depends(get_db_client),
) -> CronCaller:
    if _secret_matches(x_cron_secret):
        return CronCaller(is_cron=True)
    user = get_current_user(credentials, db)
    if not is_manager_or_higher(user.role):
        raise errors.forbidden()
    return CronCaller(is_cron=False, org_id=require_org(user))


def _run_for_orgs(
    db: DbClient,
    caller: CronCaller,
    org_param: Optional[str],
    name: str,
    job: Callable[..., dict],
) -> dict:
    started = time.monotonic()
    with db.Session() as session:
        if caller.is_cron and org_param == "all":
            org_ids = session.execute(select(OrganizationRow.id)).scalars().all()
        else:
            org_id = caller.org_id or org_param
            if not org_id or org_id == "all":
                raise errors.validation(f"Missing org_id for {name} run")
            if not session.get(OrganizationRow, org_id):
                raise errors.not_found("Organization")
            org_ids = [org_id]

        totals: dict = {}
        for org_id in org_ids:
            result = job(session, org_id)
            for key, value in result.items():
                if key != "ms":
                    totals[key] = totals.get(key, 0) + value
        session.commit()

    totals["org_count"] = len(org_ids)
    totals["ms"] = int((time.monotonic() - started) * 1000)
    logger.info("cron:%s complete %s", name, totals)
    return totals


def _reminders(db: DbClient, caller: CronCaller, org_id: Optional[str]):
    return success(_run_for_orgs(db, caller, org_id, "reminders", run_reminder_job))


def _scoring(db: DbClient, caller: CronCaller, org_id: Optional[str], cycle: Optional[str]):
    def job(session, target_org_id):
        return run_scoring_job(session, target_org_id, cycle or None)

    return success(_run_for_orgs(db, caller, org_id, "scoring", job))


@router.get("/reminders")
def cron_reminders_get(
    org_id: Optional[str] = None,
    caller: CronCaller = Depends(cron_bearer),
    db: DbClient = Depends(get_db_client),
):
    return _reminders(db, caller, org_id)


@router.post("/reminders")
def cron_reminders_post(
    org_id: Optional[str] = None,
    caller: CronCaller = Depends(cron_or_manager),
    db: DbClient = Depends(get_db_client),
):
    return _reminders(db, caller, org_id)


@router.get("/scoring")
def cron_scoring_get(
    org_id: Optional[str] = None,
    cycle: Optional[str] = None,
    caller: CronCaller = Depends(cron_bearer),
    db: DbClient = Depends(get_db_client),
):
    return _scoring(db, caller, org_id, cycle)


@router.post("/scoring")
def cron_scoring_post(
    org_id: Optional[str] = None,
    cycle: Optional[str] = None,
    caller: CronCaller = Depends(cron_or_manager),
    db: DbClient = Depends(get_db_client),
):
    return _scoring(db, caller, org_id, cycle)
