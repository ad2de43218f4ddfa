"""
Report downloads: synchronous rendering for small reports plus queued
export jobs that a worker renders and uploads to object storage.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response

from okrflow.auth import CurrentUser, get_current_user, require_org
from okrflow.config import get_settings
from okrflow.db import DbClient, OrganizationRow
from okrflow.dependencies import get_db_client, get_queue_client, get_storage_client
from okrflow.errors import errors, success
from okrflow.exporters import ExportMeta, get_objectives_for_export, parse_export_format, render_export
from okrflow.org_settings import merge_org_settings
from okrflow.queue import ExportQueue
from okrflow.routes.common import ensure_manager
from okrflow.schemas import ExportRequest
from okrflow.storage import StorageClient
from okrflow.types import ExportStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["reports"])
export_router = APIRouter(prefix="/export", tags=["export"])


@router.get("/export")
def export_report(
    format: Optional[str] = None,
    scope: str = "company",
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    ensure_manager(user)
    fmt = parse_export_format(format)
    if fmt is None:
        raise errors.validation("Unsupported export format")
    if scope not in ("company", "personal"):
        raise errors.validation("Unsupported export scope")

    with db.Session() as session:
        org = session.get(OrganizationRow, org_id)
        rows = get_objectives_for_export(
            session, user_id=user.id, role=user.role, scope=scope, org_id=org_id
        )
        meta = ExportMeta(
            org_name=org.name if org else "Organization",
            settings=merge_org_settings(org.settings if org else None),
        )
    body, content_type, filename = render_export(fmt, rows, meta)
    return Response(
        content=body,
        media_type=content_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@export_router.post("", status_code=202)
def create_export(
    payload: ExportRequest,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    queue: ExportQueue = Depends(get_queue_client),
):
    org_id = require_org(user)
    ensure_manager(user)
    fmt = parse_export_format(payload.format)
    job = db.create_export_job(org_id, user.id, fmt.value, payload.scope)
    queue.publish(job)
    logger.info("[%s] Export queued for org %s (%s)", job.job_id, org_id, fmt.value)
    return success({"job": job.as_dict()}, status_code=202)


@export_router.get("/{job_id}")
def get_export(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: StorageClient = Depends(get_storage_client),
):
    org_id = require_org(user)
    job = db.get_export_job(job_id)
    if not job or job.org_id != org_id:
        raise errors.not_found("Export job")

    data = job.as_dict()
    data["download_url"] = None
    if job.status == ExportStatus.SUCCESS and job.storage_path:
        data["download_url"] = storage.presign_get(
            job.storage_path,
            expires_in=get_settings().export_url_expires_seconds,
            filename=f"okr-report.{job.format}",
        )
    return success({"job": data})
