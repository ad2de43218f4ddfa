"""
Worker loop that renders queued report exports and uploads them to storage.

Run with ``python -m okrflow.worker``.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from okrflow.db import DbClient, ExportJobRecord, OrganizationRow, UserRow
from okrflow.dependencies import get_db_client, get_queue_client, get_storage_client
from okrflow.exporters import ExportMeta, get_objectives_for_export, render_export
from okrflow.org_settings import merge_org_settings
from okrflow.queue import ExportQueue
from okrflow.storage import StorageClient
from okrflow.types import ExportFormat, ExportStatus, Role

logger = logging.getLogger(__name__)


def export_storage_path(job: ExportJobRecord) -> str:
    return f"exports/{job.org_id}/{job.job_id}.{ExportFormat(job.format).value}"


def process_export_job(
    job: ExportJobRecord, db: DbClient, storage: Optional[StorageClient] = None
) -> None:
    """Render one claimed job and mark it SUCCESS or ERROR."""
    storage = storage or get_storage_client()
    db.update_export_job(job.job_id, status=ExportStatus.RUNNING, stage="RENDERING")
    try:
        with db.Session() as session:
            requester = session.get(UserRow, job.requested_by_id) if job.requested_by_id else None
            org = session.get(OrganizationRow, job.org_id)
            role = Role(requester.role) if requester else Role.ADMIN
            rows = get_objectives_for_export(
                session,
                user_id=job.requested_by_id or "",
                role=role,
                scope=job.scope,
                org_id=job.org_id,
            )
            meta = ExportMeta(
                org_name=org.name if org else "Organization",
                settings=merge_org_settings(org.settings if org else None),
            )
        body, content_type, _ = render_export(ExportFormat(job.format), rows, meta)

        path = export_storage_path(job)
        db.update_export_job(job.job_id, stage="UPLOADING")
        storage.upload_bytes(path, body, content_type)
        db.update_export_job(
            job.job_id, status=ExportStatus.SUCCESS, stage="SUCCESS", storage_path=path
        )
        logger.info("[%s] Export uploaded to %s (%d rows)", job.job_id, path, len(rows))
    except Exception as exc:
        logger.exception("[%s] Export failed", job.job_id)
        db.update_export_job(
            job.job_id, status=ExportStatus.ERROR, stage="ERROR", error=str(exc)
        )


def process_next(
    *,
    db: Optional[DbClient] = None,
    queue: Optional[ExportQueue] = None,
    storage: Optional[StorageClient] = None,
    block: bool = True,
    timeout: Optional[int] = None,
) -> bool:
    """
    Fetch and process one job from the queue (or DB fallback). Returns True if processed.
    """
    db = db or get_db_client()
    queue = queue or get_queue_client()

    message = queue.next_message(block=block, timeout=timeout)
    job: Optional[ExportJobRecord] = None

    if message:
        record = db.get_export_job(message.job_id)
        if not record:
            logger.warning("Received job_id %s from queue but no DB record found", message.job_id)
            return False
        if message.org_id and message.org_id != record.org_id:
            logger.warning(
                "[%s] Queued for org %s but owned by org %s, skipping",
                message.job_id,
                message.org_id,
                record.org_id,
            )
            return False
        job = db.claim_export_job(message.job_id)
        if not job:
            logger.info("Job %s already claimed, skipping", message.job_id)
            return False
        logger.info("[%s] Claimed %s export for org %s", job.job_id, job.format, job.org_id)
    else:
        # Jobs that were created but never made it onto the queue.
        job = db.claim_next_waiting_job()
        if not job:
            return False

    process_export_job(job, db, storage)
    return True


def run_loop(poll_interval_seconds: float = 2.0) -> None:
    """
    Polling loop that blocks on the queue. Intended to be run under systemd/supervisor.
    """
    db = get_db_client()
    queue = get_queue_client()
    while True:
        try:
            requeued = db.requeue_stale_locks(lock_timeout_seconds=900)
            if requeued:
                logger.info("Requeued %d stale export jobs (%d queued)", requeued, queue.pending())
        except Exception:
            logger.exception("Failed to requeue stale locks")
        processed = process_next(db=db, queue=queue, block=True, timeout=int(poll_interval_seconds))
        if not processed:
            time.sleep(poll_interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run_loop()
