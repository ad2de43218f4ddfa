"""
The caller's notification feed.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select, update

from okrflow.auth import CurrentUser, get_current_user
from okrflow.db import DbClient, NotificationRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.schemas import NotificationsRead
from okrflow.serializers import serialize_notification

router = APIRouter(prefix="/notifications", tags=["notifications"])

FEED_LIMIT = 50


@router.get("")
def list_notifications(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        items = session.execute(
            select(NotificationRow)
            .where(NotificationRow.user_id == user.id)
            .order_by(NotificationRow.created_at.desc())
            .limit(FEED_LIMIT)
        ).scalars().all()
        unread = session.execute(
            select(func.count())
            .select_from(NotificationRow)
            .where(NotificationRow.user_id == user.id, NotificationRow.read.is_(False))
        ).scalar_one()
        return success(
            {
                "notifications": [serialize_notification(n) for n in items],
                "unread_count": unread,
            }
        )


@router.post("/read")
def mark_read(
    payload: NotificationsRead,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if not payload.all and not payload.ids:
        raise errors.validation("Provide ids or set all to true")
    stmt = update(NotificationRow).where(
        NotificationRow.user_id == user.id, NotificationRow.read.is_(False)
    )
    if not payload.all:
        stmt = stmt.where(NotificationRow.id.in_(payload.ids))
    with db.Session() as session:
        result = session.execute(stmt.values(read=True))
        session.commit()
        return success({"updated": result.rowcount or 0})
