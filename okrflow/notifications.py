"""
In-app notifications.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from okrflow.db import NotificationRow
from okrflow.types import NotificationType

logger = logging.getLogger(__name__)


def create_notification(
    session: Session,
    *,
    user_id: str,
    type: NotificationType,
    message: str,
    metadata: Optional[dict] = None,
) -> Optional[NotificationRow]:
    """
    Add a notification inside a savepoint. A failed insert is logged and
    rolled back to the savepoint, leaving the caller's transaction usable.
    """
    try:
        with session.begin_nested():
            row = NotificationRow(
                user_id=user_id,
                type=type.value,
                message=message,
                payload=metadata,
                read=False,
            )
            session.add(row)
        return row
    except SQLAlchemyError:
        logger.exception("Failed to create notification for user %s", user_id)
        return None
