"""
Comments on objectives and key results.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from okrflow.auth import CurrentUser, get_current_user, require_org
from okrflow.db import CommentRow, DbClient
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.notifications import create_notification
from okrflow.rbac import is_manager_or_higher
from okrflow.routes.common import get_key_result, get_objective
from okrflow.schemas import CommentCreate
from okrflow.serializers import serialize_comment
from okrflow.types import NotificationType

router = APIRouter(prefix="/comments", tags=["comments"])

COMMENT_LIMIT = 100


@router.get("")
def list_comments(
    objective_id: Optional[str] = None,
    key_result_id: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    require_org(user)
    if not objective_id and not key_result_id:
        raise errors.validation("Provide an objective_id or key_result_id to fetch comments")
    with db.Session() as session:
        stmt = select(CommentRow).options(selectinload(CommentRow.user))
        if objective_id:
            objective = get_objective(session, objective_id, user)
            stmt = stmt.where(CommentRow.objective_id == objective.id)
        if key_result_id:
            kr = get_key_result(session, key_result_id, user)
            stmt = stmt.where(CommentRow.key_result_id == kr.id)
        comments = session.execute(
            stmt.order_by(CommentRow.created_at.desc()).limit(COMMENT_LIMIT)
        ).scalars().all()
        return success({"comments": [serialize_comment(c) for c in comments]})


@router.post("", status_code=201)
def create_comment(
    payload: CommentCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    require_org(user)
    with db.Session() as session:
        kr = None
        if payload.key_result_id:
            kr = get_key_result(session, payload.key_result_id, user)
            objective = kr.objective
            if payload.objective_id and payload.objective_id != objective.id:
                raise errors.validation("Key result does not belong to the objective")
        else:
            objective = get_objective(session, payload.objective_id, user)

        comment = CommentRow(
            content=payload.content,
            objective_id=objective.id,
            key_result_id=kr.id if kr else None,
            user_id=user.id,
        )
        session.add(comment)
        session.flush()

        if objective.owner_id != user.id:
            target = kr.title if kr else objective.title
            create_notification(
                session,
                user_id=objective.owner_id,
                type=NotificationType.COMMENT,
                message=f"{user.name or user.email} commented on {target}",
                metadata={
                    "comment_id": comment.id,
                    "objective_id": objective.id,
                    "key_result_id": kr.id if kr else None,
                },
            )
        session.commit()
        return success({"comment": serialize_comment(comment)}, status_code=201)


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    require_org(user)
    with db.Session() as session:
        comment = session.get(CommentRow, comment_id)
        objective = comment.objective if comment else None
        if not comment or not objective or objective.org_id != user.org_id:
            raise errors.not_found("Comment")
        allowed = (
            comment.user_id == user.id
            or objective.owner_id == user.id
            or is_manager_or_higher(user.role)
        )
        if not allowed:
            raise errors.forbidden()
        session.delete(comment)
        session.commit()
        return success({"deleted": True, "id": comment_id})
