"""
Organization member directory and admin user management.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from okrflow.auth import CurrentUser, enforce_route_policy, get_current_user, require_org
from okrflow.db import DbClient, UserRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.routes.common import ensure_manager, pagination
from okrflow.schemas import RoleUpdate
from okrflow.serializers import serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])
admin_router = APIRouter(
    prefix="/admin", tags=["admin"], dependencies=[Depends(enforce_route_policy)]
)


def _search_users(
    session: Session, org_id: str, search: Optional[str], limit: int, offset: int
) -> dict:
    conditions = [UserRow.org_id == org_id]
    if search:
        pattern = f"%{search}%"
        conditions.append(or_(UserRow.name.ilike(pattern), UserRow.email.ilike(pattern)))
    total = session.execute(
        select(func.count()).select_from(UserRow).where(*conditions)
    ).scalar_one()
    users = session.execute(
        select(UserRow)
        .where(*conditions)
        .order_by(UserRow.created_at.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return {
        "users": [serialize_user(u) for u in users],
        "pagination": pagination(total, limit, offset),
    }


def _get_org_user(session: Session, user_id: str, org_id: str) -> UserRow:
    target = session.get(UserRow, user_id)
    if not target or target.org_id != org_id:
        raise errors.not_found("User")
    return target


@router.get("")
def list_users(
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    ensure_manager(user)
    with db.Session() as session:
        return success(_search_users(session, org_id, search, limit, offset))


@admin_router.get("/users")
def admin_list_users(
    search: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(enforce_route_policy),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    with db.Session() as session:
        return success(_search_users(session, org_id, search, limit, offset))


@admin_router.patch("/users/{user_id}")
def admin_update_role(
    user_id: str,
    payload: RoleUpdate,
    user: CurrentUser = Depends(enforce_route_policy),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    with db.Session() as session:
        target = _get_org_user(session, user_id, org_id)
        target.role = payload.role.value
        session.commit()
        logger.info("User %s role set to %s by %s", target.id, target.role, user.id)
        return success({"user": serialize_user(target)})


@admin_router.delete("/users/{user_id}")
def admin_delete_user(
    user_id: str,
    user: CurrentUser = Depends(enforce_route_policy),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    if user_id == user.id:
        raise errors.validation("Cannot delete your own account")
    with db.Session() as session:
        target = _get_org_user(session, user_id, org_id)
        session.delete(target)
        session.commit()
        logger.info("User %s deleted by %s", user_id, user.id)
        return success({"deleted": True, "id": user_id})
