"""
Registration, login and session endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select

from okrflow.auth import (
    CurrentUser,
    client_ip,
    create_session_token,
    get_current_user,
    hash_password,
    verify_password,
)
from okrflow.config import get_settings
from okrflow.db import AuthSessionRow, DbClient, OrganizationRow, UserRow
from okrflow.dependencies import get_db_client, get_rate_limiter
from okrflow.errors import errors, success
from okrflow.org_settings import generate_unique_slug
from okrflow.ratelimit import RateLimiter
from okrflow.schemas import LoginRequest, RegisterRequest
from okrflow.serializers import serialize_user
from okrflow.types import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _enforce_rate_limit(limiter: RateLimiter, key: str, limit: int) -> None:
    settings = get_settings()
    allowed, _ = limiter.check(key, limit, settings.rate_limit_window_seconds)
    if not allowed:
        raise errors.rate_limit()


@router.post("/register", status_code=201)
def register(
    payload: RegisterRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    settings = get_settings()
    _enforce_rate_limit(limiter, f"register:{client_ip(request)}", settings.register_rate_limit)

    email = payload.email.lower()
    with db.Session() as session:
        existing = session.execute(
            select(UserRow.id).where(func.lower(UserRow.email) == email)
        ).first()
        if existing:
            raise errors.validation("An account with this email already exists")

        org = None
        role = Role.EMPLOYEE
        org_name = (payload.org_name or "").strip()
        if org_name:
            org = OrganizationRow(name=org_name, slug=generate_unique_slug(session, org_name))
            session.add(org)
            session.flush()
            role = Role.ADMIN

        user = UserRow(
            email=email,
            name=payload.name.strip(),
            password_hash=hash_password(payload.password),
            role=role.value,
            org_id=org.id if org else None,
        )
        session.add(user)
        session.flush()
        token = create_session_token(session, user.id)
        session.commit()
        logger.info("Registered user %s (org=%s)", user.id, user.org_id)
        return success({"user": serialize_user(user), "token": token}, status_code=201)


@router.post("/login")
def login(
    payload: LoginRequest,
    request: Request,
    db: DbClient = Depends(get_db_client),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    settings = get_settings()
    email = payload.email.lower()
    _enforce_rate_limit(limiter, f"login:{client_ip(request)}:{email}", settings.login_rate_limit)

    with db.Session() as session:
        user = session.execute(
            select(UserRow).where(func.lower(UserRow.email) == email)
        ).scalar_one_or_none()
        if not user or not verify_password(user.password_hash, payload.password):
            raise errors.unauthorized("Invalid email or password")
        token = create_session_token(session, user.id)
        session.commit()
        return success({"user": serialize_user(user), "token": token})


@router.post("/logout")
def logout(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        auth_session = session.get(AuthSessionRow, user.token_hash)
        if auth_session:
            session.delete(auth_session)
            session.commit()
    return success({"logged_out": True})


@router.get("/me")
def me(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        row = session.get(UserRow, user.id)
        org = session.get(OrganizationRow, row.org_id) if row.org_id else None
        data = serialize_user(row)
        data["organization"] = (
            {"id": org.id, "name": org.name, "slug": org.slug} if org else None
        )
        return success(data)
