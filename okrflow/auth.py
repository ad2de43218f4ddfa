"""
Password hashing, bearer-token sessions and the request dependencies that
resolve the current user and enforce route policies.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from okrflow.config import get_settings
from okrflow.db import AuthSessionRow, DbClient, UserRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors
from okrflow.rbac import is_role_allowed_for_route
from okrflow.types import Role

security = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: str
    name: Optional[str]
    role: Role
    org_id: Optional[str]
    token_hash: Optional[str] = None

    @classmethod
    def from_row(cls, row: UserRow, token_hash: Optional[str] = None) -> "CurrentUser":
        return cls(
            id=row.id,
            email=row.email,
            name=row.name,
            role=Role(row.role),
            org_id=row.org_id,
            token_hash=token_hash,
        )


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password_hash: Optional[str], password: str) -> bool:
    if not password_hash:
        return False
    return check_password_hash(password_hash, password)


def hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session_token(session: Session, user_id: str) -> str:
    """Persist a new session for ``user_id`` and return the raw token."""
    settings = get_settings()
    token = secrets.token_urlsafe(32)
    now = time.time()
    session.add(
        AuthSessionRow(
            token_hash=hash_session_token(token),
            user_id=user_id,
            created_at=now,
            expires_at=now + settings.session_days * 86400,
        )
    )
    return token


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: DbClient = Depends(get_db_client),
) -> CurrentUser:
    """Resolve the bearer token to a user; missing, unknown or expired tokens are rejected."""
    if credentials is None or not credentials.credentials:
        raise errors.unauthorized()
    token_hash = hash_session_token(credentials.credentials)
    with db.Session() as session:
        auth_session = session.get(AuthSessionRow, token_hash)
        if not auth_session:
            raise errors.unauthorized("Invalid or expired token")
        if auth_session.expires_at < time.time():
            session.delete(auth_session)
            session.commit()
            raise errors.unauthorized("Invalid or expired token")
        user = session.get(UserRow, auth_session.user_id)
        if not user:
            raise errors.unauthorized("Invalid or expired token")
        return CurrentUser.from_row(user, token_hash=token_hash)


def enforce_route_policy(
    request: Request, user: CurrentUser = Depends(get_current_user)
) -> CurrentUser:
    settings = get_settings()
    path = request.url.path
    if settings.api_prefix and path.startswith(settings.api_prefix):
        path = path[len(settings.api_prefix):] or "/"
    if not is_role_allowed_for_route(user.role, path):
        raise errors.forbidden()
    return user


def require_org(user: CurrentUser) -> str:
    if not user.org_id:
        raise errors.forbidden("Organization membership required")
    return user.org_id
