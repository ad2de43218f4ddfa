"""
Invitation tokens. Only the SHA-256 hash of a token is ever stored.
"""

from __future__ import annotations

import hashlib
import secrets
import time
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from okrflow.db import InvitationRow
from okrflow.types import Role


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def generate_invite_token() -> Tuple[str, str]:
    token = secrets.token_hex(32)
    return token, hash_token(token)


def get_valid_invitation(session: Session, token: str) -> Optional[InvitationRow]:
    """The pending, unexpired invitation for ``token``, else None."""
    invitation = session.execute(
        select(InvitationRow).where(InvitationRow.token_hash == hash_token(token))
    ).scalar_one_or_none()
    if not invitation or invitation.accepted_at:
        return None
    if invitation.expires_at and invitation.expires_at < time.time():
        return None
    return invitation


def parse_role(value) -> Role:
    if not value:
        return Role.EMPLOYEE
    upper = str(getattr(value, "value", value)).upper()
    if upper == Role.ADMIN.value:
        return Role.ADMIN
    if upper == Role.MANAGER.value:
        return Role.MANAGER
    return Role.EMPLOYEE
