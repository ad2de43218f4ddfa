"""
Organization invitations. Creating and listing need a manager session;
accepting is public and authenticated by the invitation token.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import quote

from fastapi import APIRouter, Depends
from sqlalchemy import func, select

from okrflow.auth import CurrentUser, get_current_user, hash_password, require_org
from okrflow.config import get_settings
from okrflow.db import DbClient, InvitationRow, UserRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.invitations import generate_invite_token, get_valid_invitation, parse_role
from okrflow.rbac import is_admin
from okrflow.routes.common import ensure_manager
from okrflow.schemas import InvitationAccept, InvitationCreate
from okrflow.serializers import serialize_invitation, serialize_user
from okrflow.types import Role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/invitations", tags=["invitations"])


def _find_user(session, email: str):
    return session.execute(
        select(UserRow).where(func.lower(UserRow.email) == email.lower())
    ).scalar_one_or_none()


@router.post("", status_code=201)
def create_invitation(
    payload: InvitationCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    ensure_manager(user)
    role = parse_role(payload.role)
    if role == Role.ADMIN and not is_admin(user.role):
        raise errors.forbidden("Only admins can invite admins")

    email = payload.email.lower()
    settings = get_settings()
    with db.Session() as session:
        existing = _find_user(session, email)
        if existing and existing.org_id and existing.org_id != org_id:
            raise errors.forbidden("User already belongs to a different organization")

        expires_in_days = payload.expires_in_days or settings.invite_expiry_days
        token, token_hash = generate_invite_token()
        invitation = InvitationRow(
            org_id=org_id,
            email=email,
            role=role.value,
            invited_by_id=user.id,
            token_hash=token_hash,
            expires_at=time.time() + expires_in_days * 86400,
        )
        session.add(invitation)
        session.commit()

        invite_url = (
            f"{settings.app_base_url.rstrip('/')}/signup?invite={token}&email={quote(email)}"
        )
        data = serialize_invitation(invitation)
        data.update({"token": token, "invite_url": invite_url})
        logger.info("Invitation %s created for org %s", invitation.id, org_id)
        return success({"invitation": data}, status_code=201)


@router.get("")
def list_invitations(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    ensure_manager(user)
    with db.Session() as session:
        invitations = session.execute(
            select(InvitationRow)
            .where(InvitationRow.org_id == org_id)
            .order_by(InvitationRow.created_at.desc())
        ).scalars().all()
        # Pending first, newest first within each group.
        invitations = sorted(invitations, key=lambda inv: inv.accepted_at is not None)
        return success({"invitations": [serialize_invitation(i) for i in invitations]})


@router.post("/accept", status_code=201)
def accept_invitation(
    payload: InvitationAccept,
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        invitation = get_valid_invitation(session, payload.token)
        if not invitation:
            raise errors.forbidden("Invalid or expired invitation token")
        if invitation.email.lower() != payload.email.lower():
            raise errors.forbidden("Invite email does not match the account email")

        user = _find_user(session, payload.email)
        if user and user.org_id and user.org_id != invitation.org_id:
            raise errors.forbidden("User already belongs to another organization")

        role = parse_role(invitation.role)
        if user is None:
            user = UserRow(email=payload.email.lower())
            session.add(user)
        user.name = payload.name
        user.password_hash = hash_password(payload.password)
        user.role = role.value
        user.org_id = invitation.org_id
        invitation.accepted_at = time.time()
        session.commit()
        logger.info("Invitation %s accepted by user %s", invitation.id, user.id)
        return success(
            {"user": serialize_user(user), "organization_id": invitation.org_id},
            status_code=201,
        )
