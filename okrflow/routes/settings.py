"""
Organization locale settings and the caller's own profile, password and
notification preferences.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from okrflow.auth import CurrentUser, get_current_user, hash_password, require_org, verify_password
from okrflow.db import DbClient, OrganizationRow, UserRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.org_settings import (
    merge_notification_settings,
    merge_org_settings,
    store_locale_settings,
)
from okrflow.rbac import is_admin
from okrflow.schemas import (
    LocaleSettingsUpdate,
    NotificationSettingsUpdate,
    PasswordUpdate,
    ProfileUpdate,
)
from okrflow.serializers import serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def _get_org(session, org_id: str) -> OrganizationRow:
    org = session.get(OrganizationRow, org_id)
    if not org:
        raise errors.not_found("Organization")
    return org


def _get_user(session, user_id: str) -> UserRow:
    row = session.get(UserRow, user_id)
    if not row:
        raise errors.not_found("User")
    return row


@router.get("/locale")
def get_locale_settings(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    with db.Session() as session:
        org = _get_org(session, org_id)
        return success({"settings": merge_org_settings(org.settings)})


@router.patch("/locale")
def update_locale_settings(
    payload: LocaleSettingsUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = require_org(user)
    if not is_admin(user.role):
        raise errors.forbidden("Only admins can change organization settings")
    with db.Session() as session:
        org = _get_org(session, org_id)
        current = merge_org_settings(org.settings)
        patch = payload.model_dump(exclude_none=True)
        labels = patch.pop("hierarchy_labels", None)
        current.update(patch)
        if labels:
            current["hierarchy_labels"].update(labels)
        locale = merge_org_settings(current)
        org.settings = store_locale_settings(org.settings, locale)
        session.commit()
        logger.info("Locale settings updated for org %s", org_id)
        return success({"settings": locale})


@router.get("/notifications")
def get_notification_settings(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        row = _get_user(session, user.id)
        return success({"settings": merge_notification_settings(row.notification_settings)})


@router.patch("/notifications")
def update_notification_settings(
    payload: NotificationSettingsUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        row = _get_user(session, user.id)
        merged = merge_notification_settings(
            row.notification_settings, payload.model_dump(exclude_none=True)
        )
        row.notification_settings = merged
        session.commit()
        return success({"settings": merged})


@router.patch("/profile")
def update_profile(
    payload: ProfileUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        row = _get_user(session, user.id)
        row.name = payload.name.strip()
        session.commit()
        return success({"user": serialize_user(row)})


@router.patch("/password")
def update_password(
    payload: PasswordUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        row = _get_user(session, user.id)
        if not row.password_hash:
            raise errors.forbidden("Password login is not enabled for this account")
        if not verify_password(row.password_hash, payload.current_password):
            raise errors.validation("Current password is incorrect")
        row.password_hash = hash_password(payload.new_password)
        session.commit()
        logger.info("Password changed for user %s", row.id)
        return success({"updated": True})
