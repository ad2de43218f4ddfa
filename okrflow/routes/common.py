"""
Lookup and permission helpers shared by the route modules.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from okrflow.auth import CurrentUser
from okrflow.db import (
    InitiativeRow,
    KeyResultRow,
    ObjectiveRow,
    OrganizationRow,
)
from okrflow.errors import errors
from okrflow.org_settings import merge_org_settings
from okrflow.rbac import can_modify, is_manager_or_higher


def in_scope(objective: ObjectiveRow, user: CurrentUser) -> bool:
    """Objectives are visible inside their organization; org-less users only see their own."""
    if user.org_id:
        return objective.org_id == user.org_id
    return objective.org_id is None and objective.owner_id == user.id


def get_objective(session: Session, objective_id: str, user: CurrentUser) -> ObjectiveRow:
    objective = session.get(ObjectiveRow, objective_id)
    if not objective or not in_scope(objective, user):
        raise errors.not_found("Objective")
    return objective


def get_key_result(session: Session, key_result_id: str, user: CurrentUser) -> KeyResultRow:
    kr = session.get(KeyResultRow, key_result_id)
    if not kr or not in_scope(kr.objective, user):
        raise errors.not_found("Key result")
    return kr


def get_initiative(session: Session, initiative_id: str, user: CurrentUser) -> InitiativeRow:
    initiative = session.get(InitiativeRow, initiative_id)
    if not initiative or not in_scope(initiative.key_result.objective, user):
        raise errors.not_found("Initiative")
    return initiative


def ensure_can_modify(user: CurrentUser, owner_id: str) -> None:
    if not can_modify(user, owner_id):
        raise errors.forbidden()


def ensure_manager(user: CurrentUser) -> None:
    if not is_manager_or_higher(user.role):
        raise errors.forbidden()


def org_locale(session: Session, org_id: Optional[str]) -> dict:
    org = session.get(OrganizationRow, org_id) if org_id else None
    return merge_org_settings(org.settings if org else None)


def pagination(total: int, limit: int, offset: int) -> dict:
    return {
        "total": total,
        "limit": limit,
        "offset": offset,
        "has_more": offset + limit < total,
    }
