"""
Objective endpoints: list/create, detail/update/delete, status, alignment
tree and key-result replacement.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from okrflow.auth import CurrentUser, get_current_user
from okrflow.dates import fiscal_quarter as compute_fiscal_quarter
from okrflow.db import DbClient, KeyResultRow, ObjectiveRow, TeamRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.rbac import is_manager_or_higher
from okrflow.routes.common import (
    ensure_can_modify,
    get_objective,
    in_scope,
    org_locale,
    pagination,
)
from okrflow.schemas import (
    KeyResultInput,
    KeyResultsReplace,
    ObjectiveCreate,
    ObjectiveStatusUpdate,
    ObjectiveUpdate,
)
from okrflow.serializers import objective_brief, serialize_key_result, serialize_objective
from okrflow.types import ObjectiveStatus, ProgressType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/objectives", tags=["objectives"])


def _scope_filter(user: CurrentUser):
    if user.org_id:
        return ObjectiveRow.org_id == user.org_id
    return (ObjectiveRow.org_id.is_(None)) & (ObjectiveRow.owner_id == user.id)


def _key_result_rows(key_results: List[KeyResultInput]) -> List[KeyResultRow]:
    return [
        KeyResultRow(
            title=kr.title,
            weight=kr.weight,
            target=kr.target,
            current=kr.current,
            unit=kr.unit,
        )
        for kr in key_results
    ]


def _validate_parent(
    session: Session,
    user: CurrentUser,
    parent_id: str,
    cycle: str,
    objective_id: Optional[str] = None,
) -> ObjectiveRow:
    if objective_id and parent_id == objective_id:
        raise errors.validation("Cannot set objective as its own parent")
    parent = session.get(ObjectiveRow, parent_id)
    if not parent or not in_scope(parent, user):
        raise errors.not_found("Parent objective")
    if parent.cycle != cycle:
        raise errors.validation("Parent objective must be in the same cycle")
    if parent.owner_id != user.id and not is_manager_or_higher(user.role):
        raise errors.forbidden("Cannot align to objectives you do not own")

    if objective_id:
        seen = set()
        ancestor = parent
        while ancestor is not None and ancestor.id not in seen:
            if ancestor.id == objective_id:
                raise errors.validation("Cannot align an objective under its own descendant")
            seen.add(ancestor.id)
            ancestor = ancestor.parent
    return parent


def _validate_team(session: Session, user: CurrentUser, team_id: str) -> TeamRow:
    team = session.get(TeamRow, team_id)
    if not team or team.org_id != user.org_id:
        raise errors.not_found("Team")
    return team


@router.get("")
def list_objectives(
    search: Optional[str] = None,
    cycle: Optional[str] = None,
    owner_id: Optional[str] = None,
    team_id: Optional[str] = None,
    fiscal_quarter: Optional[int] = Query(default=None, ge=1, le=4),
    status: Optional[ObjectiveStatus] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    conditions = [_scope_filter(user)]
    if not is_manager_or_higher(user.role):
        conditions.append(ObjectiveRow.owner_id == user.id)
    elif owner_id:
        conditions.append(ObjectiveRow.owner_id == owner_id)
    if team_id:
        conditions.append(ObjectiveRow.team_id == team_id)
    if fiscal_quarter is not None:
        conditions.append(ObjectiveRow.fiscal_quarter == fiscal_quarter)
    if cycle:
        conditions.append(ObjectiveRow.cycle == cycle)
    if status:
        conditions.append(ObjectiveRow.status == status.value)
    if search:
        pattern = f"%{search}%"
        conditions.append(
            or_(ObjectiveRow.title.ilike(pattern), ObjectiveRow.description.ilike(pattern))
        )

    with db.Session() as session:
        total = session.execute(
            select(func.count()).select_from(ObjectiveRow).where(*conditions)
        ).scalar_one()
        objectives = session.execute(
            select(ObjectiveRow)
            .where(*conditions)
            .options(
                selectinload(ObjectiveRow.owner),
                selectinload(ObjectiveRow.team),
                selectinload(ObjectiveRow.key_results),
            )
            .order_by(ObjectiveRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return success(
            {
                "objectives": [serialize_objective(o) for o in objectives],
                "pagination": pagination(total, limit, offset),
            }
        )


@router.post("", status_code=201)
def create_objective(
    payload: ObjectiveCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        if payload.parent_id:
            _validate_parent(session, user, payload.parent_id, payload.cycle)
        if payload.team_id:
            _validate_team(session, user, payload.team_id)
        locale = org_locale(session, user.org_id)

        objective = ObjectiveRow(
            org_id=user.org_id,
            title=payload.title,
            description=payload.description,
            cycle=payload.cycle,
            start_at=payload.start_at,
            end_at=payload.end_at,
            status=ObjectiveStatus.NOT_STARTED.value,
            goal_type=payload.goal_type.value if payload.goal_type else None,
            progress_type=payload.progress_type.value,
            progress=payload.progress if payload.progress_type == ProgressType.MANUAL else None,
            fiscal_quarter=compute_fiscal_quarter(payload.start_at, locale["fiscal_year_start_month"]),
            owner_id=user.id,
            team_id=payload.team_id,
            parent_id=payload.parent_id,
            key_results=_key_result_rows(payload.key_results),
        )
        session.add(objective)
        session.commit()
        logger.info("Created objective %s for user %s", objective.id, user.id)
        return success({"objective": serialize_objective(objective)}, status_code=201)


@router.get("/{objective_id}")
def get_objective_detail(
    objective_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        ensure_can_modify(user, objective.owner_id)
        return success({"objective": serialize_objective(objective, detail=True)})


@router.patch("/{objective_id}")
def update_objective(
    objective_id: str,
    payload: ObjectiveUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    fields = payload.model_dump(exclude_unset=True)
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        ensure_can_modify(user, objective.owner_id)

        start_at = fields.get("start_at") or objective.start_at
        end_at = fields.get("end_at") or objective.end_at
        if start_at >= end_at:
            raise errors.validation("Start date must be before end date")

        cycle = fields.get("cycle") or objective.cycle
        if fields.get("parent_id"):
            _validate_parent(session, user, fields["parent_id"], cycle, objective_id=objective.id)
        if fields.get("team_id"):
            _validate_team(session, user, fields["team_id"])

        for name in ("title", "description", "cycle", "team_id", "parent_id", "progress"):
            if name in fields:
                setattr(objective, name, fields[name])
        if "goal_type" in fields:
            objective.goal_type = payload.goal_type.value if payload.goal_type else None
        if payload.progress_type is not None:
            objective.progress_type = payload.progress_type.value
        if "start_at" in fields or "end_at" in fields:
            objective.start_at = start_at
            objective.end_at = end_at
            locale = org_locale(session, objective.org_id)
            objective.fiscal_quarter = compute_fiscal_quarter(start_at, locale["fiscal_year_start_month"])
        if payload.key_results is not None:
            objective.key_results = _key_result_rows(payload.key_results)

        session.commit()
        return success({"objective": serialize_objective(objective, detail=True)})


@router.delete("/{objective_id}")
def delete_objective(
    objective_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        ensure_can_modify(user, objective.owner_id)
        for child in list(objective.children):
            child.parent_id = None
        session.delete(objective)
        session.commit()
        logger.info("Deleted objective %s by user %s", objective_id, user.id)
        return success({"deleted": True, "id": objective_id})


@router.patch("/{objective_id}/status")
def update_objective_status(
    objective_id: str,
    payload: ObjectiveStatusUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        ensure_can_modify(user, objective.owner_id)
        objective.status = payload.status.value
        session.commit()
        return success({"objective": serialize_objective(objective)})


@router.get("/{objective_id}/tree")
def get_objective_tree(
    objective_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        return success(
            {
                "objective": objective_brief(objective),
                "parent": objective_brief(objective.parent),
                "children": [objective_brief(child) for child in objective.children],
            }
        )


@router.post("/{objective_id}/key-results", status_code=201)
def replace_key_results(
    objective_id: str,
    payload: KeyResultsReplace,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        objective = get_objective(session, objective_id, user)
        ensure_can_modify(user, objective.owner_id)
        objective.key_results = _key_result_rows(payload.key_results)
        session.commit()
        return success(
            {"key_results": [serialize_key_result(kr) for kr in objective.key_results]},
            status_code=201,
        )
