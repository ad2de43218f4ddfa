"""
Weekly check-ins and the dashboard summary built from them.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from okrflow.auth import CurrentUser, get_current_user
from okrflow.dates import utc_today, week_start
from okrflow.db import CheckInRow, DbClient, KeyResultRow, ObjectiveRow
from okrflow.dependencies import get_db_client
from okrflow.errors import success
from okrflow.rbac import is_manager_or_higher
from okrflow.routes.common import ensure_can_modify, get_key_result, pagination
from okrflow.schemas import CheckInCreate
from okrflow.serializers import objective_progress_value, serialize_check_in
from okrflow.summary import (
    build_alignment_tree,
    build_hero_summary,
    build_progress_heatmap,
    build_team_heatmap,
    build_weekly_summary,
)

router = APIRouter(prefix="/check-ins", tags=["check-ins"])

RECENT_CHECK_INS = 15


def _objective_scope(user: CurrentUser) -> list:
    if user.org_id:
        conditions = [ObjectiveRow.org_id == user.org_id]
    else:
        conditions = [ObjectiveRow.org_id.is_(None)]
    if not user.org_id or not is_manager_or_higher(user.role):
        conditions.append(ObjectiveRow.owner_id == user.id)
    return conditions


@router.post("", status_code=201)
def create_check_in(
    payload: CheckInCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    week = week_start(payload.week_start or utc_today())
    with db.Session() as session:
        kr = get_key_result(session, payload.key_result_id, user)
        ensure_can_modify(user, kr.objective.owner_id)

        check_in = session.execute(
            select(CheckInRow).where(
                CheckInRow.key_result_id == kr.id,
                CheckInRow.user_id == user.id,
                CheckInRow.week_start == week,
            )
        ).scalar_one_or_none()
        if check_in is None:
            check_in = CheckInRow(key_result_id=kr.id, user_id=user.id, week_start=week)
            session.add(check_in)
        check_in.value = payload.value
        check_in.status = payload.status.value
        check_in.comment = payload.comment
        kr.current = payload.value
        session.commit()
        return success({"check_in": serialize_check_in(check_in)}, status_code=201)


@router.get("")
def list_check_ins(
    key_result_id: Optional[str] = None,
    from_: Optional[date] = Query(default=None, alias="from"),
    to: Optional[date] = None,
    user_id: Optional[str] = None,
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        conditions = []
        if key_result_id:
            kr = get_key_result(session, key_result_id, user)
            ensure_can_modify(user, kr.objective.owner_id)
            conditions.append(CheckInRow.key_result_id == kr.id)
        else:
            scope = (
                [ObjectiveRow.org_id == user.org_id]
                if user.org_id
                else [ObjectiveRow.org_id.is_(None)]
            )
            kr_ids = (
                select(KeyResultRow.id)
                .join(ObjectiveRow, KeyResultRow.objective_id == ObjectiveRow.id)
                .where(*scope)
            )
            conditions.append(CheckInRow.key_result_id.in_(kr_ids))

        if from_:
            conditions.append(CheckInRow.week_start >= from_)
        if to:
            conditions.append(CheckInRow.week_start <= to)
        if not is_manager_or_higher(user.role):
            conditions.append(CheckInRow.user_id == user.id)
        elif user_id:
            conditions.append(CheckInRow.user_id == user_id)

        total = session.execute(
            select(func.count()).select_from(CheckInRow).where(*conditions)
        ).scalar_one()
        items = session.execute(
            select(CheckInRow)
            .where(*conditions)
            .order_by(CheckInRow.week_start.desc(), CheckInRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return success(
            {
                "check_ins": [serialize_check_in(c) for c in items],
                "pagination": pagination(total, limit, offset),
            }
        )


@router.get("/summary")
def check_in_summary(
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    today = utc_today()
    scope = _objective_scope(user)
    with db.Session() as session:
        objectives = session.execute(
            select(ObjectiveRow)
            .where(*scope)
            .options(
                selectinload(ObjectiveRow.owner),
                selectinload(ObjectiveRow.team),
                selectinload(ObjectiveRow.key_results).selectinload(KeyResultRow.check_ins),
            )
            .order_by(ObjectiveRow.created_at.desc())
        ).scalars().all()

        rows = []
        key_results = []
        for objective in objectives:
            progress = objective_progress_value(objective)
            owner = objective.owner
            rows.append(
                {
                    "id": objective.id,
                    "title": objective.title,
                    "status": objective.status,
                    "score": objective.score,
                    "progress": progress,
                    "parent_id": objective.parent_id,
                    "goal_type": objective.goal_type,
                    "team_id": objective.team_id,
                    "team_name": objective.team.name if objective.team else None,
                    "owner_name": owner.name,
                    "owner_email": owner.email,
                }
            )
            for kr in objective.key_results:
                key_results.append(
                    {
                        "id": kr.id,
                        "title": kr.title,
                        "objective_title": objective.title,
                        "owner_name": owner.name,
                        "owner_email": owner.email,
                        "check_ins": [
                            {"week_start": ci.week_start, "value": ci.value, "status": ci.status}
                            for ci in kr.check_ins
                        ],
                    }
                )

        heatmap = build_progress_heatmap(key_results, today)
        recent = session.execute(
            select(CheckInRow)
            .join(KeyResultRow, CheckInRow.key_result_id == KeyResultRow.id)
            .join(ObjectiveRow, KeyResultRow.objective_id == ObjectiveRow.id)
            .where(*scope)
            .options(
                selectinload(CheckInRow.key_result)
                .selectinload(KeyResultRow.objective)
                .selectinload(ObjectiveRow.owner)
            )
            .order_by(CheckInRow.week_start.desc(), CheckInRow.created_at.desc())
            .limit(RECENT_CHECK_INS)
        ).scalars().all()

        return success(
            {
                "hero": build_hero_summary(rows),
                "weekly_summary": build_weekly_summary(heatmap, today),
                "heatmap": heatmap,
                "team_heatmap": build_team_heatmap(rows),
                "alignment": build_alignment_tree(rows),
                "recent_check_ins": [
                    {
                        "id": ci.id,
                        "key_result_id": ci.key_result_id,
                        "key_result_title": ci.key_result.title,
                        "objective_title": ci.key_result.objective.title,
                        "owner_name": ci.key_result.objective.owner.name
                        or ci.key_result.objective.owner.email,
                        "owner_email": ci.key_result.objective.owner.email,
                        "status": ci.status,
                        "value": ci.value,
                        "comment": ci.comment,
                        "week_start": ci.week_start,
                    }
                    for ci in recent
                ],
            }
        )
