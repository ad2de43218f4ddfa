"""
Team management for managers and admins of an organization.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from okrflow.auth import CurrentUser, get_current_user, require_org
from okrflow.db import DbClient, TeamMemberRow, TeamRow, UserRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.routes.common import ensure_manager
from okrflow.schemas import TeamCreate, TeamUpdate
from okrflow.serializers import objective_brief, serialize_team, user_summary

router = APIRouter(prefix="/teams", tags=["teams"])


def _manager_org(user: CurrentUser) -> str:
    org_id = require_org(user)
    ensure_manager(user)
    return org_id


def _get_team(session: Session, team_id: str, org_id: str) -> TeamRow:
    team = session.get(TeamRow, team_id)
    if not team or team.org_id != org_id:
        raise errors.not_found("Team")
    return team


def _team_detail(team: TeamRow) -> dict:
    data = serialize_team(team)
    data["members"] = [user_summary(member.user) for member in team.members]
    data["objectives"] = [objective_brief(o) for o in team.objectives]
    return data


@router.get("")
def list_teams(
    search: Optional[str] = None,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = _manager_org(user)
    stmt = (
        select(TeamRow)
        .where(TeamRow.org_id == org_id)
        .options(selectinload(TeamRow.members))
        .order_by(TeamRow.name.asc())
    )
    if search:
        stmt = stmt.where(TeamRow.name.ilike(f"%{search}%"))
    with db.Session() as session:
        teams = session.execute(stmt).scalars().all()
        return success({"teams": [serialize_team(t) for t in teams]})


@router.post("", status_code=201)
def create_team(
    payload: TeamCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = _manager_org(user)
    with db.Session() as session:
        team = TeamRow(org_id=org_id, name=payload.name.strip())
        session.add(team)
        session.commit()
        return success({"team": serialize_team(team)}, status_code=201)


@router.get("/{team_id}")
def get_team(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = _manager_org(user)
    with db.Session() as session:
        team = _get_team(session, team_id, org_id)
        return success({"team": _team_detail(team)})


@router.patch("/{team_id}")
def update_team(
    team_id: str,
    payload: TeamUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = _manager_org(user)
    with db.Session() as session:
        team = _get_team(session, team_id, org_id)
        if payload.name is not None:
            team.name = payload.name.strip()
        if payload.member_ids is not None:
            member_ids = list(dict.fromkeys(payload.member_ids))
            found = session.execute(
                select(UserRow.id).where(UserRow.id.in_(member_ids), UserRow.org_id == org_id)
            ).scalars().all()
            if len(found) != len(member_ids):
                raise errors.forbidden("Members must belong to your organization")
            current = {member.user_id: member for member in team.members}
            team.members = [
                current.get(member_id) or TeamMemberRow(user_id=member_id)
                for member_id in member_ids
            ]
        session.commit()
        return success({"team": _team_detail(team)})


@router.delete("/{team_id}")
def delete_team(
    team_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    org_id = _manager_org(user)
    with db.Session() as session:
        team = _get_team(session, team_id, org_id)
        session.delete(team)
        session.commit()
        return success({"deleted": True, "id": team_id})
