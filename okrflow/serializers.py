"""
ORM row -> JSON-ready dict conversions shared by the routes, reports and jobs.
"""

from __future__ import annotations

from typing import Optional

from okrflow.db import (
    CheckInRow,
    CommentRow,
    InitiativeRow,
    InvitationRow,
    KeyResultRow,
    NotificationRow,
    ObjectiveRow,
    TeamRow,
    UserRow,
)
from okrflow.progress import calc_progress_from_progress, kr_progress, objective_score
from okrflow.types import ProgressType


def kr_progress_value(kr: KeyResultRow) -> float:
    return round(kr_progress(kr.current or 0, kr.target), 2)


def objective_progress_value(objective: ObjectiveRow) -> int:
    """Manual objectives report their stored value; automatic ones roll up their key results."""
    if objective.progress_type == ProgressType.MANUAL.value:
        return round(objective.progress or 0)
    return calc_progress_from_progress(
        [{"progress": kr_progress_value(kr), "weight": kr.weight} for kr in objective.key_results]
    )


def user_summary(user: Optional[UserRow]) -> Optional[dict]:
    if not user:
        return None
    return {"id": user.id, "name": user.name, "email": user.email}


def serialize_user(user: UserRow) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "org_id": user.org_id,
        "created_at": user.created_at,
    }


def serialize_initiative(initiative: InitiativeRow) -> dict:
    return {
        "id": initiative.id,
        "key_result_id": initiative.key_result_id,
        "title": initiative.title,
        "status": initiative.status,
        "created_at": initiative.created_at,
        "updated_at": initiative.updated_at,
    }


def serialize_key_result(kr: KeyResultRow, *, with_initiatives: bool = False) -> dict:
    data = {
        "id": kr.id,
        "objective_id": kr.objective_id,
        "title": kr.title,
        "weight": kr.weight,
        "target": kr.target,
        "current": kr.current,
        "unit": kr.unit,
        "progress": kr_progress_value(kr),
    }
    if with_initiatives:
        data["initiatives"] = [serialize_initiative(i) for i in kr.initiatives]
    return data


def objective_brief(objective: Optional[ObjectiveRow]) -> Optional[dict]:
    if not objective:
        return None
    progress = objective_progress_value(objective)
    return {
        "id": objective.id,
        "title": objective.title,
        "status": objective.status,
        "cycle": objective.cycle,
        "progress": progress,
        "owner": user_summary(objective.owner),
    }


def serialize_objective(objective: ObjectiveRow, *, detail: bool = False) -> dict:
    progress = objective_progress_value(objective)
    data = {
        "id": objective.id,
        "org_id": objective.org_id,
        "title": objective.title,
        "description": objective.description,
        "cycle": objective.cycle,
        "start_at": objective.start_at,
        "end_at": objective.end_at,
        "status": objective.status,
        "goal_type": objective.goal_type,
        "progress_type": objective.progress_type,
        "progress": progress,
        "score": objective.score if objective.score is not None else objective_score(progress),
        "fiscal_quarter": objective.fiscal_quarter,
        "owner_id": objective.owner_id,
        "team_id": objective.team_id,
        "parent_id": objective.parent_id,
        "owner": user_summary(objective.owner),
        "team": {"id": objective.team.id, "name": objective.team.name} if objective.team else None,
        "key_results": [
            serialize_key_result(kr, with_initiatives=detail) for kr in objective.key_results
        ],
        "created_at": objective.created_at,
        "updated_at": objective.updated_at,
    }
    if detail:
        data["parent"] = objective_brief(objective.parent)
        data["children"] = [objective_brief(child) for child in objective.children]
    return data


def serialize_check_in(check_in: CheckInRow) -> dict:
    return {
        "id": check_in.id,
        "key_result_id": check_in.key_result_id,
        "user_id": check_in.user_id,
        "week_start": check_in.week_start,
        "value": check_in.value,
        "status": check_in.status,
        "comment": check_in.comment,
        "created_at": check_in.created_at,
        "updated_at": check_in.updated_at,
    }


def serialize_comment(comment: CommentRow) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "objective_id": comment.objective_id,
        "key_result_id": comment.key_result_id,
        "user": user_summary(comment.user),
        "created_at": comment.created_at,
    }


def serialize_notification(notification: NotificationRow) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "message": notification.message,
        "metadata": notification.payload,
        "read": notification.read,
        "created_at": notification.created_at,
    }


def serialize_invitation(invitation: InvitationRow) -> dict:
    return {
        "id": invitation.id,
        "email": invitation.email,
        "role": invitation.role,
        "expires_at": invitation.expires_at,
        "accepted_at": invitation.accepted_at,
        "created_at": invitation.created_at,
    }


def serialize_team(team: TeamRow) -> dict:
    return {
        "id": team.id,
        "name": team.name,
        "org_id": team.org_id,
        "member_count": len(team.members),
        "created_at": team.created_at,
    }
