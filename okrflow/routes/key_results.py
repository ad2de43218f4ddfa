"""
Key-result and initiative endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from okrflow.auth import CurrentUser, get_current_user
from okrflow.db import DbClient, InitiativeRow
from okrflow.dependencies import get_db_client
from okrflow.errors import errors, success
from okrflow.progress import validate_kr_weights
from okrflow.routes.common import ensure_can_modify, get_initiative, get_key_result
from okrflow.schemas import InitiativeCreate, InitiativeUpdate, KeyResultUpdate
from okrflow.serializers import serialize_initiative, serialize_key_result

router = APIRouter(tags=["key-results"])


@router.patch("/key-results/{key_result_id}")
def update_key_result(
    key_result_id: str,
    payload: KeyResultUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    with db.Session() as session:
        kr = get_key_result(session, key_result_id, user)
        ensure_can_modify(user, kr.objective.owner_id)

        if "weight" in fields and fields["weight"] != kr.weight:
            siblings = [
                {"weight": other.weight}
                for other in kr.objective.key_results
                if other.id != kr.id
            ]
            if not validate_kr_weights(siblings, fields["weight"]):
                raise errors.validation("Key Result weights cannot exceed 100")
            if sum(s["weight"] for s in siblings) + fields["weight"] != 100:
                raise errors.validation("Key Result weights must sum to 100")

        for name, value in fields.items():
            setattr(kr, name, value)
        session.commit()
        return success({"key_result": serialize_key_result(kr)})


@router.delete("/key-results/{key_result_id}")
def delete_key_result(
    key_result_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        kr = get_key_result(session, key_result_id, user)
        ensure_can_modify(user, kr.objective.owner_id)
        session.delete(kr)
        session.commit()
        return success({"deleted": True, "id": key_result_id})


@router.get("/key-results/{key_result_id}/initiatives")
def list_initiatives(
    key_result_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        kr = get_key_result(session, key_result_id, user)
        return success({"initiatives": [serialize_initiative(i) for i in kr.initiatives]})


@router.post("/key-results/{key_result_id}/initiatives", status_code=201)
def create_initiative(
    key_result_id: str,
    payload: InitiativeCreate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        kr = get_key_result(session, key_result_id, user)
        ensure_can_modify(user, kr.objective.owner_id)
        initiative = InitiativeRow(
            key_result_id=kr.id, title=payload.title, status=payload.status.value
        )
        session.add(initiative)
        session.commit()
        return success({"initiative": serialize_initiative(initiative)}, status_code=201)


@router.patch("/initiatives/{initiative_id}")
def update_initiative(
    initiative_id: str,
    payload: InitiativeUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        initiative = get_initiative(session, initiative_id, user)
        ensure_can_modify(user, initiative.key_result.objective.owner_id)
        if payload.title is not None:
            initiative.title = payload.title
        if payload.status is not None:
            initiative.status = payload.status.value
        session.commit()
        return success({"initiative": serialize_initiative(initiative)})


@router.delete("/initiatives/{initiative_id}")
def delete_initiative(
    initiative_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    with db.Session() as session:
        initiative = get_initiative(session, initiative_id, user)
        ensure_can_modify(user, initiative.key_result.objective.owner_id)
        session.delete(initiative)
        session.commit()
        return success({"deleted": True, "id": initiative_id})
