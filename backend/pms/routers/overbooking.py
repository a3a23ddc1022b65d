"""Overbooking router: policy CRUD and effective percent lookup."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.overbooking_service import overbooking_service

router = APIRouter()


class PolicyCreate(BaseModel):
    room_type_id: int | None = None
    start_date: date
    end_date: date
    overbooking_percent: int


class PolicyUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    overbooking_percent: int | None = None


def _policy_dict(p) -> dict:
    return {
        "id": p.id,
        "room_type_id": p.room_type_id,
        "start_date": p.start_date.isoformat(),
        "end_date": p.end_date.isoformat(),
        "overbooking_percent": p.overbooking_percent,
    }


@router.get("")
async def list_policies(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    policies = await overbooking_service.list_policies(db, start_date, end_date)
    return {"policies": [_policy_dict(p) for p in policies]}


@router.get("/effective")
async def get_effective_percent(
    room_type_id: int = Query(...),
    on: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    percent = await overbooking_service.get_effective_percent(db, room_type_id, on)
    return {"room_type_id": room_type_id, "date": on.isoformat(), "overbooking_percent": percent}


@router.post("", status_code=201)
async def create_policy(
    req: PolicyCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    policy = await overbooking_service.create_policy(
        db, req.start_date, req.end_date, req.overbooking_percent, req.room_type_id
    )
    return _policy_dict(policy)


@router.put("/{policy_id}")
async def update_policy(
    policy_id: int,
    req: PolicyUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    policy = await overbooking_service.update_policy(
        db, policy_id, req.start_date, req.end_date, req.overbooking_percent
    )
    return _policy_dict(policy)


@router.delete("/{policy_id}")
async def delete_policy(
    policy_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    await overbooking_service.delete_policy(db, policy_id)
    return {"deleted": True, "id": policy_id}
