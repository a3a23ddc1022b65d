"""Availability router: search, overbooking checks and stay admission."""

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, get_caller, require_role
from pms.services.availability_service import availability_service

router = APIRouter()

FRONT_DESK = ("admin", "manager", "receptionist")
OVERRIDE_ROLES = ("admin", "manager")


def _check_override(override_percent: int | None, caller: Caller | None) -> None:
    if override_percent is not None and (caller is None or caller.role not in OVERRIDE_ROLES):
        raise HTTPException(status_code=403, detail="Only admins and managers may override the overbooking percent")


class StayRequest(BaseModel):
    room_type_id: int
    check_in: date
    check_out: date
    rooms: int = Field(default=1, ge=1)
    override_percent: int | None = None


class StayRelease(BaseModel):
    room_type_id: int
    check_in: date
    check_out: date
    rooms: int = Field(default=1, ge=1)


@router.get("")
async def check_availability(
    room_type_id: int = Query(...),
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    result = await availability_service.check_availability(db, room_type_id, check_in, check_out)
    return {
        "room_type_id": result.room_type_id,
        "check_in": result.check_in.isoformat(),
        "check_out": result.check_out.isoformat(),
        "rooms_available": result.rooms_available,
        "is_available": result.is_available,
        "nights": [
            {
                "date": n.date.isoformat(),
                "capacity": n.capacity,
                "available": n.available,
                "blocked": n.blocked,
                "sellable": n.sellable,
            }
            for n in result.nights
        ],
    }


@router.get("/search")
async def search_availability(
    check_in: date = Query(...),
    check_out: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    room_types = await availability_service.get_available_room_types(db, check_in, check_out)
    return {"check_in": check_in.isoformat(), "check_out": check_out.isoformat(), "room_types": room_types}


@router.get("/overbook")
async def can_overbook(
    room_type_id: int = Query(...),
    check_in: date = Query(...),
    check_out: date = Query(...),
    rooms: int = Query(1, ge=1),
    override_percent: int | None = Query(None),
    x_user_role: str | None = Header(default=None),
    x_user_id: int | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    caller = None
    if override_percent is not None:
        caller = await get_caller(x_user_role, x_user_id)
    _check_override(override_percent, caller)
    decision = await availability_service.can_overbook(
        db, room_type_id, check_in, check_out, rooms, override_percent
    )
    return {
        "allowed": decision.allowed,
        "requested_rooms": decision.requested_rooms,
        "blocked_date": decision.blocked_date.isoformat() if decision.blocked_date else None,
        "remaining_slots": decision.remaining_slots,
        "percent": decision.percent,
    }


@router.post("/stays")
async def admit_stay(
    req: StayRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*FRONT_DESK)),
):
    """Accept a stay and consume its inventory, or report the night that blocks it."""
    _check_override(req.override_percent, caller)
    decision = await availability_service.admit_stay(
        db, req.room_type_id, req.check_in, req.check_out, req.rooms, req.override_percent
    )
    return {
        "accepted": decision.accepted,
        "rooms_available": decision.rooms_available,
        "overbooked": decision.overbooked,
        "rejected_on": decision.rejected_on.isoformat() if decision.rejected_on else None,
    }


@router.post("/stays/release")
async def release_stay(
    req: StayRelease,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*FRONT_DESK)),
):
    await availability_service.release_stay(db, req.room_type_id, req.check_in, req.check_out, req.rooms)
    return {"released": True}
