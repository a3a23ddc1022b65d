"""Inventory router: seed and inspect the per-day room-type ledger."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.inventory_service import inventory_service

router = APIRouter()


class SeedRequest(BaseModel):
    room_type_id: int
    start_date: date
    end_date: date
    capacity: int = Field(ge=0)


class SeedAllRequest(BaseModel):
    start_date: date
    end_date: date


@router.post("/seed")
async def seed_inventory(
    req: SeedRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    days = await inventory_service.seed(db, req.room_type_id, req.start_date, req.end_date, req.capacity)
    return {"room_type_id": req.room_type_id, "days": days, "capacity": req.capacity}


@router.post("/seed-all")
async def seed_all_inventory(
    req: SeedAllRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    """Seed every active room type with its physical room count."""
    summary = await inventory_service.seed_all_room_types(db, req.start_date, req.end_date)
    return {"room_types": summary}


@router.get("/{room_type_id}")
async def get_inventory(
    room_type_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    rows = await inventory_service.get_inventory(db, room_type_id, start_date, end_date)
    return {
        "room_type_id": room_type_id,
        "days": [
            {
                "date": r.date.isoformat(),
                "capacity": r.capacity,
                "available": r.available,
                "sold": r.capacity - r.available,
                "version": r.version,
            }
            for r in rows
        ],
    }
