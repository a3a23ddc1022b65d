"""Rates router: effective and derived prices, range writes, propagation."""

from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.rate_service import rate_service

router = APIRouter()

REVENUE_ROLES = ("admin", "manager")


class RateRangeSet(BaseModel):
    room_type_id: int
    rate_plan_id: int
    start_date: date
    end_date: date
    price: Decimal = Field(ge=0)


class PropagateRequest(BaseModel):
    base_room_type_id: int
    rate_plan_id: int
    start_date: date
    end_date: date
    price: Decimal = Field(ge=0)


class AdjustmentCreate(BaseModel):
    base_room_type_id: int
    derived_room_type_id: int
    adjustment_type: str
    adjustment_value: Decimal
    rate_plan_id: int | None = None


def _rate_dict(rate) -> dict:
    return {
        "id": rate.id,
        "room_type_id": rate.room_type_id,
        "rate_plan_id": rate.rate_plan_id,
        "start_date": rate.start_date.isoformat(),
        "end_date": rate.end_date.isoformat(),
        "price": str(rate.price),
    }


@router.get("")
async def list_rates(
    room_type_id: int = Query(...),
    rate_plan_id: int = Query(...),
    db: AsyncSession = Depends(get_db),
):
    rates = await rate_service.list_rates(db, room_type_id, rate_plan_id)
    return {"rates": [_rate_dict(r) for r in rates]}


@router.get("/effective")
async def get_effective_rate(
    room_type_id: int = Query(...),
    rate_plan_id: int = Query(...),
    on: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    price = await rate_service.get_effective_rate(db, room_type_id, rate_plan_id, on)
    return {"room_type_id": room_type_id, "rate_plan_id": rate_plan_id, "date": on.isoformat(), "price": str(price)}


@router.get("/derived")
async def get_derived_rate(
    base_room_type_id: int = Query(...),
    derived_room_type_id: int = Query(...),
    rate_plan_id: int = Query(...),
    on: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    price = await rate_service.get_derived_rate(db, base_room_type_id, derived_room_type_id, rate_plan_id, on)
    return {
        "base_room_type_id": base_room_type_id,
        "derived_room_type_id": derived_room_type_id,
        "rate_plan_id": rate_plan_id,
        "date": on.isoformat(),
        "price": str(price),
    }


@router.get("/night")
async def resolve_night_rate(
    room_type_id: int = Query(...),
    on: date = Query(...),
    rate_plan_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    night = await rate_service.resolve_night_rate(db, room_type_id, rate_plan_id, on)
    return {"room_type_id": room_type_id, "date": on.isoformat(), "price": str(night.price), "source": night.source}


@router.put("")
async def set_rate_range(
    req: RateRangeSet,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*REVENUE_ROLES)),
):
    rate = await rate_service.set_room_type_rate(
        db, req.room_type_id, req.rate_plan_id, req.start_date, req.end_date, req.price
    )
    return _rate_dict(rate)


@router.post("/propagate")
async def propagate_base_rate(
    req: PropagateRequest,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*REVENUE_ROLES)),
):
    """Update a base room type's range and rewrite every type derived from it."""
    result = await rate_service.update_base_rate_and_propagate(
        db, req.base_room_type_id, req.rate_plan_id, req.start_date, req.end_date, req.price
    )
    return {
        "base_rate": _rate_dict(result.base_rate),
        "derived_rates": [
            {
                "room_type_id": d["room_type_id"],
                "price": str(d["price"]),
                "adjustment_type": d["adjustment_type"],
                "adjustment_value": str(d["adjustment_value"]),
            }
            for d in result.derived_rates
        ],
    }


@router.post("/adjustments", status_code=201)
async def create_adjustment(
    req: AdjustmentCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*REVENUE_ROLES)),
):
    adj = await rate_service.create_rate_adjustment(
        db,
        req.base_room_type_id,
        req.derived_room_type_id,
        req.adjustment_type,
        req.adjustment_value,
        req.rate_plan_id,
    )
    return {
        "id": adj.id,
        "base_room_type_id": adj.base_room_type_id,
        "derived_room_type_id": adj.derived_room_type_id,
        "rate_plan_id": adj.rate_plan_id,
        "adjustment_type": adj.adjustment_type,
        "adjustment_value": str(adj.adjustment_value),
    }
