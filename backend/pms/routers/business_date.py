"""Business date router: read, override and advance the operating day."""

from datetime import date

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.business_date_service import business_date_service

router = APIRouter()


class BusinessDateUpdate(BaseModel):
    business_date: date


@router.get("")
async def get_business_date(db: AsyncSession = Depends(get_db)):
    current = await business_date_service.get(db)
    return {"business_date": current.isoformat()}


@router.put("")
async def set_business_date(
    req: BusinessDateUpdate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin")),
):
    """Administrative override. Past dates are accepted."""
    new_date = await business_date_service.set(db, req.business_date)
    return {"business_date": new_date.isoformat()}


@router.post("/advance")
async def advance_business_date(
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role("admin", "manager")),
):
    new_date = await business_date_service.advance(db)
    return {"business_date": new_date.isoformat()}
