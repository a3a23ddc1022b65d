"""Room blocks router."""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import get_db
from pms.dependencies import Caller, require_role
from pms.services.room_block_service import room_block_service

router = APIRouter()

BLOCK_ROLES = ("admin", "manager", "receptionist", "maintenance")


class BlockCreate(BaseModel):
    block_type: str
    start_date: date
    end_date: date
    room_id: int | None = None
    room_type_id: int | None = None
    quantity: int = Field(default=1, ge=1)
    reason: str | None = None


def _block_dict(b) -> dict:
    return {
        "id": b.id,
        "block_type": b.block_type,
        "room_id": b.room_id,
        "room_type_id": b.room_type_id,
        "quantity": b.quantity,
        "start_date": b.start_date.isoformat(),
        "end_date": b.end_date.isoformat(),
        "reason": b.reason,
        "released_at": b.released_at.isoformat() if b.released_at else None,
    }


@router.get("")
async def list_blocks(
    start_date: date = Query(...),
    end_date: date = Query(...),
    room_type_id: int | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    blocks = await room_block_service.list_active_blocks(db, start_date, end_date, room_type_id)
    return {"blocks": [_block_dict(b) for b in blocks]}


@router.post("", status_code=201)
async def create_block(
    req: BlockCreate,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*BLOCK_ROLES)),
):
    block = await room_block_service.create_block(
        db,
        req.block_type,
        req.start_date,
        req.end_date,
        room_id=req.room_id,
        room_type_id=req.room_type_id,
        quantity=req.quantity,
        reason=req.reason,
        created_by=caller.user_id,
    )
    return _block_dict(block)


@router.post("/{block_id}/release")
async def release_block(
    block_id: int,
    db: AsyncSession = Depends(get_db),
    caller: Caller = Depends(require_role(*BLOCK_ROLES)),
):
    block = await room_block_service.release_block(db, block_id, released_by=caller.user_id)
    return _block_dict(block)
