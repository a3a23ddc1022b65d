"""Room blocks: group holds and out-of-order rooms that take capacity off sale."""

import logging
from collections import defaultdict
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import transaction
from pms.errors import Conflict, InvalidInput, InvalidRange, NotFound
from pms.guards import assert_not_past_date
from pms.models.inventory import BLOCK_TYPES, RoomBlock
from pms.models.rooms import Room, RoomType
from pms.services.business_date_service import business_date_service

logger = logging.getLogger(__name__)


class RoomBlockService:

    async def create_block(
        self,
        db: AsyncSession,
        block_type: str,
        start_date: date,
        end_date: date,
        room_id: int | None = None,
        room_type_id: int | None = None,
        quantity: int = 1,
        reason: str | None = None,
        created_by: int | None = None,
    ) -> RoomBlock:
        """Hold a single room or a quantity of a room type for [start, end]."""
        if (room_id is None) == (room_type_id is None):
            raise InvalidInput("A block must target exactly one of room_id or room_type_id")
        if block_type not in BLOCK_TYPES:
            raise InvalidInput(f"Unknown block type '{block_type}'. Must be one of: {BLOCK_TYPES}")
        if end_date < start_date:
            raise InvalidRange(start_date, end_date, "block range")
        if room_id is not None:
            quantity = 1
        elif quantity < 1:
            raise InvalidInput("Block quantity must be at least 1")

        async with transaction(db):
            business_date = await business_date_service.get(db)
            assert_not_past_date(start_date, business_date, "Block start date")

            target = await db.get(Room if room_id is not None else RoomType, room_id or room_type_id)
            if target is None:
                raise NotFound(f"{'Room' if room_id is not None else 'Room type'} {room_id or room_type_id} not found")

            block = RoomBlock(
                room_id=room_id,
                room_type_id=room_type_id,
                block_type=block_type,
                quantity=quantity,
                start_date=start_date,
                end_date=end_date,
                reason=reason,
                created_by=created_by,
            )
            db.add(block)
            await db.flush()

        logger.info(
            f"Room block {block.id} created ({block_type}) "
            f"room={room_id} type={room_type_id} qty={quantity} {start_date}..{end_date}"
        )
        return block

    async def release_block(self, db: AsyncSession, block_id: int, released_by: int | None = None) -> RoomBlock:
        async with transaction(db):
            result = await db.execute(
                select(RoomBlock)
                .where(RoomBlock.id == block_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            block = result.scalar_one_or_none()
            if block is None:
                raise NotFound(f"Room block {block_id} not found")
            if block.released_at is not None:
                raise Conflict(f"Room block {block_id} was already released")
            block.released_at = datetime.now(timezone.utc)
            block.released_by = released_by

        logger.info(f"Room block {block_id} released")
        return block

    async def list_active_blocks(
        self,
        db: AsyncSession,
        start_date: date,
        end_date: date,
        room_type_id: int | None = None,
    ) -> list[RoomBlock]:
        """Unreleased blocks overlapping [start, end]."""
        query = select(RoomBlock).where(
            RoomBlock.released_at.is_(None),
            RoomBlock.start_date <= end_date,
            RoomBlock.end_date >= start_date,
        )
        if room_type_id is not None:
            room_ids = select(Room.id).where(Room.room_type_id == room_type_id)
            query = query.where(
                or_(RoomBlock.room_type_id == room_type_id, RoomBlock.room_id.in_(room_ids))
            )
        result = await db.execute(query.order_by(RoomBlock.start_date, RoomBlock.id))
        return list(result.scalars().all())

    async def blocked_counts(
        self, db: AsyncSession, room_type_id: int, dates: list[date]
    ) -> dict[date, int]:
        """Rooms of a type held by active blocks, per date."""
        counts: dict[date, int] = defaultdict(int)
        if not dates:
            return counts

        first, last = min(dates), max(dates)
        result = await db.execute(
            select(RoomBlock, Room.room_type_id)
            .outerjoin(Room, RoomBlock.room_id == Room.id)
            .where(
                RoomBlock.released_at.is_(None),
                RoomBlock.start_date <= last,
                RoomBlock.end_date >= first,
                or_(
                    RoomBlock.room_type_id == room_type_id,
                    and_(RoomBlock.room_id.is_not(None), Room.room_type_id == room_type_id),
                ),
            )
        )
        wanted = set(dates)
        for block, _ in result.all():
            cursor = max(block.start_date, first)
            while cursor <= min(block.end_date, last):
                if cursor in wanted:
                    counts[cursor] += block.quantity if block.room_id is None else 1
                cursor += timedelta(days=1)
        return counts

    async def blocked_count(self, db: AsyncSession, room_type_id: int, on: date) -> int:
        counts = await self.blocked_counts(db, room_type_id, [on])
        return counts.get(on, 0)


room_block_service = RoomBlockService()
