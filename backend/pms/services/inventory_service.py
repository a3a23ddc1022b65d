"""Room-type inventory ledger: per-day capacity and remaining counters.

Every counter change happens under a row lock taken inside a scoped
transaction. The decrement path re-validates the oversell ceiling while
holding the lock; it is the only authoritative availability check.
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import transaction
from pms.errors import InsufficientAvailability, InvalidInput, InvariantViolation, NoInventoryRow
from pms.models.inventory import RoomInventory
from pms.models.rooms import RoomType
from pms.services.overbooking_service import overbooking_service, sell_ceiling, validate_percent
from pms.services.room_block_service import room_block_service
from pms.utils import inclusive_dates, stay_nights

logger = logging.getLogger(__name__)


class InventoryService:

    async def seed(
        self,
        db: AsyncSession,
        room_type_id: int,
        start_date: date,
        end_date: date,
        capacity: int,
    ) -> int:
        """Create or reset one row per date of [start, end] with available = capacity."""
        dates = inclusive_dates(start_date, end_date, "inventory range")
        if capacity < 0:
            raise InvalidInput(f"Capacity must be non-negative, got {capacity}")

        async with transaction(db):
            result = await db.execute(
                select(RoomInventory)
                .where(
                    RoomInventory.room_type_id == room_type_id,
                    RoomInventory.date >= start_date,
                    RoomInventory.date <= end_date,
                )
                .order_by(RoomInventory.date)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            existing = {row.date: row for row in result.scalars().all()}
            now = datetime.now(timezone.utc)

            for d in dates:
                row = existing.get(d)
                if row is None:
                    db.add(RoomInventory(
                        room_type_id=room_type_id,
                        date=d,
                        capacity=capacity,
                        available=capacity,
                        version=1,
                    ))
                else:
                    row.capacity = capacity
                    row.available = capacity
                    row.version += 1
                    row.updated_at = now
            await db.flush()

        logger.info(
            f"Inventory seeded for room type {room_type_id}: {start_date}..{end_date} "
            f"capacity={capacity} ({len(dates)} days, {len(existing)} reset)"
        )
        return len(dates)

    async def seed_all_room_types(self, db: AsyncSession, start_date: date, end_date: date) -> list[dict]:
        """Seed every active room type with its physical room count."""
        inclusive_dates(start_date, end_date, "inventory range")
        async with transaction(db):
            result = await db.execute(
                select(RoomType).where(RoomType.is_active == True).order_by(RoomType.id)
            )
            summary = []
            for room_type in result.scalars().all():
                days = await self.seed(db, room_type.id, start_date, end_date, room_type.total_rooms)
                summary.append({"room_type_id": room_type.id, "capacity": room_type.total_rooms, "days": days})
        return summary

    async def get_inventory(
        self, db: AsyncSession, room_type_id: int, start_date: date, end_date: date
    ) -> list[RoomInventory]:
        inclusive_dates(start_date, end_date, "inventory range")
        result = await db.execute(
            select(RoomInventory)
            .where(
                RoomInventory.room_type_id == room_type_id,
                RoomInventory.date >= start_date,
                RoomInventory.date <= end_date,
            )
            .order_by(RoomInventory.date)
        )
        return list(result.scalars().all())

    async def decrement(
        self,
        db: AsyncSession,
        room_type_id: int,
        on: date,
        n: int,
        override_percent: int | None = None,
    ) -> RoomInventory:
        """Sell n rooms for one night after re-checking the ceiling under lock."""
        if n < 1:
            raise InvalidInput(f"Room count must be positive, got {n}")

        async with transaction(db):
            row = await self._locked_row(db, room_type_id, on)

            if override_percent is not None:
                percent = validate_percent(override_percent)
            else:
                percent = await overbooking_service.get_effective_percent(db, room_type_id, on)
            blocked = await room_block_service.blocked_count(db, room_type_id, on)

            sold = row.capacity - row.available
            remaining = sell_ceiling(row.capacity, percent) - sold - blocked
            if n > remaining:
                logger.warning(
                    f"Decrement rejected for room type {room_type_id} on {on}: "
                    f"{remaining} remaining, {n} requested at {percent}%"
                )
                raise InsufficientAvailability(room_type_id, on, remaining, n, percent)

            row.available -= n
            row.version += 1
            row.updated_at = datetime.now(timezone.utc)
        return row

    async def increment(self, db: AsyncSession, room_type_id: int, on: date, n: int) -> RoomInventory:
        """Return n rooms for one night to the pool."""
        if n < 1:
            raise InvalidInput(f"Room count must be positive, got {n}")

        async with transaction(db):
            row = await self._locked_row(db, room_type_id, on)
            if row.available + n > row.capacity:
                raise InvariantViolation(
                    f"Releasing {n} room(s) of type {room_type_id} on {on} would raise "
                    f"available to {row.available + n} above capacity {row.capacity}"
                )
            row.available += n
            row.version += 1
            row.updated_at = datetime.now(timezone.utc)
        return row

    async def decrement_stay(
        self,
        db: AsyncSession,
        room_type_id: int,
        check_in: date,
        check_out: date,
        n: int,
        override_percent: int | None = None,
    ) -> list[RoomInventory]:
        """Sell every night of a stay, or none of them."""
        nights = stay_nights(check_in, check_out)
        async with transaction(db):
            rows = [
                await self.decrement(db, room_type_id, night, n, override_percent)
                for night in nights
            ]
        logger.info(
            f"Inventory decremented: type={room_type_id} {check_in}..{check_out} "
            f"rooms={n} nights={len(nights)}"
        )
        return rows

    async def increment_stay(
        self, db: AsyncSession, room_type_id: int, check_in: date, check_out: date, n: int
    ) -> list[RoomInventory]:
        nights = stay_nights(check_in, check_out)
        async with transaction(db):
            rows = [await self.increment(db, room_type_id, night, n) for night in nights]
        logger.info(
            f"Inventory released: type={room_type_id} {check_in}..{check_out} "
            f"rooms={n} nights={len(nights)}"
        )
        return rows

    async def _locked_row(self, db: AsyncSession, room_type_id: int, on: date) -> RoomInventory:
        result = await db.execute(
            select(RoomInventory)
            .where(RoomInventory.room_type_id == room_type_id, RoomInventory.date == on)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        if row is None:
            raise NoInventoryRow(room_type_id, on)
        return row


inventory_service = InventoryService()
