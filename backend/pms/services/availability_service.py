"""Availability & overbooking decisions for stay requests.

Admission is two-phase: an advisory read (check_availability / can_overbook)
followed by the authoritative per-night decrement in the inventory ledger.
Concurrent requests may pass the advisory phase together; only the ones whose
decrement succeeds under the row lock are booked.
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import transaction
from pms.errors import InvalidInput, NoInventoryRow
from pms.models.inventory import RoomInventory
from pms.models.rooms import RoomType
from pms.services.inventory_service import inventory_service
from pms.services.overbooking_service import overbooking_service, sell_ceiling, validate_percent
from pms.services.room_block_service import room_block_service
from pms.utils import stay_nights

logger = logging.getLogger(__name__)


@dataclass
class NightAvailability:
    date: date
    capacity: int
    available: int
    blocked: int

    @property
    def sellable(self) -> int:
        return self.available - self.blocked

    @property
    def sold(self) -> int:
        return self.capacity - self.available


@dataclass
class AvailabilityResult:
    room_type_id: int
    check_in: date
    check_out: date
    rooms_available: int
    nights: list[NightAvailability] = field(default_factory=list)

    @property
    def is_available(self) -> bool:
        return self.rooms_available > 0


@dataclass
class OverbookDecision:
    allowed: bool
    requested_rooms: int
    blocked_date: date | None = None
    remaining_slots: int | None = None
    percent: int | None = None


@dataclass
class StayDecision:
    accepted: bool
    rooms_available: int
    overbooked: bool
    rejected_on: date | None = None


class AvailabilityService:

    async def check_availability(
        self, db: AsyncSession, room_type_id: int, check_in: date, check_out: date
    ) -> AvailabilityResult:
        """Rooms bookable for every night of [check_in, check_out)."""
        nights = stay_nights(check_in, check_out)
        result = await db.execute(
            select(RoomInventory).where(
                RoomInventory.room_type_id == room_type_id,
                RoomInventory.date >= check_in,
                RoomInventory.date < check_out,
            )
        )
        rows = {row.date: row for row in result.scalars().all()}
        blocked = await room_block_service.blocked_counts(db, room_type_id, nights)

        daily = []
        for night in nights:
            row = rows.get(night)
            if row is None:
                raise NoInventoryRow(room_type_id, night)
            daily.append(NightAvailability(
                date=night,
                capacity=row.capacity,
                available=row.available,
                blocked=blocked.get(night, 0),
            ))

        return AvailabilityResult(
            room_type_id=room_type_id,
            check_in=check_in,
            check_out=check_out,
            rooms_available=max(0, min(n.sellable for n in daily)),
            nights=daily,
        )

    async def get_available_room_types(
        self, db: AsyncSession, check_in: date, check_out: date
    ) -> list[dict]:
        """Availability of every active room type for a stay window."""
        stay_nights(check_in, check_out)
        result = await db.execute(
            select(RoomType).where(RoomType.is_active == True).order_by(RoomType.sort_order, RoomType.id)
        )
        output = []
        for rt in result.scalars().all():
            try:
                avail = await self.check_availability(db, rt.id, check_in, check_out)
                rooms_available = avail.rooms_available
                missing = None
            except NoInventoryRow as e:
                rooms_available = 0
                missing = e.date
            output.append({
                "room_type_id": rt.id,
                "code": rt.code,
                "name": rt.name,
                "base_price": rt.base_price,
                "total_rooms": rt.total_rooms,
                "rooms_available": rooms_available,
                "is_available": rooms_available > 0,
                "missing_inventory_date": missing,
            })
        return output

    async def get_effective_overbooking_percent(self, db: AsyncSession, room_type_id: int, on: date) -> int:
        return await overbooking_service.get_effective_percent(db, room_type_id, on)

    async def can_overbook(
        self,
        db: AsyncSession,
        room_type_id: int,
        check_in: date,
        check_out: date,
        requested_rooms: int,
        override_percent: int | None = None,
    ) -> OverbookDecision:
        """Whether selling requested_rooms more stays within every night's ceiling."""
        if requested_rooms < 1:
            raise InvalidInput(f"Requested rooms must be positive, got {requested_rooms}")
        if override_percent is not None:
            validate_percent(override_percent)

        avail = await self.check_availability(db, room_type_id, check_in, check_out)
        for night in avail.nights:
            percent = override_percent
            if percent is None:
                percent = await overbooking_service.get_effective_percent(db, room_type_id, night.date)
            remaining = sell_ceiling(night.capacity, percent) - night.sold - night.blocked
            if requested_rooms > remaining:
                return OverbookDecision(
                    allowed=False,
                    requested_rooms=requested_rooms,
                    blocked_date=night.date,
                    remaining_slots=remaining,
                    percent=percent,
                )
        return OverbookDecision(allowed=True, requested_rooms=requested_rooms)

    async def admit_stay(
        self,
        db: AsyncSession,
        room_type_id: int,
        check_in: date,
        check_out: date,
        requested_rooms: int,
        override_percent: int | None = None,
    ) -> StayDecision:
        """Accept or reject a stay request and consume its inventory on acceptance."""
        if requested_rooms < 1:
            raise InvalidInput(f"Requested rooms must be positive, got {requested_rooms}")

        async with transaction(db):
            avail = await self.check_availability(db, room_type_id, check_in, check_out)
            overbooked = False
            if avail.rooms_available < requested_rooms:
                decision = await self.can_overbook(
                    db, room_type_id, check_in, check_out, requested_rooms, override_percent
                )
                if not decision.allowed:
                    logger.warning(
                        f"Stay rejected: type={room_type_id} {check_in}..{check_out} "
                        f"rooms={requested_rooms} blocked on {decision.blocked_date} "
                        f"({decision.remaining_slots} slot(s) left at {decision.percent}%)"
                    )
                    return StayDecision(
                        accepted=False,
                        rooms_available=avail.rooms_available,
                        overbooked=False,
                        rejected_on=decision.blocked_date,
                    )
                overbooked = True

            await inventory_service.decrement_stay(
                db, room_type_id, check_in, check_out, requested_rooms, override_percent
            )

        logger.info(
            f"Stay accepted: type={room_type_id} {check_in}..{check_out} "
            f"rooms={requested_rooms} overbooked={overbooked}"
        )
        return StayDecision(
            accepted=True,
            rooms_available=avail.rooms_available,
            overbooked=overbooked,
        )

    async def release_stay(
        self, db: AsyncSession, room_type_id: int, check_in: date, check_out: date, rooms: int
    ) -> None:
        """Give back the inventory of a cancelled stay."""
        await inventory_service.increment_stay(db, room_type_id, check_in, check_out, rooms)


availability_service = AvailabilityService()
