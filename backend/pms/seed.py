"""Seed script for the PMS development database."""

import asyncio
from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from pms.config import settings
from pms.database import async_session_factory
from pms.models.rates import RatePlan
from pms.models.rooms import Room, RoomType
from pms.services.business_date_service import business_date_service
from pms.services.inventory_service import inventory_service
from pms.services.rate_service import rate_service

# ── Room types ─────────────────────────────────────────────────────────────────

ROOM_TYPES = [
    {"code": "STD", "name": "Standard Double", "total_rooms": 20, "base_price": Decimal("100.00"), "max_occupancy": 2, "sort_order": 1},
    {"code": "DLX", "name": "Deluxe King", "total_rooms": 10, "base_price": Decimal("140.00"), "max_occupancy": 2, "sort_order": 2},
    {"code": "STE", "name": "Junior Suite", "total_rooms": 4, "base_price": Decimal("250.00"), "max_occupancy": 4, "sort_order": 3},
]

# ── Rate plans ─────────────────────────────────────────────────────────────────

RATE_PLANS = [
    {"code": "BAR", "name": "Best Available Rate", "is_refundable": True, "cancellation_deadline_hours": 24},
    {"code": "NRF", "name": "Non-Refundable", "is_refundable": False, "requires_advance_booking_days": 7},
]

# BAR prices for the standard room; deluxe follows it at +32 %
STD_BAR_PRICE = Decimal("100.00")
DLX_PERCENT = Decimal("32")
NRF_DISCOUNT = Decimal("-15.00")


async def seed():
    async with async_session_factory() as db:
        result = await db.execute(select(RoomType))
        existing = result.scalars().all()
        if existing:
            print(f"Room types already exist ({len(existing)}), skipping seed.")
            return

        room_types = {}
        for rt_data in ROOM_TYPES:
            rt = RoomType(**rt_data)
            db.add(rt)
            room_types[rt.code] = rt
        plans = {}
        for plan_data in RATE_PLANS:
            plan = RatePlan(**plan_data)
            db.add(plan)
            plans[plan.code] = plan
        await db.flush()

        floor = 1
        for rt in room_types.values():
            for i in range(rt.total_rooms):
                db.add(Room(room_number=f"{floor}{i + 1:02d}", room_type_id=rt.id, floor=floor))
            floor += 1
        await db.commit()

        start = await business_date_service.get(db)
        end = start + timedelta(days=settings.inventory_seed_horizon_days - 1)

        std, dlx = room_types["STD"], room_types["DLX"]
        await rate_service.create_rate_adjustment(db, std.id, dlx.id, "percent", DLX_PERCENT)
        await rate_service.update_base_rate_and_propagate(
            db, std.id, plans["BAR"].id, start, end, STD_BAR_PRICE
        )
        await rate_service.update_base_rate_and_propagate(
            db, std.id, plans["NRF"].id, start, end, STD_BAR_PRICE + NRF_DISCOUNT
        )
        summary = await inventory_service.seed_all_room_types(db, start, end)

        print(
            f"Seeded {len(ROOM_TYPES)} room types, {sum(rt.total_rooms for rt in room_types.values())} rooms, "
            f"{len(RATE_PLANS)} rate plans and {sum(s['days'] for s in summary)} inventory days."
        )


if __name__ == "__main__":
    asyncio.run(seed())
