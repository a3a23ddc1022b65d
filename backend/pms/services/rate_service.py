"""Rate resolution engine: nightly prices from direct rows or derivations.

Rates are stored as inclusive date ranges per (room type, rate plan) and never
overlap. Writing a range replaces whatever the new range covers:

    existing   |-------------|           existing row keeps [a, s-1]
    new               |----|             new row [s, e]
                                         tail copy [e+1, b] at the old price

Rows fully inside the new range are deleted, rows sticking out on one side
are trimmed to the side that remains.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import transaction
from pms.errors import (
    AdjustmentNotFound,
    ChainedDerivation,
    Conflict,
    InvalidInput,
    InvalidRange,
    NotFound,
    OverlappingRateRange,
    RateNotFound,
)
from pms.guards import assert_not_past_date
from pms.models.rates import ADJUSTMENT_TYPES, RatePlan, RoomTypeRate, RoomTypeRateAdjustment
from pms.models.rooms import RoomType
from pms.services.business_date_service import business_date_service
from pms.utils import round_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class NightRate:
    price: Decimal
    source: str  # rate_plan | derived | base_price
    base_room_type_id: int | None = None


@dataclass
class PropagationResult:
    base_rate: RoomTypeRate
    derived_rates: list[dict] = field(default_factory=list)


def apply_adjustment(base_price: Decimal, adjustment_type: str, adjustment_value: Decimal) -> Decimal:
    """Derived price from a base price, rounded half-up to the minor unit."""
    base_price = to_decimal(base_price)
    value = to_decimal(adjustment_value)
    if adjustment_type == "percent":
        derived = base_price * (Decimal(1) + value / Decimal(100))
    elif adjustment_type == "amount":
        derived = base_price + value
    else:
        raise InvalidInput(f"Unknown adjustment type '{adjustment_type}'")
    return round_money(derived)


class RateService:

    # ─── Lookups ───

    async def get_effective_rate(
        self, db: AsyncSession, room_type_id: int, rate_plan_id: int, on: date
    ) -> Decimal:
        result = await db.execute(
            select(RoomTypeRate)
            .where(
                RoomTypeRate.room_type_id == room_type_id,
                RoomTypeRate.rate_plan_id == rate_plan_id,
                RoomTypeRate.start_date <= on,
                RoomTypeRate.end_date >= on,
            )
            .limit(2)
        )
        rows = result.scalars().all()
        if not rows:
            raise RateNotFound(room_type_id, rate_plan_id, on)
        if len(rows) > 1:
            raise OverlappingRateRange(room_type_id, rate_plan_id, on)
        return rows[0].price

    async def get_adjustment(
        self,
        db: AsyncSession,
        base_room_type_id: int,
        derived_room_type_id: int,
        rate_plan_id: int | None,
    ) -> RoomTypeRateAdjustment:
        """Plan-scoped adjustment for the pair, else the unscoped one."""
        scopes = [RoomTypeRateAdjustment.rate_plan_id.is_(None)]
        if rate_plan_id is not None:
            scopes.insert(0, RoomTypeRateAdjustment.rate_plan_id == rate_plan_id)

        for scope in scopes:
            result = await db.execute(
                select(RoomTypeRateAdjustment)
                .where(
                    RoomTypeRateAdjustment.base_room_type_id == base_room_type_id,
                    RoomTypeRateAdjustment.derived_room_type_id == derived_room_type_id,
                    scope,
                )
                .order_by(RoomTypeRateAdjustment.id.desc())
                .limit(1)
            )
            adjustment = result.scalar_one_or_none()
            if adjustment is not None:
                return adjustment
        raise AdjustmentNotFound(base_room_type_id, derived_room_type_id, rate_plan_id)

    async def get_derived_rate(
        self,
        db: AsyncSession,
        base_room_type_id: int,
        derived_room_type_id: int,
        rate_plan_id: int,
        on: date,
    ) -> Decimal:
        adjustment = await self.get_adjustment(db, base_room_type_id, derived_room_type_id, rate_plan_id)
        base_price = await self.get_effective_rate(db, base_room_type_id, rate_plan_id, on)
        return apply_adjustment(base_price, adjustment.adjustment_type, adjustment.adjustment_value)

    async def resolve_night_rate(
        self, db: AsyncSession, room_type_id: int, rate_plan_id: int | None, on: date
    ) -> NightRate:
        """Price for one room-night: direct rate, then derived, then base price."""
        if rate_plan_id is not None:
            try:
                price = await self.get_effective_rate(db, room_type_id, rate_plan_id, on)
                return NightRate(price=price, source="rate_plan")
            except RateNotFound:
                pass

            result = await db.execute(
                select(RoomTypeRateAdjustment.base_room_type_id)
                .where(
                    RoomTypeRateAdjustment.derived_room_type_id == room_type_id,
                    or_(
                        RoomTypeRateAdjustment.rate_plan_id == rate_plan_id,
                        RoomTypeRateAdjustment.rate_plan_id.is_(None),
                    ),
                )
                .order_by(RoomTypeRateAdjustment.rate_plan_id.is_(None), RoomTypeRateAdjustment.id.desc())
                .limit(1)
            )
            base_id = result.scalar_one_or_none()
            if base_id is not None:
                try:
                    price = await self.get_derived_rate(db, base_id, room_type_id, rate_plan_id, on)
                    return NightRate(price=price, source="derived", base_room_type_id=base_id)
                except RateNotFound:
                    pass

        room_type = await db.get(RoomType, room_type_id)
        if room_type is not None and room_type.base_price is not None:
            return NightRate(price=room_type.base_price, source="base_price")
        raise RateNotFound(room_type_id, rate_plan_id, on)

    async def list_rates(
        self, db: AsyncSession, room_type_id: int, rate_plan_id: int
    ) -> list[RoomTypeRate]:
        result = await db.execute(
            select(RoomTypeRate)
            .where(RoomTypeRate.room_type_id == room_type_id, RoomTypeRate.rate_plan_id == rate_plan_id)
            .order_by(RoomTypeRate.start_date)
        )
        return list(result.scalars().all())

    # ─── Writes ───

    async def set_room_type_rate(
        self,
        db: AsyncSession,
        room_type_id: int,
        rate_plan_id: int,
        start_date: date,
        end_date: date,
        price: Decimal,
    ) -> RoomTypeRate:
        """Write a price for [start, end], replacing any overlapping ranges."""
        if end_date < start_date:
            raise InvalidRange(start_date, end_date, "rate range")
        price = round_money(to_decimal(price))
        if price < 0:
            raise InvalidInput(f"Rate for room type {room_type_id} cannot be negative ({price})")

        async with transaction(db):
            business_date = await business_date_service.get(db)
            assert_not_past_date(start_date, business_date, "Rate start date")
            await self._require(db, RoomType, room_type_id, "Room type")
            await self._require(db, RatePlan, rate_plan_id, "Rate plan")

            overlapping = await self._overlapping(db, room_type_id, rate_plan_id, start_date, end_date, lock=True)
            now = datetime.now(timezone.utc)
            for row in overlapping:
                if row.start_date >= start_date and row.end_date <= end_date:
                    await db.delete(row)
                elif row.start_date < start_date and row.end_date > end_date:
                    db.add(RoomTypeRate(
                        room_type_id=room_type_id,
                        rate_plan_id=rate_plan_id,
                        start_date=end_date + timedelta(days=1),
                        end_date=row.end_date,
                        price=row.price,
                    ))
                    row.end_date = start_date - timedelta(days=1)
                    row.updated_at = now
                elif row.start_date < start_date:
                    row.end_date = start_date - timedelta(days=1)
                    row.updated_at = now
                else:
                    row.start_date = end_date + timedelta(days=1)
                    row.updated_at = now
            await db.flush()

            rate = RoomTypeRate(
                room_type_id=room_type_id,
                rate_plan_id=rate_plan_id,
                start_date=start_date,
                end_date=end_date,
                price=price,
            )
            db.add(rate)
            await db.flush()

            covering = await self._overlapping(db, room_type_id, rate_plan_id, start_date, end_date)
            if [r.id for r in covering] != [rate.id]:
                raise OverlappingRateRange(room_type_id, rate_plan_id)

        logger.info(
            f"Rate set: type={room_type_id} plan={rate_plan_id} {start_date}..{end_date} "
            f"price={price} (replaced {len(overlapping)} overlapping row(s))"
        )
        return rate

    async def create_rate_adjustment(
        self,
        db: AsyncSession,
        base_room_type_id: int,
        derived_room_type_id: int,
        adjustment_type: str,
        adjustment_value: Decimal,
        rate_plan_id: int | None = None,
    ) -> RoomTypeRateAdjustment:
        if base_room_type_id == derived_room_type_id:
            raise InvalidInput("A room type cannot be derived from itself")
        if adjustment_type not in ADJUSTMENT_TYPES:
            raise InvalidInput(f"Unknown adjustment type '{adjustment_type}'. Must be one of: {ADJUSTMENT_TYPES}")

        async with transaction(db):
            # held until commit; a concurrent request sharing either type waits here
            await self._lock_room_types(db, base_room_type_id, derived_room_type_id)
            if rate_plan_id is not None:
                await self._require(db, RatePlan, rate_plan_id, "Rate plan")

            if await self._is_derived(db, base_room_type_id):
                raise ChainedDerivation(
                    base_room_type_id, "it is already derived and cannot act as a base"
                )
            if await self._is_base(db, derived_room_type_id):
                raise ChainedDerivation(
                    derived_room_type_id, "it is already a base and cannot be derived"
                )

            result = await db.execute(
                select(RoomTypeRateAdjustment.id).where(
                    RoomTypeRateAdjustment.base_room_type_id == base_room_type_id,
                    RoomTypeRateAdjustment.derived_room_type_id == derived_room_type_id,
                    RoomTypeRateAdjustment.rate_plan_id == rate_plan_id
                    if rate_plan_id is not None
                    else RoomTypeRateAdjustment.rate_plan_id.is_(None),
                )
            )
            if result.first() is not None:
                raise Conflict(
                    f"Adjustment from room type {base_room_type_id} to {derived_room_type_id} "
                    f"(plan {rate_plan_id}) already exists"
                )

            adjustment = RoomTypeRateAdjustment(
                base_room_type_id=base_room_type_id,
                derived_room_type_id=derived_room_type_id,
                rate_plan_id=rate_plan_id,
                adjustment_type=adjustment_type,
                adjustment_value=to_decimal(adjustment_value),
            )
            db.add(adjustment)
            await db.flush()

        logger.info(
            f"Rate adjustment {adjustment.id}: type {derived_room_type_id} = type {base_room_type_id} "
            f"{adjustment_type} {adjustment_value} (plan {rate_plan_id})"
        )
        return adjustment

    async def update_base_rate_and_propagate(
        self,
        db: AsyncSession,
        base_room_type_id: int,
        rate_plan_id: int,
        start_date: date,
        end_date: date,
        new_price: Decimal,
    ) -> PropagationResult:
        """Replace the base range and rewrite every derived type, all or nothing."""
        async with transaction(db):
            await self._lock_room_types(db, base_room_type_id)
            if await self._is_derived(db, base_room_type_id):
                raise ChainedDerivation(base_room_type_id, "a derived type cannot be updated as a base")

            base_rate = await self.set_room_type_rate(
                db, base_room_type_id, rate_plan_id, start_date, end_date, new_price
            )

            result = await db.execute(
                select(RoomTypeRateAdjustment)
                .where(
                    RoomTypeRateAdjustment.base_room_type_id == base_room_type_id,
                    or_(
                        RoomTypeRateAdjustment.rate_plan_id == rate_plan_id,
                        RoomTypeRateAdjustment.rate_plan_id.is_(None),
                    ),
                )
                .order_by(RoomTypeRateAdjustment.derived_room_type_id, RoomTypeRateAdjustment.id)
            )
            # plan-scoped adjustment wins over the unscoped one for the same derived type
            by_derived: dict[int, RoomTypeRateAdjustment] = {}
            for adj in result.scalars().all():
                current = by_derived.get(adj.derived_room_type_id)
                if current is None or (current.rate_plan_id is None and adj.rate_plan_id is not None):
                    by_derived[adj.derived_room_type_id] = adj

            propagation = PropagationResult(base_rate=base_rate)
            for derived_id, adj in by_derived.items():
                if await self._is_base(db, derived_id):
                    raise ChainedDerivation(derived_id, "derived type is itself a base of another adjustment")
                price = apply_adjustment(base_rate.price, adj.adjustment_type, adj.adjustment_value)
                await self.set_room_type_rate(db, derived_id, rate_plan_id, start_date, end_date, price)
                propagation.derived_rates.append({
                    "room_type_id": derived_id,
                    "price": price,
                    "adjustment_type": adj.adjustment_type,
                    "adjustment_value": adj.adjustment_value,
                })

        logger.info(
            f"Base rate propagated: type={base_room_type_id} plan={rate_plan_id} "
            f"{start_date}..{end_date} -> {len(propagation.derived_rates)} derived type(s)"
        )
        return propagation

    # ─── Helpers ───

    async def _overlapping(
        self,
        db: AsyncSession,
        room_type_id: int,
        rate_plan_id: int,
        start_date: date,
        end_date: date,
        lock: bool = False,
    ) -> list[RoomTypeRate]:
        query = (
            select(RoomTypeRate)
            .where(
                RoomTypeRate.room_type_id == room_type_id,
                RoomTypeRate.rate_plan_id == rate_plan_id,
                RoomTypeRate.start_date <= end_date,
                RoomTypeRate.end_date >= start_date,
            )
            .order_by(RoomTypeRate.start_date, RoomTypeRate.id)
        )
        if lock:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def _lock_room_types(self, db: AsyncSession, *room_type_ids: int) -> None:
        result = await db.execute(
            select(RoomType.id)
            .where(RoomType.id.in_(room_type_ids))
            .order_by(RoomType.id)
            .with_for_update()
        )
        found = set(result.scalars().all())
        for room_type_id in room_type_ids:
            if room_type_id not in found:
                raise NotFound(f"Room type {room_type_id} not found")

    async def _is_derived(self, db: AsyncSession, room_type_id: int) -> bool:
        result = await db.execute(
            select(RoomTypeRateAdjustment.id)
            .where(RoomTypeRateAdjustment.derived_room_type_id == room_type_id)
            .limit(1)
        )
        return result.first() is not None

    async def _is_base(self, db: AsyncSession, room_type_id: int) -> bool:
        result = await db.execute(
            select(RoomTypeRateAdjustment.id)
            .where(RoomTypeRateAdjustment.base_room_type_id == room_type_id)
            .limit(1)
        )
        return result.first() is not None

    async def _require(self, db: AsyncSession, model, obj_id: int, label: str):
        obj = await db.get(model, obj_id)
        if obj is None:
            raise NotFound(f"{label} {obj_id} not found")
        return obj


rate_service = RateService()
