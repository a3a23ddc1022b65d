"""Overbooking policies: how far past physical capacity a room type may sell.

Lookup priority for a (room type, night):
  1. policy for that room type covering the night
  2. hotel-wide policy (room_type_id IS NULL) covering the night
  3. 100 (no overbooking)
Within one level the most recently created policy (highest id) wins.
"""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms.config import settings
from pms.database import transaction
from pms.errors import InvalidInput, InvalidRange, NotFound
from pms.guards import assert_not_past_date
from pms.models.inventory import OverbookingPolicy
from pms.models.rooms import RoomType
from pms.services.business_date_service import business_date_service

logger = logging.getLogger(__name__)

NO_OVERBOOKING = 100


def validate_percent(percent: int) -> int:
    if percent < NO_OVERBOOKING:
        raise InvalidInput(f"Overbooking percent must be at least {NO_OVERBOOKING}, got {percent}")
    if percent > settings.max_overbooking_percent:
        raise InvalidInput(
            f"Overbooking percent {percent} exceeds the maximum of {settings.max_overbooking_percent}"
        )
    return percent


def sell_ceiling(capacity: int, percent: int) -> int:
    """Maximum sellable rooms: floor(capacity * percent / 100)."""
    return capacity * percent // 100


class OverbookingService:

    async def get_effective_percent(self, db: AsyncSession, room_type_id: int, on: date) -> int:
        for scope in (OverbookingPolicy.room_type_id == room_type_id, OverbookingPolicy.room_type_id.is_(None)):
            result = await db.execute(
                select(OverbookingPolicy.overbooking_percent)
                .where(
                    scope,
                    OverbookingPolicy.start_date <= on,
                    OverbookingPolicy.end_date >= on,
                )
                .order_by(OverbookingPolicy.id.desc())
                .limit(1)
            )
            percent = result.scalar_one_or_none()
            if percent is not None:
                return percent
        return settings.default_overbooking_percent

    async def create_policy(
        self,
        db: AsyncSession,
        start_date: date,
        end_date: date,
        overbooking_percent: int,
        room_type_id: int | None = None,
    ) -> OverbookingPolicy:
        validate_percent(overbooking_percent)
        if end_date < start_date:
            raise InvalidRange(start_date, end_date, "policy range")

        async with transaction(db):
            business_date = await business_date_service.get(db)
            assert_not_past_date(start_date, business_date, "Policy start date")
            if room_type_id is not None and await db.get(RoomType, room_type_id) is None:
                raise NotFound(f"Room type {room_type_id} not found")

            policy = OverbookingPolicy(
                room_type_id=room_type_id,
                start_date=start_date,
                end_date=end_date,
                overbooking_percent=overbooking_percent,
            )
            db.add(policy)
            await db.flush()

        logger.info(
            f"Overbooking policy {policy.id} created: type={room_type_id or 'all'} "
            f"{start_date}..{end_date} at {overbooking_percent}%"
        )
        return policy

    async def update_policy(
        self,
        db: AsyncSession,
        policy_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
        overbooking_percent: int | None = None,
    ) -> OverbookingPolicy:
        async with transaction(db):
            result = await db.execute(
                select(OverbookingPolicy)
                .where(OverbookingPolicy.id == policy_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            policy = result.scalar_one_or_none()
            if policy is None:
                raise NotFound(f"Overbooking policy {policy_id} not found")

            new_start = start_date or policy.start_date
            new_end = end_date or policy.end_date
            if new_end < new_start:
                raise InvalidRange(new_start, new_end, "policy range")
            if start_date is not None:
                business_date = await business_date_service.get(db)
                assert_not_past_date(start_date, business_date, "Policy start date")
            if overbooking_percent is not None:
                policy.overbooking_percent = validate_percent(overbooking_percent)

            policy.start_date = new_start
            policy.end_date = new_end
            policy.updated_at = datetime.now(timezone.utc)

        return policy

    async def delete_policy(self, db: AsyncSession, policy_id: int) -> None:
        async with transaction(db):
            result = await db.execute(
                delete(OverbookingPolicy).where(OverbookingPolicy.id == policy_id)
            )
            if result.rowcount == 0:
                raise NotFound(f"Overbooking policy {policy_id} not found")

    async def list_policies(
        self,
        db: AsyncSession,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[OverbookingPolicy]:
        """All policies, or only those overlapping [start, end] when given."""
        query = select(OverbookingPolicy)
        if start_date is not None and end_date is not None:
            if end_date < start_date:
                raise InvalidRange(start_date, end_date)
            query = query.where(
                OverbookingPolicy.start_date <= end_date,
                OverbookingPolicy.end_date >= start_date,
            )
        result = await db.execute(query.order_by(OverbookingPolicy.start_date, OverbookingPolicy.id))
        return list(result.scalars().all())

    async def trim_expired_policies(self, db: AsyncSession, business_date: date) -> dict:
        """Drop the audited day from the policy table.

        Policies ending on or before the audited day are deleted; policies
        that cover it and run past it start again on the following day.
        """
        async with transaction(db):
            deleted = await db.execute(
                delete(OverbookingPolicy).where(OverbookingPolicy.end_date <= business_date)
            )
            result = await db.execute(
                select(OverbookingPolicy)
                .where(
                    OverbookingPolicy.start_date <= business_date,
                    OverbookingPolicy.end_date > business_date,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            trimmed = result.scalars().all()
            now = datetime.now(timezone.utc)
            for policy in trimmed:
                policy.start_date = business_date + timedelta(days=1)
                policy.updated_at = now

        summary = {"deleted": deleted.rowcount, "trimmed": len(trimmed)}
        if summary["deleted"] or summary["trimmed"]:
            logger.info(f"Overbooking policies trimmed for {business_date}: {summary}")
        return summary


overbooking_service = OverbookingService()
