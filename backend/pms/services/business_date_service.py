"""Business date authority: the single current operating day of the property."""

import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from pms.database import transaction
from pms.errors import Conflict, NotInitialized
from pms.models.system import SystemConfig

logger = logging.getLogger(__name__)

BUSINESS_DATE_KEY = "business_date"


class BusinessDateService:
    """Reads, overrides and advances the business date under a row lock."""

    async def get(self, db: AsyncSession) -> date:
        """Current business date, created as today's date on first read."""
        async with transaction(db):
            row = await self._locked_row(db)
            return date.fromisoformat(row.value)

    async def set(self, db: AsyncSession, new_date: date) -> date:
        """Administrative override. Any date is accepted, past ones included."""
        async with transaction(db):
            row = await self._locked_row(db)
            previous = row.value
            row.value = new_date.isoformat()
            row.updated_at = datetime.now(timezone.utc)
        logger.info(f"Business date overridden: {previous} -> {new_date}")
        return new_date

    async def advance(self, db: AsyncSession) -> date:
        """Move the business date forward exactly one day and return it."""
        async with transaction(db):
            row = await self._locked_row(db)
            current = date.fromisoformat(row.value)
            nxt = current + timedelta(days=1)
            row.value = nxt.isoformat()
            row.updated_at = datetime.now(timezone.utc)
        logger.info(f"Business date advanced: {current} -> {nxt}")
        return nxt

    async def lock(self, db: AsyncSession) -> date:
        """Take the business date row lock for the caller's enclosing transaction."""
        row = await self._locked_row(db)
        return date.fromisoformat(row.value)

    async def _locked_row(self, db: AsyncSession) -> SystemConfig:
        try:
            result = await db.execute(
                select(SystemConfig)
                .where(SystemConfig.key == BUSINESS_DATE_KEY)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            row = result.scalar_one_or_none()
            if row is not None:
                return row

            row = SystemConfig(
                key=BUSINESS_DATE_KEY,
                value=date.today().isoformat(),
                updated_at=datetime.now(timezone.utc),
            )
            db.add(row)
            await db.flush()
        except IntegrityError as e:
            raise Conflict("Business date was initialised concurrently, retry the request") from e
        except (OperationalError, InterfaceError) as e:
            raise NotInitialized(f"Business date store unreachable: {e}") from e
        logger.info(f"Business date initialised to {row.value}")
        return row


business_date_service = BusinessDateService()
