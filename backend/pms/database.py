import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from pms.config import settings
from pms.errors import Unavailable

logger = logging.getLogger(__name__)

engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_size=settings.db_pool_size,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncIterator[AsyncSession]:
    async with async_session_factory() as session:
        yield session


_TX_DEPTH = "pms_tx_depth"


@asynccontextmanager
async def transaction(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Scoped transaction over a session.

    The outermost scope owns the unit of work: it commits when the block
    exits normally and rolls back on any exception. Nested scopes (a service
    calling another service with the same session) join the enclosing one,
    so a whole workflow commits or rolls back as one.
    """
    depth = db.info.get(_TX_DEPTH, 0)
    db.info[_TX_DEPTH] = depth + 1
    try:
        yield db
        if depth == 0:
            await db.commit()
    except (OperationalError, InterfaceError) as e:
        if depth == 0:
            await _safe_rollback(db)
        logger.error(f"Storage unavailable: {e}")
        raise Unavailable(f"Storage unavailable: {e.orig if e.orig else e}") from e
    except BaseException:
        if depth == 0:
            await _safe_rollback(db)
        raise
    finally:
        db.info[_TX_DEPTH] = depth


async def _safe_rollback(db: AsyncSession) -> None:
    try:
        await db.rollback()
    except (OperationalError, InterfaceError) as e:
        # The connection is already gone; the server discards the transaction.
        logger.warning(f"Rollback failed on a lost connection: {e}")
