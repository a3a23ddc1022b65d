import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import pms.models  # noqa: F401
from pms.database import Base, get_db
from pms.services.business_date_service import business_date_service
from tests.factories import BUSINESS_DATE


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def empty_db(session_factory):
    """Session on a fresh schema with no business date yet."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def db(empty_db):
    await business_date_service.set(empty_db, BUSINESS_DATE)
    yield empty_db


@pytest.fixture
async def client(db):
    from pms.main import app

    async def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
