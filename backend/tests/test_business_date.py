from datetime import date, timedelta

from pms.services.business_date_service import business_date_service
from tests.factories import BUSINESS_DATE


async def test_first_read_initialises_to_today(empty_db):
    assert await business_date_service.get(empty_db) == date.today()


async def test_set_overrides_and_persists(db):
    await business_date_service.set(db, date(2024, 7, 15))
    assert await business_date_service.get(db) == date(2024, 7, 15)


async def test_set_accepts_past_dates(db):
    await business_date_service.set(db, date(2020, 1, 1))
    assert await business_date_service.get(db) == date(2020, 1, 1)


async def test_advance_moves_exactly_one_day(db):
    nxt = await business_date_service.advance(db)
    assert nxt == BUSINESS_DATE + timedelta(days=1)
    assert await business_date_service.get(db) == nxt


async def test_advance_crosses_month_boundary(db):
    await business_date_service.set(db, date(2024, 2, 29))
    assert await business_date_service.advance(db) == date(2024, 3, 1)
