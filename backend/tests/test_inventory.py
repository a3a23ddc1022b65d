from datetime import date

import pytest

from pms.errors import InsufficientAvailability, InvalidInput, InvalidRange, InvariantViolation, NoInventoryRow
from pms.services.inventory_service import inventory_service
from tests.factories import make_room_type

JUNE_1 = date(2024, 6, 1)
JUNE_2 = date(2024, 6, 2)
JUNE_3 = date(2024, 6, 3)


async def test_seed_covers_inclusive_range(db):
    rt = await make_room_type(db, total_rooms=8)
    days = await inventory_service.seed(db, rt.id, JUNE_1, JUNE_3, 8)

    rows = await inventory_service.get_inventory(db, rt.id, JUNE_1, JUNE_3)
    assert days == 3
    assert [r.date for r in rows] == [JUNE_1, JUNE_2, JUNE_3]
    assert all(r.capacity == 8 and r.available == 8 for r in rows)


async def test_reseed_resets_counters_and_bumps_version(db):
    rt = await make_room_type(db)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_1, 10)
    await inventory_service.decrement(db, rt_id, JUNE_1, 4)

    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_1, 12)

    [row] = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_1)
    assert row.capacity == 12
    assert row.available == 12
    assert row.version == 3


async def test_seed_rejects_reversed_range(db):
    rt = await make_room_type(db)
    with pytest.raises(InvalidRange):
        await inventory_service.seed(db, rt.id, JUNE_3, JUNE_1, 5)


async def test_seed_rejects_negative_capacity(db):
    rt = await make_room_type(db)
    with pytest.raises(InvalidInput):
        await inventory_service.seed(db, rt.id, JUNE_1, JUNE_1, -1)


async def test_seed_all_uses_total_rooms(db):
    std = await make_room_type(db, code="STD", total_rooms=20)
    ste = await make_room_type(db, code="STE", total_rooms=4)
    std_id, ste_id = std.id, ste.id

    summary = await inventory_service.seed_all_room_types(db, JUNE_1, JUNE_2)

    assert {s["room_type_id"]: s["capacity"] for s in summary} == {std_id: 20, ste_id: 4}
    rows = await inventory_service.get_inventory(db, ste_id, JUNE_1, JUNE_2)
    assert [r.available for r in rows] == [4, 4]


async def test_decrement_past_capacity_is_rejected_without_change(db):
    rt = await make_room_type(db, total_rooms=2)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_1, 2)
    await inventory_service.decrement(db, rt_id, JUNE_1, 2)

    with pytest.raises(InsufficientAvailability) as exc:
        await inventory_service.decrement(db, rt_id, JUNE_1, 1)

    assert exc.value.date == JUNE_1
    assert exc.value.remaining == 0
    [row] = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_1)
    assert row.available == 0


async def test_decrement_missing_row(db):
    rt = await make_room_type(db)
    with pytest.raises(NoInventoryRow):
        await inventory_service.decrement(db, rt.id, JUNE_1, 1)


async def test_increment_above_capacity_is_an_invariant_violation(db):
    rt = await make_room_type(db, total_rooms=3)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_1, 3)

    with pytest.raises(InvariantViolation):
        await inventory_service.increment(db, rt_id, JUNE_1, 1)


async def test_stay_consumes_nights_excluding_checkout(db):
    rt = await make_room_type(db, total_rooms=5)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_3, 5)

    await inventory_service.decrement_stay(db, rt_id, JUNE_1, JUNE_3, 1)

    rows = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_3)
    assert [r.available for r in rows] == [4, 4, 5]


async def test_failed_night_rolls_back_the_whole_stay(db):
    rt = await make_room_type(db, total_rooms=5)
    rt_id = rt.id
    # second night has no inventory row
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_1, 5)

    with pytest.raises(NoInventoryRow):
        await inventory_service.decrement_stay(db, rt_id, JUNE_1, JUNE_3, 1)

    [row] = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_1)
    assert row.available == 5


async def test_increment_stay_returns_every_night(db):
    rt = await make_room_type(db, total_rooms=5)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_3, 5)
    await inventory_service.decrement_stay(db, rt_id, JUNE_1, JUNE_3, 2)

    await inventory_service.increment_stay(db, rt_id, JUNE_1, JUNE_3, 2)

    rows = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_3)
    assert [r.available for r in rows] == [5, 5, 5]
