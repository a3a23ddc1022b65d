from datetime import date

import pytest

from pms.errors import InvalidInput, InvalidRange, NotFound
from pms.services.overbooking_service import overbooking_service, sell_ceiling
from tests.factories import BUSINESS_DATE, make_room_type

JUNE_1 = date(2024, 6, 1)
JUNE_30 = date(2024, 6, 30)


@pytest.mark.parametrize(
    "capacity,percent,ceiling",
    [(10, 100, 10), (10, 110, 11), (10, 115, 11), (7, 120, 8), (0, 150, 0)],
)
def test_sell_ceiling_floors(capacity, percent, ceiling):
    assert sell_ceiling(capacity, percent) == ceiling


async def test_create_policy_validation(db):
    with pytest.raises(InvalidInput):
        await overbooking_service.create_policy(db, JUNE_1, JUNE_30, 99)
    with pytest.raises(InvalidInput):
        await overbooking_service.create_policy(db, JUNE_1, JUNE_30, 500)
    with pytest.raises(InvalidRange):
        await overbooking_service.create_policy(db, JUNE_30, JUNE_1, 110)
    with pytest.raises(InvalidInput):
        await overbooking_service.create_policy(db, date(2024, 4, 1), JUNE_1, 110)
    with pytest.raises(NotFound):
        await overbooking_service.create_policy(db, JUNE_1, JUNE_30, 110, room_type_id=999)


async def test_update_and_delete_policy(db):
    rt = await make_room_type(db)
    rt_id = rt.id
    policy = await overbooking_service.create_policy(db, JUNE_1, JUNE_30, 110, room_type_id=rt_id)
    policy_id = policy.id

    updated = await overbooking_service.update_policy(db, policy_id, overbooking_percent=125)
    assert updated.overbooking_percent == 125
    assert await overbooking_service.get_effective_percent(db, rt_id, JUNE_1) == 125

    await overbooking_service.delete_policy(db, policy_id)
    assert await overbooking_service.get_effective_percent(db, rt_id, JUNE_1) == 100
    with pytest.raises(NotFound):
        await overbooking_service.delete_policy(db, policy_id)


async def test_list_policies_for_range(db):
    await overbooking_service.create_policy(db, JUNE_1, date(2024, 6, 10), 110)
    await overbooking_service.create_policy(db, date(2024, 6, 20), JUNE_30, 120)

    overlapping = await overbooking_service.list_policies(db, date(2024, 6, 5), date(2024, 6, 15))
    assert [p.overbooking_percent for p in overlapping] == [110]
    assert len(await overbooking_service.list_policies(db)) == 2


async def test_trim_expired_policies(db):
    await overbooking_service.create_policy(db, BUSINESS_DATE, BUSINESS_DATE, 110)
    await overbooking_service.create_policy(db, BUSINESS_DATE, JUNE_30, 120)
    await overbooking_service.create_policy(db, JUNE_1, JUNE_30, 130)

    summary = await overbooking_service.trim_expired_policies(db, BUSINESS_DATE)

    assert summary == {"deleted": 1, "trimmed": 1}
    remaining = await overbooking_service.list_policies(db)
    assert [(p.start_date, p.overbooking_percent) for p in remaining] == [
        (date(2024, 5, 2), 120),
        (JUNE_1, 130),
    ]
