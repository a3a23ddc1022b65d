from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from pms.errors import (
    AdjustmentNotFound,
    ChainedDerivation,
    Conflict,
    InvalidInput,
    NotFound,
    OverlappingRateRange,
    RateNotFound,
)
from pms.models.rates import RoomTypeRate, RoomTypeRateAdjustment
from pms.services.rate_service import apply_adjustment, rate_service
from tests.factories import make_rate_plan, make_room_type

JUNE_1 = date(2024, 6, 1)
JUNE_10 = date(2024, 6, 10)
JUNE_20 = date(2024, 6, 20)
JUNE_30 = date(2024, 6, 30)


async def _catalog(db):
    std = await make_room_type(db, code="STD", base_price="90.00")
    dlx = await make_room_type(db, code="DLX")
    plan = await make_rate_plan(db, code="BAR")
    return std.id, dlx.id, plan.id


def _ranges(rates):
    return [(r.start_date, r.end_date, r.price) for r in rates]


@pytest.mark.parametrize(
    "adjustment_type,value,base,expected",
    [
        ("percent", "32", "100.00", "132.00"),
        ("percent", "-10", "99.99", "89.99"),
        ("percent", "15", "10.05", "11.56"),
        ("amount", "25.50", "100.00", "125.50"),
        ("amount", "-20", "100.00", "80.00"),
    ],
)
def test_apply_adjustment(adjustment_type, value, base, expected):
    assert apply_adjustment(Decimal(base), adjustment_type, Decimal(value)) == Decimal(expected)


def test_apply_adjustment_rounds_half_up():
    # 12.50 * 1.01 = 12.625, exactly on the half
    assert apply_adjustment(Decimal("12.50"), "percent", Decimal("1")) == Decimal("12.63")


async def test_effective_rate_lookup(db):
    std_id, _, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))

    assert await rate_service.get_effective_rate(db, std_id, plan_id, JUNE_10) == Decimal("100.00")
    with pytest.raises(RateNotFound):
        await rate_service.get_effective_rate(db, std_id, plan_id, date(2024, 7, 1))


async def test_derived_rate_is_132_for_32_percent(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_1, Decimal("100"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("32"))

    first = await rate_service.get_derived_rate(db, std_id, dlx_id, plan_id, JUNE_1)
    second = await rate_service.get_derived_rate(db, std_id, dlx_id, plan_id, JUNE_1)

    assert first == Decimal("132.00")
    assert first == second


async def test_plan_scoped_adjustment_wins(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_1, Decimal("100"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "amount", Decimal("10"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "amount", Decimal("40"), rate_plan_id=plan_id)

    assert await rate_service.get_derived_rate(db, std_id, dlx_id, plan_id, JUNE_1) == Decimal("140.00")


async def test_missing_adjustment(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    with pytest.raises(AdjustmentNotFound):
        await rate_service.get_derived_rate(db, std_id, dlx_id, plan_id, JUNE_1)


async def test_set_rate_splits_enclosing_range(db):
    std_id, _, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))

    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_10, JUNE_20, Decimal("150"))

    assert _ranges(await rate_service.list_rates(db, std_id, plan_id)) == [
        (JUNE_1, date(2024, 6, 9), Decimal("100.00")),
        (JUNE_10, JUNE_20, Decimal("150.00")),
        (date(2024, 6, 21), JUNE_30, Decimal("100.00")),
    ]


async def test_set_rate_trims_and_replaces(db):
    std_id, _, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_10, Decimal("100"))
    await rate_service.set_room_type_rate(db, std_id, plan_id, date(2024, 6, 11), JUNE_20, Decimal("110"))
    await rate_service.set_room_type_rate(db, std_id, plan_id, date(2024, 6, 12), date(2024, 6, 14), Decimal("120"))

    # covers the tail of the first, the whole middle piece and the head of the last
    await rate_service.set_room_type_rate(db, std_id, plan_id, date(2024, 6, 5), date(2024, 6, 15), Decimal("200"))

    assert _ranges(await rate_service.list_rates(db, std_id, plan_id)) == [
        (JUNE_1, date(2024, 6, 4), Decimal("100.00")),
        (date(2024, 6, 5), date(2024, 6, 15), Decimal("200.00")),
        (date(2024, 6, 16), JUNE_20, Decimal("110.00")),
    ]


async def test_set_rate_rejects_past_start(db):
    std_id, _, plan_id = await _catalog(db)
    with pytest.raises(InvalidInput):
        await rate_service.set_room_type_rate(db, std_id, plan_id, date(2024, 4, 1), JUNE_1, Decimal("100"))


async def test_overlapping_rows_are_detected_not_repaired(db):
    std_id, _, plan_id = await _catalog(db)
    db.add_all([
        RoomTypeRate(room_type_id=std_id, rate_plan_id=plan_id, start_date=JUNE_1, end_date=JUNE_20, price=Decimal("100")),
        RoomTypeRate(room_type_id=std_id, rate_plan_id=plan_id, start_date=JUNE_10, end_date=JUNE_30, price=Decimal("120")),
    ])
    await db.commit()

    with pytest.raises(OverlappingRateRange):
        await rate_service.get_effective_rate(db, std_id, plan_id, date(2024, 6, 15))
    assert await rate_service.get_effective_rate(db, std_id, plan_id, JUNE_1) == Decimal("100.00")


async def test_adjustment_validation(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    ste = await make_room_type(db, code="STE")
    ste_id = ste.id

    with pytest.raises(InvalidInput):
        await rate_service.create_rate_adjustment(db, std_id, std_id, "percent", Decimal("10"))
    with pytest.raises(InvalidInput):
        await rate_service.create_rate_adjustment(db, std_id, dlx_id, "factor", Decimal("10"))

    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("10"))
    with pytest.raises(Conflict):
        await rate_service.create_rate_adjustment(db, std_id, dlx_id, "amount", Decimal("5"))
    # DLX is derived, so it cannot become a base
    with pytest.raises(ChainedDerivation):
        await rate_service.create_rate_adjustment(db, dlx_id, ste_id, "amount", Decimal("5"))
    # STD is a base, so it cannot become derived
    with pytest.raises(ChainedDerivation):
        await rate_service.create_rate_adjustment(db, ste_id, std_id, "amount", Decimal("5"))


async def test_adjustment_locks_both_room_types_before_chain_checks(db, monkeypatch):
    std_id, dlx_id, _ = await _catalog(db)
    calls = []
    real_lock = rate_service._lock_room_types
    real_is_derived = rate_service._is_derived

    async def lock(db, *ids):
        calls.append(("lock", ids))
        await real_lock(db, *ids)

    async def is_derived(db, room_type_id):
        calls.append(("is_derived", room_type_id))
        return await real_is_derived(db, room_type_id)

    monkeypatch.setattr(rate_service, "_lock_room_types", lock)
    monkeypatch.setattr(rate_service, "_is_derived", is_derived)
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("10"))

    assert calls[:2] == [("lock", (std_id, dlx_id)), ("is_derived", std_id)]


async def test_adjustment_to_unknown_room_type_is_not_found(db):
    std_id, _, _ = await _catalog(db)
    with pytest.raises(NotFound, match="Room type 9999 not found"):
        await rate_service.create_rate_adjustment(db, std_id, 9999, "percent", Decimal("10"))


async def test_propagation_writes_every_derived_type(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    ste = await make_room_type(db, code="STE")
    ste_id = ste.id
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("32"))
    await rate_service.create_rate_adjustment(db, std_id, ste_id, "amount", Decimal("80"))

    result = await rate_service.update_base_rate_and_propagate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))

    assert {d["room_type_id"]: d["price"] for d in result.derived_rates} == {
        dlx_id: Decimal("132.00"),
        ste_id: Decimal("180.00"),
    }
    assert await rate_service.get_effective_rate(db, dlx_id, plan_id, JUNE_10) == Decimal("132.00")
    assert await rate_service.get_effective_rate(db, ste_id, plan_id, JUNE_10) == Decimal("180.00")


async def test_failed_propagation_leaves_base_range_unchanged(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    ste = await make_room_type(db, code="STE")
    ste_id = ste.id
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("10"))
    # a chain written behind the service's back: DLX -> STE
    db.add(RoomTypeRateAdjustment(
        base_room_type_id=dlx_id, derived_room_type_id=ste_id, adjustment_type="amount", adjustment_value=Decimal("5")
    ))
    await db.commit()

    with pytest.raises(ChainedDerivation):
        await rate_service.update_base_rate_and_propagate(db, std_id, plan_id, JUNE_10, JUNE_20, Decimal("150"))

    assert _ranges(await rate_service.list_rates(db, std_id, plan_id)) == [(JUNE_1, JUNE_30, Decimal("100.00"))]
    assert await rate_service.list_rates(db, dlx_id, plan_id) == []


async def test_negative_derived_price_rolls_back_base(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "amount", Decimal("-60"))

    with pytest.raises(InvalidInput):
        await rate_service.update_base_rate_and_propagate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("50"))

    assert await rate_service.get_effective_rate(db, std_id, plan_id, JUNE_10) == Decimal("100.00")


async def test_resolve_night_rate_fallbacks(db):
    std_id, dlx_id, plan_id = await _catalog(db)
    nrf = await make_rate_plan(db, code="NRF")
    nrf_id = nrf.id
    await rate_service.set_room_type_rate(db, std_id, plan_id, JUNE_1, JUNE_30, Decimal("100"))
    await rate_service.create_rate_adjustment(db, std_id, dlx_id, "percent", Decimal("32"))

    direct = await rate_service.resolve_night_rate(db, std_id, plan_id, JUNE_10)
    derived = await rate_service.resolve_night_rate(db, dlx_id, plan_id, JUNE_10)
    base_price = await rate_service.resolve_night_rate(db, std_id, nrf_id, JUNE_10)
    no_plan = await rate_service.resolve_night_rate(db, std_id, None, JUNE_10)

    assert (direct.price, direct.source) == (Decimal("100.00"), "rate_plan")
    assert (derived.price, derived.source) == (Decimal("132.00"), "derived")
    assert (base_price.price, base_price.source) == (Decimal("90.00"), "base_price")
    assert no_plan.source == "base_price"

    with pytest.raises(RateNotFound):
        await rate_service.resolve_night_rate(db, dlx_id, nrf_id, JUNE_10)


async def test_rate_rows_never_overlap_after_writes(db):
    std_id, _, plan_id = await _catalog(db)
    writes = [
        (JUNE_1, JUNE_30, "100"),
        (date(2024, 6, 5), date(2024, 6, 8), "120"),
        (date(2024, 6, 7), date(2024, 6, 12), "130"),
        (JUNE_1, date(2024, 6, 2), "90"),
        (date(2024, 6, 25), date(2024, 7, 5), "140"),
    ]
    for start, end, price in writes:
        await rate_service.set_room_type_rate(db, std_id, plan_id, start, end, Decimal(price))

    result = await db.execute(
        select(RoomTypeRate).where(RoomTypeRate.room_type_id == std_id).order_by(RoomTypeRate.start_date)
    )
    rows = result.scalars().all()
    for prev, nxt in zip(rows, rows[1:]):
        assert prev.end_date < nxt.start_date
