from datetime import date

import pytest
from sqlalchemy.exc import InterfaceError, OperationalError

from pms.database import transaction
from pms.errors import InvalidInput, NotInitialized, Unavailable
from pms.services.business_date_service import business_date_service
from pms.services.inventory_service import inventory_service
from tests.factories import BUSINESS_DATE, make_room_type

JUNE_1 = date(2024, 6, 1)
JUNE_3 = date(2024, 6, 3)


def _lost_connection(error_cls=OperationalError):
    async def fail(*args, **kwargs):
        raise error_cls("COMMIT", {}, ConnectionResetError("server closed the connection"))
    return fail


@pytest.mark.parametrize("error_cls", [OperationalError, InterfaceError])
async def test_commit_failure_is_unavailable_and_nothing_is_kept(db, monkeypatch, error_cls):
    monkeypatch.setattr(db, "commit", _lost_connection(error_cls))

    with pytest.raises(Unavailable, match="server closed the connection"):
        await business_date_service.set(db, date(2024, 9, 1))

    monkeypatch.undo()
    assert await business_date_service.get(db) == BUSINESS_DATE


async def test_failed_stay_decrement_leaves_inventory_untouched(db, monkeypatch):
    rt = await make_room_type(db, total_rooms=4)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, JUNE_1, JUNE_3, 4)

    monkeypatch.setattr(db, "commit", _lost_connection())
    with pytest.raises(Unavailable):
        await inventory_service.decrement_stay(db, rt_id, JUNE_1, JUNE_3, 2)

    monkeypatch.undo()
    rows = await inventory_service.get_inventory(db, rt_id, JUNE_1, JUNE_3)
    assert [r.available for r in rows] == [4, 4, 4]


async def test_nested_scope_commits_only_at_the_outermost_level(db, monkeypatch):
    commits = []
    real_commit = db.commit

    async def counting_commit():
        commits.append(1)
        await real_commit()

    monkeypatch.setattr(db, "commit", counting_commit)
    async with transaction(db):
        async with transaction(db):
            await business_date_service.set(db, date(2024, 9, 1))
        assert commits == []
    assert commits == [1]


async def test_scope_depth_resets_after_an_error(db):
    with pytest.raises(InvalidInput):
        async with transaction(db):
            raise InvalidInput("bad request")

    assert db.info.get("pms_tx_depth", 0) == 0


async def test_unreachable_store_on_first_read_is_not_initialized(empty_db, monkeypatch):
    monkeypatch.setattr(empty_db, "execute", _lost_connection())

    with pytest.raises(NotInitialized, match="Business date store unreachable"):
        await business_date_service.get(empty_db)

    monkeypatch.undo()
    assert await business_date_service.get(empty_db) == date.today()
