from datetime import date
from decimal import Decimal

from pms.services.inventory_service import inventory_service
from pms.services.rate_service import rate_service
from tests.factories import BUSINESS_DATE, make_rate_plan, make_reservation, make_room, make_room_type

ADMIN = {"X-User-Role": "admin", "X-User-Id": "1"}
RECEPTION = {"X-User-Role": "receptionist", "X-User-Id": "2"}


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


async def test_business_date_endpoints(client):
    resp = await client.get("/api/business-date")
    assert resp.json() == {"business_date": "2024-05-01"}

    resp = await client.put("/api/business-date", json={"business_date": "2024-05-10"}, headers=RECEPTION)
    assert resp.status_code == 403

    resp = await client.put("/api/business-date", json={"business_date": "2024-05-10"}, headers=ADMIN)
    assert resp.json() == {"business_date": "2024-05-10"}

    resp = await client.post("/api/business-date/advance", headers={"X-User-Role": "manager"})
    assert resp.json() == {"business_date": "2024-05-11"}


async def test_missing_role_header_is_unauthorised(client):
    resp = await client.post("/api/business-date/advance")
    assert resp.status_code == 401


async def test_stay_admission_flow(client, db):
    rt = await make_room_type(db, total_rooms=2)
    rt_id = rt.id
    await inventory_service.seed(db, rt_id, date(2024, 6, 1), date(2024, 6, 5), 2)

    resp = await client.get(
        "/api/availability",
        params={"room_type_id": rt_id, "check_in": "2024-06-01", "check_out": "2024-06-03"},
    )
    assert resp.status_code == 200
    assert resp.json()["rooms_available"] == 2
    assert len(resp.json()["nights"]) == 2

    stay = {"room_type_id": rt_id, "check_in": "2024-06-01", "check_out": "2024-06-03", "rooms": 2}
    resp = await client.post("/api/availability/stays", json=stay, headers=RECEPTION)
    assert resp.json()["accepted"] is True

    resp = await client.post("/api/availability/stays", json={**stay, "rooms": 1}, headers=RECEPTION)
    assert resp.json() == {
        "accepted": False,
        "rooms_available": 0,
        "overbooked": False,
        "rejected_on": "2024-06-01",
    }

    resp = await client.post("/api/availability/stays", json={**stay, "rooms": 1, "override_percent": 150}, headers=RECEPTION)
    assert resp.status_code == 403

    query = {"room_type_id": rt_id, "check_in": "2024-06-01", "check_out": "2024-06-03", "rooms": 1}
    resp = await client.get("/api/availability/overbook", params=query)
    assert resp.json()["allowed"] is False
    assert resp.json()["percent"] == 100

    resp = await client.get("/api/availability/overbook", params={**query, "override_percent": 150}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["allowed"] is True

    resp = await client.get("/api/availability/overbook", params={**query, "override_percent": 150}, headers=RECEPTION)
    assert resp.status_code == 403
    resp = await client.get("/api/availability/overbook", params={**query, "override_percent": 150})
    assert resp.status_code == 401


async def test_errors_map_to_status_codes(client, db):
    rt = await make_room_type(db)
    plan = await make_rate_plan(db)
    rt_id, plan_id = rt.id, plan.id

    resp = await client.get(
        "/api/availability",
        params={"room_type_id": rt_id, "check_in": "2024-06-03", "check_out": "2024-06-01"},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidInput"

    resp = await client.get(
        "/api/rates/effective", params={"room_type_id": rt_id, "rate_plan_id": plan_id, "on": "2024-06-01"}
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "RateNotFound"

    resp = await client.post(
        "/api/inventory/seed",
        json={"room_type_id": rt_id, "start_date": "2024-06-05", "end_date": "2024-06-01", "capacity": 3},
        headers=ADMIN,
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidRange"


async def test_rate_endpoints(client, db):
    std = await make_room_type(db, code="STD")
    dlx = await make_room_type(db, code="DLX")
    plan = await make_rate_plan(db)
    std_id, dlx_id, plan_id = std.id, dlx.id, plan.id

    resp = await client.post(
        "/api/rates/adjustments",
        json={"base_room_type_id": std_id, "derived_room_type_id": dlx_id, "adjustment_type": "percent", "adjustment_value": "32"},
        headers=ADMIN,
    )
    assert resp.status_code == 201

    resp = await client.post(
        "/api/rates/propagate",
        json={"base_room_type_id": std_id, "rate_plan_id": plan_id, "start_date": "2024-06-01", "end_date": "2024-06-30", "price": "100"},
        headers=ADMIN,
    )
    assert resp.status_code == 200
    assert resp.json()["derived_rates"][0]["price"] == "132.00"

    resp = await client.get(
        "/api/rates/derived",
        params={"base_room_type_id": std_id, "derived_room_type_id": dlx_id, "rate_plan_id": plan_id, "on": "2024-06-15"},
    )
    assert resp.json()["price"] == "132.00"

    resp = await client.put(
        "/api/rates",
        json={"room_type_id": std_id, "rate_plan_id": plan_id, "start_date": "2024-06-10", "end_date": "2024-06-12", "price": "120"},
        headers=RECEPTION,
    )
    assert resp.status_code == 403


async def test_overbooking_policy_endpoints(client, db):
    rt = await make_room_type(db)
    rt_id = rt.id

    resp = await client.post(
        "/api/overbooking",
        json={"room_type_id": rt_id, "start_date": "2024-06-01", "end_date": "2024-06-30", "overbooking_percent": 110},
        headers=ADMIN,
    )
    assert resp.status_code == 201
    policy_id = resp.json()["id"]

    resp = await client.get("/api/overbooking/effective", params={"room_type_id": rt_id, "on": "2024-06-15"})
    assert resp.json()["overbooking_percent"] == 110

    resp = await client.delete(f"/api/overbooking/{policy_id}", headers=ADMIN)
    assert resp.json()["deleted"] is True
    resp = await client.delete(f"/api/overbooking/{policy_id}", headers=ADMIN)
    assert resp.status_code == 404


async def test_room_block_endpoints(client, db):
    rt = await make_room_type(db)
    rt_id = rt.id

    resp = await client.post(
        "/api/room-blocks",
        json={"block_type": "group_hold", "room_type_id": rt_id, "quantity": 2, "start_date": "2024-06-01", "end_date": "2024-06-03"},
        headers=RECEPTION,
    )
    assert resp.status_code == 201
    block_id = resp.json()["id"]

    resp = await client.get("/api/room-blocks", params={"start_date": "2024-06-01", "end_date": "2024-06-30"})
    assert [b["id"] for b in resp.json()["blocks"]] == [block_id]

    resp = await client.post(f"/api/room-blocks/{block_id}/release", headers=RECEPTION)
    assert resp.json()["released_at"] is not None
    resp = await client.post(f"/api/room-blocks/{block_id}/release", headers=RECEPTION)
    assert resp.status_code == 409


async def test_night_audit_endpoints(client, db):
    rt = await make_room_type(db, total_rooms=1)
    plan = await make_rate_plan(db)
    rt_id, plan_id = rt.id, plan.id
    await rate_service.set_room_type_rate(db, rt_id, plan_id, BUSINESS_DATE, date(2024, 5, 31), Decimal("80"))
    room = await make_room(db, rt_id, "101", status="occupied")
    await make_reservation(db, date(2024, 4, 30), date(2024, 5, 3), [(rt_id, room.id)], rate_plan_id=plan_id)

    resp = await client.post("/api/night-audit/run", json={}, headers=RECEPTION)
    assert resp.status_code == 403

    resp = await client.post("/api/night-audit/run", json={}, headers=ADMIN)
    assert resp.status_code == 200
    body = resp.json()
    assert body["business_date"] == "2024-05-01"
    assert body["next_business_date"] == "2024-05-02"
    assert body["charges"]["charges_posted"] == 1

    resp = await client.post("/api/night-audit/run", json={"business_date": "2024-05-01"}, headers=ADMIN)
    assert resp.status_code == 409
    assert resp.json()["error"] == "AlreadyAudited"

    resp = await client.get("/api/night-audit/runs/2024-05-01", headers=ADMIN)
    assert resp.json()["status"] == "completed"

    resp = await client.post("/api/night-audit/discrepancies", json={}, headers={"X-User-Role": "accountant"})
    assert resp.status_code == 200
    assert resp.json()["business_date"] == "2024-05-02"
