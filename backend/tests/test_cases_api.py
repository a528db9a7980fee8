"""
Tests for the SAV case endpoints.

Uses the test client fixture from conftest.py which runs with DEV_SKIP_AUTH=true.
The default user is admin_user (SHOP_ADMIN role).
"""
import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from savtrack.models.case import SavCase
from savtrack.services.clock import utcnow


async def _create_case(client, **overrides):
    payload = {"sav_type": "client", "device_brand": "Apple", "device_model": "iPhone 13"}
    payload.update(overrides)
    resp = await client.post("/api/v1/cases", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _create_part(client, name="Écran", purchase="40", selling="90"):
    resp = await client.post(
        "/api/v1/parts", json={"name": name, "purchase_price": purchase, "selling_price": selling}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _insert_case(db, shop, number, status="in_progress", days_ago=0, sav_type="client"):
    created = utcnow() - timedelta(days=days_ago)
    case = SavCase(
        shop_id=shop.id,
        case_number=number,
        sav_type=sav_type,
        status=status,
        created_at=created,
        updated_at=created,
    )
    db.add(case)
    await db.commit()
    return case


@pytest.mark.asyncio
async def test_create_case_numbers_sequentially(client):
    year = utcnow().year
    first = await _create_case(client)
    second = await _create_case(client, sav_type="external")

    assert first["case_number"] == f"SAV-{year}-00001"
    assert second["case_number"] == f"SAV-{year}-00002"
    assert first["status"] == "pending"
    assert first["delay"]["is_tracked"] is True
    assert first["delay"]["is_overdue"] is False
    assert first["delay"]["remaining_days"] == 7
    assert second["delay"]["remaining_days"] == 9


@pytest.mark.asyncio
async def test_create_case_unknown_type(client):
    resp = await client.post("/api/v1/cases", json={"sav_type": "warranty"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_create_case_unknown_customer(client):
    resp = await client.post(
        "/api/v1/cases", json={"sav_type": "client", "customer_id": str(uuid.uuid4())}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_create_case_respects_active_limit(client, db_session, shop):
    shop.max_active_cases = 1
    await db_session.commit()

    await _create_case(client)
    resp = await client.post("/api/v1/cases", json={"sav_type": "client"})
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_status_change_writes_history(client, admin_user):
    case = await _create_case(client)

    resp = await client.post(
        f"/api/v1/cases/{case['id']}/status", json={"status": "in_progress", "note": "Diagnostic"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["previous_status"] == "pending"
    assert data["case"]["status"] == "in_progress"
    assert data["survey_sent"] is False
    assert data["limit"]["active_count"] == 1

    resp = await client.post(f"/api/v1/cases/{case['id']}/status", json={"status": "ready"})
    data = resp.json()
    assert data["survey_sent"] is True
    assert data["review_requested"] is False
    assert data["case"]["delay"]["is_paused"] is True
    assert data["limit"]["active_count"] == 0

    resp = await client.get(f"/api/v1/cases/{case['id']}/history")
    history = resp.json()
    assert [(h["prev_status"], h["status"]) for h in history] == [
        (None, "pending"),
        ("pending", "in_progress"),
        ("in_progress", "ready"),
    ]
    assert history[1]["notes"] == "Diagnostic"
    assert history[1]["changed_by_user_id"] == str(admin_user.id)


@pytest.mark.asyncio
async def test_cancelling_sends_no_survey(client):
    case = await _create_case(client)
    resp = await client.post(f"/api/v1/cases/{case['id']}/status", json={"status": "cancelled"})
    assert resp.status_code == 200
    assert resp.json()["survey_sent"] is False


@pytest.mark.asyncio
async def test_status_change_unknown_status(client):
    case = await _create_case(client)
    resp = await client.post(f"/api/v1/cases/{case['id']}/status", json={"status": "teleported"})
    assert resp.status_code == 422

    resp = await client.get(f"/api/v1/cases/{case['id']}/history")
    assert len(resp.json()) == 1


@pytest.mark.asyncio
async def test_failed_status_write_is_rolled_back(client, db_session, monkeypatch):
    case = await _create_case(client)

    async def _failing_commit():
        raise OperationalError("UPDATE sav_cases", {}, Exception("database is locked"))

    monkeypatch.setattr(db_session, "commit", _failing_commit)
    resp = await client.post(f"/api/v1/cases/{case['id']}/status", json={"status": "in_progress"})
    assert resp.status_code == 503
    monkeypatch.undo()

    resp = await client.get(f"/api/v1/cases/{case['id']}")
    assert resp.json()["status"] == "pending"

    resp = await client.get(f"/api/v1/cases/{case['id']}/history")
    assert [h["status"] for h in resp.json()] == ["pending"]


@pytest.mark.asyncio
async def test_part_lines_drive_total_and_allocation(client):
    case = await _create_case(client)
    part = await _create_part(client)

    resp = await client.post(f"/api/v1/cases/{case['id']}/parts", json={"part_id": part["id"], "quantity": 2})
    assert resp.status_code == 201
    detail = resp.json()
    assert detail["total_cost"] == 180
    assert detail["allocation"]["cost"] == 80
    assert detail["allocation"]["revenue"] == 180
    assert detail["allocation"]["margin"] == 100
    assert detail["parts"][0]["name"] == "Écran"

    resp = await client.post(
        f"/api/v1/cases/{case['id']}/parts",
        json={"custom_part_name": "Nappe", "purchase_price": "5", "unit_price": "15"},
    )
    detail = resp.json()
    assert detail["total_cost"] == 195
    custom = next(p for p in detail["parts"] if p["custom_part_name"] == "Nappe")

    resp = await client.delete(f"/api/v1/cases/{case['id']}/parts/{custom['id']}")
    assert resp.status_code == 200
    assert resp.json()["total_cost"] == 180

    resp = await client.delete(f"/api/v1/cases/{case['id']}/parts/{custom['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_part_line_needs_a_part_or_a_name(client):
    case = await _create_case(client)
    resp = await client.post(f"/api/v1/cases/{case['id']}/parts", json={"quantity": 1})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_takeover_updates_allocation(client):
    case = await _create_case(client)
    part = await _create_part(client)
    await client.post(f"/api/v1/cases/{case['id']}/parts", json={"part_id": part["id"], "quantity": 2})

    resp = await client.patch(f"/api/v1/cases/{case['id']}", json={"taken_over": True})
    assert resp.status_code == 200
    allocation = resp.json()["allocation"]
    assert allocation["revenue"] == allocation["cost"] == 80
    assert allocation["margin"] == 0
    assert allocation["takeover_ratio"] == 1

    resp = await client.patch(
        f"/api/v1/cases/{case['id']}",
        json={"taken_over": False, "partial_takeover": True, "takeover_amount": "90"},
    )
    allocation = resp.json()["allocation"]
    assert allocation["takeover_ratio"] == 0.5
    assert allocation["takeover_cost"] == 40
    assert allocation["revenue"] == 130


@pytest.mark.asyncio
async def test_partial_takeover_needs_amount(client):
    case = await _create_case(client)
    resp = await client.patch(f"/api/v1/cases/{case['id']}", json={"partial_takeover": True})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_cases_with_legacy_status(client, db_session, shop):
    await _insert_case(db_session, shop, "SAV-2024-00001", status="delivered")
    await _insert_case(db_session, shop, "SAV-2024-00002", status="in_progress")

    resp = await client.get("/api/v1/cases", params={"status_key": "ready"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["status"] == "ready"

    resp = await client.get("/api/v1/cases", params={"page_size": 1})
    data = resp.json()
    assert data["total"] == 2
    assert data["pages"] == 2
    assert len(data["items"]) == 1


@pytest.mark.asyncio
async def test_late_cases(client, db_session, shop):
    await _insert_case(db_session, shop, "SAV-2024-00010", days_ago=12)
    await _insert_case(db_session, shop, "SAV-2024-00011", days_ago=9)
    await _insert_case(db_session, shop, "SAV-2024-00012", days_ago=1)
    await _insert_case(db_session, shop, "SAV-2024-00013", status="ready", days_ago=20)
    await _insert_case(db_session, shop, "SAV-2024-00014", days_ago=20, sav_type="internal")

    resp = await client.get("/api/v1/cases/late")
    assert resp.status_code == 200
    assert [c["case_number"] for c in resp.json()] == ["SAV-2024-00010", "SAV-2024-00011"]


@pytest.mark.asyncio
async def test_get_and_delete_case(client):
    case = await _create_case(client)

    resp = await client.get(f"/api/v1/cases/{case['id']}")
    assert resp.status_code == 200
    assert resp.json()["parts"] == []

    resp = await client.delete(f"/api/v1/cases/{case['id']}")
    assert resp.status_code == 204

    resp = await client.get(f"/api/v1/cases/{case['id']}")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_customer_with_open_cases_cannot_be_deleted(client):
    resp = await client.post(
        "/api/v1/customers",
        json={"first_name": "Marie", "last_name": "Curie", "email": "marie@atelier-dupont.fr"},
    )
    assert resp.status_code == 201
    customer = resp.json()
    case = await _create_case(client, customer_id=customer["id"])

    resp = await client.delete(f"/api/v1/customers/{customer['id']}")
    assert resp.status_code == 409

    await client.post(f"/api/v1/cases/{case['id']}/status", json={"status": "ready"})
    resp = await client.delete(f"/api/v1/customers/{customer['id']}")
    assert resp.status_code == 204

    resp = await client.get("/api/v1/customers", params={"search": "curie"})
    assert resp.json() == []
