"""Tests for lemrecon.web.routes.disputes - flag, list, send, status, report."""

from __future__ import annotations

import asyncio

import pytest


@pytest.fixture
def seeded(sync_store, field_log, inspector_report):
    async def seed():
        await sync_store.insert("field_logs", field_log.model_dump())
        await sync_store.insert("daily_reports", inspector_report)

    asyncio.run(seed())
    return field_log


def flag_all(client, field_log) -> list[dict]:
    response = client.post("/disputes/flag-all", json={"field_log_id": str(field_log.id)})
    assert response.status_code == 200
    return response.json()["created"]


def test_flag_all_and_list(client, seeded):
    created = flag_all(client, seeded)

    assert [d["item_name"] for d in created] == ["J. SMITH"]
    listed = client.get("/disputes", params={"status": "open"}).json()["disputes"]
    assert len(listed) == 1
    assert client.get("/disputes", params={"status": "resolved"}).json()["disputes"] == []


def test_flag_all_twice_creates_nothing(client, seeded):
    flag_all(client, seeded)
    assert flag_all(client, seeded) == []


def test_actor_header_recorded(client, sync_store, seeded):
    client.post(
        "/disputes/flag-all",
        json={"field_log_id": str(seeded.id)},
        headers={"X-Actor": "k.olsen"},
    )

    audits = asyncio.run(sync_store.get("audit_log", action_type="dispute"))
    assert audits[0]["actor"] == "k.olsen"


def test_send_with_notifications_disabled(client, seeded):
    [dispute] = flag_all(client, seeded)

    response = client.post("/disputes/send", json={"dispute_id": dispute["id"]})

    assert response.status_code == 200
    assert response.json() == {"sent": 1, "delivered": False}
    listed = client.get("/disputes", params={"status": "disputed"}).json()["disputes"]
    assert [d["id"] for d in listed] == [dispute["id"]]


def test_update_status(client, seeded):
    [dispute] = flag_all(client, seeded)

    response = client.post(
        f"/disputes/{dispute['id']}/status",
        json={"status": "resolved", "notes": "Contractor credited 2h"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "resolved"
    assert data["resolved_at"] is not None


def test_update_status_invalid_value(client, seeded):
    [dispute] = flag_all(client, seeded)
    response = client.post(f"/disputes/{dispute['id']}/status", json={"status": "closed"})
    assert response.status_code == 422


def test_report_text(client, seeded):
    flag_all(client, seeded)

    response = client.get("/disputes/report")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "FIELD LOG: LEM-1001" in response.text
    assert "Total Variance Amount: $100.00" in response.text
