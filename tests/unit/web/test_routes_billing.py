"""Tests for lemrecon.web.routes.billing - verification, readiness, finalize."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest


@pytest.fixture
def seeded(sync_store, field_log):
    second = field_log.model_copy(
        update={
            "id": uuid4(),
            "field_log_id": "LEM-1002",
            "total_labour_cost": Decimal("500.00"),
            "total_equipment_cost": Decimal("0.00"),
            "third_party": True,
        }
    )

    async def seed():
        await sync_store.insert("field_logs", field_log.model_dump())
        await sync_store.insert("field_logs", second.model_dump())

    asyncio.run(seed())
    return [field_log, second]


def verify_all(client, entries):
    for entry in entries:
        response = client.post(
            f"/billing/{entry.id}/verify",
            json={
                "labour_cost": str(entry.total_labour_cost),
                "equipment_cost": str(entry.total_equipment_cost),
            },
        )
        assert response.status_code == 200


def test_active_lists_everything_before_invoicing(client, seeded):
    entries = client.get("/billing/active").json()["entries"]
    assert {e["field_log_id"] for e in entries} == {"LEM-1001", "LEM-1002"}
    assert {e["total_cost"] for e in entries} == {"2100.00", "500.00"}


def test_verify_and_keep_open(client, seeded):
    entry_id = seeded[0].id

    verified = client.post(
        f"/billing/{entry_id}/verify", json={"labour_cost": "1000.00", "equipment_cost": "1000.00"}
    )
    assert verified.status_code == 200
    assert verified.json()["billing_status"] == "matched"

    missing_note = client.post(
        f"/billing/{entry_id}/keep-open",
        json={"labour_cost": "900", "equipment_cost": "1000", "discrepancy_note": ""},
    )
    assert missing_note.status_code == 422

    kept = client.post(
        f"/billing/{entry_id}/keep-open",
        json={"labour_cost": "900", "equipment_cost": "1000", "discrepancy_note": "Short 2h"},
    )
    assert kept.json()["billing_status"] == "open"
    assert kept.json()["discrepancy_note"] == "Short 2h"


def test_confirmation_total(client, seeded):
    response = client.get("/billing/total", params={"ids": [str(e.id) for e in seeded]})
    assert response.json() == {"count": 2, "total": "2600.00"}


def test_ready_then_finalize(client, seeded):
    ids = [str(e.id) for e in seeded]
    verify_all(client, seeded)

    ready = client.post("/billing/ready", json={"field_log_ids": ids})
    assert {e["billing_status"] for e in ready.json()["entries"]} == {"ready_for_billing"}

    response = client.post(
        "/billing/finalize",
        json={"field_log_ids": ids, "invoice_number": "INV-2024-050", "confirmed_total": "2600.00"},
    )

    assert response.status_code == 201
    invoice = response.json()
    assert invoice["status"] == "finalized"
    assert invoice["total_amount"] == "2600.00"
    assert client.get("/billing/active").json()["entries"] == []

    archived = client.get("/billing/archived", params={"invoice": "2024-050", "third_party": "true"})
    assert [e["field_log_id"] for e in archived.json()["entries"]] == ["LEM-1002"]

    resumed = client.post(f"/billing/invoices/{invoice['id']}/resume")
    assert resumed.json()["status"] == "finalized"


def test_finalize_requires_invoice_number(client, seeded):
    response = client.post(
        "/billing/finalize", json={"field_log_ids": [str(seeded[0].id)], "invoice_number": " "}
    )
    assert response.status_code == 422


def test_ready_requires_verification(client, seeded):
    response = client.post("/billing/ready", json={"field_log_ids": [str(seeded[0].id)]})
    assert response.status_code == 422
    assert "LEM-1001" in response.json()["detail"]


def test_finalize_unverified_rejected(client, seeded):
    response = client.post(
        "/billing/finalize",
        json={"field_log_ids": [str(e.id) for e in seeded], "invoice_number": "INV-1"},
    )
    assert response.status_code == 422
    assert "Not ready for billing" in response.json()["detail"]
    assert client.get("/billing/active").json()["entries"] != []


def test_finalize_stale_total(client, seeded):
    verify_all(client, seeded)
    client.post("/billing/ready", json={"field_log_ids": [str(e.id) for e in seeded]})
    response = client.post(
        "/billing/finalize",
        json={
            "field_log_ids": [str(e.id) for e in seeded],
            "invoice_number": "INV-1",
            "confirmed_total": "2500.00",
        },
    )
    assert response.status_code == 422
    assert "does not match" in response.json()["detail"]


def test_verify_missing_entry(client):
    response = client.post(
        f"/billing/{uuid4()}/verify", json={"labour_cost": "1", "equipment_cost": "1"}
    )
    assert response.status_code == 404
