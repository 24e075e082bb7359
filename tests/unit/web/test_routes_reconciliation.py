"""Tests for lemrecon.web.routes.reconciliation - comparisons and charge alerts."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest


@pytest.fixture
def seeded(sync_store, field_log, inspector_report):
    async def seed():
        await sync_store.insert("field_logs", field_log.model_dump())
        await sync_store.insert("daily_reports", inspector_report)

    asyncio.run(seed())
    return field_log


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_compare_field_log(client, seeded):
    response = client.get(f"/reconciliation/{seeded.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["field_log_id"] == "LEM-1001"
    assert data["cost_exposure"] == "100.00"
    statuses = {row["key"]: row["status"] for row in data["labour"]}
    assert statuses == {"J. SMITH": "over", "MARIA LOPEZ": "match", "CHEN WEI": "not_billed"}
    assert data["labour"][0]["key"] == "CHEN WEI"


def test_compare_uses_stored_rates(client, sync_store, seeded):
    asyncio.run(
        sync_store.insert(
            "labour_rates", {"org_id": "test-org", "classification": "Labourer", "rate": Decimal("85.00")}
        )
    )

    data = client.get(f"/reconciliation/{seeded.id}").json()

    smith = next(r for r in data["labour"] if r["key"] == "J. SMITH")
    assert smith["variance_cost"] == "170.00"


def test_compare_missing_field_log(client):
    response = client.get(f"/reconciliation/{uuid4()}")
    assert response.status_code == 404


def test_alerts(client, sync_store, field_log):
    second = field_log.model_copy(update={"id": uuid4(), "field_log_id": "LEM-1002", "account_number": "3100"})

    async def seed():
        await sync_store.insert("field_logs", field_log.model_dump())
        await sync_store.insert("field_logs", second.model_dump())

    asyncio.run(seed())

    alerts = client.get("/reconciliation/alerts").json()["alerts"]

    types = [a["alert_type"] for a in alerts]
    assert "foreman_duplicate" in types
    assert "worker_multiple_crews" in types
    assert types[0] == "foreman_duplicate"
