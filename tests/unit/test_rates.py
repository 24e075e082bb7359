"""Tests for the cached per-tenant rate book."""

from __future__ import annotations

from decimal import Decimal

import pytest

from lemrecon.core.cache import TTLCache
from lemrecon.models import ItemType, LineItem
from lemrecon.reconciliation.rates import RateBook


class CountingStore:
    """Wraps a record store and counts reads per collection."""

    def __init__(self, inner):
        self.inner = inner
        self.reads: dict[str, int] = {}

    async def get(self, collection, **filters):
        self.reads[collection] = self.reads.get(collection, 0) + 1
        return await self.inner.get(collection, **filters)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.mark.asyncio
async def test_table_loads_tenant_rates(store):
    await store.insert("labour_rates", {"org_id": "acme", "classification": "Welder", "rate": Decimal("95")})
    await store.insert("labour_rates", {"org_id": "other", "classification": "Welder", "rate": Decimal("70")})
    await store.insert(
        "equipment_rates", {"org_id": "acme", "equipment_type": "Sideboom", "rate": Decimal("210")}
    )

    table = await RateBook(store).table("acme")

    welder = LineItem(item_type=ItemType.LABOUR, key="A", raw_key="a", classification="welder")
    sideboom = LineItem(item_type=ItemType.EQUIPMENT, key="SIDEBOOM", raw_key="Sideboom")
    assert table.rate_for(welder) == Decimal("95")
    assert table.rate_for(sideboom) == Decimal("210")


@pytest.mark.asyncio
async def test_table_cached_until_ttl(store):
    counting = CountingStore(store)
    clock = FakeClock()
    book = RateBook(counting, cache=TTLCache(ttl_seconds=300, clock=clock))

    first = await book.table("acme")
    second = await book.table("acme")
    assert first is second
    assert counting.reads["labour_rates"] == 1

    clock.now += 300
    await book.table("acme")
    assert counting.reads["labour_rates"] == 2


@pytest.mark.asyncio
async def test_invalidate_forces_reload(store):
    counting = CountingStore(store)
    book = RateBook(counting)

    await book.table("acme")
    book.invalidate("acme")
    await book.table("acme")

    assert counting.reads["labour_rates"] == 2


@pytest.mark.asyncio
async def test_configured_defaults(store):
    book = RateBook(store, default_labour=Decimal("65"), default_equipment=Decimal("140"))
    table = await book.table("acme")
    assert table.default_labour == Decimal("65")
    assert table.default_equipment == Decimal("140")
