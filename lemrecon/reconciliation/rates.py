"""Labour and equipment rate tables, cached per tenant.

Rate tables change rarely, so each tenant's table is loaded once and reused
for ``ttl_seconds``. Call ``invalidate`` after editing a rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from lemrecon.core.cache import TTLCache
from lemrecon.db.store import RecordStore
from lemrecon.models import ItemType, LineItem
from lemrecon.reconciliation.matcher import normalize

logger = logging.getLogger(__name__)

DEFAULT_LABOUR_RATE = Decimal("50")
DEFAULT_EQUIPMENT_RATE = Decimal("100")


@dataclass
class RateTable:
    labour: dict[str, Decimal] = field(default_factory=dict)
    equipment: dict[str, Decimal] = field(default_factory=dict)
    default_labour: Decimal = DEFAULT_LABOUR_RATE
    default_equipment: Decimal = DEFAULT_EQUIPMENT_RATE

    def rate_for(self, item: LineItem) -> Decimal:
        """Entry's own rate, else the table rate, else the default."""
        if item.rate is not None and item.rate > 0:
            return item.rate
        if item.item_type == ItemType.LABOUR:
            return self.labour.get(normalize(item.classification), self.default_labour)
        return self.equipment.get(item.key, self.default_equipment)


class RateBook:
    """Read-through cache over the ``labour_rates``/``equipment_rates`` collections."""

    def __init__(
        self,
        store: RecordStore,
        ttl_seconds: float = 300,
        default_labour: Decimal = DEFAULT_LABOUR_RATE,
        default_equipment: Decimal = DEFAULT_EQUIPMENT_RATE,
        cache: TTLCache[RateTable] | None = None,
    ) -> None:
        self.store = store
        self.default_labour = default_labour
        self.default_equipment = default_equipment
        self._cache: TTLCache[RateTable] = cache or TTLCache(ttl_seconds)

    async def table(self, org_id: str) -> RateTable:
        cached = self._cache.get(org_id)
        if cached is not None:
            return cached

        labour_rows = await self.store.get("labour_rates", org_id=org_id)
        equipment_rows = await self.store.get("equipment_rates", org_id=org_id)
        table = RateTable(
            labour={normalize(r["classification"]): Decimal(r["rate"]) for r in labour_rows},
            equipment={normalize(r["equipment_type"]): Decimal(r["rate"]) for r in equipment_rows},
            default_labour=self.default_labour,
            default_equipment=self.default_equipment,
        )
        self._cache.set(org_id, table)
        logger.info(
            "rate_table_loaded: org=%s labour=%d equipment=%d",
            org_id,
            len(table.labour),
            len(table.equipment),
        )
        return table

    def invalidate(self, org_id: str | None = None) -> None:
        self._cache.invalidate(org_id)
