"""Active and archived field log views.

Invoiced entries are "swiped clean" from the active view and only appear in
the archive.
"""

from __future__ import annotations

from collections.abc import Iterable

from lemrecon.db.store import RecordStore
from lemrecon.models import BillingStatus, FieldLogEntry

ACTIVE_STATUSES = [s for s in BillingStatus if s != BillingStatus.INVOICED]


def filter_active(entries: Iterable[FieldLogEntry]) -> list[FieldLogEntry]:
    return [e for e in entries if not e.is_invoiced]


def filter_archived(
    entries: Iterable[FieldLogEntry],
    invoice_search: str | None = None,
    third_party: bool | None = None,
) -> list[FieldLogEntry]:
    """Invoiced entries, optionally narrowed by invoice-number substring and third-party flag."""
    needle = (invoice_search or "").strip().lower()
    result = []
    for entry in entries:
        if not entry.is_invoiced:
            continue
        if needle and needle not in (entry.invoice_number or "").lower():
            continue
        if third_party is not None and entry.third_party != third_party:
            continue
        result.append(entry)
    return result


async def active_entries(
    store: RecordStore, status: BillingStatus | None = None
) -> list[FieldLogEntry]:
    if status == BillingStatus.INVOICED:
        return []
    records = await store.get("field_logs", billing_status=status or ACTIVE_STATUSES)
    return filter_active(FieldLogEntry.model_validate(r) for r in records)


async def archived_entries(
    store: RecordStore,
    invoice_search: str | None = None,
    third_party: bool | None = None,
) -> list[FieldLogEntry]:
    records = await store.get("field_logs", billing_status=BillingStatus.INVOICED)
    return filter_archived(
        (FieldLogEntry.model_validate(r) for r in records),
        invoice_search=invoice_search,
        third_party=third_party,
    )
