"""Shared dependencies for lemrecon web routes.

Route handlers receive the record store, the acting operator and the
notification collaborator through FastAPI's Depends(). Tests swap the store
with ``app.dependency_overrides[get_store]``.
"""

from __future__ import annotations

from fastapi import Depends, Header

from lemrecon.config import get_config
from lemrecon.db.connection import get_session_factory
from lemrecon.db.store import RecordStore, SQLRecordStore
from lemrecon.notifications.base import Notifier, build_notifier
from lemrecon.reconciliation.rates import RateBook

_store: RecordStore | None = None
_rate_book: RateBook | None = None


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = SQLRecordStore(get_session_factory())
    return _store


def get_actor(x_actor: str | None = Header(default=None)) -> str:
    """Operator name for audit records, from the X-Actor header."""
    return (x_actor or "").strip() or "admin"


def get_notifier() -> Notifier:
    return build_notifier(get_config().notifications)


def get_org_id() -> str:
    return get_config().org_id


def get_rate_book(store: RecordStore = Depends(get_store)) -> RateBook:
    """Process-wide rate cache; rebuilt only if the store changes."""
    global _rate_book
    if _rate_book is None or _rate_book.store is not store:
        config = get_config()
        _rate_book = RateBook(
            store,
            ttl_seconds=config.cache.rate_ttl_seconds,
            default_labour=config.reconciliation.default_labour_rate,
            default_equipment=config.reconciliation.default_equipment_rate,
        )
    return _rate_book
