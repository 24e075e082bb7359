"""Audit trail writer.

Every state-changing lifecycle operation goes through ``AuditTrail``. Records
are inserted into the store's ``audit_log`` collection and never updated.
Field changes are written only when the values differ after rounding to the
field's precision, so float noise never produces an audit row.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import TYPE_CHECKING, Any

from lemrecon.models import AuditRecord

if TYPE_CHECKING:
    from lemrecon.db.store import RecordStore

logger = logging.getLogger(__name__)

AUDIT_COLLECTION = "audit_log"

# Decimal places per field family; first matching key wins.
PRECISION_MAP: dict[str, int] = {
    "kp": 0,
    "chainage": 0,
    "metres": 0,
    "cost": 2,
    "amount": 2,
    "total": 2,
    "rate": 2,
    "hours": 2,
}
DEFAULT_PRECISION = 2


def precision_for(field_name: str | None) -> int:
    if not field_name:
        return DEFAULT_PRECISION
    lowered = field_name.lower()
    for key, places in PRECISION_MAP.items():
        if key in lowered:
            return places
    return DEFAULT_PRECISION


def _as_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            return None
    return None


def _round(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def values_are_different(old: Any, new: Any, field_name: str | None = None) -> bool:
    """Precision-aware comparison. True means an audit row should be written."""
    old_empty, new_empty = _is_empty(old), _is_empty(new)
    if old_empty and new_empty:
        return False
    if old_empty != new_empty:
        return True

    if isinstance(old, bool) or isinstance(new, bool):
        return bool(old) != bool(new)

    old_num, new_num = _as_decimal(old), _as_decimal(new)
    if old_num is not None and new_num is not None:
        places = precision_for(field_name)
        return _round(old_num, places) != _round(new_num, places)

    return str(_plain(old)).strip() != str(_plain(new)).strip()


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def format_value(value: Any, field_name: str | None = None) -> str | None:
    """Render a value the way it is stored in the audit log."""
    value = _plain(value)
    if value is None:
        return None
    if isinstance(value, str) and value == "":
        return "(empty)"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    number = _as_decimal(value)
    if number is not None and not isinstance(value, str):
        return str(_round(number, precision_for(field_name)))
    return str(value)


class AuditTrail:
    """Writes AuditRecords for one operator."""

    def __init__(self, store: RecordStore, actor: str) -> None:
        self.store = store
        self.actor = actor

    async def record(
        self,
        entity_type: str,
        entity_id: Any,
        field_name: str,
        old_value: Any = None,
        new_value: Any = None,
        reason: str | None = None,
        action_type: str = "field_change",
        report_date: dt.date | None = None,
    ) -> AuditRecord:
        entry = AuditRecord(
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            field_name=field_name,
            old_value=format_value(old_value, field_name),
            new_value=format_value(new_value, field_name),
            actor=self.actor,
            reason=reason,
            action_type=action_type,
            report_date=report_date,
        )
        await self.store.insert(AUDIT_COLLECTION, entry.model_dump())
        logger.debug(
            "audit_recorded: %s %s %s -> %s",
            entity_type,
            field_name,
            entry.old_value,
            entry.new_value,
        )
        return entry

    async def field_change(
        self,
        entity_type: str,
        entity_id: Any,
        field_name: str,
        old_value: Any,
        new_value: Any,
        reason: str | None = None,
        report_date: dt.date | None = None,
    ) -> AuditRecord | None:
        if not values_are_different(old_value, new_value, field_name):
            logger.debug("audit_skip_unchanged: %s", field_name)
            return None
        return await self.record(
            entity_type,
            entity_id,
            field_name,
            old_value,
            new_value,
            reason=reason,
            action_type="field_change",
            report_date=report_date,
        )

    async def status_change(
        self,
        entity_type: str,
        entity_id: Any,
        old_status: Any,
        new_status: Any,
        reason: str | None = None,
        report_date: dt.date | None = None,
    ) -> AuditRecord:
        return await self.record(
            entity_type,
            entity_id,
            "status",
            old_status,
            new_status,
            reason=reason,
            action_type="status_change",
            report_date=report_date,
        )
