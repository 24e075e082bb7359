"""Normalize claimed and observed line items into ``LineItem``.

Observed records come in two legacy shapes: an explicit ``hours`` total, or
separate regular/overtime fields (``rt``/``ot``). Names may sit under
``employeeName`` or ``name``; equipment under ``type`` or ``equipment_id``.
All of that is resolved here so the matcher only sees one type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

from lemrecon.models import (
    EquipmentEntry,
    FieldLogEntry,
    InspectorObservation,
    ItemType,
    LabourEntry,
    LineItem,
)
from lemrecon.reconciliation.matcher import normalize


def to_hours(value: Any) -> float:
    """Lenient float parse; blanks and junk count as zero."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def to_rate(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        return None
    return rate if rate > 0 else None


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = raw.get(key)
        if value not in (None, ""):
            return value
    return None


# Claimed side ---------------------------------------------------------------


def claimed_labour(entry: LabourEntry) -> LineItem:
    return LineItem(
        item_type=ItemType.LABOUR,
        key=normalize(entry.name),
        raw_key=entry.name,
        classification=entry.classification,
        hours=entry.hours,
        rate=entry.rate,
    )


def claimed_equipment(entry: EquipmentEntry) -> LineItem:
    return LineItem(
        item_type=ItemType.EQUIPMENT,
        key=normalize(entry.type_or_id),
        raw_key=entry.type_or_id,
        hours=entry.hours,
        rate=entry.rate,
    )


def labour_entry_from_raw(raw: Mapping[str, Any]) -> LabourEntry:
    """Contractor labour row: ``name``, ``type`` (classification), ``rt_hours``, ``ot_hours``."""
    return LabourEntry(
        name=str(_first(raw, "name", "employeeName") or ""),
        classification=_first(raw, "classification", "type"),
        regular_hours=to_hours(_first(raw, "regular_hours", "rt_hours", "rt")),
        overtime_hours=to_hours(_first(raw, "overtime_hours", "ot_hours", "ot")),
        rate=to_rate(_first(raw, "rate", "rt_rate")),
    )


def equipment_entry_from_raw(raw: Mapping[str, Any]) -> EquipmentEntry:
    return EquipmentEntry(
        type_or_id=str(_first(raw, "type_or_id", "type", "equipment_id") or ""),
        hours=to_hours(raw.get("hours")),
        rate=to_rate(raw.get("rate")),
    )


# Observed side --------------------------------------------------------------


def observed_labour(raw: Mapping[str, Any]) -> LineItem:
    name = str(_first(raw, "employeeName", "name") or "")
    hours = to_hours(raw.get("hours")) or (
        to_hours(_first(raw, "rt", "regular_hours")) + to_hours(_first(raw, "ot", "overtime_hours"))
    )
    return LineItem(
        item_type=ItemType.LABOUR,
        key=normalize(name),
        raw_key=name,
        classification=raw.get("classification"),
        hours=hours,
    )


def observed_equipment(raw: Mapping[str, Any]) -> LineItem:
    kind = str(_first(raw, "type", "equipment_id") or "")
    return LineItem(
        item_type=ItemType.EQUIPMENT,
        key=normalize(kind),
        raw_key=kind,
        hours=to_hours(raw.get("hours")),
    )


def observation_from_reports(reports: Iterable[Mapping[str, Any]]) -> InspectorObservation | None:
    """Fold the inspector's daily reports for one date into a single observation.

    Returns None when there are no reports.
    """
    reports = list(reports)
    if not reports:
        return None
    labour = [observed_labour(r) for report in reports for r in report.get("labour") or []]
    equipment = [
        observed_equipment(r) for report in reports for r in report.get("equipment") or []
    ]
    return InspectorObservation(
        date=reports[0]["date"],
        inspector_name=reports[0].get("inspector_name"),
        labour=labour,
        equipment=equipment,
    )


def claimed_items(entry: FieldLogEntry) -> tuple[list[LineItem], list[LineItem]]:
    return (
        [claimed_labour(e) for e in entry.labour_entries],
        [claimed_equipment(e) for e in entry.equipment_entries],
    )
