"""Cross-field-log checks for the same person or machine billed twice in a day."""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Iterable

from pydantic import BaseModel, Field

from lemrecon.models import FieldLogEntry

MAX_DAILY_HOURS = 16.0

SEVERITY_ORDER = {"high": 0, "medium": 1}


class Assignment(BaseModel):
    field_log_id: str
    hours: float = 0.0
    crew: str
    foreman: str | None = None


class ChargeAlert(BaseModel):
    alert_type: str
    severity: str
    date: dt.date
    subject: str
    details: str
    total_hours: float | None = None
    assignments: list[Assignment] = Field(default_factory=list)


def crew_for(entry: FieldLogEntry) -> str:
    return (entry.account_number or "").strip() or (entry.foreman or "").strip() or "General"


def _fmt(hours: float) -> str:
    return f"{hours:g}"


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _resource_alerts(
    kind: str,
    by_date: dict[dt.date, dict[str, list[Assignment]]],
    max_daily_hours: float,
) -> list[ChargeAlert]:
    alerts = []
    for date, resources in by_date.items():
        for subject, assignments in resources.items():
            total = sum(a.hours for a in assignments)
            crews = _unique(a.crew for a in assignments)
            if total > max_daily_hours:
                alerts.append(
                    ChargeAlert(
                        alert_type=f"{kind}_excessive_hours",
                        severity="high",
                        date=date,
                        subject=subject,
                        details=(
                            f"{_fmt(total)} hours charged (max {_fmt(max_daily_hours)}). "
                            f"Crews: {', '.join(crews)}"
                        ),
                        total_hours=total,
                        assignments=assignments,
                    )
                )
            elif len(assignments) > 1 and len(crews) > 1:
                alerts.append(
                    ChargeAlert(
                        alert_type=f"{kind}_multiple_crews",
                        severity="medium",
                        date=date,
                        subject=subject,
                        details=(
                            f"Split between {len(crews)} crews ({_fmt(total)} total hrs): "
                            f"{', '.join(crews)}"
                        ),
                        total_hours=total,
                        assignments=assignments,
                    )
                )
    return alerts


def duplicate_charge_alerts(
    entries: Iterable[FieldLogEntry], max_daily_hours: float = MAX_DAILY_HOURS
) -> list[ChargeAlert]:
    """Alerts across all field logs, high severity first, then newest date first."""
    foremen: dict[dt.date, dict[str, list[Assignment]]] = defaultdict(lambda: defaultdict(list))
    workers: dict[dt.date, dict[str, list[Assignment]]] = defaultdict(lambda: defaultdict(list))
    machines: dict[dt.date, dict[str, list[Assignment]]] = defaultdict(lambda: defaultdict(list))

    for entry in entries:
        crew = crew_for(entry)
        foreman = entry.foreman or "Unknown"
        foremen[entry.date][foreman].append(
            Assignment(field_log_id=entry.field_log_id, crew=crew, foreman=entry.foreman)
        )
        for labour in entry.labour_entries:
            workers[entry.date][labour.name or labour.classification or "Unknown"].append(
                Assignment(
                    field_log_id=entry.field_log_id,
                    hours=labour.hours,
                    crew=crew,
                    foreman=entry.foreman,
                )
            )
        for equipment in entry.equipment_entries:
            machines[entry.date][equipment.type_or_id or "Unknown"].append(
                Assignment(
                    field_log_id=entry.field_log_id,
                    hours=equipment.hours,
                    crew=crew,
                    foreman=entry.foreman,
                )
            )

    alerts = []
    for date, by_foreman in foremen.items():
        for foreman, assignments in by_foreman.items():
            crews = _unique(a.crew for a in assignments)
            if len(crews) > 1:
                alerts.append(
                    ChargeAlert(
                        alert_type="foreman_duplicate",
                        severity="high",
                        date=date,
                        subject=foreman,
                        details=f"Foreman charged to {len(crews)} crews: {', '.join(crews)}",
                        assignments=assignments,
                    )
                )

    alerts.extend(_resource_alerts("worker", workers, max_daily_hours))
    alerts.extend(_resource_alerts("equipment", machines, max_daily_hours))

    alerts.sort(key=lambda a: a.date, reverse=True)
    alerts.sort(key=lambda a: SEVERITY_ORDER.get(a.severity, len(SEVERITY_ORDER)))
    return alerts
