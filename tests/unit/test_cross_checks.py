"""Unit tests for duplicate-charge detection across field logs."""

from __future__ import annotations

from datetime import date

from lemrecon.models import EquipmentEntry, FieldLogEntry, LabourEntry
from lemrecon.reconciliation.cross_checks import crew_for, duplicate_charge_alerts


def entry(
    lem: str,
    day: date,
    foreman: str | None = "R. Nelson",
    account: str | None = None,
    labour: list[LabourEntry] | None = None,
    equipment: list[EquipmentEntry] | None = None,
) -> FieldLogEntry:
    return FieldLogEntry(
        field_log_id=lem,
        date=day,
        foreman=foreman,
        account_number=account,
        labour_entries=labour or [],
        equipment_entries=equipment or [],
    )


DAY = date(2024, 6, 1)


class TestCrewFor:
    def test_account_number_first(self):
        assert crew_for(entry("L1", DAY, account="2160")) == "2160"

    def test_foreman_fallback(self):
        assert crew_for(entry("L1", DAY, foreman="R. Nelson")) == "R. Nelson"

    def test_general_fallback(self):
        assert crew_for(entry("L1", DAY, foreman=None, account="  ")) == "General"


class TestDuplicateChargeAlerts:
    def test_clean_logs_raise_nothing(self):
        entries = [
            entry("L1", DAY, account="2160", labour=[LabourEntry(name="Maria Lopez", regular_hours=8)]),
            entry("L2", DAY, foreman="K. Olsen", account="2170"),
        ]
        assert duplicate_charge_alerts(entries) == []

    def test_foreman_on_two_crews(self):
        alerts = duplicate_charge_alerts(
            [entry("L1", DAY, account="2160"), entry("L2", DAY, account="2170")]
        )
        assert [a.alert_type for a in alerts] == ["foreman_duplicate"]
        assert alerts[0].severity == "high"
        assert alerts[0].subject == "R. Nelson"
        assert "2160, 2170" in alerts[0].details

    def test_worker_excessive_hours(self):
        alerts = duplicate_charge_alerts(
            [
                entry("L1", DAY, labour=[LabourEntry(name="Maria Lopez", regular_hours=10)]),
                entry("L2", DAY, labour=[LabourEntry(name="Maria Lopez", regular_hours=8)]),
            ]
        )
        assert [a.alert_type for a in alerts] == ["worker_excessive_hours"]
        assert alerts[0].total_hours == 18.0
        assert alerts[0].details.startswith("18 hours charged (max 16)")

    def test_equipment_split_between_crews(self):
        alerts = duplicate_charge_alerts(
            [
                entry("L1", DAY, foreman="A", equipment=[EquipmentEntry(type_or_id="EX-320", hours=5)]),
                entry("L2", DAY, foreman="B", equipment=[EquipmentEntry(type_or_id="EX-320", hours=5)]),
            ]
        )
        assert [a.alert_type for a in alerts] == ["equipment_multiple_crews"]
        assert alerts[0].severity == "medium"
        assert len(alerts[0].assignments) == 2

    def test_different_days_are_independent(self):
        alerts = duplicate_charge_alerts(
            [
                entry("L1", DAY, labour=[LabourEntry(name="Maria Lopez", regular_hours=10)]),
                entry("L2", date(2024, 6, 2), labour=[LabourEntry(name="Maria Lopez", regular_hours=10)]),
            ]
        )
        assert alerts == []

    def test_high_severity_first_then_newest(self):
        day2 = date(2024, 6, 2)
        alerts = duplicate_charge_alerts(
            [
                entry("L1", DAY, foreman="A", equipment=[EquipmentEntry(type_or_id="EX", hours=2)]),
                entry("L2", DAY, foreman="B", equipment=[EquipmentEntry(type_or_id="EX", hours=2)]),
                entry("L3", DAY, account="1", foreman="C"),
                entry("L4", DAY, account="2", foreman="C"),
                entry("L5", day2, account="1", foreman="D"),
                entry("L6", day2, account="2", foreman="D"),
            ]
        )
        assert [(a.alert_type, a.date) for a in alerts] == [
            ("foreman_duplicate", day2),
            ("foreman_duplicate", DAY),
            ("equipment_multiple_crews", DAY),
        ]

    def test_custom_limit(self):
        alerts = duplicate_charge_alerts(
            [entry("L1", DAY, labour=[LabourEntry(name="Maria Lopez", regular_hours=12)])],
            max_daily_hours=10,
        )
        assert alerts[0].alert_type == "worker_excessive_hours"
