"""Plain-text dispute report, grouped by field log."""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Sequence
from decimal import Decimal

from lemrecon.models import Dispute, DisputeStatus

RULE = "=" * 52
THIN_RULE = "-" * 52


def render_dispute_report(
    disputes: Sequence[Dispute],
    status_filter: DisputeStatus | None = None,
    project_name: str = "Pipeline Project",
    generated: dt.date | None = None,
) -> str:
    selected = [d for d in disputes if status_filter is None or d.status == status_filter]

    grouped: dict[str, list[Dispute]] = defaultdict(list)
    for dispute in selected:
        grouped[dispute.lem_id].append(dispute)

    lines = [
        "DISPUTE REPORT",
        f"Generated: {(generated or dt.date.today()).isoformat()}",
        f"Project: {project_name}",
        RULE,
        "",
    ]
    for lem_id, items in grouped.items():
        first = items[0]
        lines += [
            f"FIELD LOG: {lem_id}",
            f"Date: {first.lem_date}",
            f"Foreman: {first.foreman or 'N/A'}",
            THIN_RULE,
        ]
        for d in items:
            lines += [
                "",
                f"  {d.dispute_type.value.upper()}: {d.item_name}",
                f"  LEM Hours: {d.claimed_hours} | Timesheet Hours: {d.observed_hours}",
                f"  Variance: {d.variance_hours} hours (${d.variance_cost})",
                f"  Status: {d.status.value.upper()}",
                f"  Notes: {d.notes or 'None'}",
            ]
        lines += ["", RULE, ""]

    total = sum((d.variance_cost for d in selected), Decimal("0.00"))
    lines += [
        "SUMMARY",
        f"Total Disputed Items: {len(selected)}",
        f"Total Variance Amount: ${total}",
    ]
    return "\n".join(lines) + "\n"
