"""Claimed vs observed hour variance and cost exposure.

Rows are transient: recomputed on every comparison run and never stored.
Only over-claims carry cost; under-claims are reported but never billed
against.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import Decimal

from lemrecon.models import (
    ComparisonRow,
    ComparisonStatus,
    FieldLogComparison,
    FieldLogEntry,
    InspectorObservation,
    LineItem,
    to_money,
)
from lemrecon.reconciliation.adapters import claimed_items
from lemrecon.reconciliation.matcher import pair_entries
from lemrecon.reconciliation.rates import RateTable

HOURS_MATCH_TOLERANCE = 0.05

RateLookup = Callable[[LineItem], Decimal]


def classify(variance: float, matched: bool, tolerance: float = HOURS_MATCH_TOLERANCE) -> ComparisonStatus:
    if not matched:
        return ComparisonStatus.NOT_FOUND
    if abs(variance) <= tolerance:
        return ComparisonStatus.MATCH
    if variance > 0:
        return ComparisonStatus.OVER
    # Under-claim: observed more than claimed, nothing to dispute
    return ComparisonStatus.MATCH


def variance_cost(variance: float, rate: Decimal) -> Decimal:
    if variance <= 0:
        return Decimal("0.00")
    return to_money(Decimal(repr(variance)) * rate)


def build_comparison(
    claimed: Sequence[LineItem],
    observed: Sequence[LineItem],
    rate_for: RateLookup,
    tolerance: float = HOURS_MATCH_TOLERANCE,
) -> list[ComparisonRow]:
    """Comparison rows for one item family, worst absolute variance first."""
    pairing = pair_entries(claimed, observed)
    rows = []

    for pair in pairing.pairs:
        item = pair.claimed
        observed_hours = pair.observed.hours if pair.observed is not None else 0.0
        variance = round(item.hours - observed_hours, 2)
        rate = rate_for(item)
        status = classify(variance, pair.matched, tolerance)
        rows.append(
            ComparisonRow(
                item_type=item.item_type,
                key=item.key,
                classification=item.classification,
                claimed_hours=item.hours,
                observed_hours=observed_hours,
                variance=variance,
                variance_cost=variance_cost(variance, rate),
                rate=rate,
                status=status,
            )
        )

    for item in pairing.unclaimed:
        rows.append(
            ComparisonRow(
                item_type=item.item_type,
                key=item.key,
                classification=item.classification,
                claimed_hours=0.0,
                observed_hours=item.hours,
                variance=-item.hours,
                status=ComparisonStatus.NOT_BILLED,
            )
        )

    # Stable sort keeps input order among equal variances
    rows.sort(key=lambda r: abs(r.variance), reverse=True)
    return rows


def compare_field_log(
    entry: FieldLogEntry,
    observation: InspectorObservation | None,
    rates: RateTable | None = None,
    tolerance: float = HOURS_MATCH_TOLERANCE,
) -> FieldLogComparison:
    """Compare one field log against the inspector's observation for its date.

    With no observation every claimed item comes back ``not_found``.
    """
    rates = rates or RateTable()
    labour, equipment = claimed_items(entry)
    observed_labour = observation.labour if observation else []
    observed_equipment = observation.equipment if observation else []

    return FieldLogComparison(
        field_log=entry,
        labour=build_comparison(labour, observed_labour, rates.rate_for, tolerance),
        equipment=build_comparison(equipment, observed_equipment, rates.rate_for, tolerance),
    )
