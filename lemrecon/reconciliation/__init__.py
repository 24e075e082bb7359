"""Claimed vs observed reconciliation: adapters, matcher, variance, rates."""

from lemrecon.reconciliation.cross_checks import ChargeAlert, duplicate_charge_alerts
from lemrecon.reconciliation.matcher import names_match, normalize, pair_entries
from lemrecon.reconciliation.rates import RateBook, RateTable
from lemrecon.reconciliation.service import ReconciliationService
from lemrecon.reconciliation.variance import build_comparison, compare_field_log

__all__ = [
    "ChargeAlert",
    "RateBook",
    "RateTable",
    "ReconciliationService",
    "build_comparison",
    "compare_field_log",
    "duplicate_charge_alerts",
    "names_match",
    "normalize",
    "pair_entries",
]
