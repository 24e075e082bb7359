"""Billing lifecycle: verification, readiness, invoice finalize, views."""

from lemrecon.billing.service import BillingService, grand_total
from lemrecon.billing.views import active_entries, archived_entries, filter_active, filter_archived

__all__ = [
    "BillingService",
    "active_entries",
    "archived_entries",
    "filter_active",
    "filter_archived",
    "grand_total",
]
