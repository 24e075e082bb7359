"""Store-backed reconciliation runs."""

from __future__ import annotations

import logging
from uuid import UUID

from lemrecon.db.store import RecordStore
from lemrecon.exceptions import NotFoundError
from lemrecon.models import FieldLogComparison, FieldLogEntry
from lemrecon.reconciliation.adapters import observation_from_reports
from lemrecon.reconciliation.cross_checks import MAX_DAILY_HOURS, ChargeAlert, duplicate_charge_alerts
from lemrecon.reconciliation.rates import RateBook
from lemrecon.reconciliation.variance import HOURS_MATCH_TOLERANCE, compare_field_log

logger = logging.getLogger(__name__)


class ReconciliationService:
    def __init__(
        self,
        store: RecordStore,
        rate_book: RateBook,
        org_id: str,
        tolerance: float = HOURS_MATCH_TOLERANCE,
        max_daily_hours: float = MAX_DAILY_HOURS,
    ) -> None:
        self.store = store
        self.rate_book = rate_book
        self.org_id = org_id
        self.tolerance = tolerance
        self.max_daily_hours = max_daily_hours

    async def compare(self, field_log_id: UUID | str) -> FieldLogComparison:
        """Claimed vs observed rows for one field log, against that date's inspector reports."""
        record = await self.store.get_one("field_logs", field_log_id)
        if record is None:
            raise NotFoundError("Field log", field_log_id)
        entry = FieldLogEntry.model_validate(record)

        observation = observation_from_reports(
            await self.store.get("daily_reports", date=entry.date)
        )
        if observation is None:
            logger.warning("no_inspector_reports: %s %s", entry.field_log_id, entry.date)

        rates = await self.rate_book.table(self.org_id)
        comparison = compare_field_log(entry, observation, rates, self.tolerance)
        logger.info(
            "field_log_compared: %s rows=%d exposure=%s",
            entry.field_log_id,
            len(comparison.rows),
            comparison.cost_exposure,
        )
        return comparison

    async def charge_alerts(self) -> list[ChargeAlert]:
        """Duplicate-charge alerts across every stored field log."""
        entries = [FieldLogEntry.model_validate(r) for r in await self.store.get("field_logs")]
        return duplicate_charge_alerts(entries, self.max_daily_hours)
