"""Dispute lifecycle business operations (flag, correct, send, transition)."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from lemrecon.core.audit import AuditTrail
from lemrecon.db.store import RecordStore
from lemrecon.exceptions import NotFoundError, PersistenceError, ValidationError
from lemrecon.models import (
    BillingStatus,
    ComparisonRow,
    ComparisonStatus,
    Correction,
    Dispute,
    DisputeStatus,
    FieldLogComparison,
    FieldLogEntry,
    ItemType,
    utcnow,
)
from lemrecon.notifications.base import Notifier, NullNotifier, summarize

logger = logging.getLogger(__name__)

SENDABLE_STATUSES = (DisputeStatus.OPEN, DisputeStatus.DISPUTED)


def default_note(row: ComparisonRow) -> str:
    if row.status == ComparisonStatus.NOT_FOUND:
        if row.item_type == ItemType.LABOUR:
            return "Worker not found on daily timesheet"
        return "Equipment not observed by inspector"
    return "LEM hours exceed timesheet hours"


@dataclass
class SendResult:
    disputes: list[Dispute] = field(default_factory=list)
    delivered: bool = False

    @property
    def count(self) -> int:
        return len(self.disputes)


class DisputeService:
    """Operations on disputes and admin corrections for one operator."""

    def __init__(
        self,
        store: RecordStore,
        actor: str,
        notifier: Notifier | None = None,
    ) -> None:
        self.store = store
        self.actor = actor
        self.audit = AuditTrail(store, actor)
        self.notifier = notifier or NullNotifier()

    async def list_disputes(
        self,
        status: DisputeStatus | Iterable[DisputeStatus] | None = None,
        lem_id: str | None = None,
    ) -> list[Dispute]:
        filters: dict = {}
        if status is not None:
            filters["status"] = status if isinstance(status, DisputeStatus) else list(status)
        if lem_id is not None:
            filters["lem_id"] = lem_id
        return [Dispute.model_validate(r) for r in await self.store.get("disputes", **filters)]

    async def get_dispute(self, dispute_id: UUID | str) -> Dispute:
        record = await self.store.get_one("disputes", dispute_id)
        if record is None:
            raise NotFoundError("Dispute", dispute_id)
        return Dispute.model_validate(record)

    async def flagged_keys(self, lem_id: str) -> set[tuple[str, ItemType]]:
        """(item_name, type) pairs that already have a dispute or a correction."""
        disputes = await self.store.get("disputes", lem_id=lem_id)
        corrections = await self.store.get("corrections", lem_id=lem_id)
        keys = {(d["item_name"], ItemType(d["dispute_type"])) for d in disputes}
        keys |= {(c["item_name"], ItemType(c["correction_type"])) for c in corrections}
        return keys

    async def flag_item(
        self,
        field_log: FieldLogEntry,
        row: ComparisonRow,
        notes: str | None = None,
        evidence_ref: str | None = None,
    ) -> Dispute | None:
        """Open a dispute for one row. No-op (returns None) if the item is already flagged."""
        if (row.key, row.item_type) in await self.flagged_keys(field_log.field_log_id):
            logger.info("dispute_exists: %s %s", field_log.field_log_id, row.key)
            return None
        return await self._create(field_log, row, notes, evidence_ref)

    async def _create(
        self,
        field_log: FieldLogEntry,
        row: ComparisonRow,
        notes: str | None,
        evidence_ref: str | None,
    ) -> Dispute:
        dispute = Dispute(
            lem_id=field_log.field_log_id,
            lem_date=field_log.date,
            foreman=field_log.foreman,
            contractor=field_log.contractor,
            dispute_type=row.item_type,
            item_name=row.key,
            claimed_hours=row.claimed_hours,
            observed_hours=row.observed_hours,
            variance_hours=row.variance,
            variance_cost=row.variance_cost,
            notes=notes or default_note(row),
            evidence_ref=evidence_ref,
        )
        await self.store.insert("disputes", dispute.model_dump())
        await self.audit.record(
            "dispute",
            dispute.id,
            f"{dispute.item_name} - Dispute",
            None,
            DisputeStatus.OPEN,
            reason=f"Variance: {dispute.variance_hours} hrs (${dispute.variance_cost})",
            action_type="dispute",
            report_date=dispute.lem_date,
        )
        logger.info("dispute_flagged: %s %s", dispute.lem_id, dispute.item_name)
        return dispute

    async def flag_all(
        self, comparison: FieldLogComparison, notes: str | None = None
    ) -> list[Dispute]:
        """Flag every over-claimed or unobserved row that has no dispute or correction yet.

        A field log that gains disputes while ``open`` moves to ``disputed``.
        """
        field_log = comparison.field_log
        flagged = await self.flagged_keys(field_log.field_log_id)
        created = []
        for row in comparison.rows:
            if not row.is_disputable or (row.key, row.item_type) in flagged:
                continue
            created.append(await self._create(field_log, row, notes, None))
            flagged.add((row.key, row.item_type))

        if created and field_log.billing_status == BillingStatus.OPEN:
            await self.store.update(
                "field_logs", field_log.id, {"billing_status": BillingStatus.DISPUTED}
            )
            await self.audit.status_change(
                "field_log",
                field_log.id,
                field_log.billing_status,
                BillingStatus.DISPUTED,
                reason=f"{len(created)} items flagged",
                report_date=field_log.date,
            )
            field_log.billing_status = BillingStatus.DISPUTED

        logger.info("disputes_flagged: %s count=%d", field_log.field_log_id, len(created))
        return created

    async def admin_correct(
        self,
        field_log: FieldLogEntry,
        row: ComparisonRow,
        corrected_value: float | str,
        notes: str | None = None,
    ) -> Correction:
        """Record an admin fix of a claimed quantity, bypassing the dispute states."""
        if corrected_value is None or str(corrected_value).strip() == "":
            raise ValidationError("A corrected value is required")

        correction = Correction(
            lem_id=field_log.field_log_id,
            lem_date=field_log.date,
            correction_type=row.item_type,
            item_name=row.key,
            original_value=str(row.claimed_hours),
            corrected_value=str(corrected_value).strip(),
            corrected_by=self.actor,
            notes=notes,
        )
        await self.store.insert("corrections", correction.model_dump())
        await self.audit.record(
            "correction",
            correction.id,
            f"{row.key} - {row.item_type.value} hours",
            row.claimed_hours,
            correction.corrected_value,
            reason=notes,
            action_type="correction",
            report_date=field_log.date,
        )
        logger.info("admin_correction_recorded: %s %s", field_log.field_log_id, row.key)
        return correction

    async def send_to_contractor(
        self, dispute_id: UUID | str | None = None, recipient: str | None = None
    ) -> SendResult:
        """Send one dispute, or every open/disputed dispute when no id is given.

        Status changes are written before the notice goes out. Sent disputes
        move to ``disputed`` whether or not delivery succeeded; the result
        reports delivery separately.

        Raises:
            PersistenceError: a status update failed; ``applied`` and
                ``pending`` name the disputes on each side and no notice
                was sent
        """
        if dispute_id is not None:
            disputes = [await self.get_dispute(dispute_id)]
        else:
            disputes = await self.list_disputes(status=SENDABLE_STATUSES)
        if not disputes:
            logger.info("dispute_send_skipped: nothing open")
            return SendResult()

        now = utcnow()
        applied: list[str] = []
        for dispute in disputes:
            try:
                await self.store.update(
                    "disputes",
                    dispute.id,
                    {
                        "status": DisputeStatus.DISPUTED,
                        "sent_at": now,
                        "sent_by": self.actor,
                        "updated_at": now,
                    },
                )
            except PersistenceError as exc:
                pending = [str(d.id) for d in disputes if str(d.id) not in applied]
                logger.error(
                    "dispute_send_partial: applied=%d pending=%d", len(applied), len(pending)
                )
                raise PersistenceError(
                    f"Sending {len(disputes)} disputes failed after {len(applied)} updates; "
                    "no notice was sent",
                    applied=applied,
                    pending=pending,
                ) from exc
            applied.append(str(dispute.id))
            dispute.status = DisputeStatus.DISPUTED
            dispute.sent_at = now
            dispute.sent_by = self.actor

        delivered = await self.notifier.send(disputes, recipient)
        if not delivered:
            logger.warning("dispute_notice_not_delivered: count=%d", len(disputes))

        for dispute in disputes:
            await self.audit.record(
                "dispute",
                dispute.id,
                f"{dispute.item_name} - Email Sent",
                "Not Sent",
                "Emailed to Contractor",
                reason=(
                    f"Dispute notice emailed. Variance: {dispute.variance_hours} hrs "
                    f"(${dispute.variance_cost})"
                ),
                action_type="dispute_email",
                report_date=dispute.lem_date,
            )

        if dispute_id is None:
            total_hours, total_cost = summarize(disputes)
            await self.audit.record(
                "dispute",
                None,
                "Batch Dispute Email",
                f"{len(disputes)} disputes",
                "Emailed to Contractor",
                reason=(
                    f"Batch dispute notice sent. Total variance: {total_hours:.1f} hrs "
                    f"(${total_cost})"
                ),
                action_type="dispute_email_batch",
            )

        logger.info("disputes_sent: count=%d delivered=%s", len(disputes), delivered)
        return SendResult(disputes=disputes, delivered=delivered)

    async def update_status(
        self,
        dispute_id: UUID | str,
        new_status: DisputeStatus,
        notes: str | None = None,
    ) -> Dispute:
        """Move a dispute to any state. ``resolved`` stamps the resolution time."""
        dispute = await self.get_dispute(dispute_id)
        old_status = dispute.status
        now = utcnow()

        patch: dict = {"status": new_status, "updated_at": now}
        if new_status == DisputeStatus.RESOLVED:
            patch["resolved_at"] = now
        if notes:
            patch["notes"] = notes

        record = await self.store.update("disputes", dispute.id, patch)
        await self.audit.status_change(
            "dispute",
            dispute.id,
            old_status,
            new_status,
            reason=notes or f"Dispute status changed from {old_status.value} to {new_status.value}",
            report_date=dispute.lem_date,
        )
        logger.info("dispute_status_changed: %s %s -> %s", dispute.id, old_status.value, new_status.value)
        return Dispute.model_validate(record)
