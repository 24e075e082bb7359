"""Billing lifecycle business operations.

Per field log: open -> matched -> ready_for_billing -> invoiced, with open
re-enterable from a failed verification. Invoiced entries are closed; later
changes go through corrections, never in-place edits.

Finalizing a batch touches several records and the store offers no
cross-record transaction, so the invoice row doubles as a compensation log:
it is written first as ``pending`` with the linked field log ids, and only
marked ``finalized`` after every entry is invoiced and audited.
``resume_finalize`` completes a pending invoice and is safe to repeat.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID

from lemrecon.core.audit import AUDIT_COLLECTION, AuditTrail
from lemrecon.db.store import RecordStore
from lemrecon.exceptions import (
    NotFoundError,
    PartialFinalizeError,
    PersistenceError,
    ValidationError,
)
from lemrecon.models import (
    BillingStatus,
    FieldLogEntry,
    Invoice,
    InvoiceStatus,
    to_money,
    utcnow,
)

logger = logging.getLogger(__name__)

FIELD_LOGS = "field_logs"
INVOICES = "invoices"


def grand_total(entries: Iterable[FieldLogEntry]) -> Decimal:
    """Sum of labour plus equipment cost, exact to the cent."""
    entries = list(entries)
    labour = sum((e.total_labour_cost for e in entries), Decimal("0.00"))
    equipment = sum((e.total_equipment_cost for e in entries), Decimal("0.00"))
    return to_money(labour + equipment)


def _verified_cost(value: Any, label: str) -> Decimal:
    try:
        amount = to_money(value)
    except ArithmeticError as exc:
        raise ValidationError(f"Invalid {label}: {value!r}") from exc
    if amount < 0:
        raise ValidationError(f"{label} cannot be negative")
    return amount


def _closed_reason(invoice_number: str) -> str:
    return f"Entry closed; assigned to Invoice #{invoice_number}"


class BillingService:
    """Billing operations for one operator."""

    def __init__(self, store: RecordStore, actor: str) -> None:
        self.store = store
        self.actor = actor
        self.audit = AuditTrail(store, actor)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_field_log(self, entry_id: UUID | str) -> FieldLogEntry:
        record = await self.store.get_one(FIELD_LOGS, entry_id)
        if record is None:
            raise NotFoundError("Field log", entry_id)
        return FieldLogEntry.model_validate(record)

    async def load(self, entry_ids: Sequence[UUID | str]) -> list[FieldLogEntry]:
        """Field logs in the order requested, each id once.

        Raises:
            NotFoundError: any id is missing
        """
        ids = list(dict.fromkeys(UUID(str(i)) for i in entry_ids))
        records = {r["id"]: r for r in await self.store.get(FIELD_LOGS, id=ids)}
        missing = [i for i in ids if i not in records]
        if missing:
            raise NotFoundError("Field log", ", ".join(str(i) for i in missing))
        return [FieldLogEntry.model_validate(records[i]) for i in ids]

    async def get_invoice(self, invoice_id: UUID | str) -> Invoice:
        record = await self.store.get_one(INVOICES, invoice_id)
        if record is None:
            raise NotFoundError("Invoice", invoice_id)
        return Invoice.model_validate(record)

    async def pending_invoices(self) -> list[Invoice]:
        """Invoices whose finalize was interrupted."""
        records = await self.store.get(INVOICES, status=InvoiceStatus.PENDING)
        return [Invoice.model_validate(r) for r in records]

    async def confirmation_total(self, entry_ids: Sequence[UUID | str]) -> Decimal:
        """Grand total to show the operator, read fresh from stored costs."""
        return grand_total(await self.load(entry_ids))

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def _ensure_editable(self, entry: FieldLogEntry) -> None:
        if entry.is_invoiced:
            raise ValidationError(
                f"Field log {entry.field_log_id} is invoiced (#{entry.invoice_number}); "
                "record a correction instead"
            )

    async def verify(
        self,
        entry_id: UUID | str,
        verified_labour_cost: Any,
        verified_equipment_cost: Any,
    ) -> FieldLogEntry:
        """Accept verified costs and mark the field log matched."""
        entry = await self.get_field_log(entry_id)
        self._ensure_editable(entry)
        labour = _verified_cost(verified_labour_cost, "Labour cost")
        equipment = _verified_cost(verified_equipment_cost, "Equipment cost")

        record = await self.store.update(
            FIELD_LOGS,
            entry.id,
            {
                "billing_status": BillingStatus.MATCHED,
                "total_labour_cost": labour,
                "total_equipment_cost": equipment,
                "discrepancy_note": None,
                "verified_at": utcnow(),
            },
        )

        reason = "Verified against inspector records"
        await self.audit.field_change(
            "field_log", entry.id, "total_labour_cost", entry.total_labour_cost, labour,
            reason=reason, report_date=entry.date,
        )
        await self.audit.field_change(
            "field_log", entry.id, "total_equipment_cost", entry.total_equipment_cost, equipment,
            reason=reason, report_date=entry.date,
        )
        await self.audit.status_change(
            "field_log", entry.id, entry.billing_status, BillingStatus.MATCHED,
            reason=reason, report_date=entry.date,
        )
        logger.info("field_log_verified: %s total=%s", entry.field_log_id, labour + equipment)
        return FieldLogEntry.model_validate(record)

    async def keep_open(
        self,
        entry_id: UUID | str,
        verified_labour_cost: Any,
        verified_equipment_cost: Any,
        discrepancy_note: str | None,
    ) -> FieldLogEntry:
        """Save costs with a discrepancy note and leave the field log open.

        Raises:
            ValidationError: if the note is empty; nothing is written
        """
        note = (discrepancy_note or "").strip()
        if not note:
            raise ValidationError("A discrepancy note is required to keep a field log open")

        entry = await self.get_field_log(entry_id)
        self._ensure_editable(entry)
        labour = _verified_cost(verified_labour_cost, "Labour cost")
        equipment = _verified_cost(verified_equipment_cost, "Equipment cost")

        record = await self.store.update(
            FIELD_LOGS,
            entry.id,
            {
                "billing_status": BillingStatus.OPEN,
                "total_labour_cost": labour,
                "total_equipment_cost": equipment,
                "discrepancy_note": note,
            },
        )
        await self.audit.record(
            "field_log",
            entry.id,
            "discrepancy_note",
            entry.discrepancy_note,
            note,
            reason=note,
            action_type="field_change",
            report_date=entry.date,
        )
        logger.info("field_log_kept_open: %s", entry.field_log_id)
        return FieldLogEntry.model_validate(record)

    async def mark_ready_for_billing(
        self, entry_ids: Sequence[UUID | str]
    ) -> list[FieldLogEntry]:
        """Move verified field logs to ready_for_billing.

        Raises:
            ValidationError: an entry is invoiced or has not been verified; nothing written
        """
        entries = await self.load(entry_ids)
        if not entries:
            return []
        for entry in entries:
            self._ensure_editable(entry)
        unverified = [
            e.field_log_id
            for e in entries
            if e.billing_status not in (BillingStatus.MATCHED, BillingStatus.READY_FOR_BILLING)
        ]
        if unverified:
            raise ValidationError(
                f"Verify before marking ready for billing: {', '.join(unverified)}"
            )

        ids = [e.id for e in entries]
        now = utcnow()
        try:
            updated = await self.store.batch_update(
                FIELD_LOGS,
                ids,
                {"billing_status": BillingStatus.READY_FOR_BILLING, "ready_at": now},
            )
        except PersistenceError:
            applied = await self._ids_in_status(ids, BillingStatus.READY_FOR_BILLING)
            raise PersistenceError(
                f"Marking {len(ids)} field logs ready for billing failed",
                applied=applied,
                pending=[str(i) for i in ids if str(i) not in applied],
            ) from None
        if updated != len(ids):
            applied = await self._ids_in_status(ids, BillingStatus.READY_FOR_BILLING)
            raise PersistenceError(
                f"Only {updated} of {len(ids)} field logs were marked ready for billing",
                applied=applied,
                pending=[str(i) for i in ids if str(i) not in applied],
            )

        for entry in entries:
            await self.audit.status_change(
                "field_log", entry.id, entry.billing_status, BillingStatus.READY_FOR_BILLING,
                reason="Marked ready for billing", report_date=entry.date,
            )
            entry.billing_status = BillingStatus.READY_FOR_BILLING
            entry.ready_at = now
        logger.info("field_logs_ready_for_billing: count=%d", len(entries))
        return entries

    async def _ids_in_status(self, ids: Sequence[UUID], status: BillingStatus) -> list[str]:
        records = await self.store.get(FIELD_LOGS, id=list(ids), billing_status=status)
        return [str(r["id"]) for r in records]

    # ------------------------------------------------------------------
    # Finalize
    # ------------------------------------------------------------------

    async def finalize_batch(
        self,
        entry_ids: Sequence[UUID | str],
        invoice_number: str | None,
        notes: str | None = None,
        vendor_name: str | None = None,
        expected_total: Any = None,
    ) -> Invoice:
        """Invoice a batch of field logs and close them.

        ``expected_total`` is the total the operator confirmed; when given it
        must equal the stored total to the cent.

        Raises:
            ValidationError: missing invoice number, empty batch, entries
                already invoiced or not ready for billing, or a stale
                confirmed total; nothing written
            PersistenceError: the invoice could not be created; nothing written
            PartialFinalizeError: the invoice exists but the batch did not
                complete; call ``resume_finalize`` with its id
        """
        number = (invoice_number or "").strip()
        if not number:
            raise ValidationError("An invoice number is required to finalize")
        if not entry_ids:
            raise ValidationError("Select at least one field log to finalize")

        entries = await self.load(entry_ids)
        already = [e.field_log_id for e in entries if e.is_invoiced]
        if already:
            raise ValidationError(f"Already invoiced: {', '.join(already)}")
        not_ready = [
            e.field_log_id for e in entries if e.billing_status != BillingStatus.READY_FOR_BILLING
        ]
        if not_ready:
            raise ValidationError(f"Not ready for billing: {', '.join(not_ready)}")

        total = grand_total(entries)
        if expected_total is not None and to_money(expected_total) != total:
            raise ValidationError(
                f"Confirmed total {to_money(expected_total)} does not match stored total {total}"
            )

        invoice = Invoice(
            invoice_number=number,
            vendor_name=vendor_name or entries[0].contractor,
            total_amount=total,
            notes=notes,
            field_log_ids=[e.id for e in entries],
            created_by=self.actor,
        )
        try:
            await self.store.insert(INVOICES, invoice.model_dump())
        except PersistenceError as exc:
            raise PersistenceError(
                f"Invoice #{number} could not be created; nothing was applied",
                pending=[str(e.id) for e in entries],
            ) from exc

        logger.info("invoice_created: #%s total=%s entries=%d", number, total, len(entries))
        return await self._complete(invoice, entries)

    async def resume_finalize(self, invoice_id: UUID | str) -> Invoice:
        """Finish an interrupted finalize. A finalized invoice is returned unchanged."""
        invoice = await self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.FINALIZED:
            return invoice
        entries = await self.load(invoice.field_log_ids)
        logger.info("invoice_resume: #%s", invoice.invoice_number)
        return await self._complete(invoice, entries)

    async def _complete(self, invoice: Invoice, entries: list[FieldLogEntry]) -> Invoice:
        ids = [e.id for e in entries]
        try:
            await self._invoice_entries(invoice, entries)
            await self._write_finalize_audits(invoice, entries)
            now = utcnow()
            await self.store.update(
                INVOICES, invoice.id, {"status": InvoiceStatus.FINALIZED, "finalized_at": now}
            )
        except PersistenceError as exc:
            applied = exc.applied
            if not applied:
                try:
                    applied = await self._invoiced_ids(invoice, ids)
                except PersistenceError as lookup_exc:
                    logger.error("invoice_finalize_state_unknown: %s", lookup_exc)
            pending = [str(i) for i in ids if str(i) not in applied]
            logger.error(
                "invoice_finalize_partial: #%s applied=%d pending=%d",
                invoice.invoice_number,
                len(applied),
                len(pending),
            )
            raise PartialFinalizeError(
                f"Invoice #{invoice.invoice_number} created but finalize did not complete: {exc}",
                invoice_id=str(invoice.id),
                applied=applied,
                pending=pending,
            ) from exc

        invoice.status = InvoiceStatus.FINALIZED
        invoice.finalized_at = now
        logger.info("invoice_finalized: #%s", invoice.invoice_number)
        return invoice

    async def _invoiced_ids(self, invoice: Invoice, ids: Sequence[UUID]) -> list[str]:
        records = await self.store.get(FIELD_LOGS, id=list(ids), invoice_id=invoice.id)
        return [str(r["id"]) for r in records if r["billing_status"] == BillingStatus.INVOICED.value]

    async def _invoice_entries(self, invoice: Invoice, entries: list[FieldLogEntry]) -> None:
        pending = [
            e for e in entries if not (e.is_invoiced and e.invoice_id == invoice.id)
        ]
        if not pending:
            return
        ids = [e.id for e in pending]
        now = utcnow()
        updated = await self.store.batch_update(
            FIELD_LOGS,
            ids,
            {
                "billing_status": BillingStatus.INVOICED,
                "invoice_id": invoice.id,
                "invoice_number": invoice.invoice_number,
                "invoiced_at": now,
            },
        )
        if updated != len(ids):
            applied = await self._invoiced_ids(invoice, [e.id for e in entries])
            raise PersistenceError(
                f"Only {updated} of {len(ids)} field logs were invoiced",
                applied=applied,
                pending=[str(e.id) for e in entries if str(e.id) not in applied],
            )

    async def _write_finalize_audits(self, invoice: Invoice, entries: list[FieldLogEntry]) -> None:
        """Per-entry close audits plus one batch summary, skipping any already written."""
        reason = _closed_reason(invoice.invoice_number)
        written = await self.store.get(
            AUDIT_COLLECTION,
            entity_type="field_log",
            entity_id=[str(e.id) for e in entries],
            action_type="status_change",
            reason=reason,
        )
        done = {r["entity_id"] for r in written}
        for entry in entries:
            if str(entry.id) in done:
                continue
            old_status = None if entry.is_invoiced else entry.billing_status
            await self.audit.status_change(
                "field_log", entry.id, old_status, BillingStatus.INVOICED,
                reason=reason, report_date=entry.date,
            )

        summary = await self.store.get(
            AUDIT_COLLECTION,
            entity_type="invoice",
            entity_id=str(invoice.id),
            action_type="invoice_batch",
        )
        if not summary:
            await self.audit.record(
                "invoice",
                invoice.id,
                "invoice_batch",
                f"{len(entries)} entries",
                f"Invoice #{invoice.invoice_number}",
                reason=f"Batch finalized. Grand total ${invoice.total_amount}",
                action_type="invoice_batch",
            )
