"""Tests for the dispute lifecycle service."""

from __future__ import annotations

from decimal import Decimal

import pytest
import pytest_asyncio

from lemrecon.disputes import DisputeService, default_note, render_dispute_report
from lemrecon.exceptions import NotFoundError, PersistenceError, ValidationError
from lemrecon.models import (
    BillingStatus,
    ComparisonRow,
    ComparisonStatus,
    DisputeStatus,
    ItemType,
)
from lemrecon.reconciliation import RateBook, ReconciliationService


class RecordingNotifier:
    def __init__(self, delivered: bool = True):
        self.delivered = delivered
        self.calls: list[tuple[list, str | None]] = []

    async def send(self, disputes, recipient=None):
        self.calls.append((list(disputes), recipient))
        return self.delivered


class FailingUpdateStore:
    """Delegates to a real store; the ``fail_on``-th dispute update raises."""

    def __init__(self, inner, fail_on: int):
        self.inner = inner
        self.fail_on = fail_on
        self.updates = 0

    async def get(self, collection, **filters):
        return await self.inner.get(collection, **filters)

    async def get_one(self, collection, record_id):
        return await self.inner.get_one(collection, record_id)

    async def insert(self, collection, record):
        return await self.inner.insert(collection, record)

    async def update(self, collection, record_id, patch):
        if collection == "disputes":
            self.updates += 1
            if self.updates == self.fail_on:
                raise PersistenceError("connection reset", pending=[str(record_id)])
        return await self.inner.update(collection, record_id, patch)

    async def batch_update(self, collection, record_ids, patch):
        return await self.inner.batch_update(collection, record_ids, patch)


@pytest_asyncio.fixture()
async def comparison(store, field_log, inspector_report):
    await store.insert("field_logs", field_log.model_dump())
    await store.insert("daily_reports", inspector_report)
    service = ReconciliationService(store, RateBook(store), "test-org")
    return await service.compare(field_log.id)


def row(status: ComparisonStatus, item_type: ItemType = ItemType.LABOUR) -> ComparisonRow:
    return ComparisonRow(
        item_type=item_type,
        key="X",
        claimed_hours=8,
        observed_hours=0,
        variance=8,
        status=status,
    )


class TestDefaultNote:
    def test_messages(self):
        assert default_note(row(ComparisonStatus.NOT_FOUND)) == "Worker not found on daily timesheet"
        assert (
            default_note(row(ComparisonStatus.NOT_FOUND, ItemType.EQUIPMENT))
            == "Equipment not observed by inspector"
        )
        assert default_note(row(ComparisonStatus.OVER)) == "LEM hours exceed timesheet hours"


class TestFlagAll:
    @pytest.mark.asyncio
    async def test_flags_over_claims_only(self, store, comparison):
        service = DisputeService(store, "admin")

        created = await service.flag_all(comparison)

        assert [d.item_name for d in created] == ["J. SMITH"]
        dispute = created[0]
        assert dispute.variance_hours == 2.0
        assert dispute.variance_cost == Decimal("100.00")
        assert dispute.status == DisputeStatus.OPEN
        assert dispute.notes == "LEM hours exceed timesheet hours"

    @pytest.mark.asyncio
    async def test_open_field_log_becomes_disputed(self, store, comparison):
        await DisputeService(store, "admin").flag_all(comparison)

        record = await store.get_one("field_logs", comparison.field_log.id)
        assert record["billing_status"] == BillingStatus.DISPUTED.value
        audits = await store.get(
            "audit_log", entity_id=str(comparison.field_log.id), action_type="status_change"
        )
        assert audits[0]["new_value"] == "disputed"

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, store, comparison):
        service = DisputeService(store, "admin")
        await service.flag_all(comparison)

        assert await service.flag_all(comparison) == []
        assert len(await store.get("disputes")) == 1

    @pytest.mark.asyncio
    async def test_corrected_item_not_flagged(self, store, comparison):
        service = DisputeService(store, "admin")
        over = next(r for r in comparison.rows if r.status == ComparisonStatus.OVER)
        await service.admin_correct(comparison.field_log, over, 8, notes="Timesheet typo")

        assert await service.flag_all(comparison) == []

    @pytest.mark.asyncio
    async def test_flag_item_writes_audit(self, store, comparison):
        service = DisputeService(store, "admin")
        over = next(r for r in comparison.rows if r.status == ComparisonStatus.OVER)

        dispute = await service.flag_item(comparison.field_log, over, notes="Gate log shows 8h")

        assert dispute is not None
        assert await service.flag_item(comparison.field_log, over) is None
        audits = await store.get("audit_log", action_type="dispute")
        assert audits[0]["field_name"] == "J. SMITH - Dispute"
        assert audits[0]["new_value"] == "open"


class TestAdminCorrect:
    @pytest.mark.asyncio
    async def test_records_correction(self, store, comparison):
        service = DisputeService(store, "office")
        over = next(r for r in comparison.rows if r.status == ComparisonStatus.OVER)

        correction = await service.admin_correct(comparison.field_log, over, "8")

        assert correction.original_value == "10.0"
        assert correction.corrected_value == "8"
        assert correction.corrected_by == "office"
        assert correction.source == "admin_fix"
        assert len(await store.get("audit_log", action_type="correction")) == 1

    @pytest.mark.asyncio
    async def test_empty_value_rejected(self, store, comparison):
        service = DisputeService(store, "office")
        with pytest.raises(ValidationError):
            await service.admin_correct(comparison.field_log, comparison.rows[0], " ")
        assert await store.get("corrections") == []


class TestSendToContractor:
    @pytest.mark.asyncio
    async def test_send_single(self, store, comparison):
        notifier = RecordingNotifier()
        service = DisputeService(store, "admin", notifier=notifier)
        [dispute] = await service.flag_all(comparison)

        result = await service.send_to_contractor(dispute.id, recipient="pm@acme.example")

        assert result.count == 1
        assert result.delivered is True
        assert notifier.calls[0][1] == "pm@acme.example"
        stored = await service.get_dispute(dispute.id)
        assert stored.status == DisputeStatus.DISPUTED
        assert stored.sent_by == "admin"
        assert stored.sent_at is not None
        assert await store.get("audit_log", action_type="dispute_email_batch") == []

    @pytest.mark.asyncio
    async def test_send_all_writes_batch_audit(self, store, comparison):
        service = DisputeService(store, "admin", notifier=RecordingNotifier())
        await service.flag_all(comparison)

        result = await service.send_to_contractor()

        assert result.count == 1
        batch = await store.get("audit_log", action_type="dispute_email_batch")
        assert len(batch) == 1
        assert "Total variance: 2.0 hrs ($100.00)" in batch[0]["reason"]

    @pytest.mark.asyncio
    async def test_failed_delivery_still_transitions(self, store, comparison):
        service = DisputeService(store, "admin", notifier=RecordingNotifier(delivered=False))
        [dispute] = await service.flag_all(comparison)

        result = await service.send_to_contractor(dispute.id)

        assert result.delivered is False
        assert (await service.get_dispute(dispute.id)).status == DisputeStatus.DISPUTED

    @pytest.mark.asyncio
    async def test_update_failure_reports_applied_and_pending(self, store, comparison):
        service = DisputeService(store, "admin")
        [first] = await service.flag_all(comparison)
        second = await service.flag_item(comparison.field_log, row(ComparisonStatus.NOT_FOUND))
        notifier = RecordingNotifier()
        failing = DisputeService(FailingUpdateStore(store, fail_on=2), "admin", notifier=notifier)

        with pytest.raises(PersistenceError) as exc_info:
            await failing.send_to_contractor()

        assert exc_info.value.applied == [str(first.id)]
        assert exc_info.value.pending == [str(second.id)]
        assert exc_info.value.partially_applied
        assert notifier.calls == []
        assert await store.get("audit_log", action_type="dispute_email") == []
        assert (await service.get_dispute(second.id)).status == DisputeStatus.OPEN

        result = await DisputeService(store, "admin", notifier=notifier).send_to_contractor()
        assert result.count == 2
        assert len(notifier.calls) == 1

    @pytest.mark.asyncio
    async def test_nothing_open(self, store):
        notifier = RecordingNotifier()
        result = await DisputeService(store, "admin", notifier=notifier).send_to_contractor()
        assert result.count == 0
        assert notifier.calls == []

    @pytest.mark.asyncio
    async def test_resolved_disputes_not_resent(self, store, comparison):
        notifier = RecordingNotifier()
        service = DisputeService(store, "admin", notifier=notifier)
        [dispute] = await service.flag_all(comparison)
        await service.update_status(dispute.id, DisputeStatus.RESOLVED)

        result = await service.send_to_contractor()

        assert result.count == 0


class TestUpdateStatus:
    @pytest.mark.asyncio
    async def test_resolved_stamps_time(self, store, comparison):
        service = DisputeService(store, "admin")
        [dispute] = await service.flag_all(comparison)

        updated = await service.update_status(dispute.id, DisputeStatus.RESOLVED)

        assert updated.status == DisputeStatus.RESOLVED
        assert updated.resolved_at is not None
        audit = (await store.get("audit_log", entity_id=str(dispute.id), action_type="status_change"))[0]
        assert audit["reason"] == "Dispute status changed from open to resolved"

    @pytest.mark.asyncio
    async def test_any_transition_allowed(self, store, comparison):
        service = DisputeService(store, "admin")
        [dispute] = await service.flag_all(comparison)

        await service.update_status(dispute.id, DisputeStatus.REJECTED, notes="Accepted by PM")
        reopened = await service.update_status(dispute.id, DisputeStatus.UNDER_REVIEW)

        assert reopened.status == DisputeStatus.UNDER_REVIEW
        assert reopened.notes == "Accepted by PM"

    @pytest.mark.asyncio
    async def test_missing_dispute(self, store):
        with pytest.raises(NotFoundError):
            await DisputeService(store, "admin").update_status(
                "00000000-0000-0000-0000-000000000000", DisputeStatus.RESOLVED
            )


class TestDisputeReport:
    @pytest.mark.asyncio
    async def test_report_groups_by_field_log(self, store, comparison):
        service = DisputeService(store, "admin")
        await service.flag_all(comparison)

        text = render_dispute_report(await service.list_disputes(), project_name="Line 7")

        assert text.startswith("DISPUTE REPORT\n")
        assert "Project: Line 7" in text
        assert "FIELD LOG: LEM-1001" in text
        assert "LABOUR: J. SMITH" in text
        assert "Total Disputed Items: 1" in text
        assert "Total Variance Amount: $100.00" in text

    def test_status_filter(self):
        text = render_dispute_report([], status_filter=DisputeStatus.RESOLVED)
        assert "Total Disputed Items: 0" in text
        assert "Total Variance Amount: $0.00" in text
