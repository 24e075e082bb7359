"""Billing lifecycle routes.

Routes:
- GET  /billing/active                 - field logs not yet invoiced
- GET  /billing/archived               - invoiced field logs
- GET  /billing/total                  - confirmation total for a selection
- POST /billing/{id}/verify            - accept verified costs
- POST /billing/{id}/keep-open         - save costs with a discrepancy note
- POST /billing/ready                  - mark field logs ready for billing
- POST /billing/finalize               - invoice a batch
- POST /billing/invoices/{id}/resume   - complete an interrupted finalize
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from lemrecon.billing import BillingService, active_entries, archived_entries
from lemrecon.db.store import RecordStore
from lemrecon.models import BillingStatus, FieldLogEntry, Invoice
from lemrecon.web.dependencies import get_actor, get_store
from lemrecon.web.models import FinalizeRequest, KeepOpenRequest, ReadyRequest, VerifyRequest

router = APIRouter(prefix="/billing", tags=["billing"])


def get_billing_service(
    store: RecordStore = Depends(get_store),
    actor: str = Depends(get_actor),
) -> BillingService:
    return BillingService(store, actor)


def _entry(entry: FieldLogEntry) -> dict:
    return entry.model_dump(mode="json") | {"total_cost": str(entry.total_cost)}


def _invoice(invoice: Invoice) -> dict:
    return invoice.model_dump(mode="json")


@router.get("/active")
async def active(
    status: BillingStatus | None = None,
    store: RecordStore = Depends(get_store),
):
    return {"entries": [_entry(e) for e in await active_entries(store, status)]}


@router.get("/archived")
async def archived(
    invoice: str | None = Query(default=None),
    third_party: bool | None = Query(default=None),
    store: RecordStore = Depends(get_store),
):
    entries = await archived_entries(store, invoice_search=invoice, third_party=third_party)
    return {"entries": [_entry(e) for e in entries]}


@router.get("/total")
async def confirmation_total(
    ids: list[UUID] = Query(default=[]),
    service: BillingService = Depends(get_billing_service),
):
    total = await service.confirmation_total(ids) if ids else None
    return {"count": len(ids), "total": str(total) if total is not None else "0.00"}


@router.post("/ready")
async def mark_ready(body: ReadyRequest, service: BillingService = Depends(get_billing_service)):
    entries = await service.mark_ready_for_billing(body.field_log_ids)
    return {"entries": [_entry(e) for e in entries]}


@router.post("/finalize", status_code=201)
async def finalize(body: FinalizeRequest, service: BillingService = Depends(get_billing_service)):
    invoice = await service.finalize_batch(
        body.field_log_ids,
        body.invoice_number,
        notes=body.notes,
        vendor_name=body.vendor_name,
        expected_total=body.confirmed_total,
    )
    return _invoice(invoice)


@router.post("/invoices/{invoice_id}/resume")
async def resume(invoice_id: UUID, service: BillingService = Depends(get_billing_service)):
    return _invoice(await service.resume_finalize(invoice_id))


@router.post("/{entry_id}/verify")
async def verify(
    entry_id: UUID,
    body: VerifyRequest,
    service: BillingService = Depends(get_billing_service),
):
    entry = await service.verify(entry_id, body.labour_cost, body.equipment_cost)
    return _entry(entry)


@router.post("/{entry_id}/keep-open")
async def keep_open(
    entry_id: UUID,
    body: KeepOpenRequest,
    service: BillingService = Depends(get_billing_service),
):
    entry = await service.keep_open(
        entry_id, body.labour_cost, body.equipment_cost, body.discrepancy_note
    )
    return _entry(entry)
