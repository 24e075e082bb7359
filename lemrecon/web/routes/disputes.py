"""Dispute lifecycle routes.

Routes:
- GET  /disputes               - list disputes, optionally by status
- GET  /disputes/report        - plain-text dispute report
- POST /disputes/flag-all      - flag every disputable row of a field log
- POST /disputes/send          - send one or all open disputes to the contractor
- POST /disputes/{id}/status   - move a dispute to another state
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from lemrecon.config import get_config
from lemrecon.db.store import RecordStore
from lemrecon.disputes import DisputeService, render_dispute_report
from lemrecon.models import DisputeStatus
from lemrecon.notifications.base import Notifier
from lemrecon.reconciliation.service import ReconciliationService
from lemrecon.web.dependencies import get_actor, get_notifier, get_store
from lemrecon.web.models import FlagAllRequest, SendRequest, StatusUpdate
from lemrecon.web.routes.reconciliation import get_reconciliation

router = APIRouter(prefix="/disputes", tags=["disputes"])


def get_dispute_service(
    store: RecordStore = Depends(get_store),
    actor: str = Depends(get_actor),
    notifier: Notifier = Depends(get_notifier),
) -> DisputeService:
    return DisputeService(store, actor, notifier=notifier)


@router.get("")
async def list_disputes(
    status: DisputeStatus | None = None,
    service: DisputeService = Depends(get_dispute_service),
):
    disputes = await service.list_disputes(status=status)
    return {"disputes": [d.model_dump(mode="json") for d in disputes]}


@router.get("/report", response_class=PlainTextResponse)
async def dispute_report(
    status: DisputeStatus | None = None,
    service: DisputeService = Depends(get_dispute_service),
):
    disputes = await service.list_disputes()
    return render_dispute_report(
        disputes,
        status_filter=status,
        project_name=get_config().notifications.project_name,
    )


@router.post("/flag-all")
async def flag_all(
    body: FlagAllRequest,
    service: DisputeService = Depends(get_dispute_service),
    reconciliation: ReconciliationService = Depends(get_reconciliation),
):
    comparison = await reconciliation.compare(body.field_log_id)
    created = await service.flag_all(comparison, notes=body.notes)
    return {"created": [d.model_dump(mode="json") for d in created]}


@router.post("/send")
async def send_disputes(
    body: SendRequest,
    service: DisputeService = Depends(get_dispute_service),
):
    result = await service.send_to_contractor(body.dispute_id, recipient=body.recipient)
    return {"sent": result.count, "delivered": result.delivered}


@router.post("/{dispute_id}/status")
async def update_status(
    dispute_id: UUID,
    body: StatusUpdate,
    service: DisputeService = Depends(get_dispute_service),
):
    dispute = await service.update_status(dispute_id, body.status, notes=body.notes)
    return dispute.model_dump(mode="json")
