"""Reconciliation routes.

Routes:
- GET /reconciliation/alerts          - duplicate-charge alerts across field logs
- GET /reconciliation/{field_log_id}  - claimed vs observed comparison
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends

from lemrecon.config import get_config
from lemrecon.db.store import RecordStore
from lemrecon.models import FieldLogComparison
from lemrecon.reconciliation.rates import RateBook
from lemrecon.reconciliation.service import ReconciliationService
from lemrecon.web.dependencies import get_org_id, get_rate_book, get_store

router = APIRouter(prefix="/reconciliation", tags=["reconciliation"])


def get_reconciliation(
    store: RecordStore = Depends(get_store),
    rate_book: RateBook = Depends(get_rate_book),
    org_id: str = Depends(get_org_id),
) -> ReconciliationService:
    config = get_config().reconciliation
    return ReconciliationService(
        store,
        rate_book,
        org_id,
        tolerance=config.hours_match_tolerance,
        max_daily_hours=config.max_daily_hours,
    )


def comparison_payload(comparison: FieldLogComparison) -> dict:
    return {
        "field_log_id": comparison.field_log.field_log_id,
        "date": comparison.field_log.date.isoformat(),
        "labour": [r.model_dump(mode="json") for r in comparison.labour],
        "equipment": [r.model_dump(mode="json") for r in comparison.equipment],
        "over_claimed_hours": comparison.over_claimed_hours,
        "cost_exposure": str(comparison.cost_exposure),
    }


@router.get("/alerts")
async def charge_alerts(service: ReconciliationService = Depends(get_reconciliation)):
    alerts = await service.charge_alerts()
    return {"alerts": [a.model_dump(mode="json") for a in alerts]}


@router.get("/{field_log_id}")
async def compare(
    field_log_id: UUID,
    service: ReconciliationService = Depends(get_reconciliation),
):
    return comparison_payload(await service.compare(field_log_id))
