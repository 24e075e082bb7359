"""Chainage coverage routes.

Routes:
- POST /coverage/analyze - overlap/gap findings for segments about to be saved
- POST /reports          - save a daily report (findings need justifications)
"""

from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from lemrecon.chainage import SegmentJustification, format_kp, parse_kp
from lemrecon.config import get_config
from lemrecon.db.store import RecordStore
from lemrecon.models import DailyReport, Segment
from lemrecon.reports.service import ReportService
from lemrecon.web.dependencies import get_actor, get_store
from lemrecon.web.models import CoverageRequest, SegmentIn

router = APIRouter(tags=["coverage"])


class JustifiedSegmentIn(SegmentIn):
    overlap_reason: str | None = None
    gap_reason: str | None = None


class ReportIn(BaseModel):
    date: dt.date
    inspector_name: str | None = None
    contractor: str | None = None
    foreman: str | None = None
    segments: list[JustifiedSegmentIn] = Field(default_factory=list)
    labour: list[dict] = Field(default_factory=list)
    equipment: list[dict] = Field(default_factory=list)


def _to_segment(seg: SegmentIn, date: dt.date) -> Segment:
    start, end = parse_kp(seg.start), parse_kp(seg.end)
    if start is None or end is None:
        raise HTTPException(
            status_code=422,
            detail=f"{seg.activity_type}: unreadable chainage {seg.start!r}-{seg.end!r}",
        )
    return Segment(
        activity_type=seg.activity_type,
        start_m=start,
        end_m=end,
        date=date,
        start_label=seg.start,
        end_label=seg.end,
    )


def _service(store: RecordStore, actor: str) -> ReportService:
    return ReportService(store, actor, tolerance_m=get_config().coverage.tolerance_m)


@router.post("/coverage/analyze")
async def analyze_coverage(
    body: CoverageRequest,
    store: RecordStore = Depends(get_store),
    actor: str = Depends(get_actor),
):
    service = _service(store, actor)
    segments = [_to_segment(s, body.date) for s in body.segments]
    warnings = await service.review(DailyReport(date=body.date, segments=segments))

    statuses = []
    for index, seg in enumerate(segments):
        status = await service.analyze_segment(seg)
        statuses.append({
            "index": index,
            "activity_type": seg.activity_type,
            "start_m": seg.start_m,
            "end_m": seg.end_m,
            "suggested_start": status.suggested_start_label,
            "coverage": [
                {"start": format_kp(r.start_m), "end": format_kp(r.end_m)}
                for r in status.coverage
            ],
        })

    return {
        "warnings": [w.model_dump(mode="json") | {"metres": w.metres} for w in warnings],
        "segments": statuses,
    }


@router.post("/reports", status_code=201)
async def save_report(
    body: ReportIn,
    store: RecordStore = Depends(get_store),
    actor: str = Depends(get_actor),
):
    segments = [_to_segment(s, body.date) for s in body.segments]
    justifications = {
        i: SegmentJustification(overlap_reason=s.overlap_reason, gap_reason=s.gap_reason)
        for i, s in enumerate(body.segments)
    }
    report = DailyReport(
        date=body.date,
        inspector_name=body.inspector_name,
        contractor=body.contractor,
        foreman=body.foreman,
        segments=segments,
        labour=body.labour,
        equipment=body.equipment,
    )
    saved = await _service(store, actor).save_report(report, justifications)
    return {
        "id": str(saved.report.id),
        "warnings": [w.model_dump(mode="json") for w in saved.warnings],
    }
