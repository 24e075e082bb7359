"""Daily report persistence with the chainage justification gate."""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from lemrecon.chainage.coverage import (
    DEFAULT_TOLERANCE_M,
    SegmentJustification,
    analyze,
    require_justifications,
    review_submission,
)
from lemrecon.core.audit import AuditTrail
from lemrecon.db.store import RecordStore
from lemrecon.models import (
    CoverageStatus,
    DailyReport,
    InspectorObservation,
    IntegrityWarning,
    Segment,
    WarningKind,
)
from lemrecon.reconciliation.adapters import observation_from_reports

logger = logging.getLogger(__name__)


@dataclass
class SavedReport:
    report: DailyReport
    warnings: list[IntegrityWarning] = field(default_factory=list)


class ReportService:
    def __init__(
        self,
        store: RecordStore,
        actor: str,
        tolerance_m: int = DEFAULT_TOLERANCE_M,
    ) -> None:
        self.store = store
        self.actor = actor
        self.tolerance_m = tolerance_m
        self.audit = AuditTrail(store, actor)

    async def history(self, activity_type: str | None = None) -> list[Segment]:
        """Every persisted segment, optionally for one activity type."""
        filters = {"activity_type": activity_type} if activity_type else {}
        records = await self.store.get("report_segments", **filters)
        return [Segment.model_validate(r) for r in records]

    async def analyze_segment(self, candidate: Segment) -> CoverageStatus:
        return analyze(candidate, await self.history(candidate.activity_type), self.tolerance_m)

    async def review(self, report: DailyReport) -> list[IntegrityWarning]:
        """Overlap/gap findings for a report before it is saved."""
        return review_submission(
            report.segments,
            await self.history(),
            submission_date=report.date,
            tolerance_m=self.tolerance_m,
        )

    async def save_report(
        self,
        report: DailyReport,
        justifications: Mapping[int, SegmentJustification] | None = None,
    ) -> SavedReport:
        """Persist a report and its segments.

        Raises:
            ValidationError: an overlap or gap has no justification; nothing is written
        """
        justifications = justifications or {}
        for seg in report.segments:
            seg.date = report.date
            seg.report_id = report.id
            seg.contractor = seg.contractor or report.contractor
            seg.foreman = seg.foreman or report.foreman

        warnings = await self.review(report)
        require_justifications(warnings, report.segments, justifications)

        await self.store.insert(
            "daily_reports",
            {**report.model_dump(exclude={"segments"}), "created_by": self.actor},
        )
        flagged = {(w.segment_index, w.kind) for w in warnings}
        for index, seg in enumerate(report.segments):
            just = justifications.get(index, SegmentJustification())
            await self.store.insert(
                "report_segments",
                {
                    **seg.model_dump(),
                    "overlap_reason": just.overlap_reason
                    if (index, WarningKind.OVERLAP) in flagged
                    else None,
                    "gap_reason": just.gap_reason if (index, WarningKind.GAP) in flagged else None,
                },
            )

        await self.audit.record(
            "daily_report",
            report.id,
            "report",
            None,
            f"{len(report.segments)} segments",
            reason=f"{len(warnings)} chainage findings justified" if warnings else None,
            action_type="entry_add",
            report_date=report.date,
        )
        for warning in warnings:
            just = justifications[warning.segment_index]
            await self.audit.record(
                "daily_report",
                report.id,
                f"chainage_{warning.kind.value}",
                None,
                warning.message,
                reason=just.reason_for(warning.kind),
                action_type="entry_add",
                report_date=report.date,
            )

        logger.info(
            "daily_report_saved: date=%s segments=%d findings=%d",
            report.date,
            len(report.segments),
            len(warnings),
        )
        return SavedReport(report=report, warnings=warnings)

    async def observation_for(self, date: dt.date) -> InspectorObservation | None:
        """Inspector observation for a date, folded across that date's reports."""
        return observation_from_reports(await self.store.get("daily_reports", date=date))
