"""Chainage coverage analysis for one activity type.

Recorded segments are folded into canonical coverage; a candidate segment is
checked for overlaps against every recorded segment and for a gap against the
merged coverage. Findings are returned as values; only the save gate
(``require_justifications``) raises.

Two overlap checks run on a submission:
- intra-submission: segments entered together, pairwise, same activity type
- cross-historical: each segment vs persisted segments of the same activity
  type, excluding the submission's own date
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass

from lemrecon.chainage.kp import format_kp
from lemrecon.exceptions import ValidationError
from lemrecon.models import (
    CoverageRange,
    CoverageStatus,
    GapFinding,
    IntegrityWarning,
    OverlapFinding,
    Segment,
    WarningKind,
)

DEFAULT_TOLERANCE_M = 10


def ranges_from_segments(segments: Iterable[Segment]) -> list[CoverageRange]:
    return [
        CoverageRange(
            start_m=seg.start_m,
            end_m=seg.end_m,
            source_date=seg.date,
            source_start_label=seg.start_label or format_kp(seg.start_m),
            source_end_label=seg.end_label or format_kp(seg.end_m),
            report_id=seg.report_id,
        )
        for seg in segments
    ]


def merge_ranges(
    ranges: Iterable[CoverageRange], tolerance_m: int = DEFAULT_TOLERANCE_M
) -> list[CoverageRange]:
    """Fold overlapping or near-contiguous ranges into a minimal sorted cover.

    Idempotent: merged output is separated by more than ``tolerance_m``.
    """
    ordered = sorted(ranges, key=lambda r: (r.start_m, r.end_m))
    if not ordered:
        return []

    merged = [ordered[0].model_copy()]
    for current in ordered[1:]:
        last = merged[-1]
        if current.start_m <= last.end_m + tolerance_m:
            if current.end_m > last.end_m:
                last.end_m = current.end_m
                last.source_end_label = current.source_end_label
        else:
            merged.append(current.model_copy())
    return merged


def detect_overlap(
    candidate: Segment | CoverageRange, ranges: Iterable[CoverageRange]
) -> list[OverlapFinding]:
    """Every range sharing more than an endpoint with the candidate."""
    findings = []
    for rng in ranges:
        if candidate.start_m < rng.end_m and rng.start_m < candidate.end_m:
            findings.append(
                OverlapFinding(
                    range=rng,
                    start_m=max(candidate.start_m, rng.start_m),
                    end_m=min(candidate.end_m, rng.end_m),
                )
            )
    return findings


def last_covered_end(merged: Sequence[CoverageRange], before_m: int) -> int:
    """Furthest covered point among ranges starting before ``before_m`` (0 if none)."""
    ends = [r.end_m for r in merged if r.start_m < before_m]
    return max(ends) if ends else 0


def detect_gap(
    candidate: Segment | CoverageRange,
    merged: Sequence[CoverageRange],
    tolerance_m: int = DEFAULT_TOLERANCE_M,
) -> GapFinding | None:
    # Nothing recorded yet means nothing to be contiguous with
    if not merged:
        return None
    covered_end = last_covered_end(merged, candidate.start_m)
    if candidate.start_m > covered_end + tolerance_m:
        return GapFinding(start_m=covered_end, end_m=candidate.start_m)
    return None


def suggest_next_start(
    merged: Sequence[CoverageRange], before_m: int | None = None
) -> int | None:
    """Where the next segment should begin: the end of recorded coverage."""
    if not merged:
        return None
    if before_m is None:
        return max(r.end_m for r in merged)
    return last_covered_end(merged, before_m)


def analyze(
    candidate: Segment,
    history: Iterable[Segment],
    tolerance_m: int = DEFAULT_TOLERANCE_M,
) -> CoverageStatus:
    """Coverage status of one candidate against recorded segments of its activity."""
    same_activity = [s for s in history if s.activity_type == candidate.activity_type]
    recorded = sorted(ranges_from_segments(same_activity), key=lambda r: r.start_m)
    merged = merge_ranges(recorded, tolerance_m)

    suggested = suggest_next_start(merged)
    status = CoverageStatus(
        coverage=merged,
        suggested_start_m=suggested,
        suggested_start_label=format_kp(suggested) if suggested is not None else None,
    )
    status.overlaps = detect_overlap(candidate, recorded)
    gap = detect_gap(candidate, merged, tolerance_m)
    if gap is not None:
        status.gaps.append(gap)
    return status


def _label(seg: Segment) -> str:
    start = seg.start_label or format_kp(seg.start_m)
    end = seg.end_label or format_kp(seg.end_m)
    return f"{start}-{end}"


def find_batch_overlaps(segments: Sequence[Segment]) -> list[IntegrityWarning]:
    """Pairwise overlaps between segments submitted together.

    The warning is attached to the later segment of each pair.
    """
    by_activity: dict[str, list[tuple[int, Segment]]] = defaultdict(list)
    for index, seg in enumerate(segments):
        by_activity[seg.activity_type].append((index, seg))

    warnings = []
    for activity, indexed in by_activity.items():
        for pos, (i, a) in enumerate(indexed):
            for j, b in indexed[pos + 1 :]:
                if a.start_m < b.end_m and b.start_m < a.end_m:
                    warnings.append(
                        IntegrityWarning(
                            kind=WarningKind.OVERLAP,
                            activity_type=activity,
                            message=(
                                f"{activity}: Activity #{i + 1} ({_label(a)}) overlaps "
                                f"with Activity #{j + 1} ({_label(b)})"
                            ),
                            start_m=max(a.start_m, b.start_m),
                            end_m=min(a.end_m, b.end_m),
                            segment_index=j,
                        )
                    )
    return warnings


def review_submission(
    segments: Sequence[Segment],
    history: Iterable[Segment],
    submission_date: dt.date | None = None,
    tolerance_m: int = DEFAULT_TOLERANCE_M,
) -> list[IntegrityWarning]:
    """All overlap and gap findings for a batch of segments about to be saved."""
    history = list(history)
    if submission_date is not None:
        history = [s for s in history if s.date != submission_date]

    warnings = find_batch_overlaps(segments)
    for index, seg in enumerate(segments):
        status = analyze(seg, history, tolerance_m)
        for overlap in status.overlaps:
            source = overlap.range
            warnings.append(
                IntegrityWarning(
                    kind=WarningKind.OVERLAP,
                    activity_type=seg.activity_type,
                    message=(
                        f"{seg.activity_type}: KP {_label(seg)} overlaps with report from "
                        f"{source.source_date}: {source.source_start_label}-{source.source_end_label}"
                    ),
                    start_m=overlap.start_m,
                    end_m=overlap.end_m,
                    segment_index=index,
                )
            )
        for gap in status.gaps:
            warnings.append(
                IntegrityWarning(
                    kind=WarningKind.GAP,
                    activity_type=seg.activity_type,
                    message=(
                        f"{seg.activity_type}: gap of {gap.metres} m before KP "
                        f"{format_kp(gap.end_m)} (coverage ends at {format_kp(gap.start_m)})"
                    ),
                    start_m=gap.start_m,
                    end_m=gap.end_m,
                    segment_index=index,
                )
            )
    return warnings


@dataclass(frozen=True)
class SegmentJustification:
    """Operator-entered reasons for a segment's overlap and gap findings."""

    overlap_reason: str | None = None
    gap_reason: str | None = None

    def reason_for(self, kind: WarningKind) -> str | None:
        return self.overlap_reason if kind == WarningKind.OVERLAP else self.gap_reason


def require_justifications(
    warnings: Iterable[IntegrityWarning],
    segments: Sequence[Segment],
    justifications: Mapping[int, SegmentJustification],
) -> None:
    """Reject a save when any overlap or gap lacks a non-empty reason.

    Raises:
        ValidationError: listing every unjustified finding
    """
    missing: list[str] = []
    seen: set[tuple[int | None, WarningKind]] = set()
    for warning in warnings:
        key = (warning.segment_index, warning.kind)
        if key in seen:
            continue
        seen.add(key)
        reason = None
        if warning.segment_index is not None:
            just = justifications.get(warning.segment_index)
            reason = just.reason_for(warning.kind) if just else None
        if not reason or not reason.strip():
            activity = (
                segments[warning.segment_index].activity_type
                if warning.segment_index is not None
                else warning.activity_type
            )
            missing.append(f'Activity "{activity}": missing reason for {warning.kind.value.upper()}')

    if missing:
        raise ValidationError(
            "Chainage issues require a reason before saving:\n" + "\n".join(missing)
        )
