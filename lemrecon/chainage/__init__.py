"""Chainage (kilometre post) parsing and coverage analysis."""

from lemrecon.chainage.coverage import (
    DEFAULT_TOLERANCE_M,
    SegmentJustification,
    analyze,
    detect_gap,
    detect_overlap,
    find_batch_overlaps,
    last_covered_end,
    merge_ranges,
    ranges_from_segments,
    require_justifications,
    review_submission,
    suggest_next_start,
)
from lemrecon.chainage.kp import format_kp, parse_kp

__all__ = [
    "DEFAULT_TOLERANCE_M",
    "SegmentJustification",
    "analyze",
    "detect_gap",
    "detect_overlap",
    "find_batch_overlaps",
    "format_kp",
    "last_covered_end",
    "merge_ranges",
    "parse_kp",
    "ranges_from_segments",
    "require_justifications",
    "review_submission",
    "suggest_next_start",
]
