"""lemrecon Pydantic models for type-safe data validation.

Domain records exchanged between the coverage analyzer, the matcher and the
dispute/billing lifecycles. Money is carried as Decimal, hours as float,
chainage as whole metres.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator, model_validator

CENT = Decimal("0.01")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_money(value: Any) -> Decimal:
    """Coerce a stored/entered amount to a cent-quantized Decimal."""
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, float):
        value = repr(value)
    return Decimal(str(value)).quantize(CENT)


class BillingStatus(str, Enum):
    """Per field log billing state."""

    OPEN = "open"
    MATCHED = "matched"
    DISPUTED = "disputed"
    READY_FOR_BILLING = "ready_for_billing"
    INVOICED = "invoiced"


class DisputeStatus(str, Enum):
    OPEN = "open"
    DISPUTED = "disputed"
    UNDER_REVIEW = "under_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class ItemType(str, Enum):
    """Line item family; doubles as dispute and correction type."""

    LABOUR = "labour"
    EQUIPMENT = "equipment"


class ComparisonStatus(str, Enum):
    MATCH = "match"
    OVER = "over"
    NOT_FOUND = "not_found"  # claimed, never observed
    NOT_BILLED = "not_billed"  # observed, never claimed


class InvoiceStatus(str, Enum):
    PENDING = "pending"  # invoice written, field logs not all closed yet
    FINALIZED = "finalized"


class WarningKind(str, Enum):
    OVERLAP = "overlap"
    GAP = "gap"


# ---------------------------------------------------------------------------
# Chainage
# ---------------------------------------------------------------------------


class Segment(BaseModel):
    """Chainage span of one activity recorded in a daily report."""

    activity_type: str
    start_m: int
    end_m: int
    date: dt.date
    report_id: UUID | None = None
    contractor: str | None = None
    foreman: str | None = None
    start_label: str | None = None
    end_label: str | None = None

    @model_validator(mode="after")
    def _normalize_direction(self) -> Segment:
        if self.start_m > self.end_m:
            self.start_m, self.end_m = self.end_m, self.start_m
            self.start_label, self.end_label = self.end_label, self.start_label
        return self

    @property
    def length_m(self) -> int:
        return self.end_m - self.start_m


class CoverageRange(BaseModel):
    """Span of chainage already recorded for an activity type."""

    start_m: int
    end_m: int
    source_date: dt.date | None = None
    source_start_label: str | None = None
    source_end_label: str | None = None
    report_id: UUID | None = None


class OverlapFinding(BaseModel):
    range: CoverageRange
    start_m: int
    end_m: int

    @property
    def metres(self) -> int:
        return self.end_m - self.start_m


class GapFinding(BaseModel):
    start_m: int
    end_m: int

    @property
    def metres(self) -> int:
        return self.end_m - self.start_m


class IntegrityWarning(BaseModel):
    """Non-fatal finding; becomes blocking at save time without a justification."""

    kind: WarningKind
    activity_type: str
    message: str
    start_m: int
    end_m: int
    segment_index: int | None = None

    @property
    def metres(self) -> int:
        return self.end_m - self.start_m


class CoverageStatus(BaseModel):
    """Result of analysing one candidate segment against recorded coverage."""

    overlaps: list[OverlapFinding] = Field(default_factory=list)
    gaps: list[GapFinding] = Field(default_factory=list)
    coverage: list[CoverageRange] = Field(default_factory=list)
    suggested_start_m: int | None = None
    suggested_start_label: str | None = None

    @property
    def has_overlap(self) -> bool:
        return bool(self.overlaps)

    @property
    def has_gap(self) -> bool:
        return bool(self.gaps)


class DailyReport(BaseModel):
    """Inspector daily report: chainage segments plus observed labour/equipment.

    ``labour`` and ``equipment`` keep the submitted row shape; adapters
    normalize them when a comparison runs.
    """

    id: UUID = Field(default_factory=uuid4)
    date: dt.date
    inspector_name: str | None = None
    contractor: str | None = None
    foreman: str | None = None
    segments: list[Segment] = Field(default_factory=list)
    labour: list[dict[str, Any]] = Field(default_factory=list)
    equipment: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Field logs and observations
# ---------------------------------------------------------------------------


class LabourEntry(BaseModel):
    name: str
    classification: str | None = None
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    rate: Decimal | None = None

    @property
    def hours(self) -> float:
        return self.regular_hours + self.overtime_hours


class EquipmentEntry(BaseModel):
    type_or_id: str
    hours: float = 0.0
    rate: Decimal | None = None


class LineItem(BaseModel):
    """Labour or equipment line normalized at the ingestion boundary."""

    item_type: ItemType
    key: str
    raw_key: str
    classification: str | None = None
    hours: float = 0.0
    rate: Decimal | None = None


class InspectorObservation(BaseModel):
    """Labour/equipment the inspector saw on site for one date."""

    date: dt.date
    inspector_name: str | None = None
    labour: list[LineItem] = Field(default_factory=list)
    equipment: list[LineItem] = Field(default_factory=list)


class FieldLogEntry(BaseModel):
    """Contractor daily field log (LEM) and its billing state."""

    id: UUID = Field(default_factory=uuid4)
    field_log_id: str
    date: dt.date
    foreman: str | None = None
    contractor: str | None = None
    account_number: str | None = None
    labour_entries: list[LabourEntry] = Field(default_factory=list)
    equipment_entries: list[EquipmentEntry] = Field(default_factory=list)
    total_labour_cost: Decimal = Decimal("0.00")
    total_equipment_cost: Decimal = Decimal("0.00")
    billing_status: BillingStatus = BillingStatus.OPEN
    invoice_id: UUID | None = None
    invoice_number: str | None = None
    discrepancy_note: str | None = None
    third_party: bool = False
    verified_at: datetime | None = None
    ready_at: datetime | None = None
    invoiced_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("total_labour_cost", "total_equipment_cost", mode="before")
    @classmethod
    def _quantize_cost(cls, v: Any) -> Decimal:
        return to_money(v)

    @property
    def total_cost(self) -> Decimal:
        return self.total_labour_cost + self.total_equipment_cost

    @property
    def is_invoiced(self) -> bool:
        return self.billing_status == BillingStatus.INVOICED


class ComparisonRow(BaseModel):
    """One claimed vs observed pairing. Recomputed per run, never stored."""

    item_type: ItemType
    key: str
    classification: str | None = None
    claimed_hours: float
    observed_hours: float
    variance: float
    variance_cost: Decimal = Decimal("0.00")
    rate: Decimal = Decimal("0.00")
    status: ComparisonStatus

    @property
    def is_disputable(self) -> bool:
        return self.status in (ComparisonStatus.OVER, ComparisonStatus.NOT_FOUND)


class FieldLogComparison(BaseModel):
    """Labour and equipment comparison rows for a single field log."""

    field_log: FieldLogEntry
    labour: list[ComparisonRow] = Field(default_factory=list)
    equipment: list[ComparisonRow] = Field(default_factory=list)

    @property
    def rows(self) -> list[ComparisonRow]:
        return [*self.labour, *self.equipment]

    @property
    def over_claimed_hours(self) -> float:
        return sum(r.variance for r in self.rows if r.variance > 0)

    @property
    def cost_exposure(self) -> Decimal:
        return sum((r.variance_cost for r in self.rows), Decimal("0.00"))


# ---------------------------------------------------------------------------
# Disputes, corrections, invoices, audit
# ---------------------------------------------------------------------------


class Dispute(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    lem_id: str
    lem_date: dt.date
    foreman: str | None = None
    contractor: str | None = None
    dispute_type: ItemType
    item_name: str
    claimed_hours: float
    observed_hours: float
    variance_hours: float
    variance_cost: Decimal = Decimal("0.00")
    status: DisputeStatus = DisputeStatus.OPEN
    notes: str | None = None
    evidence_ref: str | None = None
    sent_at: datetime | None = None
    sent_by: str | None = None
    resolved_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None

    @field_validator("variance_cost", mode="before")
    @classmethod
    def _quantize_cost(cls, v: Any) -> Decimal:
        return to_money(v)


class Correction(BaseModel):
    """Append-only admin fix of a claimed quantity."""

    id: UUID = Field(default_factory=uuid4)
    lem_id: str
    lem_date: dt.date | None = None
    correction_type: ItemType
    item_name: str
    original_value: str
    corrected_value: str
    corrected_by: str
    source: str = "admin_fix"
    notes: str | None = None
    created_at: datetime = Field(default_factory=utcnow)


class Invoice(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    invoice_number: str
    vendor_name: str | None = None
    total_amount: Decimal
    status: InvoiceStatus = InvoiceStatus.PENDING
    notes: str | None = None
    field_log_ids: list[UUID] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    finalized_at: datetime | None = None

    @field_validator("total_amount", mode="before")
    @classmethod
    def _quantize_total(cls, v: Any) -> Decimal:
        return to_money(v)


class AuditRecord(BaseModel):
    """Immutable record of one state change."""

    id: UUID = Field(default_factory=uuid4)
    entity_type: str
    entity_id: str | None = None
    field_name: str
    old_value: str | None = None
    new_value: str | None = None
    actor: str
    reason: str | None = None
    action_type: str = "field_change"
    report_date: dt.date | None = None
    timestamp: datetime = Field(default_factory=utcnow)
