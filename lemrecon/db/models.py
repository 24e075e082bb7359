"""SQLAlchemy async database models for lemrecon.

One table per record-store collection. Column names match the pydantic field
names in ``lemrecon.models`` so rows convert in both directions without a
mapping layer. Nested line items are stored as JSON.
"""

from __future__ import annotations

import datetime as dt
from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from lemrecon.models import utcnow


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class DailyReportModel(Base):
    """Inspector daily report: what was seen on site for one date."""

    __tablename__ = "daily_reports"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    inspector_name: Mapped[str | None] = mapped_column(Text)
    contractor: Mapped[str | None] = mapped_column(Text)
    foreman: Mapped[str | None] = mapped_column(Text)

    # Observed line items, raw shape as submitted
    labour: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    equipment: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ReportSegmentModel(Base):
    """Chainage span of one activity within a daily report."""

    __tablename__ = "report_segments"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    report_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    activity_type: Mapped[str] = mapped_column(Text, nullable=False)
    start_m: Mapped[int] = mapped_column(Integer, nullable=False)
    end_m: Mapped[int] = mapped_column(Integer, nullable=False)
    start_label: Mapped[str | None] = mapped_column(Text)
    end_label: Mapped[str | None] = mapped_column(Text)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    contractor: Mapped[str | None] = mapped_column(Text)
    foreman: Mapped[str | None] = mapped_column(Text)

    overlap_reason: Mapped[str | None] = mapped_column(Text)
    gap_reason: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint("start_m <= end_m", name="check_segment_direction"),
        Index("idx_segments_activity", "activity_type", "date"),
    )


class FieldLogModel(Base):
    """Contractor field log (LEM) with billing state."""

    __tablename__ = "field_logs"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    field_log_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    foreman: Mapped[str | None] = mapped_column(Text)
    contractor: Mapped[str | None] = mapped_column(Text)
    account_number: Mapped[str | None] = mapped_column(Text)

    labour_entries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    equipment_entries: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    total_labour_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    total_equipment_cost: Mapped[Decimal] = mapped_column(
        Numeric(12, 2), nullable=False, default=0
    )

    billing_status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    invoice_id: Mapped[UUID | None] = mapped_column(Uuid(as_uuid=True), index=True)
    invoice_number: Mapped[str | None] = mapped_column(Text)
    discrepancy_note: Mapped[str | None] = mapped_column(Text)
    third_party: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    ready_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    invoiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "billing_status IN ('open', 'matched', 'disputed', 'ready_for_billing', 'invoiced')",
            name="check_billing_status",
        ),
        Index("idx_field_logs_status", "billing_status"),
    )


class DisputeModel(Base):
    __tablename__ = "disputes"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    lem_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    lem_date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    foreman: Mapped[str | None] = mapped_column(Text)
    contractor: Mapped[str | None] = mapped_column(Text)
    dispute_type: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    claimed_hours: Mapped[float] = mapped_column(Float, nullable=False)
    observed_hours: Mapped[float] = mapped_column(Float, nullable=False)
    variance_hours: Mapped[float] = mapped_column(Float, nullable=False)
    variance_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="open")
    notes: Mapped[str | None] = mapped_column(Text)
    evidence_ref: Mapped[str | None] = mapped_column(Text)

    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    sent_by: Mapped[str | None] = mapped_column(Text)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("lem_id", "item_name", "dispute_type", name="uq_dispute_item"),
        CheckConstraint(
            "status IN ('open', 'disputed', 'under_review', 'resolved', 'rejected')",
            name="check_dispute_status",
        ),
    )


class CorrectionModel(Base):
    """Append-only admin fix."""

    __tablename__ = "corrections"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    lem_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    lem_date: Mapped[dt.date | None] = mapped_column(Date)
    correction_type: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    original_value: Mapped[str] = mapped_column(Text, nullable=False)
    corrected_value: Mapped[str] = mapped_column(Text, nullable=False)
    corrected_by: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False, default="admin_fix")
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class InvoiceModel(Base):
    __tablename__ = "invoices"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    invoice_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    vendor_name: Mapped[str | None] = mapped_column(Text)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    notes: Mapped[str | None] = mapped_column(Text)

    # Linked field log ids; the resume log for an interrupted finalize
    field_log_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    created_by: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    finalized_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'finalized')", name="check_invoice_status"),
    )


class AuditLogModel(Base):
    """Immutable change log."""

    __tablename__ = "audit_log"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    entity_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    entity_id: Mapped[str | None] = mapped_column(Text, index=True)
    field_name: Mapped[str] = mapped_column(Text, nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text)
    new_value: Mapped[str | None] = mapped_column(Text)
    actor: Mapped[str] = mapped_column(Text, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    action_type: Mapped[str] = mapped_column(Text, nullable=False, default="field_change")
    report_date: Mapped[dt.date | None] = mapped_column(Date)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Store reads are ordered by created_at
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_audit_entity", "entity_type", "entity_id"),)


class LabourRateModel(Base):
    __tablename__ = "labour_rates"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    classification: Mapped[str] = mapped_column(Text, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "classification", name="uq_labour_rate"),
    )


class EquipmentRateModel(Base):
    __tablename__ = "equipment_rates"

    id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    org_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    equipment_type: Mapped[str] = mapped_column(Text, nullable=False)
    rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        UniqueConstraint("org_id", "equipment_type", name="uq_equipment_rate"),
    )
