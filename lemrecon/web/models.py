"""Request bodies for the HTTP API."""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from lemrecon.models import DisputeStatus


class SegmentIn(BaseModel):
    activity_type: str
    start: str  # chainage text, e.g. "5+250"
    end: str


class CoverageRequest(BaseModel):
    date: dt.date
    segments: list[SegmentIn] = Field(min_length=1)


class FlagAllRequest(BaseModel):
    field_log_id: UUID
    notes: str | None = None


class StatusUpdate(BaseModel):
    status: DisputeStatus
    notes: str | None = None


class SendRequest(BaseModel):
    dispute_id: UUID | None = None
    recipient: str | None = None


class VerifyRequest(BaseModel):
    labour_cost: Decimal
    equipment_cost: Decimal


class KeepOpenRequest(VerifyRequest):
    discrepancy_note: str | None = None


class ReadyRequest(BaseModel):
    field_log_ids: list[UUID]


class FinalizeRequest(BaseModel):
    field_log_ids: list[UUID]
    invoice_number: str | None = None
    notes: str | None = None
    vendor_name: str | None = None
    confirmed_total: Decimal | None = None
