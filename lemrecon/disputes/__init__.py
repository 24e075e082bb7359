"""Dispute lifecycle: flagging, admin corrections, contractor notices, status changes."""

from lemrecon.disputes.report import render_dispute_report
from lemrecon.disputes.service import DisputeService, SendResult, default_note

__all__ = ["DisputeService", "SendResult", "default_note", "render_dispute_report"]
