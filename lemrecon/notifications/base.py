"""Notification collaborator interface.

The dispute lifecycle decides when to notify; a ``Notifier`` owns delivery.
``send`` reports success as a bool and never raises for delivery failures.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal
from typing import Protocol

from lemrecon.config import NotificationsConfig
from lemrecon.models import Dispute

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send(self, disputes: Sequence[Dispute], recipient: str | None = None) -> bool:
        ...


class NullNotifier:
    """Used when delivery is disabled. Logs and reports nothing delivered."""

    async def send(self, disputes: Sequence[Dispute], recipient: str | None = None) -> bool:
        logger.info("dispute_notice_skipped: count=%d recipient=%s", len(disputes), recipient)
        return False


def summarize(disputes: Sequence[Dispute]) -> tuple[float, Decimal]:
    """Total variance hours and cost across a batch of disputes."""
    hours = sum(d.variance_hours for d in disputes)
    cost = sum((d.variance_cost for d in disputes), Decimal("0.00"))
    return hours, cost


def subject_for(disputes: Sequence[Dispute], project_name: str) -> str:
    if len(disputes) == 1:
        d = disputes[0]
        return f"LEM Dispute Notice - {d.lem_id} - {d.item_name}"
    return f"LEM Dispute Summary - {project_name} - {len(disputes)} Items"


def build_notifier(config: NotificationsConfig) -> Notifier:
    """Pick the delivery channel from configuration."""
    if not config.enabled:
        return NullNotifier()
    if config.slack_webhook_url:
        from lemrecon.notifications.slack import SlackNotifier

        return SlackNotifier(config.slack_webhook_url, project_name=config.project_name)
    from lemrecon.notifications.email import EmailNotifier

    return EmailNotifier(config)
