"""Slack webhook delivery of dispute notices."""

from __future__ import annotations

import logging
from collections.abc import Sequence

import httpx

from lemrecon.models import Dispute
from lemrecon.notifications.base import subject_for, summarize

logger = logging.getLogger(__name__)


class SlackNotifier:
    def __init__(
        self,
        webhook_url: str,
        project_name: str = "Pipeline Project",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.project_name = project_name
        self._client = client

    def build_payload(self, disputes: Sequence[Dispute], recipient: str | None = None) -> dict:
        """Fallback text plus Block Kit sections, one per dispute."""
        total_hours, total_cost = summarize(disputes)
        header = subject_for(disputes, self.project_name)
        if recipient:
            header = f"{header} (to {recipient})"

        blocks: list[dict] = [
            {"type": "header", "text": {"type": "plain_text", "text": header[:150]}},
            {
                "type": "section",
                "text": {
                    "type": "mrkdwn",
                    "text": f"*Total variance:* +{total_hours:.1f} hrs (${total_cost})",
                },
            },
        ]
        for d in disputes:
            blocks.append(
                {
                    "type": "section",
                    "text": {
                        "type": "mrkdwn",
                        "text": (
                            f"*{d.lem_id}* | {d.lem_date} | {d.item_name}\n"
                            f"LEM: {d.claimed_hours} hrs -> Inspector: {d.observed_hours} hrs, "
                            f"variance +{d.variance_hours} hrs (${d.variance_cost})"
                        ),
                    },
                }
            )
        return {"text": header, "blocks": blocks}

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> bool:
        response = await client.post(self.webhook_url, json=payload)
        if response.status_code != 200:
            logger.error(
                "slack_notification_failed: status=%s response=%s",
                response.status_code,
                response.text,
            )
            return False
        logger.info("slack_notification_sent")
        return True

    async def send(self, disputes: Sequence[Dispute], recipient: str | None = None) -> bool:
        if not disputes:
            return False
        payload = self.build_payload(disputes, recipient)
        try:
            if self._client is not None:
                return await self._post(self._client, payload)
            async with httpx.AsyncClient() as client:
                return await self._post(client, payload)
        except httpx.HTTPError as e:
            logger.error("slack_notification_error: %s", e)
            return False
