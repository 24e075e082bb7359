"""Email delivery of dispute notices over SMTP.

Bodies are rendered from the Jinja2 templates in ``templates/``.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from collections.abc import Sequence
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader

from lemrecon.config import NotificationsConfig
from lemrecon.models import Dispute
from lemrecon.notifications.base import subject_for, summarize

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"


class EmailNotifier:
    """Sends one notice per call: a single-dispute notice or a batch summary."""

    def __init__(self, config: NotificationsConfig) -> None:
        self.config = config
        self.jinja_env = Environment(loader=FileSystemLoader(str(TEMPLATE_DIR)))

    def render_template(self, template_name: str, context: dict[str, Any]) -> str:
        return self.jinja_env.get_template(template_name).render(**context)

    def render(self, disputes: Sequence[Dispute]) -> tuple[str, str]:
        """Subject and plain-text body for a batch."""
        project_name = self.config.project_name
        subject = subject_for(disputes, project_name)
        if len(disputes) == 1:
            body = self.render_template(
                "dispute_notice.txt", {"project_name": project_name, "dispute": disputes[0]}
            )
        else:
            total_hours, total_cost = summarize(disputes)
            body = self.render_template(
                "dispute_summary.txt",
                {
                    "project_name": project_name,
                    "generated": date.today().isoformat(),
                    "disputes": disputes,
                    "total_hours": total_hours,
                    "total_cost": total_cost,
                },
            )
        return subject, body

    def send_email(self, to_emails: list[str], subject: str, text_body: str) -> bool:
        if not self.config.smtp_user or not self.config.smtp_password:
            logger.warning("smtp_credentials_missing: email to %s not sent", to_emails)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.config.from_email
        msg["To"] = ", ".join(to_emails)
        msg.attach(MIMEText(text_body, "plain"))

        try:
            with smtplib.SMTP(self.config.smtp_host, self.config.smtp_port) as server:
                server.starttls()
                server.login(self.config.smtp_user, self.config.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed: %s", e)
            return False
        logger.info("email_sent: to=%s subject=%s", to_emails, subject)
        return True

    async def send(self, disputes: Sequence[Dispute], recipient: str | None = None) -> bool:
        if not disputes:
            return False
        if not recipient:
            logger.warning("email_recipient_missing: %d disputes not sent", len(disputes))
            return False
        subject, body = self.render(disputes)
        return await asyncio.to_thread(self.send_email, [recipient], subject, body)
