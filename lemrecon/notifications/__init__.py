"""Dispute notice delivery (email, Slack)."""

from lemrecon.notifications.base import Notifier, NullNotifier, build_notifier
from lemrecon.notifications.email import EmailNotifier
from lemrecon.notifications.slack import SlackNotifier

__all__ = ["EmailNotifier", "Notifier", "NullNotifier", "SlackNotifier", "build_notifier"]
