"""Notification adapters."""

from hrflow.adapters.notify.log_notifier import LogNotifier
from hrflow.adapters.notify.webhook_notifier import WebhookNotifier

__all__ = ["LogNotifier", "WebhookNotifier"]
