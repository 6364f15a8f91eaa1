"""Slack notifications for runner outages."""

from runner_monitor.notify.dispatcher import NotificationDispatcher
from runner_monitor.notify.messages import build_alert_message, build_recovery_message


__all__ = [
    "NotificationDispatcher",
    "build_alert_message",
    "build_recovery_message",
]
