"""Slack Block Kit payloads for runner alerts and recoveries."""

from datetime import UTC, datetime
from typing import Any

from runner_monitor.reconcile.classifier import status_text
from runner_monitor.store.models import Runner, RunnerStatus


ALERT_TEXT = "🚨 GitHub Runner Alert 🚨"
RECOVERY_TEXT = "✅ GitHub Runner Recovery"


def _field(label: str, value: object) -> dict[str, str]:
    return {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}


def _timestamp(at: datetime) -> str:
    return at.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _message(
    text: str,
    header: str,
    fields: list[dict[str, str]],
    context: str,
) -> dict[str, Any]:
    return {
        "text": text,
        "blocks": [
            {"type": "header", "text": {"type": "plain_text", "text": header}},
            {"type": "section", "fields": fields},
            {"type": "context", "elements": [{"type": "mrkdwn", "text": context}]},
        ],
    }


def build_alert_message(
    runner: Runner,
    status: RunnerStatus,
    outage_id: int,
    detected_at: datetime,
) -> dict[str, Any]:
    """Build the payload announcing a new outage.

    Args:
        runner: Runner that became unhealthy.
        status: The unhealthy status.
        outage_id: Id of the opened outage.
        detected_at: When the transition was observed.

    Returns:
        Slack incoming-webhook payload.
    """
    label = status_text(status)
    return _message(
        text=ALERT_TEXT,
        header=f"🚨 GitHub Runner Alert: {label} 🚨",
        fields=[
            _field("Repository", runner.repo_id),
            _field("Runner", runner.name),
            _field("Status", label),
            _field("Outage ID", outage_id),
        ],
        context=f"Detected at {_timestamp(detected_at)}",
    )


def build_recovery_message(
    runner: Runner,
    status: RunnerStatus,
    outage_id: int | None,
    recovered_at: datetime,
) -> dict[str, Any]:
    """Build the payload announcing a recovery.

    ``outage_id`` is None when no open outage was found to resolve.
    """
    label = status_text(status)
    return _message(
        text=RECOVERY_TEXT,
        header=f"✅ GitHub Runner Recovered: {label}",
        fields=[
            _field("Repository", runner.repo_id),
            _field("Runner", runner.name),
            _field("New Status", label),
            _field("Resolved Outage", outage_id if outage_id is not None else "none"),
        ],
        context=f"Recovered at {_timestamp(recovered_at)}",
    )
