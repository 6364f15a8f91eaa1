"""Slack Block Kit rendering for slash-command responses."""

from datetime import UTC, datetime
from typing import Any

from runner_monitor.query.history import RunnerHistory, outage_duration_minutes
from runner_monitor.reconcile.classifier import status_text
from runner_monitor.store.models import Runner


Block = dict[str, Any]


def slack_date(at: datetime) -> str:
    """Render a timestamp with Slack's localized date formatting.

    Clients that cannot localize fall back to the ISO timestamp.
    """
    iso = at.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"<!date^{int(at.timestamp())}^{{date_short}} {{time}}|{iso}>"


def text_block(text: str) -> Block:
    """A single mrkdwn section."""
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def header_block(text: str) -> Block:
    """A plain-text header."""
    return {"type": "header", "text": {"type": "plain_text", "text": text}}


def history_blocks(history: RunnerHistory, now: datetime) -> list[Block]:
    """Blocks listing a runner's recent outages."""
    blocks = [header_block(f"{history.runner.name} Recent Outages")]
    for outage in history.outages:
        resolved = slack_date(outage.resolved_at) if outage.resolved_at else "Ongoing"
        blocks.append(
            text_block(
                f"*Status:* {status_text(outage.status)}\n"
                f"*Started:* {slack_date(outage.started_at)}\n"
                f"*Resolved:* {resolved}\n"
                f"*Duration:* {outage_duration_minutes(outage, now)} minutes"
            )
        )
    return blocks


def status_blocks(repo_id: str, runners: list[Runner]) -> list[Block]:
    """Blocks listing the status of every runner of a repository."""
    blocks = [header_block(f"{repo_id} Runner Status")]
    for runner in runners:
        blocks.append(
            text_block(
                f"*Runner:* {runner.name}\n"
                f"*Status:* {status_text(runner.status)}\n"
                f"*Last Seen:* {slack_date(runner.last_seen_at)}\n"
                f"*First Seen:* {slack_date(runner.first_seen_at)}"
            )
        )
    return blocks
