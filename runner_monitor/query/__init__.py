"""Read-only query surface: Slack slash commands and history lookups."""

from runner_monitor.query.app import create_app, default_repo_id, serve
from runner_monitor.query.commands import (
    HISTORY_COMMAND,
    STATUS_COMMAND,
    SlashCommandHandler,
)
from runner_monitor.query.history import (
    RunnerHistory,
    get_runner_history,
    list_runners,
    outage_duration_minutes,
    repo_id_from,
)
from runner_monitor.query.verify import compute_signature, verify_slack_signature


__all__ = [
    "HISTORY_COMMAND",
    "STATUS_COMMAND",
    "RunnerHistory",
    "SlashCommandHandler",
    "compute_signature",
    "create_app",
    "default_repo_id",
    "get_runner_history",
    "list_runners",
    "outage_duration_minutes",
    "repo_id_from",
    "serve",
    "verify_slack_signature",
]
