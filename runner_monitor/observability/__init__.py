"""Structured logging for runner_monitor."""

from runner_monitor.observability.logging import (
    bind_pass_context,
    clear_pass_context,
    configure_logging,
)


__all__ = [
    "bind_pass_context",
    "clear_pass_context",
    "configure_logging",
]
