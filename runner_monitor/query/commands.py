"""Slash-command dispatch."""

from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from runner_monitor.query.blocks import Block, history_blocks, status_blocks, text_block
from runner_monitor.query.history import get_runner_history, list_runners
from runner_monitor.store.store import StateStore


logger = structlog.get_logger()

HISTORY_COMMAND = "/runner-history"
STATUS_COMMAND = "/runner-status-all"


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SlashCommandHandler:
    """Answers ``/runner-history <name>`` and ``/runner-status-all``.

    Both commands are read-only views of one repository.
    """

    def __init__(
        self,
        store: StateStore,
        repo_id: str,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._repo_id = repo_id
        self._clock = clock
        self._log = logger.bind(component="slack", repo_id=repo_id)

    def handle(self, command: str, text: str = "") -> list[Block]:
        """Run a slash command.

        Args:
            command: The command, including the leading slash.
            text: Free text typed after the command.

        Returns:
            Response blocks.
        """
        text = text.strip()
        self._log.info("slash_command", command=command, text=text)

        if command == HISTORY_COMMAND:
            if not text:
                return [text_block("Please provide a runner name.")]
            return self._history(text)

        if command == STATUS_COMMAND:
            return status_blocks(self._repo_id, list_runners(self._store, self._repo_id))

        return [text_block(f"Sorry, I don't recognize the {command} command")]

    def _history(self, runner_name: str) -> list[Block]:
        history = get_runner_history(self._store, self._repo_id, runner_name)
        if history is None:
            return [
                text_block(f'Sorry, I couldn\'t find a runner with the name "{runner_name}"')
            ]
        return history_blocks(history, self._clock())
