"""Unit tests for slash-command handling and response blocks."""

import tempfile
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest

from runner_monitor.query.blocks import slack_date
from runner_monitor.query.commands import (
    HISTORY_COMMAND,
    STATUS_COMMAND,
    SlashCommandHandler,
)
from runner_monitor.query.history import (
    get_runner_history,
    outage_duration_minutes,
    repo_id_from,
)
from runner_monitor.store.models import OutageEvent, Runner, RunnerStatus
from runner_monitor.store.store import StateStore
from tests.helpers.factories import open_store
from tests.helpers.time import FIXED_NOW, FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Generator[StateStore]:
    """Store holding two runners, one with outage history."""
    with tempfile.TemporaryDirectory() as tmpdir, open_store(
        Path(tmpdir) / "state.sqlite", clock
    ) as store:
        for runner_id, name, status in (
            (1, "alpha", RunnerStatus.IDLE),
            (2, "beta", RunnerStatus.OFFLINE),
        ):
            store.put(
                Runner(
                    runner_id=runner_id,
                    repo_id="infra",
                    name=name,
                    status=status,
                    first_seen_at=FIXED_NOW,
                    last_seen_at=FIXED_NOW,
                )
            )
        for offset in range(7):
            started = FIXED_NOW + timedelta(hours=offset)
            store.put(
                OutageEvent(
                    repo_id="infra",
                    runner_id=2,
                    runner_name="beta",
                    status=RunnerStatus.OFFLINE,
                    started_at=started,
                    resolved_at=None if offset == 6 else started + timedelta(minutes=30),
                )
            )
        yield store


def block_texts(blocks: list[dict]) -> list[str]:
    return [b["text"]["text"] for b in blocks]


class TestHistoryHelpers:
    """Tests for history read paths."""

    def test_repo_id_from(self) -> None:
        """Test slugs and bare ids both resolve."""
        assert repo_id_from("acme/infra") == "infra"
        assert repo_id_from(" infra ") == "infra"

    def test_recent_outages_newest_first(self, store: StateStore) -> None:
        """Test only the five most recent outages are loaded."""
        history = get_runner_history(store, "infra", "beta")

        assert history is not None
        assert [o.outage_id for o in history.outages] == [7, 6, 5, 4, 3]

    def test_unknown_runner(self, store: StateStore) -> None:
        """Test a missing name returns None."""
        assert get_runner_history(store, "infra", "gamma") is None

    def test_duration(self) -> None:
        """Test resolved and ongoing durations."""
        outage = OutageEvent(
            repo_id="infra",
            runner_id=2,
            runner_name="beta",
            status=RunnerStatus.OFFLINE,
            started_at=FIXED_NOW,
        )

        assert outage_duration_minutes(outage, FIXED_NOW + timedelta(minutes=90)) == 90
        resolved = outage.model_copy(update={"resolved_at": FIXED_NOW + timedelta(minutes=3)})
        assert outage_duration_minutes(resolved, FIXED_NOW + timedelta(days=1)) == 3

    def test_slack_date(self) -> None:
        """Test the localized date token with ISO fallback."""
        assert slack_date(FIXED_NOW) == (
            "<!date^1709294400^{date_short} {time}|2024-03-01T12:00:00.000Z>"
        )


class TestSlashCommandHandler:
    """Tests for SlashCommandHandler.handle."""

    def test_history(self, store: StateStore, clock: FakeClock) -> None:
        """Test the history view lists recent outages."""
        clock.advance(hours=7)
        blocks = SlashCommandHandler(store, "infra", clock).handle(HISTORY_COMMAND, " beta ")

        assert blocks[0] == {
            "type": "header",
            "text": {"type": "plain_text", "text": "beta Recent Outages"},
        }
        assert len(blocks) == 6
        latest = block_texts(blocks[1:])[0]
        assert "*Status:* Offline" in latest
        assert "*Resolved:* Ongoing" in latest
        assert "*Duration:* 60 minutes" in latest
        assert "*Duration:* 30 minutes" in block_texts(blocks[1:])[1]

    def test_history_requires_name(self, store: StateStore) -> None:
        """Test an empty argument asks for a name."""
        blocks = SlashCommandHandler(store, "infra").handle(HISTORY_COMMAND, "  ")

        assert block_texts(blocks) == ["Please provide a runner name."]

    def test_history_unknown_runner(self, store: StateStore) -> None:
        """Test a missing runner is reported by name."""
        blocks = SlashCommandHandler(store, "infra").handle(HISTORY_COMMAND, "gamma")

        assert block_texts(blocks) == ['Sorry, I couldn\'t find a runner with the name "gamma"']

    def test_history_without_outages(self, store: StateStore) -> None:
        """Test a runner with a clean record gets only the header."""
        blocks = SlashCommandHandler(store, "infra").handle(HISTORY_COMMAND, "alpha")

        assert len(blocks) == 1

    def test_status_all(self, store: StateStore) -> None:
        """Test every runner is listed with its status."""
        blocks = SlashCommandHandler(store, "infra").handle(STATUS_COMMAND)

        assert blocks[0]["text"]["text"] == "infra Runner Status"
        texts = block_texts(blocks[1:])
        assert texts[0].startswith("*Runner:* alpha\n*Status:* Idle")
        assert texts[1].startswith("*Runner:* beta\n*Status:* Offline")

    def test_unknown_command(self, store: StateStore) -> None:
        """Test unrecognized commands are echoed back."""
        blocks = SlashCommandHandler(store, "infra").handle("/runner-restart")

        assert block_texts(blocks) == ["Sorry, I don't recognize the /runner-restart command"]
