"""Integration tests for the outage lifecycle manager."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.reconcile.outages import OutageLifecycleManager
from runner_monitor.store.keys import outage_prefix
from runner_monitor.store.models import OutageEvent, Runner, RunnerStatus
from runner_monitor.store.store import StateStore
from tests.helpers.factories import mock_dispatcher, open_store
from tests.helpers.time import FIXED_NOW, FakeClock


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Start every test with empty counters."""
    ReconcileMetrics.reset()


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Generator[StateStore]:
    """Connected store in a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir, open_store(
        Path(tmpdir) / "state.sqlite", clock
    ) as store:
        yield store


@pytest.fixture
def runner() -> Runner:
    """A tracked runner."""
    return Runner(
        runner_id=4,
        repo_id="infra",
        name="builder-4",
        status=RunnerStatus.OFFLINE,
        first_seen_at=FIXED_NOW,
        last_seen_at=FIXED_NOW,
    )


def history(store: StateStore) -> list[OutageEvent]:
    return [
        item
        for item in store.range_scan(outage_prefix("infra", 4))
        if isinstance(item, OutageEvent)
    ]


class TestOpen:
    """Tests for opening outages."""

    def test_open_persists_and_alerts(
        self, store: StateStore, clock: FakeClock, runner: Runner
    ) -> None:
        """Test the outage is stored and flagged once the alert is delivered."""
        dispatcher = mock_dispatcher()
        manager = OutageLifecycleManager(store, dispatcher, clock)

        outage = manager.open(runner, RunnerStatus.OFFLINE)

        assert outage.outage_id == 1
        assert outage.runner_name == "builder-4"
        assert outage.started_at == FIXED_NOW
        assert outage.description == "Runner builder-4 entered Offline state"
        assert outage.notification_sent is True
        dispatcher.send_alert.assert_called_once_with(runner, RunnerStatus.OFFLINE, 1)
        assert history(store)[0].notification_sent is True

    def test_undelivered_alert(
        self, store: StateStore, clock: FakeClock, runner: Runner
    ) -> None:
        """Test the flag stays False when dispatch fails."""
        manager = OutageLifecycleManager(store, mock_dispatcher(delivered=False), clock)

        outage = manager.open(runner, RunnerStatus.UNKNOWN)

        assert outage.notification_sent is False
        assert history(store)[0].status == RunnerStatus.UNKNOWN

    def test_metrics(self, store: StateStore, clock: FakeClock, runner: Runner) -> None:
        """Test opened outages are counted by status."""
        manager = OutageLifecycleManager(store, mock_dispatcher(), clock)

        manager.open(runner, RunnerStatus.OFFLINE)

        assert ReconcileMetrics.get_instance().outages_opened[("infra", "OFFLINE")] == 1


class TestResolve:
    """Tests for resolving outages."""

    def test_resolve_latest(
        self, store: StateStore, clock: FakeClock, runner: Runner
    ) -> None:
        """Test the most recent open outage gets resolved_at."""
        manager = OutageLifecycleManager(store, mock_dispatcher(), clock)
        manager.open(runner, RunnerStatus.OFFLINE)
        later = clock.advance(minutes=12)

        resolved_id = manager.resolve("infra", 4)

        assert resolved_id == 1
        (outage,) = history(store)
        assert outage.resolved_at == later
        assert not outage.is_open

    def test_resolve_without_history(self, store: StateStore, clock: FakeClock) -> None:
        """Test resolving a runner with no outages is a no-op."""
        manager = OutageLifecycleManager(store, mock_dispatcher(), clock)

        assert manager.resolve("infra", 4) is None

    def test_resolve_already_resolved(
        self, store: StateStore, clock: FakeClock, runner: Runner
    ) -> None:
        """Test a resolved latest outage is left as is."""
        manager = OutageLifecycleManager(store, mock_dispatcher(), clock)
        manager.open(runner, RunnerStatus.OFFLINE)
        first_resolved = clock.advance(minutes=1)
        manager.resolve("infra", 4)
        clock.advance(minutes=1)

        assert manager.resolve("infra", 4) is None
        assert history(store)[0].resolved_at == first_resolved

    def test_only_latest_outage_considered(
        self, store: StateStore, clock: FakeClock, runner: Runner
    ) -> None:
        """Test an older open outage is reported, not repaired."""
        manager = OutageLifecycleManager(store, mock_dispatcher(), clock)
        manager.open(runner, RunnerStatus.OFFLINE)
        clock.advance(minutes=1)
        manager.open(runner, RunnerStatus.UNKNOWN)
        clock.advance(minutes=1)

        resolved_id = manager.resolve("infra", 4)

        older, newer = history(store)
        assert resolved_id == 2
        assert newer.resolved_at is not None
        assert older.is_open
        assert ReconcileMetrics.get_instance().invariant_violations == 1
