"""Integration tests for the key-path state store."""

import tempfile
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest

from runner_monitor.store.errors import (
    ConnectionError as StoreConnectionError,
    PassNotFoundError,
    UnknownItemTypeError,
)
from runner_monitor.store.keys import outage_prefix, runner_key, runner_prefix
from runner_monitor.store.metrics import StoreMetrics
from runner_monitor.store.models import (
    OutageEvent,
    Repository,
    Runner,
    RunnerStatus,
    SortDirection,
)
from runner_monitor.store.store import StateStore
from tests.helpers.time import FIXED_NOW, FakeClock


@pytest.fixture
def temp_db_path() -> Generator[Path]:
    """Create a temporary database path."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "test_state.sqlite"


@pytest.fixture
def clock() -> FakeClock:
    """Clock pinned to FIXED_NOW."""
    return FakeClock()


@pytest.fixture
def store(temp_db_path: Path, clock: FakeClock) -> Generator[StateStore]:
    """Create a connected state store."""
    StoreMetrics.reset()
    store = StateStore(temp_db_path, pass_id="test-pass-001", clock=clock)
    store.connect()
    yield store
    store.close()


def make_runner(name: str = "runner-a", runner_id: int = 7, **overrides: object) -> Runner:
    """Build an unsaved runner."""
    fields: dict[str, object] = {
        "runner_id": runner_id,
        "repo_id": "infra",
        "name": name,
        "status": RunnerStatus.IDLE,
        "os": "Linux",
        "labels": ("self-hosted", "x64"),
        "first_seen_at": FIXED_NOW,
        "last_seen_at": FIXED_NOW,
    }
    fields.update(overrides)
    return Runner.model_validate(fields)


def make_outage(runner_id: int = 7, **overrides: object) -> OutageEvent:
    """Build an unsaved outage."""
    fields: dict[str, object] = {
        "repo_id": "infra",
        "runner_id": runner_id,
        "runner_name": "runner-a",
        "status": RunnerStatus.OFFLINE,
        "started_at": FIXED_NOW,
    }
    fields.update(overrides)
    return OutageEvent.model_validate(fields)


class TestStateStoreConnection:
    """Tests for store connection and setup."""

    def test_connect_creates_database(self, temp_db_path: Path) -> None:
        """Test connecting creates the database file."""
        store = StateStore(temp_db_path)
        assert not temp_db_path.exists()

        store.connect()
        assert temp_db_path.exists()
        store.close()

    def test_context_manager(self, temp_db_path: Path) -> None:
        """Test store works as context manager."""
        with StateStore(temp_db_path) as store:
            assert store.is_connected
            assert store.get_schema_version() == 1

        assert not store.is_connected

    def test_operations_require_connection(self, temp_db_path: Path) -> None:
        """Test using a closed store raises."""
        store = StateStore(temp_db_path)

        with pytest.raises(StoreConnectionError):
            store.get("Runner", runner_key("infra", "runner-a"))

    def test_reconnect_keeps_schema(self, temp_db_path: Path) -> None:
        """Test migrations are not re-applied on reopen."""
        with StateStore(temp_db_path) as store:
            store.put(make_runner())

        with StateStore(temp_db_path) as store:
            assert store.get_schema_version() == 1
            assert store.get("Runner", runner_key("infra", "runner-a")) is not None


class TestPutAndGet:
    """Tests for item writes and point reads."""

    def test_put_stamps_metadata(self, store: StateStore) -> None:
        """Test put sets created_at and updated_at from the clock."""
        saved = store.put(make_runner())

        assert saved.created_at == FIXED_NOW
        assert saved.updated_at == FIXED_NOW

    def test_put_preserves_created_at(self, store: StateStore, clock: FakeClock) -> None:
        """Test a second put keeps the original created_at."""
        saved = store.put(make_runner())
        later = clock.advance(minutes=5)

        updated = store.put(saved.model_copy(update={"status": RunnerStatus.BUSY}))

        assert updated.created_at == FIXED_NOW
        assert updated.updated_at == later

    def test_get_returns_typed_item(self, store: StateStore) -> None:
        """Test get round-trips a runner including its labels."""
        store.put(make_runner(labels=["self-hosted", "gpu", "self-hosted"]))

        loaded = store.get("Runner", runner_key("infra", "runner-a"))

        assert isinstance(loaded, Runner)
        assert loaded.status == RunnerStatus.IDLE
        assert loaded.labels == ("self-hosted", "gpu")
        assert loaded.last_seen_at == FIXED_NOW

    def test_get_missing_returns_none(self, store: StateStore) -> None:
        """Test get of an absent key."""
        assert store.get("Runner", runner_key("infra", "nope")) is None

    def test_get_other_type_returns_none(self, store: StateStore) -> None:
        """Test get does not return an item stored under another type."""
        store.put(make_runner())

        assert store.get("Repository", runner_key("infra", "runner-a")) is None

    def test_unknown_item_type(self, store: StateStore) -> None:
        """Test unregistered type names are rejected."""
        with pytest.raises(UnknownItemTypeError):
            store.get("Label", "/repo-infra")

        with pytest.raises(UnknownItemTypeError):
            store.create("Label", name="x")

    def test_create_returns_unsaved_item(self, store: StateStore) -> None:
        """Test create validates but does not persist."""
        repo = store.create("Repository", repo_id="infra", owner="acme", name="infra")

        assert isinstance(repo, Repository)
        assert repo.created_at is None
        assert store.get("Repository", "/repo-infra") is None

    def test_delete(self, store: StateStore) -> None:
        """Test delete removes the item and reports it."""
        store.put(make_runner())

        assert store.delete(runner_key("infra", "runner-a")) is True
        assert store.delete(runner_key("infra", "runner-a")) is False
        assert store.get("Runner", runner_key("infra", "runner-a")) is None


class TestSequences:
    """Tests for sequence id allocation."""

    def test_outage_ids_increase_per_runner(self, store: StateStore) -> None:
        """Test ids are allocated per runner history prefix."""
        first = store.put(make_outage(runner_id=7))
        second = store.put(make_outage(runner_id=7))
        other = store.put(make_outage(runner_id=8))

        assert first.outage_id == 1
        assert second.outage_id == 2
        assert other.outage_id == 1

    def test_update_keeps_outage_id(self, store: StateStore) -> None:
        """Test re-putting a stored outage does not allocate a new id."""
        outage = store.put(make_outage())

        resolved = store.put(outage.model_copy(update={"resolved_at": FIXED_NOW}))

        assert resolved.outage_id == outage.outage_id
        items = list(store.range_scan(outage_prefix("infra", 7)))
        assert len(items) == 1

    def test_unsaved_outage_has_no_key(self) -> None:
        """Test an outage without id cannot produce a key path."""
        with pytest.raises(ValueError, match="outage_id"):
            make_outage().key_path()


class TestRangeScan:
    """Tests for prefix scans."""

    def test_scan_is_scoped_to_prefix(self, store: StateStore) -> None:
        """Test runners of other repositories are not returned."""
        store.put(make_runner("a"))
        store.put(make_runner("b", runner_id=8))
        store.put(make_runner("c", runner_id=9, repo_id="infra-2"))

        names = [r.name for r in store.range_scan(runner_prefix("infra"))]

        assert names == ["a", "b"]

    def test_numeric_ordering(self, store: StateStore) -> None:
        """Test outage 10 sorts after outage 9."""
        for _ in range(11):
            store.put(make_outage())

        ascending = [o.outage_id for o in store.range_scan(outage_prefix("infra", 7))]
        descending = [
            o.outage_id
            for o in store.range_scan(
                outage_prefix("infra", 7), sort_direction=SortDirection.DESCENDING
            )
        ]

        assert ascending == list(range(1, 12))
        assert descending == list(range(11, 0, -1))

    def test_limit(self, store: StateStore) -> None:
        """Test limit caps the number of items."""
        for _ in range(4):
            store.put(make_outage())

        latest = list(
            store.range_scan(
                outage_prefix("infra", 7),
                limit=2,
                sort_direction=SortDirection.DESCENDING,
            )
        )

        assert [o.outage_id for o in latest] == [4, 3]


class TestExpiry:
    """Tests for TTL handling."""

    def test_outage_expires_after_retention(
        self, store: StateStore, clock: FakeClock
    ) -> None:
        """Test outages vanish 30 days after creation."""
        outage = store.put(make_outage())
        key = outage.key_path()

        clock.advance(days=29)
        assert store.get("OutageEvent", key) is not None

        clock.advance(days=1)
        assert store.get("OutageEvent", key) is None
        assert list(store.range_scan(outage_prefix("infra", 7))) == []

    def test_update_does_not_extend_retention(
        self, store: StateStore, clock: FakeClock
    ) -> None:
        """Test expiry counts from creation, not the last write."""
        outage = store.put(make_outage())
        clock.advance(days=20)
        store.put(outage.model_copy(update={"resolved_at": clock()}))

        clock.advance(days=10)

        assert store.get("OutageEvent", outage.key_path()) is None

    def test_runners_never_expire(self, store: StateStore, clock: FakeClock) -> None:
        """Test items without TTL stay visible."""
        store.put(make_runner())
        clock.advance(days=400)

        assert store.get("Runner", runner_key("infra", "runner-a")) is not None

    def test_purge_expired(self, store: StateStore, clock: FakeClock) -> None:
        """Test purge deletes only expired items."""
        store.put(make_runner())
        store.put(make_outage())
        clock.advance(days=31)
        store.put(make_outage())

        purged = store.purge_expired()

        assert purged == 1
        assert StoreMetrics.get_instance().items_expired_total == 1
        assert store.get_stats()["OutageEvent"] == 1
        assert store.get_stats()["Runner"] == 1


class TestPassLifecycle:
    """Tests for pass bookkeeping."""

    def test_begin_and_end_pass(self, store: StateStore, clock: FakeClock) -> None:
        """Test a pass is recorded from start to finish."""
        started = store.begin_pass("pass-1")
        finished_at = clock.advance(seconds=30)
        record = store.end_pass(
            "pass-1",
            success=True,
            error_summary="acme/web: RunnerFetchError",
            repositories_succeeded=2,
            repositories_failed=1,
        )

        assert started.finished_at is None
        assert record.started_at == FIXED_NOW
        assert record.finished_at == finished_at
        assert record.success is True
        assert record.repositories_succeeded == 2
        assert record.repositories_failed == 1
        assert record.error_summary == "acme/web: RunnerFetchError"

    def test_end_unknown_pass(self, store: StateStore) -> None:
        """Test ending a pass that was never begun."""
        with pytest.raises(PassNotFoundError):
            store.end_pass("missing", success=True)

    def test_last_successful_pass(self, store: StateStore, clock: FakeClock) -> None:
        """Test only successful passes count."""
        assert store.get_last_successful_pass_finished_at() is None

        store.begin_pass("ok")
        ok_finished = clock.advance(minutes=1)
        store.end_pass("ok", success=True)
        store.begin_pass("bad")
        clock.advance(minutes=5)
        store.end_pass("bad", success=False, error_summary="boom")

        assert store.get_last_successful_pass_finished_at() == ok_finished


class TestStats:
    """Tests for statistics."""

    def test_get_stats_counts_by_type(self, store: StateStore) -> None:
        """Test counts cover every registered type and passes."""
        store.put(make_runner())
        store.put(make_outage())
        store.begin_pass("p")

        stats = store.get_stats()

        assert stats == {"Repository": 0, "Runner": 1, "OutageEvent": 1, "passes": 1}

    def test_metrics_track_puts(self, store: StateStore) -> None:
        """Test put and delete counters."""
        store.put(make_runner())
        store.put(make_outage())
        store.delete(runner_key("infra", "runner-a"))

        metrics = StoreMetrics.get_instance()
        assert metrics.db_puts_total == {"Runner": 1, "OutageEvent": 1}
        assert metrics.db_deletes_total == 1
        assert metrics.db_tx_count >= 3
