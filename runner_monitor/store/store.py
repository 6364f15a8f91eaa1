"""SQLite state store implementation."""

import sqlite3
import time
import uuid
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TypeVar

import structlog

from runner_monitor.store.errors import (
    ConnectionError as StoreConnectionError,
    PassNotFoundError,
    UnknownItemTypeError,
)
from runner_monitor.store.keys import sort_key
from runner_monitor.store.metrics import StoreMetrics, TransactionContext
from runner_monitor.store.migrations import CURRENT_VERSION, MigrationManager
from runner_monitor.store.models import (
    ITEM_TYPES,
    PassRecord,
    SortDirection,
    StoredItem,
)


logger = structlog.get_logger()

_ItemT = TypeVar("_ItemT", bound=StoredItem)


def _utc_now() -> datetime:
    return datetime.now(UTC)


def _encode_ts(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _decode_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class StateStore:
    """SQLite key-path item store for repositories, runners and outages.

    Items live under hierarchical key paths and are ordered by key, with
    numeric key components compared numerically. Every write commits on its
    own; there is no cross-key transaction. Items with a TTL stop being
    visible once expired and are deleted by ``purge_expired``.
    """

    def __init__(
        self,
        db_path: Path | str,
        pass_id: str | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the state store.

        Args:
            db_path: Path to SQLite database file.
            pass_id: Optional pass ID for logging context.
            clock: Source of the current time.
        """
        self._db_path = Path(db_path) if isinstance(db_path, str) else db_path
        self._pass_id = pass_id or str(uuid.uuid4())
        self._clock = clock
        self._conn: sqlite3.Connection | None = None
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            pass_id=self._pass_id,
            db_path=str(self._db_path),
        )

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def is_connected(self) -> bool:
        """Check if connected to database."""
        return self._conn is not None

    def connect(self) -> None:
        """Open connection to database and apply migrations.

        Creates the database file and parent directories if they don't exist.
        """
        if self._conn is not None:
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._log.info("connecting_to_database")

        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        migration_mgr = MigrationManager(self._conn)
        old_version = migration_mgr.get_current_version()
        applied = migration_mgr.apply_migrations()

        self._log.info(
            "database_connected",
            old_version=old_version,
            new_version=CURRENT_VERSION,
            migrations_applied=applied,
        )

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            self._log.info("database_closed")

    def __enter__(self) -> "StateStore":
        self.connect()
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        self.close()

    def _ensure_connected(self) -> sqlite3.Connection:
        """Ensure database is connected.

        Returns:
            The database connection.

        Raises:
            StoreConnectionError: If not connected.
        """
        if self._conn is None:
            raise StoreConnectionError("Database not connected. Call connect() first.")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Generator[TransactionContext]:
        """Context manager for transactions with timing and logging.

        Args:
            operation: Name of the operation for logging.

        Yields:
            Transaction context with timing information.
        """
        conn = self._ensure_connected()
        tx_id = str(uuid.uuid4())[:8]
        start_ns = time.perf_counter_ns()
        ctx = TransactionContext(tx_id=tx_id, start_time_ns=start_ns, operation=operation)

        try:
            yield ctx
            conn.commit()
        except Exception:
            conn.rollback()
            duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
            self._log.error(
                "transaction_failed",
                tx_id=tx_id,
                op=operation,
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._metrics.record_tx_duration(duration_ms)
        self._log.debug(
            "transaction_complete",
            tx_id=tx_id,
            op=operation,
            affected_rows=ctx.affected_rows,
            duration_ms=round(duration_ms, 2),
        )

    # ===== Item Operations =====

    @staticmethod
    def _resolve_type(item_type: str) -> type[StoredItem]:
        model = ITEM_TYPES.get(item_type)
        if model is None:
            raise UnknownItemTypeError(item_type)
        return model

    def _decode_row(self, row: sqlite3.Row) -> StoredItem:
        model = self._resolve_type(row["item_type"])
        return model.model_validate_json(row["data"])

    def create(self, item_type: str, **fields: Any) -> StoredItem:
        """Build an unsaved item of a registered type.

        Args:
            item_type: Registered item type name, e.g. ``"Runner"``.
            **fields: Field values for the model.

        Returns:
            The validated, unsaved item.

        Raises:
            UnknownItemTypeError: If the type is not registered.
        """
        return self._resolve_type(item_type)(**fields)

    def get(self, item_type: str, key: str) -> StoredItem | None:
        """Get a live item by key path.

        Args:
            item_type: Expected item type name.
            key: Item key path.

        Returns:
            The item, or None if missing, expired, or of another type.
        """
        self._resolve_type(item_type)
        conn = self._ensure_connected()
        row = conn.execute(
            """
            SELECT item_type, data FROM items
            WHERE key_path = ? AND item_type = ?
              AND (expires_at IS NULL OR expires_at > ?)
            """,
            (key, item_type, _encode_ts(self._clock())),
        ).fetchone()
        if row is None:
            return None
        return self._decode_row(row)

    def put(self, item: _ItemT) -> _ItemT:
        """Insert or replace an item.

        Allocates the sequence id on first put, keeps ``created_at`` of an
        existing record, stamps ``updated_at`` and the TTL expiry.

        Args:
            item: Item to persist.

        Returns:
            The item as stored.
        """
        now = self._clock()
        with self._transaction("put") as ctx:
            conn = self._ensure_connected()
            updates: dict[str, Any] = {}

            sequence_field = item.SEQUENCE_FIELD
            if sequence_field is not None and getattr(item, sequence_field) is None:
                updates[sequence_field] = self._next_sequence_value(
                    conn, item.sequence_prefix()
                )
            item = item.model_copy(update=updates)
            key = item.key_path()

            row = conn.execute(
                "SELECT created_at FROM items WHERE key_path = ?", (key,)
            ).fetchone()
            created_at = _decode_ts(row["created_at"]) if row else None
            if created_at is None:
                created_at = item.created_at or now
            item = item.model_copy(update={"created_at": created_at, "updated_at": now})

            expires_at = _encode_ts(created_at + item.TTL) if item.TTL else None
            conn.execute(
                """
                INSERT OR REPLACE INTO items (
                    key_path, item_type, sort_key, data,
                    created_at, updated_at, expires_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    key,
                    item.ITEM_TYPE,
                    sort_key(key),
                    item.model_dump_json(),
                    _encode_ts(created_at),
                    _encode_ts(now),
                    expires_at,
                ),
            )
            ctx.add_affected_rows(1)

        self._metrics.record_put(item.ITEM_TYPE)
        return item

    def _next_sequence_value(self, conn: sqlite3.Connection, prefix: str) -> int:
        conn.execute(
            """
            INSERT INTO sequences (prefix, last_value) VALUES (?, 1)
            ON CONFLICT(prefix) DO UPDATE SET last_value = last_value + 1
            """,
            (prefix,),
        )
        row = conn.execute(
            "SELECT last_value FROM sequences WHERE prefix = ?", (prefix,)
        ).fetchone()
        return int(row["last_value"])

    def delete(self, key: str) -> bool:
        """Delete an item by key path.

        Args:
            key: Item key path.

        Returns:
            True if an item was deleted.
        """
        with self._transaction("delete") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute("DELETE FROM items WHERE key_path = ?", (key,))
            ctx.add_affected_rows(cursor.rowcount)

        if cursor.rowcount:
            self._metrics.record_delete()
        return cursor.rowcount > 0

    def range_scan(
        self,
        prefix: str,
        limit: int | None = None,
        sort_direction: SortDirection = SortDirection.ASCENDING,
    ) -> Generator[StoredItem]:
        """Iterate live items whose key path starts with ``prefix``.

        The generator reads lazily from an open cursor; materialize it with
        ``list()`` before writing to the store.

        Args:
            prefix: Key path prefix.
            limit: Maximum number of items to yield.
            sort_direction: Key ordering.

        Yields:
            Typed items in key order.
        """
        conn = self._ensure_connected()
        order = "DESC" if sort_direction == SortDirection.DESCENDING else "ASC"
        sql = f"""
            SELECT item_type, data FROM items
            WHERE substr(key_path, 1, ?) = ?
              AND (expires_at IS NULL OR expires_at > ?)
            ORDER BY sort_key {order}
        """  # noqa: S608
        params: list[Any] = [len(prefix), prefix, _encode_ts(self._clock())]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)

        for row in conn.execute(sql, params):
            yield self._decode_row(row)

    def purge_expired(self) -> int:
        """Delete items whose TTL has elapsed.

        Returns:
            Number of items purged.
        """
        with self._transaction("purge_expired") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                "DELETE FROM items WHERE expires_at IS NOT NULL AND expires_at <= ?",
                (_encode_ts(self._clock()),),
            )
            purged = cursor.rowcount
            ctx.add_affected_rows(purged)

        self._metrics.record_items_expired(purged)
        self._log.info("items_expired", count=purged)
        return purged

    # ===== Pass Lifecycle =====

    def begin_pass(self, pass_id: str | None = None) -> PassRecord:
        """Record the start of a reconciliation pass.

        Args:
            pass_id: Optional pass ID (defaults to the store's pass ID).

        Returns:
            The created PassRecord.
        """
        pass_id = pass_id or self._pass_id
        now = self._clock()

        with self._transaction("begin_pass") as ctx:
            conn = self._ensure_connected()
            conn.execute(
                "INSERT INTO passes (pass_id, started_at) VALUES (?, ?)",
                (pass_id, _encode_ts(now)),
            )
            ctx.add_affected_rows(1)

        return PassRecord(pass_id=pass_id, started_at=now)

    def end_pass(
        self,
        pass_id: str,
        success: bool,
        error_summary: str | None = None,
        repositories_succeeded: int = 0,
        repositories_failed: int = 0,
    ) -> PassRecord:
        """Record the end of a reconciliation pass.

        Args:
            pass_id: The pass ID to end.
            success: Whether the pass succeeded.
            error_summary: Optional error summary if failed.
            repositories_succeeded: Repositories reconciled without error.
            repositories_failed: Repositories that raised during reconcile.

        Returns:
            The updated PassRecord.

        Raises:
            PassNotFoundError: If the pass was never begun.
        """
        now = self._clock()

        with self._transaction("end_pass") as ctx:
            conn = self._ensure_connected()
            cursor = conn.execute(
                """
                UPDATE passes
                SET finished_at = ?, success = ?, error_summary = ?,
                    repositories_succeeded = ?, repositories_failed = ?
                WHERE pass_id = ?
                """,
                (
                    _encode_ts(now),
                    1 if success else 0,
                    error_summary,
                    repositories_succeeded,
                    repositories_failed,
                    pass_id,
                ),
            )
            ctx.add_affected_rows(cursor.rowcount)

        record = self.get_pass(pass_id)
        if record is None:
            raise PassNotFoundError(pass_id)
        return record

    def get_pass(self, pass_id: str) -> PassRecord | None:
        """Get a pass record by ID."""
        conn = self._ensure_connected()
        row = conn.execute("SELECT * FROM passes WHERE pass_id = ?", (pass_id,)).fetchone()
        if row is None:
            return None

        return PassRecord(
            pass_id=row["pass_id"],
            started_at=datetime.fromisoformat(row["started_at"]),
            finished_at=_decode_ts(row["finished_at"]),
            success=bool(row["success"]) if row["success"] is not None else None,
            error_summary=row["error_summary"],
            repositories_succeeded=row["repositories_succeeded"],
            repositories_failed=row["repositories_failed"],
        )

    def get_last_successful_pass_finished_at(self) -> datetime | None:
        """Get the finish time of the last successful pass.

        Returns:
            The finish timestamp, or None if no pass has succeeded.
        """
        conn = self._ensure_connected()
        row = conn.execute(
            """
            SELECT finished_at FROM passes
            WHERE success = 1 AND finished_at IS NOT NULL
            ORDER BY finished_at DESC
            LIMIT 1
            """
        ).fetchone()
        if row is None:
            return None

        finished_at = datetime.fromisoformat(row["finished_at"])
        age_seconds = (self._clock() - finished_at).total_seconds()
        self._metrics.record_last_success_age(age_seconds)
        return finished_at

    # ===== Stats =====

    def get_stats(self) -> dict[str, int]:
        """Get item counts by type plus the number of recorded passes.

        Returns:
            Dictionary mapping item type (and ``passes``) to row count.
        """
        conn = self._ensure_connected()
        stats: dict[str, int] = dict.fromkeys(ITEM_TYPES, 0)
        for row in conn.execute(
            "SELECT item_type, COUNT(*) AS n FROM items GROUP BY item_type"
        ):
            stats[row["item_type"]] = row["n"]
        stats["passes"] = conn.execute("SELECT COUNT(*) FROM passes").fetchone()[0]
        return stats

    def get_schema_version(self) -> int:
        """Get current schema version."""
        return MigrationManager(self._ensure_connected()).get_current_version()
