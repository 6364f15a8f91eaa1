"""Metrics collection for the state store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for state store operations.

    Attributes:
        db_puts_total: Items written by item type.
        db_deletes_total: Items deleted.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of transactions.
        last_success_age_seconds: Age of the last successful pass in seconds.
        items_expired_total: Items purged because their TTL elapsed.
    """

    db_puts_total: dict[str, int] = field(default_factory=dict)
    db_deletes_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0
    last_success_age_seconds: float = 0.0
    items_expired_total: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_put(self, item_type: str) -> None:
        """Record an item write."""
        self.db_puts_total[item_type] = self.db_puts_total.get(item_type, 0) + 1

    def record_delete(self) -> None:
        """Record an item delete."""
        self.db_deletes_total += 1

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def record_last_success_age(self, age_seconds: float) -> None:
        """Record age of last successful pass."""
        self.last_success_age_seconds = age_seconds

    def record_items_expired(self, count: int) -> None:
        """Record items purged by TTL."""
        self.items_expired_total += count

    @property
    def avg_tx_duration_ms(self) -> float:
        """Average transaction duration in milliseconds."""
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        return {
            "db_puts_total": dict(self.db_puts_total),
            "db_deletes_total": self.db_deletes_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "last_success_age_seconds": self.last_success_age_seconds,
            "items_expired_total": self.items_expired_total,
        }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = [
            "# HELP db_puts_total Items written by item type",
            "# TYPE db_puts_total counter",
        ]
        for item_type, count in sorted(self.db_puts_total.items()):
            lines.append(f'db_puts_total{{item_type="{item_type}"}} {count}')
        lines.append("# HELP db_deletes_total Items deleted")
        lines.append("# TYPE db_deletes_total counter")
        lines.append(f"db_deletes_total {self.db_deletes_total}")
        lines.append("# HELP db_tx_duration_ms Average transaction duration")
        lines.append("# TYPE db_tx_duration_ms gauge")
        lines.append(f"db_tx_duration_ms {self.avg_tx_duration_ms:.2f}")
        lines.append("# HELP items_expired_total Items purged by TTL")
        lines.append("# TYPE items_expired_total counter")
        lines.append(f"items_expired_total {self.items_expired_total}")
        return "\n".join(lines)


@dataclass
class TransactionContext:
    """Context for a single transaction with timing."""

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count."""
        self.affected_rows += rows
