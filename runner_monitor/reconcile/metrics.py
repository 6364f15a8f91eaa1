"""Metrics collection for reconciliation passes."""

from collections import Counter
from dataclasses import dataclass, field
from threading import Lock


_metrics_instance: "ReconcileMetrics | None" = None
_metrics_lock: Lock = Lock()


@dataclass
class ReconcileMetrics:
    """Thread-safe counters for runner reconciliation.

    Use get_instance() for singleton access.
    """

    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)

    runners_observed: Counter[str] = field(default_factory=Counter)
    runners_created: Counter[str] = field(default_factory=Counter)
    runners_swept: Counter[str] = field(default_factory=Counter)
    outages_opened: Counter[tuple[str, str]] = field(default_factory=Counter)
    outages_resolved: Counter[str] = field(default_factory=Counter)

    # Keyed by (kind, outcome): kind is alert/recovery, outcome sent/failed/skipped
    notifications: Counter[tuple[str, str]] = field(default_factory=Counter)

    repositories_succeeded: int = 0
    repositories_failed: int = 0
    invariant_violations: int = 0

    @classmethod
    def get_instance(cls) -> "ReconcileMetrics":
        """Get the singleton instance (thread-safe)."""
        global _metrics_instance  # noqa: PLW0603
        if _metrics_instance is None:
            with _metrics_lock:
                if _metrics_instance is None:
                    _metrics_instance = cls()
        return _metrics_instance

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton instance (for testing)."""
        global _metrics_instance  # noqa: PLW0603
        with _metrics_lock:
            _metrics_instance = None

    def record_observed(self, repo_id: str, count: int) -> None:
        """Record runners reported by the remote fetch."""
        with self._lock:
            self.runners_observed[repo_id] += count

    def record_created(self, repo_id: str) -> None:
        """Record a newly tracked runner."""
        with self._lock:
            self.runners_created[repo_id] += 1

    def record_swept(self, repo_id: str) -> None:
        """Record a runner demoted to UNKNOWN."""
        with self._lock:
            self.runners_swept[repo_id] += 1

    def record_outage_opened(self, repo_id: str, status: str) -> None:
        """Record an opened outage by triggering status."""
        with self._lock:
            self.outages_opened[(repo_id, status)] += 1

    def record_outage_resolved(self, repo_id: str) -> None:
        """Record a resolved outage."""
        with self._lock:
            self.outages_resolved[repo_id] += 1

    def record_notification(self, kind: str, outcome: str) -> None:
        """Record a dispatch outcome.

        Args:
            kind: ``alert`` or ``recovery``.
            outcome: ``sent``, ``failed`` or ``skipped``.
        """
        with self._lock:
            self.notifications[(kind, outcome)] += 1

    def record_repository(self, success: bool) -> None:
        """Record the outcome of one repository's reconciliation."""
        with self._lock:
            if success:
                self.repositories_succeeded += 1
            else:
                self.repositories_failed += 1

    def record_invariant_violation(self) -> None:
        """Record a detected second open outage."""
        with self._lock:
            self.invariant_violations += 1

    def to_dict(self) -> dict[str, object]:
        """Convert metrics to dictionary."""
        with self._lock:
            return {
                "runners_observed": dict(self.runners_observed),
                "runners_created": dict(self.runners_created),
                "runners_swept": dict(self.runners_swept),
                "outages_opened": {
                    f"{repo}:{status}": n
                    for (repo, status), n in sorted(self.outages_opened.items())
                },
                "outages_resolved": dict(self.outages_resolved),
                "notifications": {
                    f"{kind}:{outcome}": n
                    for (kind, outcome), n in sorted(self.notifications.items())
                },
                "repositories_succeeded": self.repositories_succeeded,
                "repositories_failed": self.repositories_failed,
                "invariant_violations": self.invariant_violations,
            }

    def to_prometheus_format(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []

        with self._lock:
            for metric, counter in (
                ("runners_observed_total", self.runners_observed),
                ("runners_created_total", self.runners_created),
                ("runners_swept_total", self.runners_swept),
                ("outages_resolved_total", self.outages_resolved),
            ):
                lines.append(f"# TYPE {metric} counter")
                for repo_id, count in sorted(counter.items()):
                    lines.append(f'{metric}{{repo_id="{repo_id}"}} {count}')

            lines.append("# HELP outages_opened_total Outages opened by status")
            lines.append("# TYPE outages_opened_total counter")
            for (repo_id, status), count in sorted(self.outages_opened.items()):
                lines.append(
                    f'outages_opened_total{{repo_id="{repo_id}",status="{status}"}} {count}'
                )

            lines.append("# HELP notifications_total Notification dispatch outcomes")
            lines.append("# TYPE notifications_total counter")
            for (kind, outcome), count in sorted(self.notifications.items()):
                lines.append(
                    f'notifications_total{{kind="{kind}",outcome="{outcome}"}} {count}'
                )

            lines.append("# TYPE repositories_total counter")
            lines.append(
                f'repositories_total{{outcome="succeeded"}} {self.repositories_succeeded}'
            )
            lines.append(
                f'repositories_total{{outcome="failed"}} {self.repositories_failed}'
            )
            lines.append("# TYPE invariant_violations_total counter")
            lines.append(f"invariant_violations_total {self.invariant_violations}")

        return "\n".join(lines)
