"""Counters for outbound HTTP traffic (GitHub API and chat webhooks)."""

from dataclasses import dataclass, field
from typing import ClassVar

from runner_monitor.fetch.models import FetchErrorClass


@dataclass
class FetchMetrics:
    """Process-wide outbound HTTP counters.

    Requests are keyed by ``(host, status)`` so GitHub API calls and webhook
    deliveries are reported separately.
    """

    http_requests_total: dict[tuple[str, int], int] = field(default_factory=dict)
    http_retry_total: int = 0
    http_failures_total: dict[str, int] = field(default_factory=dict)
    http_latency_ms_total: float = 0.0
    http_calls: int = 0

    _instance: ClassVar["FetchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FetchMetrics":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def record_request(self, host: str, status_code: int) -> None:
        key = (host, status_code)
        self.http_requests_total[key] = self.http_requests_total.get(key, 0) + 1

    def record_retry(self) -> None:
        self.http_retry_total += 1

    def record_failure(self, error_class: FetchErrorClass) -> None:
        key = error_class.value
        self.http_failures_total[key] = self.http_failures_total.get(key, 0) + 1

    def record_latency(self, latency_ms: float) -> None:
        """Record wall time of one logical call, retries and backoff included."""
        self.http_latency_ms_total += latency_ms
        self.http_calls += 1

    @property
    def avg_latency_ms(self) -> float:
        if self.http_calls == 0:
            return 0.0
        return self.http_latency_ms_total / self.http_calls

    def to_dict(self) -> dict[str, object]:
        return {
            "http_requests_total": {
                f"{host} {status}": count
                for (host, status), count in sorted(self.http_requests_total.items())
            },
            "http_retry_total": self.http_retry_total,
            "http_failures_total": dict(self.http_failures_total),
            "http_avg_latency_ms": round(self.avg_latency_ms, 2),
        }

    def to_prometheus_format(self) -> str:
        lines = [
            "# HELP http_requests_total Outbound HTTP responses by host and status",
            "# TYPE http_requests_total counter",
        ]
        for (host, status), count in sorted(self.http_requests_total.items()):
            lines.append(
                f'http_requests_total{{host="{host}",status="{status}"}} {count}'
            )
        lines.extend(
            [
                "# HELP http_retries_total GET retries after transient failures",
                "# TYPE http_retries_total counter",
                f"http_retries_total {self.http_retry_total}",
                "# HELP http_failures_total Final request failures by class",
                "# TYPE http_failures_total counter",
            ]
        )
        for error_class, count in sorted(self.http_failures_total.items()):
            lines.append(
                f'http_failures_total{{error_class="{error_class}"}} {count}'
            )
        lines.extend(
            [
                "# HELP http_latency_ms_avg Mean latency per logical call",
                "# TYPE http_latency_ms_avg gauge",
                f"http_latency_ms_avg {self.avg_latency_ms:.2f}",
            ]
        )
        return "\n".join(lines)
