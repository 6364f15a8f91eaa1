"""HTTP fetch layer with retries and failure isolation."""

from runner_monitor.fetch.client import HttpFetcher
from runner_monitor.fetch.config import FetchConfig
from runner_monitor.fetch.metrics import FetchMetrics
from runner_monitor.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
    RetryPolicy,
)
from runner_monitor.fetch.redact import redact_headers, redact_url_credentials


__all__ = [
    "FetchConfig",
    "FetchError",
    "FetchErrorClass",
    "FetchMetrics",
    "FetchResult",
    "HttpFetcher",
    "ResponseSizeExceededError",
    "RetryPolicy",
    "redact_headers",
    "redact_url_credentials",
]
