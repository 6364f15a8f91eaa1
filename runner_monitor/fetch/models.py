"""Result and retry models shared by the GitHub client and webhook delivery."""

import json
import random
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from runner_monitor.fetch.constants import HTTP_STATUS_OK_MAX, HTTP_STATUS_OK_MIN


class FetchErrorClass(str, Enum):
    """Why an outbound request did not produce a usable 2xx response."""

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    RATE_LIMITED = "RATE_LIMITED"
    UNKNOWN = "UNKNOWN"


TRANSIENT_ERROR_CLASSES = frozenset(
    {
        FetchErrorClass.NETWORK_TIMEOUT,
        FetchErrorClass.CONNECTION_ERROR,
        FetchErrorClass.HTTP_5XX,
        FetchErrorClass.RATE_LIMITED,
    }
)


class FetchError(BaseModel):
    """Classified failure of one request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass
    message: str = Field(min_length=1)
    status_code: int | None = None
    # Seconds from a 429 Retry-After header.
    retry_after: int | None = None

    @property
    def is_transient(self) -> bool:
        return self.error_class in TRANSIENT_ERROR_CLASSES


class FetchResult(BaseModel):
    """Outcome of a GET or POST.

    ``status_code`` is 0 when no HTTP response arrived at all (timeout,
    refused connection, oversized body).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    status_code: int = Field(ge=0, le=599)
    final_url: str = Field(min_length=1)
    headers: dict[str, str] = Field(default_factory=dict)
    body_bytes: bytes = b""
    error: FetchError | None = None

    @property
    def is_success(self) -> bool:
        return (
            self.error is None
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @property
    def body_size(self) -> int:
        return len(self.body_bytes)

    def json_body(self) -> Any:
        """Decode the body as UTF-8 JSON.

        Raises:
            ValueError: If the body is not valid JSON.
        """
        return json.loads(self.body_bytes.decode("utf-8"))


class RetryPolicy(BaseModel):
    """Exponential backoff for idempotent GETs.

    The delay before retry ``n`` (0-indexed) is
    ``min(base_delay_ms * exponential_base ** n, max_delay_ms)`` plus up to
    ``jitter_factor`` of random jitter.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(default=3, ge=0, le=10)
    base_delay_ms: int = Field(default=1000, ge=0, le=60000)
    max_delay_ms: int = Field(default=30000, ge=0, le=300000)
    exponential_base: float = Field(default=2.0, ge=1.0, le=5.0)
    jitter_factor: float = Field(default=0.1, ge=0.0, le=1.0)

    def should_retry(self, error: FetchError, attempt: int) -> bool:
        """Return True if ``attempt`` failed transiently and budget remains."""
        return attempt < self.max_retries and error.is_transient

    def get_delay_ms(self, attempt: int) -> int:
        delay = min(
            self.base_delay_ms * (self.exponential_base**attempt), self.max_delay_ms
        )
        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)


class ResponseSizeExceededError(Exception):
    """Raised while streaming a body that grows past the configured limit."""
