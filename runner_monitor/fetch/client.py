"""HTTP client with retries and failure isolation."""

import time
from collections.abc import Callable
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from io import BytesIO
from typing import Any

import httpx
import structlog

from runner_monitor.fetch.config import FetchConfig
from runner_monitor.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    MAX_RETRY_AFTER_SECONDS,
)
from runner_monitor.fetch.metrics import FetchMetrics
from runner_monitor.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)
from runner_monitor.fetch.redact import redact_headers, redact_url_credentials


logger = structlog.get_logger()


class HttpFetcher:
    """HTTP client with retries and failure isolation.

    Provides:
    - GET with configurable retry policy and exponential backoff
    - Single-attempt JSON POST (webhook delivery is never retried)
    - Maximum response size enforcement
    - Header and URL redaction for logging
    - Metrics collection

    Errors are never raised; they are returned as ``FetchResult.error``.
    """

    def __init__(
        self,
        config: FetchConfig,
        pass_id: str = "",
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration.
            pass_id: Pass identifier for logging.
            transport: Optional httpx transport (tests inject a MockTransport).
            sleep: Sleep function used between retries.
        """
        self._config = config
        self._transport = transport
        self._sleep = sleep
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch", pass_id=pass_id)

    def get(
        self,
        url: str,
        extra_headers: dict[str, str] | None = None,
        params: dict[str, str | int] | None = None,
    ) -> FetchResult:
        """GET a URL with retry support.

        Args:
            url: The URL to fetch.
            extra_headers: Additional headers to include.
            params: Query parameters.

        Returns:
            FetchResult with status, body, and error information.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(method="GET", url=redact_url_credentials(url))
        headers = self._build_headers(extra_headers)
        log.debug("fetch_started", headers=redact_headers(headers))

        result = self._execute_with_retry(
            lambda client: client.get(url, headers=headers, params=params),
            method="GET",
            url=url,
            log=log,
        )

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_latency(duration_ms)
        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        extra_headers: dict[str, str] | None = None,
    ) -> FetchResult:
        """POST a JSON payload exactly once.

        Args:
            url: Target URL.
            payload: JSON-serializable body.
            extra_headers: Additional headers to include.

        Returns:
            FetchResult describing the single attempt.
        """
        start_time_ns = time.perf_counter_ns()
        log = self._log.bind(method="POST", url=redact_url_credentials(url))
        headers = self._build_headers(extra_headers)

        result = self._execute_single(
            lambda client: client.post(url, headers=headers, json=payload),
            method="POST",
            url=url,
            log=log,
            attempt=0,
        )
        if result.error:
            self._metrics.record_failure(result.error.error_class)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_latency(duration_ms)
        log.info(
            "post_complete",
            status_code=result.status_code,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def _build_headers(self, extra_headers: dict[str, str] | None) -> dict[str, str]:
        """Build request headers.

        Args:
            extra_headers: Additional headers from caller.

        Returns:
            Complete headers dictionary.
        """
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": "*/*",
            "Accept-Encoding": "gzip, deflate",
        }
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _execute_with_retry(
        self,
        send: Callable[[httpx.Client], httpx.Response],
        method: str,
        url: str,
        log: structlog.stdlib.BoundLogger,
    ) -> FetchResult:
        """Execute request with retry logic.

        Args:
            send: Callable issuing the request on a client.
            method: HTTP method (for metrics).
            url: Request URL (for results without a response).
            log: Bound logger.

        Returns:
            FetchResult from the last attempt.
        """
        policy = self._config.retry_policy
        last_error: FetchError | None = None

        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                delay_ms = policy.get_delay_ms(attempt - 1)
                self._metrics.record_retry()
                log.debug(
                    "retry_attempt",
                    attempt=attempt,
                    delay_ms=delay_ms,
                    max_retries=policy.max_retries,
                )
                self._sleep(delay_ms / 1000.0)

            result = self._execute_single(
                send, method=method, url=url, log=log, attempt=attempt
            )

            if result.error is None or not policy.should_retry(result.error, attempt):
                if result.error is not None:
                    self._metrics.record_failure(result.error.error_class)
                return result

            last_error = result.error

            if result.error.error_class == FetchErrorClass.RATE_LIMITED:
                retry_after = result.error.retry_after
                if retry_after and retry_after > 0:
                    log.info(
                        "rate_limited",
                        retry_after=retry_after,
                        attempt=attempt,
                    )
                    self._sleep(min(retry_after, MAX_RETRY_AFTER_SECONDS))

        # All retries exhausted
        self._metrics.record_failure(
            last_error.error_class if last_error else FetchErrorClass.UNKNOWN
        )
        return FetchResult(
            status_code=(last_error.status_code or 0) if last_error else 0,
            final_url=url,
            headers={},
            body_bytes=b"",
            error=last_error,
        )

    def _execute_single(
        self,
        send: Callable[[httpx.Client], httpx.Response],
        method: str,
        url: str,
        log: structlog.stdlib.BoundLogger,
        attempt: int,
    ) -> FetchResult:
        """Execute a single HTTP request.

        Args:
            send: Callable issuing the request on a client.
            method: HTTP method (for metrics).
            url: Request URL.
            log: Bound logger.
            attempt: Current attempt number.

        Returns:
            FetchResult from the request.
        """
        log = log.bind(attempt=attempt)

        try:
            with httpx.Client(
                timeout=self._config.default_timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = send(client)
                body = self._read_body_with_limit(response)
                self._metrics.record_request(response.url.host, response.status_code)

                return FetchResult(
                    status_code=response.status_code,
                    final_url=str(response.url),
                    headers=dict(response.headers),
                    body_bytes=body,
                    error=self._classify_http_error(
                        response.status_code, response.headers
                    ),
                )

        except ResponseSizeExceededError as e:
            return self._error_result(url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e))

        except httpx.TimeoutException as e:
            return self._error_result(
                url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}"
            )

        except httpx.ConnectError as e:
            return self._error_result(
                url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}"
            )

        except Exception as e:  # noqa: BLE001
            log.warning("request_unexpected_error", error=str(e))
            return self._error_result(
                url, FetchErrorClass.UNKNOWN, f"Unexpected error: {e}"
            )

    def _error_result(
        self, url: str, error_class: FetchErrorClass, message: str
    ) -> FetchResult:
        """Build a FetchResult for a request that produced no usable response."""
        return FetchResult(
            status_code=0,
            final_url=url,
            headers={},
            body_bytes=b"",
            error=FetchError(error_class=error_class, message=message),
        )

    def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()

    def _classify_http_error(
        self,
        status_code: int,
        headers: httpx.Headers,
    ) -> FetchError | None:
        """Classify HTTP status code as error.

        Args:
            status_code: HTTP status code.
            headers: Response headers.

        Returns:
            FetchError if status indicates error, None otherwise.
        """
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
            return FetchError(
                error_class=FetchErrorClass.RATE_LIMITED,
                message="Rate limited (429 Too Many Requests)",
                status_code=status_code,
                retry_after=self._parse_retry_after(headers.get("retry-after")),
            )

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return None

    def _parse_retry_after(self, value: str | None) -> int | None:
        """Parse Retry-After header value.

        Args:
            value: Header value (seconds or HTTP date).

        Returns:
            Seconds to wait, or None if not parseable.
        """
        if not value:
            return None

        try:
            return int(value)
        except ValueError:
            pass

        try:
            dt = parsedate_to_datetime(value)
            delta = dt - datetime.now(UTC)
            return max(0, int(delta.total_seconds()))
        except (ValueError, TypeError):
            pass

        return None
