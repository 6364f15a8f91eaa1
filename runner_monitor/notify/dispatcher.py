"""Notification dispatch to a Slack incoming webhook."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import structlog

from runner_monitor.fetch.client import HttpFetcher
from runner_monitor.fetch.redact import redact_url_credentials
from runner_monitor.notify.messages import build_alert_message, build_recovery_message
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.store.models import Runner, RunnerStatus


logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class NotificationDispatcher:
    """Sends alert and recovery messages.

    Each message is one POST with no retry. Delivery failures are logged and
    reported as ``False``; nothing is raised to the caller. When notifications
    are disabled or no webhook is configured, dispatch is a no-op returning
    ``False``.
    """

    def __init__(
        self,
        http_client: HttpFetcher,
        webhook_url: str | None,
        enabled: bool = True,
        pass_id: str = "",
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            http_client: HTTP fetcher used for the webhook POST.
            webhook_url: Slack incoming-webhook URL, or None.
            enabled: Global notification toggle.
            pass_id: Pass identifier for logging.
            clock: Source of the detection/recovery timestamp.
        """
        self._http = http_client
        self._webhook_url = webhook_url
        self._enabled = enabled
        self._clock = clock
        self._metrics = ReconcileMetrics.get_instance()
        self._log = logger.bind(component="notify", pass_id=pass_id)

    @property
    def is_active(self) -> bool:
        """Whether messages will actually be posted."""
        return self._enabled and bool(self._webhook_url)

    def send_alert(self, runner: Runner, status: RunnerStatus, outage_id: int) -> bool:
        """Announce that a runner entered an unhealthy status.

        Returns:
            True if the webhook accepted the message.
        """
        payload = build_alert_message(runner, status, outage_id, self._clock())
        return self._post("alert", runner, outage_id, payload)

    def send_recovery(
        self, runner: Runner, status: RunnerStatus, outage_id: int | None
    ) -> bool:
        """Announce that a runner became healthy again.

        Returns:
            True if the webhook accepted the message.
        """
        payload = build_recovery_message(runner, status, outage_id, self._clock())
        return self._post("recovery", runner, outage_id, payload)

    def _post(
        self,
        kind: str,
        runner: Runner,
        outage_id: int | None,
        payload: dict[str, Any],
    ) -> bool:
        log = self._log.bind(
            kind=kind,
            repo_id=runner.repo_id,
            runner=runner.name,
            outage_id=outage_id,
        )

        if not self._enabled or not self._webhook_url:
            self._metrics.record_notification(kind, "skipped")
            log.debug("notification_skipped", enabled=self._enabled)
            return False

        result = self._http.post_json(self._webhook_url, payload)
        if not result.is_success:
            self._metrics.record_notification(kind, "failed")
            log.warning(
                "notification_failed",
                webhook=redact_url_credentials(self._webhook_url),
                status_code=result.status_code,
                error=result.error.message if result.error else None,
            )
            return False

        self._metrics.record_notification(kind, "sent")
        log.info("notification_sent")
        return True
