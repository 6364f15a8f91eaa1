"""Unit tests for webhook notification dispatch."""

import json

import httpx
import pytest

from runner_monitor.fetch.client import HttpFetcher
from runner_monitor.fetch.config import FetchConfig
from runner_monitor.fetch.metrics import FetchMetrics
from runner_monitor.notify.dispatcher import NotificationDispatcher
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.store.models import Runner, RunnerStatus
from tests.helpers.time import FIXED_NOW, FakeClock


WEBHOOK = "https://hooks.slack.com/services/T000/B000/secret"

RUNNER = Runner(
    runner_id=8,
    repo_id="infra",
    name="builder-8",
    status=RunnerStatus.OFFLINE,
    first_seen_at=FIXED_NOW,
    last_seen_at=FIXED_NOW,
)


@pytest.fixture(autouse=True)
def reset_metrics() -> None:
    """Start every test with empty counters."""
    ReconcileMetrics.reset()
    FetchMetrics.reset()


class RecordingWebhook:
    """MockTransport handler that stores posted payloads."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.payloads: list[dict] = []
        self.urls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, text="ok")


def make_dispatcher(
    webhook: RecordingWebhook,
    webhook_url: str | None = WEBHOOK,
    enabled: bool = True,
) -> NotificationDispatcher:
    fetcher = HttpFetcher(FetchConfig(), transport=httpx.MockTransport(webhook))
    return NotificationDispatcher(
        fetcher, webhook_url, enabled=enabled, pass_id="test", clock=FakeClock()
    )


class TestSend:
    """Tests for delivered messages."""

    def test_alert_delivered(self) -> None:
        """Test an alert is posted once and reported as delivered."""
        webhook = RecordingWebhook()
        dispatcher = make_dispatcher(webhook)

        assert dispatcher.send_alert(RUNNER, RunnerStatus.OFFLINE, 5) is True
        assert webhook.urls == [WEBHOOK]
        assert "*Outage ID:*\n5" in json.dumps(webhook.payloads[0])
        assert ReconcileMetrics.get_instance().notifications[("alert", "sent")] == 1

    def test_recovery_delivered(self) -> None:
        """Test a recovery is posted."""
        webhook = RecordingWebhook()

        assert make_dispatcher(webhook).send_recovery(RUNNER, RunnerStatus.IDLE, None)
        assert webhook.payloads[0]["text"].endswith("GitHub Runner Recovery")

    def test_rejected_delivery(self) -> None:
        """Test a non-2xx webhook response is a failed send, not an exception."""
        webhook = RecordingWebhook(status_code=500)
        dispatcher = make_dispatcher(webhook)

        assert dispatcher.send_alert(RUNNER, RunnerStatus.OFFLINE, 5) is False
        assert len(webhook.payloads) == 1
        assert ReconcileMetrics.get_instance().notifications[("alert", "failed")] == 1


class TestSkip:
    """Tests for suppressed dispatch."""

    def test_no_webhook(self) -> None:
        """Test dispatch without a webhook is skipped."""
        webhook = RecordingWebhook()
        dispatcher = make_dispatcher(webhook, webhook_url=None)

        assert dispatcher.is_active is False
        assert dispatcher.send_alert(RUNNER, RunnerStatus.OFFLINE, 5) is False
        assert webhook.payloads == []
        assert ReconcileMetrics.get_instance().notifications[("alert", "skipped")] == 1

    def test_disabled(self) -> None:
        """Test the global toggle suppresses dispatch."""
        webhook = RecordingWebhook()
        dispatcher = make_dispatcher(webhook, enabled=False)

        assert dispatcher.send_recovery(RUNNER, RunnerStatus.IDLE, 1) is False
        assert webhook.payloads == []
