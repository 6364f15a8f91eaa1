"""Outage lifecycle: opening and resolving OutageEvent records."""

from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from runner_monitor.reconcile.classifier import status_text
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.store.keys import outage_prefix
from runner_monitor.store.models import (
    OutageEvent,
    Runner,
    RunnerStatus,
    SortDirection,
)
from runner_monitor.store.store import StateStore


if TYPE_CHECKING:
    from runner_monitor.notify.dispatcher import NotificationDispatcher


logger = structlog.get_logger()


class OutageLifecycleManager:
    """Opens and resolves outages for runners.

    At most one outage per runner is open at a time. This holds because
    outages are only opened on a healthy to unhealthy transition and only the
    most recent record is ever resolved; storage does not enforce it. A
    second open record seen while resolving is logged as an invariant
    violation and left untouched.
    """

    def __init__(
        self,
        store: StateStore,
        dispatcher: "NotificationDispatcher",
        clock: Callable[[], datetime],
        pass_id: str = "",
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._clock = clock
        self._metrics = ReconcileMetrics.get_instance()
        self._log = logger.bind(component="outages", pass_id=pass_id)

    def open(self, runner: Runner, status: RunnerStatus) -> OutageEvent:
        """Record a new outage and send the alert.

        The outage is persisted with ``notification_sent=False`` before
        dispatch. It is flipped to True only after the webhook accepted the
        alert. A failed alert is not retried.

        Args:
            runner: Runner that became unhealthy.
            status: The unhealthy status.

        Returns:
            The stored outage.
        """
        outage = self._store.put(
            OutageEvent(
                repo_id=runner.repo_id,
                runner_id=runner.runner_id,
                runner_name=runner.name,
                status=status,
                started_at=self._clock(),
                description=f"Runner {runner.name} entered {status_text(status)} state",
                notification_sent=False,
            )
        )
        self._metrics.record_outage_opened(runner.repo_id, status.name)
        self._log.info(
            "outage_opened",
            repo_id=runner.repo_id,
            runner=runner.name,
            runner_id=runner.runner_id,
            outage_id=outage.outage_id,
            status=status.name,
        )

        if outage.outage_id is not None and self._dispatcher.send_alert(
            runner, status, outage.outage_id
        ):
            outage = self._store.put(outage.model_copy(update={"notification_sent": True}))

        return outage

    def resolve(self, repo_id: str, runner_id: int) -> int | None:
        """Resolve the runner's most recent outage if it is still open.

        Args:
            repo_id: Repository identifier.
            runner_id: Runner identifier.

        Returns:
            The resolved outage id, or None if the most recent outage was
            already resolved or none exists.
        """
        log = self._log.bind(repo_id=repo_id, runner_id=runner_id)
        recent = [
            item
            for item in self._store.range_scan(
                outage_prefix(repo_id, runner_id),
                limit=2,
                sort_direction=SortDirection.DESCENDING,
            )
            if isinstance(item, OutageEvent)
        ]

        if not recent or not recent[0].is_open:
            log.debug("no_open_outage")
            return None

        latest = recent[0]
        if len(recent) > 1 and recent[1].is_open:
            self._metrics.record_invariant_violation()
            log.error(
                "invariant_violation",
                invariant="at_most_one_open_outage",
                outage_id=latest.outage_id,
                older_open_outage_id=recent[1].outage_id,
            )

        now = self._clock()
        resolved = self._store.put(latest.model_copy(update={"resolved_at": now}))
        self._metrics.record_outage_resolved(repo_id)
        log.info(
            "outage_resolved",
            outage_id=resolved.outage_id,
            duration_seconds=round((now - latest.started_at).total_seconds(), 1),
        )
        return resolved.outage_id
