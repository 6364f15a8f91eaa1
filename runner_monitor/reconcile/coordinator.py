"""Top-level driver for one reconciliation pass."""

import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from runner_monitor.config.schemas import RepositoryConfig
from runner_monitor.github.client import GitHubRunnerClient
from runner_monitor.github.errors import RunnerFetchError
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.reconcile.models import (
    PassResult,
    RepositoryFailure,
    RepositorySyncResult,
)
from runner_monitor.reconcile.outages import OutageLifecycleManager
from runner_monitor.reconcile.reconciler import RunnerReconciler
from runner_monitor.store.store import StateStore


if TYPE_CHECKING:
    from runner_monitor.notify.dispatcher import NotificationDispatcher


logger = structlog.get_logger()


def _utc_now() -> datetime:
    return datetime.now(UTC)


class SyncCoordinator:
    """Runs one pass over every configured repository.

    Repositories are processed one after another. A failure in one repository
    is logged and counted; the next repository is still processed. All
    collaborators are injected.
    """

    def __init__(
        self,
        store: StateStore,
        runner_client: GitHubRunnerClient,
        dispatcher: "NotificationDispatcher",
        clock: Callable[[], datetime] = _utc_now,
        pass_id: str | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: Connected state store.
            runner_client: GitHub runners client.
            dispatcher: Notification dispatcher.
            clock: Source of the current time.
            pass_id: Pass identifier (generated if not provided).
        """
        self._store = store
        self._clock = clock
        self._pass_id = pass_id or str(uuid.uuid4())
        self._metrics = ReconcileMetrics.get_instance()
        self._log = logger.bind(component="coordinator", pass_id=self._pass_id)

        outages = OutageLifecycleManager(store, dispatcher, clock, self._pass_id)
        self._reconciler = RunnerReconciler(
            store,
            runner_client,
            outages,
            dispatcher,
            clock,
            self._pass_id,
        )

    @property
    def pass_id(self) -> str:
        """Get the pass identifier."""
        return self._pass_id

    def run(self, repositories: Sequence[RepositoryConfig]) -> PassResult:
        """Execute one reconciliation pass.

        Expired outage records are purged before any repository is processed.

        Args:
            repositories: Repositories to reconcile; disabled ones are skipped.

        Returns:
            Per-repository results and failures.

        Raises:
            StateStoreError: If pass bookkeeping cannot be written.
        """
        started_at = self._clock()
        purged = self._store.purge_expired()
        self._store.begin_pass(self._pass_id)
        self._log.info("pass_started", repositories=len(repositories))

        results: list[RepositorySyncResult] = []
        failures: list[RepositoryFailure] = []

        for repo in repositories:
            if not repo.enabled:
                self._log.info("repository_skipped", repository=repo.slug)
                continue

            try:
                results.append(self._reconciler.reconcile(repo))
            except RunnerFetchError as e:
                failures.append(self._record_failure(repo, e))
                self._log.warning(
                    "repository_failed",
                    repository=repo.slug,
                    error=str(e),
                    status_code=e.status_code,
                )
            except Exception as e:  # noqa: BLE001
                failures.append(self._record_failure(repo, e))
                self._log.exception(
                    "repository_failed",
                    repository=repo.slug,
                    error=str(e),
                )
            else:
                self._metrics.record_repository(success=True)

        result = PassResult(
            pass_id=self._pass_id,
            started_at=started_at,
            finished_at=self._clock(),
            repositories=tuple(results),
            failures=tuple(failures),
            expired_items_purged=purged,
        )
        self._store.end_pass(
            self._pass_id,
            success=True,
            error_summary=result.error_summary,
            repositories_succeeded=result.succeeded,
            repositories_failed=result.failed,
        )
        self._log.info(
            "pass_complete",
            repositories_succeeded=result.succeeded,
            repositories_failed=result.failed,
            expired_items_purged=purged,
        )
        return result

    def _record_failure(self, repo: RepositoryConfig, error: Exception) -> RepositoryFailure:
        self._metrics.record_repository(success=False)
        return RepositoryFailure(
            slug=repo.slug,
            error_type=type(error).__name__,
            message=str(error),
        )
