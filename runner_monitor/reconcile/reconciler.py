"""Runner reconciliation: diff the remote runner set against stored state."""

from collections import Counter
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

import structlog

from runner_monitor.config.schemas import RepositoryConfig
from runner_monitor.github.client import GitHubRunnerClient
from runner_monitor.github.models import RemoteRunner
from runner_monitor.reconcile.classifier import classify, is_unhealthy
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.reconcile.models import RepositorySyncResult
from runner_monitor.reconcile.outages import OutageLifecycleManager
from runner_monitor.reconcile.state_machine import RepositorySyncStateMachine
from runner_monitor.store.keys import repository_key, runner_key, runner_prefix
from runner_monitor.store.models import Repository, Runner, RunnerStatus
from runner_monitor.store.store import StateStore


if TYPE_CHECKING:
    from runner_monitor.notify.dispatcher import NotificationDispatcher


logger = structlog.get_logger()


class RunnerReconciler:
    """Brings one repository's stored runners in line with GitHub.

    Runs in two phases. The diff phase applies every remote runner to its
    stored record, matched by runner id. The sweep phase then demotes stored
    runners that GitHub no longer reports to UNKNOWN. Outages are opened on
    healthy to unhealthy transitions and resolved on the way back.
    """

    def __init__(
        self,
        store: StateStore,
        runner_client: GitHubRunnerClient,
        outages: OutageLifecycleManager,
        dispatcher: "NotificationDispatcher",
        clock: Callable[[], datetime],
        pass_id: str = "",
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: State store.
            runner_client: Source of the remote runner set.
            outages: Outage lifecycle manager.
            dispatcher: Notification dispatcher for recovery messages.
            clock: Source of the current time.
            pass_id: Pass identifier for logging.
        """
        self._store = store
        self._runner_client = runner_client
        self._outages = outages
        self._dispatcher = dispatcher
        self._clock = clock
        self._pass_id = pass_id
        self._metrics = ReconcileMetrics.get_instance()
        self._log = logger.bind(component="reconciler", pass_id=pass_id)

    def reconcile(self, repo: RepositoryConfig) -> RepositorySyncResult:
        """Reconcile one repository.

        Args:
            repo: Repository to reconcile.

        Returns:
            Counts of what changed.

        Raises:
            RunnerFetchError: If the remote runner set cannot be fetched.
            StateStoreError: If the store fails.
        """
        log = self._log.bind(repo_id=repo.repo_id, repository=repo.slug)
        state_machine = RepositorySyncStateMachine(repo.repo_id, self._pass_id)
        counts: Counter[str] = Counter()

        try:
            state_machine.to_fetching()
            self._touch_repository(repo)
            remote = self._runner_client.list_runners(repo)
            stored_by_id = {
                runner.runner_id: runner
                for runner in self._store.range_scan(runner_prefix(repo.repo_id))
                if isinstance(runner, Runner)
            }
            counts["observed"] = len(remote)
            self._metrics.record_observed(repo.repo_id, len(remote))

            state_machine.to_diffing()
            remote_ids: set[int] = set()
            claimed_names: dict[str, int] = {}
            for remote_runner in remote:
                remote_ids.add(remote_runner.id)
                self._apply_remote(
                    repo.repo_id,
                    remote_runner,
                    stored_by_id.get(remote_runner.id),
                    claimed_names,
                    counts,
                )
                claimed_names[remote_runner.name] = remote_runner.id

            state_machine.to_sweeping()
            for runner_id, stored in stored_by_id.items():
                if runner_id in remote_ids:
                    continue
                if stored.name in claimed_names:
                    log.info(
                        "runner_key_reclaimed",
                        runner=stored.name,
                        runner_id=runner_id,
                        claimed_by=claimed_names[stored.name],
                    )
                    continue
                self._sweep(stored, counts)

            state_machine.to_done()
        except Exception:
            state_machine.to_failed()
            raise

        result = RepositorySyncResult(
            repo_id=repo.repo_id,
            slug=repo.slug,
            state=state_machine.state,
            runners_observed=counts["observed"],
            runners_created=counts["created"],
            runners_updated=counts["updated"],
            runners_swept=counts["swept"],
            outages_opened=counts["opened"],
            outages_resolved=counts["resolved"],
        )
        log.info("repository_reconciled", **result.model_dump(exclude={"state", "repo_id", "slug"}))
        return result

    def _touch_repository(self, repo: RepositoryConfig) -> Repository:
        """Create the repository record on first sight and refresh last_synced_at."""
        now = self._clock()
        existing = self._store.get(Repository.ITEM_TYPE, repository_key(repo.repo_id))

        if isinstance(existing, Repository):
            return self._store.put(existing.model_copy(update={"last_synced_at": now}))

        record = self._store.put(
            Repository(
                repo_id=repo.repo_id,
                owner=repo.owner,
                name=repo.name,
                is_active=True,
                last_synced_at=now,
            )
        )
        self._log.info("repository_created", repo_id=repo.repo_id, repository=repo.slug)
        return record

    def _apply_remote(
        self,
        repo_id: str,
        remote: RemoteRunner,
        stored: Runner | None,
        claimed_names: dict[str, int],
        counts: Counter[str],
    ) -> None:
        """Apply one remote observation to its stored runner."""
        now = self._clock()
        status = classify(remote)
        labels = tuple(dict.fromkeys(remote.labels))

        if stored is None:
            runner = self._store.put(
                Runner(
                    runner_id=remote.id,
                    repo_id=repo_id,
                    name=remote.name,
                    status=status,
                    enabled=remote.enabled,
                    os=remote.os,
                    labels=labels,
                    first_seen_at=now,
                    last_seen_at=now,
                )
            )
            counts["created"] += 1
            self._metrics.record_created(repo_id)
            self._log.info(
                "runner_created",
                repo_id=repo_id,
                runner=runner.name,
                runner_id=runner.runner_id,
                status=status.name,
            )
            if is_unhealthy(status):
                self._outages.open(runner, status)
                counts["opened"] += 1
            return

        prior = stored.status
        runner = self._store.put(
            stored.model_copy(
                update={
                    "name": remote.name,
                    "status": status,
                    "enabled": remote.enabled,
                    "os": remote.os,
                    "labels": labels,
                    "last_seen_at": now,
                }
            )
        )
        counts["updated"] += 1

        if stored.name != runner.name:
            # The old key may already hold a runner created earlier this pass
            if stored.name not in claimed_names:
                self._store.delete(runner_key(repo_id, stored.name))
            self._log.info(
                "runner_renamed",
                repo_id=repo_id,
                runner_id=runner.runner_id,
                old_name=stored.name,
                new_name=runner.name,
            )

        if prior != status:
            self._log.info(
                "runner_status_changed",
                repo_id=repo_id,
                runner=runner.name,
                from_status=prior.name,
                to_status=status.name,
            )

        if not is_unhealthy(prior) and is_unhealthy(status):
            self._outages.open(runner, status)
            counts["opened"] += 1
        elif is_unhealthy(prior) and not is_unhealthy(status):
            outage_id = self._outages.resolve(repo_id, runner.runner_id)
            if outage_id is not None:
                counts["resolved"] += 1
            self._dispatcher.send_recovery(runner, status, outage_id)

    def _sweep(self, stored: Runner, counts: Counter[str]) -> None:
        """Demote a runner missing from the remote fetch to UNKNOWN.

        ``last_seen_at`` is left as is. Runners already UNKNOWN are not
        written again.
        """
        log = self._log.bind(
            repo_id=stored.repo_id,
            runner=stored.name,
            runner_id=stored.runner_id,
        )

        if stored.status == RunnerStatus.UNKNOWN:
            log.debug("runner_still_missing")
            return

        prior = stored.status
        runner = self._store.put(stored.model_copy(update={"status": RunnerStatus.UNKNOWN}))
        counts["swept"] += 1
        self._metrics.record_swept(stored.repo_id)
        log.info("runner_missing", from_status=prior.name)

        if not is_unhealthy(prior):
            self._outages.open(runner, RunnerStatus.UNKNOWN)
            counts["opened"] += 1
