"""Runner status reconciliation and outage lifecycle."""

from runner_monitor.reconcile.classifier import classify, is_unhealthy, status_text
from runner_monitor.reconcile.coordinator import SyncCoordinator
from runner_monitor.reconcile.metrics import ReconcileMetrics
from runner_monitor.reconcile.models import (
    PassResult,
    RepositoryFailure,
    RepositorySyncResult,
)
from runner_monitor.reconcile.outages import OutageLifecycleManager
from runner_monitor.reconcile.reconciler import RunnerReconciler
from runner_monitor.reconcile.state_machine import (
    RepositorySyncState,
    RepositorySyncStateError,
    RepositorySyncStateMachine,
)


__all__ = [
    "OutageLifecycleManager",
    "PassResult",
    "ReconcileMetrics",
    "RepositoryFailure",
    "RepositorySyncResult",
    "RepositorySyncState",
    "RepositorySyncStateError",
    "RepositorySyncStateMachine",
    "RunnerReconciler",
    "SyncCoordinator",
    "classify",
    "is_unhealthy",
    "status_text",
]
