"""SQLite key-path state store for repositories, runners and outages.

This module provides persistent storage for:
- Repository, Runner and OutageEvent items addressed by hierarchical key paths
- Per-prefix sequence ids and store-owned TTL expiry
- Reconciliation pass bookkeeping
"""

from runner_monitor.store.errors import (
    ConnectionError,
    MigrationError,
    PassNotFoundError,
    StateStoreError,
    UnknownItemTypeError,
)
from runner_monitor.store.keys import (
    outage_key,
    outage_prefix,
    repository_key,
    runner_key,
    runner_prefix,
)
from runner_monitor.store.metrics import StoreMetrics
from runner_monitor.store.models import (
    ITEM_TYPES,
    OUTAGE_RETENTION,
    OutageEvent,
    PassRecord,
    Repository,
    Runner,
    RunnerStatus,
    SortDirection,
    StoredItem,
)
from runner_monitor.store.store import StateStore


__all__ = [
    # Errors
    "ConnectionError",
    "MigrationError",
    "PassNotFoundError",
    "StateStoreError",
    "UnknownItemTypeError",
    # Keys
    "outage_key",
    "outage_prefix",
    "repository_key",
    "runner_key",
    "runner_prefix",
    # Metrics
    "StoreMetrics",
    # Models
    "ITEM_TYPES",
    "OUTAGE_RETENTION",
    "OutageEvent",
    "PassRecord",
    "Repository",
    "Runner",
    "RunnerStatus",
    "SortDirection",
    "StoredItem",
    # Store
    "StateStore",
]
