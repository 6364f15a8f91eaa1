"""Read paths over stored runners and outages."""

from dataclasses import dataclass
from datetime import datetime

from runner_monitor.store.keys import outage_prefix, runner_key, runner_prefix
from runner_monitor.store.models import OutageEvent, Runner, SortDirection
from runner_monitor.store.store import StateStore


RECENT_OUTAGES_LIMIT = 5


@dataclass(frozen=True)
class RunnerHistory:
    """A runner and its most recent outages, newest first."""

    runner: Runner
    outages: list[OutageEvent]


def repo_id_from(value: str) -> str:
    """Accept ``owner/name`` or a bare repository id."""
    return value.strip().rsplit("/", 1)[-1]


def outage_duration_minutes(outage: OutageEvent, now: datetime) -> int:
    """Length of an outage in whole minutes; ongoing outages run until ``now``."""
    end = outage.resolved_at or now
    return round((end - outage.started_at).total_seconds() / 60)


def get_runner_history(
    store: StateStore,
    repo_id: str,
    runner_name: str,
    limit: int = RECENT_OUTAGES_LIMIT,
) -> RunnerHistory | None:
    """Look up a runner by name and load its recent outages.

    Returns:
        The history, or None if no runner has that name.
    """
    runner = store.get(Runner.ITEM_TYPE, runner_key(repo_id, runner_name))
    if not isinstance(runner, Runner):
        return None

    outages = [
        item
        for item in store.range_scan(
            outage_prefix(repo_id, runner.runner_id),
            limit=limit,
            sort_direction=SortDirection.DESCENDING,
        )
        if isinstance(item, OutageEvent)
    ]
    return RunnerHistory(runner=runner, outages=outages)


def list_runners(store: StateStore, repo_id: str) -> list[Runner]:
    """All stored runners of a repository, ordered by name."""
    return [
        item
        for item in store.range_scan(runner_prefix(repo_id))
        if isinstance(item, Runner)
    ]
