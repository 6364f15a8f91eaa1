"""Status classification for remote runners."""

from runner_monitor.github.models import RemoteRunner
from runner_monitor.store.models import RunnerStatus


ONLINE_STATE = "online"

UNHEALTHY_STATUSES = frozenset({RunnerStatus.OFFLINE, RunnerStatus.UNKNOWN})

_STATUS_TEXT: dict[RunnerStatus, str] = {
    RunnerStatus.ONLINE: "Online",
    RunnerStatus.OFFLINE: "Offline",
    RunnerStatus.BUSY: "Busy",
    RunnerStatus.UNKNOWN: "Unknown",
    RunnerStatus.IDLE: "Idle",
}


def classify(remote: RemoteRunner) -> RunnerStatus:
    """Map a remote runner descriptor to its canonical status.

    Any raw state other than ``online`` counts as OFFLINE. An online runner is
    BUSY while running a job and IDLE otherwise. ONLINE and UNKNOWN are never
    produced here; UNKNOWN is reserved for runners missing from the fetch.

    Args:
        remote: Runner as reported by GitHub.

    Returns:
        The canonical status.
    """
    if remote.raw_state != ONLINE_STATE:
        return RunnerStatus.OFFLINE
    return RunnerStatus.BUSY if remote.busy else RunnerStatus.IDLE


def is_unhealthy(status: RunnerStatus) -> bool:
    """Whether a status counts as an outage."""
    return status in UNHEALTHY_STATUSES


def status_text(status: RunnerStatus | int) -> str:
    """Human-readable status name; unrecognized values render as Unknown."""
    try:
        return _STATUS_TEXT[RunnerStatus(status)]
    except ValueError:
        return _STATUS_TEXT[RunnerStatus.UNKNOWN]
