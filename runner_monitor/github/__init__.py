"""GitHub Actions self-hosted runners API client."""

from runner_monitor.github.client import GitHubRunnerClient
from runner_monitor.github.errors import RunnerFetchError
from runner_monitor.github.models import RemoteRunner


__all__ = [
    "GitHubRunnerClient",
    "RemoteRunner",
    "RunnerFetchError",
]
