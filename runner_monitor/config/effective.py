"""Effective configuration consumed by a reconciliation pass."""

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from runner_monitor.config.errors import (
    ConfigValidationError,
    MissingConfigurationError,
)
from runner_monitor.config.schemas import MonitorConfig, RepositoryConfig
from runner_monitor.fetch.config import FetchConfig
from runner_monitor.fetch.models import RetryPolicy
from runner_monitor.settings import AppSettings


class EffectiveConfig(BaseModel):
    """Everything a pass needs, merged from environment and YAML."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    repositories: list[RepositoryConfig]
    github_token: str = Field(repr=False)
    slack_webhook_url: str | None = Field(default=None, repr=False)
    notifications_enabled: bool = True
    fetch: FetchConfig = Field(default_factory=FetchConfig)

    @property
    def active_repositories(self) -> list[RepositoryConfig]:
        """Repositories that are enabled for monitoring."""
        return [repo for repo in self.repositories if repo.enabled]


def resolve_effective_config(
    settings: AppSettings,
    monitor_config: MonitorConfig | None = None,
) -> EffectiveConfig:
    """Merge settings and an optional YAML config into an EffectiveConfig.

    Repositories from the YAML file take precedence over the
    ``RUNNER_MONITOR_REPOSITORIES`` environment variable. Notifications are
    enabled only when both sources allow them.

    Args:
        settings: Environment-backed settings.
        monitor_config: Parsed YAML configuration, if a file was given.

    Returns:
        The effective configuration.

    Raises:
        MissingConfigurationError: If the token or repository list is absent.
        ConfigValidationError: If the environment repository list is malformed.
    """
    if not settings.github_token:
        raise MissingConfigurationError(
            "GITHUB_TOKEN", "Set a token with access to the repositories' runners"
        )

    monitor_config = monitor_config or MonitorConfig()

    repositories = list(monitor_config.repositories)
    if not repositories:
        try:
            repositories = [
                RepositoryConfig(slug=slug) for slug in settings.repository_slugs()
            ]
            MonitorConfig(repositories=repositories)
        except ValueError as e:
            errors = (
                [
                    {
                        "loc": ".".join(str(loc) for loc in err["loc"]),
                        "msg": err["msg"],
                        "type": err["type"],
                    }
                    for err in e.errors()
                ]
                if isinstance(e, ValidationError)
                else [{"loc": "repositories", "msg": str(e), "type": "value_error"}]
            )
            raise ConfigValidationError(errors, "RUNNER_MONITOR_REPOSITORIES") from e

    if not repositories:
        raise MissingConfigurationError(
            "RUNNER_MONITOR_REPOSITORIES",
            "Provide repositories in the environment or in monitor.yaml",
        )

    fetch = FetchConfig(
        default_timeout_seconds=monitor_config.fetch.timeout_seconds,
        retry_policy=RetryPolicy(max_retries=monitor_config.fetch.max_retries),
    )

    return EffectiveConfig(
        repositories=repositories,
        github_token=settings.github_token,
        slack_webhook_url=settings.slack_webhook_url or None,
        notifications_enabled=(
            settings.notifications_enabled and monitor_config.notifications.enabled
        ),
        fetch=fetch,
    )
