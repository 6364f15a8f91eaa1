"""Application settings powered by Pydantic BaseSettings."""

import json
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STATE_PATH = Path("state/runner-monitor.sqlite")


class AppSettings(BaseSettings):
    """Centralized environment configuration."""

    model_config = SettingsConfigDict(
        env_prefix="", case_sensitive=False, env_file=".env", env_file_encoding="utf-8"
    )

    github_token: str | None = Field(default=None, validation_alias="GITHUB_TOKEN")
    slack_webhook_url: str | None = Field(
        default=None, validation_alias="SLACK_WEBHOOK_URL"
    )
    slack_signing_secret: str | None = Field(
        default=None, validation_alias="SLACK_SIGNING_SECRET"
    )
    repositories: str | None = Field(
        default=None, validation_alias="RUNNER_MONITOR_REPOSITORIES"
    )
    state_path: Path = Field(
        default=DEFAULT_STATE_PATH, validation_alias="RUNNER_MONITOR_STATE_PATH"
    )
    notifications_enabled: bool = Field(
        default=True, validation_alias="RUNNER_MONITOR_NOTIFICATIONS_ENABLED"
    )
    default_repo: str | None = Field(
        default=None, validation_alias="RUNNER_MONITOR_DEFAULT_REPO"
    )

    def repository_slugs(self) -> list[str]:
        """Parse the configured repository list.

        Accepts either a JSON array (``["org/a", "org/b"]``) or a
        comma-separated string (``org/a,org/b``).

        Returns:
            Repository slugs in configured order, blanks removed.
        """
        raw = (self.repositories or "").strip()
        if not raw:
            return []

        if raw.startswith("["):
            parsed = json.loads(raw)
            return [str(slug).strip() for slug in parsed if str(slug).strip()]

        return [slug.strip() for slug in raw.split(",") if slug.strip()]


def get_settings() -> AppSettings:
    """Get a settings instance."""
    return AppSettings()
