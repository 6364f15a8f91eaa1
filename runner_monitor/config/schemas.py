"""Schemas for the YAML monitor configuration file."""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator


REPOSITORY_SLUG_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


class RepositoryConfig(BaseModel):
    """A monitored GitHub repository.

    The slug is ``owner/name``. The stored repository id is the name part,
    so two monitored repositories must not share a name.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: Annotated[str, Field(min_length=3, description="owner/name")]
    enabled: bool = True

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        """Ensure the slug has exactly one owner and one name part."""
        v = v.strip()
        if not REPOSITORY_SLUG_PATTERN.match(v):
            msg = f"Repository must be in owner/name form, got '{v}'"
            raise ValueError(msg)
        return v

    @property
    def owner(self) -> str:
        """Repository owner (user or organization)."""
        return self.slug.split("/", 1)[0]

    @property
    def name(self) -> str:
        """Repository name."""
        return self.slug.split("/", 1)[1]

    @property
    def repo_id(self) -> str:
        """Identifier used in stored key paths."""
        return self.name


class NotificationSection(BaseModel):
    """Notification toggles."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True


class FetchSection(BaseModel):
    """HTTP tuning for the GitHub API."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    max_retries: Annotated[int, Field(ge=0, le=10)] = 3


class MonitorConfig(BaseModel):
    """Root of ``monitor.yaml``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    repositories: list[RepositoryConfig] = Field(default_factory=list)
    notifications: NotificationSection = Field(default_factory=NotificationSection)
    fetch: FetchSection = Field(default_factory=FetchSection)

    @field_validator("repositories")
    @classmethod
    def validate_unique_repo_ids(
        cls, v: list[RepositoryConfig]
    ) -> list[RepositoryConfig]:
        """Reject repositories whose stored ids would collide."""
        seen: set[str] = set()
        for repo in v:
            if repo.repo_id in seen:
                msg = f"Duplicate repository name '{repo.repo_id}'"
                raise ValueError(msg)
            seen.add(repo.repo_id)
        return v
