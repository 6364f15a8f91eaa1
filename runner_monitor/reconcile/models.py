"""Result models for reconciliation passes."""

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from runner_monitor.reconcile.state_machine import RepositorySyncState


class RepositorySyncResult(BaseModel):
    """Outcome of reconciling one repository."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    repo_id: Annotated[str, Field(min_length=1)]
    slug: Annotated[str, Field(min_length=1)]
    state: RepositorySyncState
    runners_observed: Annotated[int, Field(ge=0)] = 0
    runners_created: Annotated[int, Field(ge=0)] = 0
    runners_updated: Annotated[int, Field(ge=0)] = 0
    runners_swept: Annotated[int, Field(ge=0)] = 0
    outages_opened: Annotated[int, Field(ge=0)] = 0
    outages_resolved: Annotated[int, Field(ge=0)] = 0


class RepositoryFailure(BaseModel):
    """A repository whose reconciliation raised."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    slug: Annotated[str, Field(min_length=1)]
    error_type: str
    message: str


class PassResult(BaseModel):
    """Outcome of one reconciliation pass across all repositories.

    A pass completes even when individual repositories fail; those failures
    are listed here and in the logs.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    pass_id: Annotated[str, Field(min_length=1)]
    started_at: datetime
    finished_at: datetime
    repositories: tuple[RepositorySyncResult, ...] = ()
    failures: tuple[RepositoryFailure, ...] = ()
    expired_items_purged: Annotated[int, Field(ge=0)] = 0

    @property
    def succeeded(self) -> int:
        """Number of repositories reconciled without error."""
        return len(self.repositories)

    @property
    def failed(self) -> int:
        """Number of repositories that raised."""
        return len(self.failures)

    @property
    def error_summary(self) -> str | None:
        """One-line summary of failed repositories, or None."""
        if not self.failures:
            return None
        return "; ".join(f"{f.slug}: {f.error_type}" for f in self.failures)
