"""Data models for the runner state store.

Every stored item is a frozen pydantic model that knows its own key path.
Mutation is ``model_copy(update=...)`` followed by ``StateStore.put``.
"""

from datetime import datetime, timedelta
from enum import Enum, IntEnum
from typing import Annotated, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from runner_monitor.store.keys import outage_key, outage_prefix, repository_key, runner_key


OUTAGE_RETENTION = timedelta(days=30)


class RunnerStatus(IntEnum):
    """Canonical runner health status."""

    ONLINE = 1
    OFFLINE = 2
    BUSY = 3
    UNKNOWN = 4
    IDLE = 5


class SortDirection(str, Enum):
    """Key ordering for range scans."""

    ASCENDING = "ASC"
    DESCENDING = "DESC"


class StoredItem(BaseModel):
    """Base class for items persisted under a key path.

    Subclasses set ``ITEM_TYPE``. ``SEQUENCE_FIELD`` names an integer field
    that the store fills from a per-prefix sequence on first put, and ``TTL``
    is the retention window counted from creation.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    ITEM_TYPE: ClassVar[str] = ""
    SEQUENCE_FIELD: ClassVar[str | None] = None
    TTL: ClassVar[timedelta | None] = None

    created_at: datetime | None = Field(
        default=None, description="Set by the store on first put"
    )
    updated_at: datetime | None = Field(
        default=None, description="Set by the store on every put"
    )

    def key_path(self) -> str:
        """Return the item's key path."""
        raise NotImplementedError

    def sequence_prefix(self) -> str:
        """Return the prefix scoping this item's sequence id."""
        raise NotImplementedError


class Repository(StoredItem):
    """A monitored repository."""

    ITEM_TYPE: ClassVar[str] = "Repository"

    repo_id: Annotated[str, Field(min_length=1)]
    owner: Annotated[str, Field(min_length=1)]
    name: Annotated[str, Field(min_length=1)]
    is_active: bool = True
    last_synced_at: datetime | None = None

    def key_path(self) -> str:
        return repository_key(self.repo_id)


class Runner(StoredItem):
    """One tracked self-hosted runner.

    ``name`` is the lookup key within a repository; ``runner_id`` is the
    stable identity reported by GitHub.
    """

    ITEM_TYPE: ClassVar[str] = "Runner"

    runner_id: Annotated[int, Field(ge=0)]
    repo_id: Annotated[str, Field(min_length=1)]
    name: Annotated[str, Field(min_length=1)]
    status: RunnerStatus
    enabled: bool = True
    os: str = ""
    labels: tuple[str, ...] = ()
    first_seen_at: datetime
    last_seen_at: datetime

    @field_validator("labels", mode="before")
    @classmethod
    def dedupe_labels(cls, v: object) -> object:
        """Drop repeated labels, keeping first occurrence order."""
        if isinstance(v, list | tuple):
            return tuple(dict.fromkeys(v))
        return v

    def key_path(self) -> str:
        return runner_key(self.repo_id, self.name)


class OutageEvent(StoredItem):
    """One contiguous unhealthy period of a runner.

    ``resolved_at`` is None while the outage is ongoing.
    """

    ITEM_TYPE: ClassVar[str] = "OutageEvent"
    SEQUENCE_FIELD: ClassVar[str | None] = "outage_id"
    TTL: ClassVar[timedelta | None] = OUTAGE_RETENTION

    outage_id: int | None = Field(
        default=None, description="Assigned by the store on first put"
    )
    repo_id: Annotated[str, Field(min_length=1)]
    runner_id: Annotated[int, Field(ge=0)]
    runner_name: Annotated[str, Field(min_length=1)]
    status: RunnerStatus
    started_at: datetime
    resolved_at: datetime | None = None
    description: str = ""
    notification_sent: bool = False

    @property
    def is_open(self) -> bool:
        """Whether the outage is still ongoing."""
        return self.resolved_at is None

    def sequence_prefix(self) -> str:
        return outage_prefix(self.repo_id, self.runner_id)

    def key_path(self) -> str:
        if self.outage_id is None:
            msg = "OutageEvent has no outage_id until it is stored"
            raise ValueError(msg)
        return outage_key(self.repo_id, self.runner_id, self.outage_id)


class PassRecord(BaseModel):
    """Bookkeeping for one reconciliation pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    pass_id: Annotated[str, Field(min_length=1, description="Unique pass identifier")]
    started_at: datetime
    finished_at: datetime | None = Field(
        default=None, description="When the pass finished (None if in progress)"
    )
    success: bool | None = Field(
        default=None, description="Whether the pass succeeded (None if in progress)"
    )
    error_summary: str | None = None
    repositories_succeeded: Annotated[int, Field(ge=0)] = 0
    repositories_failed: Annotated[int, Field(ge=0)] = 0


ITEM_TYPES: dict[str, type[StoredItem]] = {
    model.ITEM_TYPE: model for model in (Repository, Runner, OutageEvent)
}
