"""Configuration model for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from runner_monitor import __version__
from runner_monitor.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES
from runner_monitor.fetch.models import RetryPolicy


class FetchConfig(BaseModel):
    """Configuration for all HTTP operations (GitHub API and webhooks)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        f"runner-monitor/{__version__}"
    )
    default_timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = 30.0
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=100 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
