"""Models for runner descriptors returned by the GitHub API."""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RemoteRunner(BaseModel):
    """A runner as reported by ``GET /repos/{owner}/{repo}/actions/runners``.

    ``raw_state`` carries the API's ``status`` field verbatim
    (``"online"`` or ``"offline"``).
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: Annotated[int, Field(ge=0)]
    name: Annotated[str, Field(min_length=1)]
    raw_state: str = Field(alias="status")
    busy: bool = False
    os: str = ""
    labels: tuple[str, ...] = ()
    enabled: bool = True

    @field_validator("labels", mode="before")
    @classmethod
    def extract_label_names(cls, v: Any) -> Any:
        """Flatten ``[{"name": ...}]`` label objects to their names."""
        if isinstance(v, list):
            return tuple(
                label["name"] if isinstance(label, dict) else label for label in v
            )
        return v

    @field_validator("enabled", mode="before")
    @classmethod
    def default_enabled(cls, v: Any) -> Any:
        """Treat an explicit null as enabled."""
        return True if v is None else v
