"""Errors raised by the GitHub runners client."""


class RunnerFetchError(Exception):
    """Raised when the runner list of a repository cannot be fetched or parsed.

    Recoverable per repository: the coordinator logs it and moves on.

    Attributes:
        repository: ``owner/name`` slug of the repository.
        status_code: HTTP status code, if a response was received.
    """

    def __init__(
        self,
        repository: str,
        message: str,
        status_code: int | None = None,
    ) -> None:
        self.repository = repository
        self.status_code = status_code
        super().__init__(f"Failed to fetch runners for {repository}: {message}")
