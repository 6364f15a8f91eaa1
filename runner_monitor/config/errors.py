"""Configuration errors.

Any of these raised at pass start aborts the whole pass.
"""


class ConfigError(Exception):
    """Base exception for configuration problems."""


class MissingConfigurationError(ConfigError):
    """Raised when a required configuration value is absent."""

    def __init__(self, name: str, hint: str | None = None) -> None:
        """Initialize the error.

        Args:
            name: Name of the missing setting or environment variable.
            hint: Optional remediation hint.
        """
        self.name = name
        self.hint = hint
        message = f"Missing required configuration: {name}"
        if hint:
            message = f"{message}. {hint}"
        super().__init__(message)


class ConfigValidationError(ConfigError):
    """Raised when a configuration file fails validation."""

    def __init__(self, errors: list[dict[str, str]], file_path: str) -> None:
        """Initialize the error.

        Args:
            errors: List of validation error details (loc, msg, type).
            file_path: Path to the file that failed validation.
        """
        self.errors = errors
        self.file_path = file_path
        super().__init__(f"Validation failed for {file_path}: {len(errors)} errors")
