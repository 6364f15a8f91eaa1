"""Domain exceptions for the state store.

Infrastructure errors (database issues) are separated from domain errors
(unknown item types, missing pass records).
"""


class StateStoreError(Exception):
    """Base exception for all state store errors."""


class ConnectionError(StateStoreError):
    """Raised when the database connection is not established."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class UnknownItemTypeError(StateStoreError):
    """Raised when an item type name is not registered."""

    def __init__(self, item_type: str) -> None:
        """Initialize the error.

        Args:
            item_type: The unregistered item type name.
        """
        self.item_type = item_type
        super().__init__(f"Unknown item type: {item_type}")


class PassNotFoundError(StateStoreError):
    """Raised when a requested pass record is not found."""

    def __init__(self, pass_id: str) -> None:
        """Initialize the error with the missing pass ID.

        Args:
            pass_id: The pass ID that was not found.
        """
        self.pass_id = pass_id
        super().__init__(f"Pass not found: {pass_id}")


class MigrationError(StateStoreError):
    """Raised when a schema migration fails."""

    def __init__(self, version: int, message: str) -> None:
        """Initialize the migration error.

        Args:
            version: The migration version that failed.
            message: Human-readable error message.
        """
        self.version = version
        super().__init__(f"Migration {version} failed: {message}")
