"""Domain exceptions for the state store.

Infrastructure errors (database issues) are separated from domain errors
(records that should exist but do not).
"""


class StateStoreError(Exception):
    """Base exception for all state store errors."""


class ConnectionError(StateStoreError):  # noqa: A001
    """Raised when the database connection is missing or broken."""

    def __init__(self, message: str = "Database not connected") -> None:
        """Initialize the connection error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class DatabaseError(StateStoreError):
    """Raised when SQLite rejects a read or a write."""

    def __init__(self, operation: str, message: str) -> None:
        """Initialize the error.

        Args:
            operation: Store operation that failed.
            message: Underlying SQLite error message.
        """
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class RunNotFoundError(StateStoreError):
    """Raised when a requested cycle run record is not found."""

    def __init__(self, run_id: str) -> None:
        """Initialize the error with the missing run ID.

        Args:
            run_id: The run ID that was not found.
        """
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


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
