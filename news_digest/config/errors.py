"""Configuration errors."""


class ConfigurationError(Exception):
    """Raised when configuration is missing, unreadable or invalid.

    Fatal: raised before any state is mutated.
    """

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        errors: list[dict[str, str]] | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            file_path: Path to the file that failed, if any.
            errors: Validation error details (``loc``, ``msg``, ``type``).
        """
        self.file_path = file_path
        self.errors = errors or []
        prefix = f"{file_path}: " if file_path else ""
        super().__init__(f"{prefix}{message}")
