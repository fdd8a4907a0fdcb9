"""Error types for external providers (embedding API, vector index)."""


class ProviderError(Exception):
    """Base exception for provider failures."""


class TransientProviderError(ProviderError):
    """Recoverable provider failure: quota, network, timeout or index I/O.

    The cycle that hits it aborts without marking anything processed, so the
    next cycle retries the same articles.

    Attributes:
        status_code: HTTP status code when the failure came from an API.
    """

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmbeddingAuthError(ProviderError):
    """Missing or rejected API key. Not retried."""
