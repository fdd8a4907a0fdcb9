"""Error types for article sources."""

from enum import Enum


class FeedErrorClass(str, Enum):
    """Classification of feed failures.

    - FETCH: HTTP or network failure
    - PARSE: Body could not be parsed as RSS/Atom
    """

    FETCH = "FETCH"
    PARSE = "PARSE"


class FeedError(Exception):
    """A single feed could not be read.

    Isolated per feed: other feeds in the same run are unaffected.
    """

    def __init__(
        self,
        error_class: FeedErrorClass,
        message: str,
        feed_name: str,
        status_code: int | None = None,
    ) -> None:
        """Initialize the feed error.

        Args:
            error_class: Classification of the error.
            message: Human-readable error message.
            feed_name: Name of the failing feed.
            status_code: HTTP status, when the server answered.
        """
        super().__init__(message)
        self.error_class = error_class
        self.message = message
        self.feed_name = feed_name
        self.status_code = status_code

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert error to dictionary for logging/serialization."""
        return {
            "error_class": self.error_class.value,
            "message": self.message,
            "feed_name": self.feed_name,
            "status_code": self.status_code,
        }
