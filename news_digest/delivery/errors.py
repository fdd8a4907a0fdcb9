"""Delivery errors."""


class DeliveryError(Exception):
    """Raised when a message could not be handed off.

    Nothing is marked SENT or recorded when this is raised.
    """

    def __init__(self, message: str, user: str | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            user: Recipient user name, if known.
        """
        self.user = user
        super().__init__(message)
