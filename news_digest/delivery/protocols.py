"""Delivery protocols."""

from typing import Protocol, runtime_checkable

from news_digest.config.schemas import UserProfile
from news_digest.delivery.models import DeliveryReceipt
from news_digest.selection.models import DigestSelection
from news_digest.store.models import Edition
from news_digest.urgency.models import BreakingCandidate


@runtime_checkable
class DigestDispatcher(Protocol):
    """Hands a selected digest off for delivery."""

    def dispatch_digest(
        self,
        user: str,
        profile: UserProfile,
        edition: Edition,
        selection: DigestSelection,
    ) -> DeliveryReceipt:
        """Deliver one digest.

        Raises:
            DeliveryError: If the hand-off failed.
        """
        ...


@runtime_checkable
class AlertSender(Protocol):
    """Hands a breaking alert off for delivery."""

    def send_alert(
        self, user: str, profile: UserProfile, candidate: BreakingCandidate
    ) -> DeliveryReceipt:
        """Deliver one breaking alert.

        Raises:
            DeliveryError: If the hand-off failed.
        """
        ...
