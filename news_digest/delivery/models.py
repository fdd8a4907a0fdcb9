"""Outbound message models and subject lines."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from news_digest.store.models import Edition


class MessageKind(str, Enum):
    """Kind of outbound message."""

    DIGEST = "digest"
    BREAKING = "breaking"


@dataclass(frozen=True)
class OutboundMessage:
    """A rendered message ready for hand-off.

    Attributes:
        message_id: Unique identifier assigned before hand-off.
        kind: Digest or breaking alert.
        user: Recipient user name.
        to: Recipient email address.
        subject: Subject line.
        created_at: Creation time.
        body: Structured message content.
        edition: Digest edition, for digests.
    """

    message_id: str
    kind: MessageKind
    user: str
    to: str
    subject: str
    created_at: datetime
    body: dict[str, Any]
    edition: Edition | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "message_id": self.message_id,
            "kind": self.kind.value,
            "user": self.user,
            "to": self.to,
            "subject": self.subject,
            "created_at": self.created_at.isoformat(),
            "edition": self.edition.value if self.edition else None,
            "body": self.body,
        }


@dataclass(frozen=True)
class DeliveryReceipt:
    """Result of a successful hand-off."""

    message_id: str
    path: str
    bytes_written: int
    sha256: str


def digest_subject(brand_name: str, edition: Edition) -> str:
    """Subject line for a digest edition."""
    if edition == Edition.MORNING:
        return f"{brand_name} Morning Briefing"
    return f"{brand_name} Evening Update"


def alert_subject(brand_name: str, headline: str) -> str:
    """Subject line for a breaking alert."""
    return f"\N{POLICE CARS REVOLVING LIGHT} {brand_name}: {headline}"
