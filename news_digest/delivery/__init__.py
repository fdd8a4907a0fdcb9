"""Digest and alert delivery."""

from news_digest.delivery.errors import DeliveryError
from news_digest.delivery.models import (
    DeliveryReceipt,
    MessageKind,
    OutboundMessage,
    alert_subject,
    digest_subject,
)
from news_digest.delivery.outbox import OutboxDispatcher
from news_digest.delivery.protocols import AlertSender, DigestDispatcher


__all__ = [
    "AlertSender",
    "DeliveryError",
    "DeliveryReceipt",
    "DigestDispatcher",
    "MessageKind",
    "OutboundMessage",
    "OutboxDispatcher",
    "alert_subject",
    "digest_subject",
]
