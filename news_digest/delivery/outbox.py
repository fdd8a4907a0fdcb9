"""File outbox: writes rendered messages as JSON for a mail relay to pick up."""

import hashlib
import json
import uuid
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import structlog

from news_digest.config.schemas import DigestSettings, UserProfile
from news_digest.delivery.errors import DeliveryError
from news_digest.delivery.models import (
    DeliveryReceipt,
    MessageKind,
    OutboundMessage,
    alert_subject,
    digest_subject,
)
from news_digest.selection.models import DigestSelection
from news_digest.store.models import Edition
from news_digest.urgency.models import BreakingCandidate


logger = structlog.get_logger()


class OutboxDispatcher:
    """Delivers digests and alerts by writing them into an outbox directory.

    Each message lands at ``<outbox>/<user>/<timestamp>-<kind>-<id>.json``.
    Writes go to a temporary file that is then renamed, so a relay never
    reads a partial message.
    """

    def __init__(
        self,
        outbox_dir: Path | str,
        digest: DigestSettings,
        run_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            outbox_dir: Root outbox directory.
            digest: Branding used in subjects and bodies.
            run_id: Optional run identifier for logging.
            clock: Time source for message timestamps.
        """
        self._outbox_dir = Path(outbox_dir)
        self._digest = digest
        self._clock = clock or (lambda: datetime.now(UTC))
        self._log = logger.bind(component="delivery", run_id=run_id)

    @property
    def outbox_dir(self) -> Path:
        """Get the outbox directory."""
        return self._outbox_dir

    def dispatch_digest(
        self,
        user: str,
        profile: UserProfile,
        edition: Edition,
        selection: DigestSelection,
    ) -> DeliveryReceipt:
        """Write a digest message to the outbox."""
        body: dict[str, object] = {
            "brand_name": self._digest.brand_name,
            "tagline": self._digest.tagline,
            "editorial": profile.editorial.model_dump(mode="json"),
            "include_source_counts": profile.newsletter.include_source_counts,
            **selection.to_dict(),
        }
        message = OutboundMessage(
            message_id=uuid.uuid4().hex,
            kind=MessageKind.DIGEST,
            user=user,
            to=profile.email,
            subject=digest_subject(self._digest.brand_name, edition),
            created_at=self._clock(),
            body=body,
            edition=edition,
        )
        return self._write(message)

    def send_alert(
        self, user: str, profile: UserProfile, candidate: BreakingCandidate
    ) -> DeliveryReceipt:
        """Write a breaking alert to the outbox."""
        cluster = candidate.cluster
        latest = cluster.latest_article
        body: dict[str, object] = {
            "brand_name": self._digest.brand_name,
            "cluster_id": cluster.id,
            "headline": cluster.label,
            "urgency": round(candidate.urgency, 3),
            "source_count": cluster.source_count,
            "sources": sorted(cluster.sources),
            "summary": latest.summary if latest else None,
            "image_url": next(
                (a.image_url for a in cluster.articles if a.image_url), None
            ),
            "urls": [a.url for a in cluster.articles],
        }
        message = OutboundMessage(
            message_id=uuid.uuid4().hex,
            kind=MessageKind.BREAKING,
            user=user,
            to=profile.email,
            subject=alert_subject(self._digest.brand_name, cluster.label),
            created_at=self._clock(),
            body=body,
        )
        return self._write(message)

    def _write(self, message: OutboundMessage) -> DeliveryReceipt:
        """Atomically write a message file.

        Raises:
            DeliveryError: If the file could not be written.
        """
        stamp = message.created_at.strftime("%Y%m%dT%H%M%S")
        path = (
            self._outbox_dir
            / message.user
            / f"{stamp}-{message.kind.value}-{message.message_id[:12]}.json"
        )
        content = json.dumps(message.to_dict(), indent=2, ensure_ascii=False)
        content_bytes = content.encode("utf-8")
        sha256 = hashlib.sha256(content_bytes).hexdigest()

        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            temp_path.write_bytes(content_bytes)
            temp_path.replace(path)
        except OSError as e:
            self._log.error(
                "message_write_failed", user=message.user, path=str(path), error=str(e)
            )
            msg = f"failed to write {path}: {e}"
            raise DeliveryError(msg, user=message.user) from e

        self._log.info(
            "message_written",
            user=message.user,
            kind=message.kind.value,
            message_id=message.message_id,
            bytes=len(content_bytes),
            sha256=sha256[:12],
        )
        return DeliveryReceipt(
            message_id=message.message_id,
            path=str(path),
            bytes_written=len(content_bytes),
            sha256=sha256,
        )
