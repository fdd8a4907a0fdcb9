"""In-memory stand-ins for external services."""

from news_digest.config.schemas import UserProfile
from news_digest.delivery.errors import DeliveryError
from news_digest.delivery.models import DeliveryReceipt
from news_digest.embeddings.errors import TransientProviderError
from news_digest.selection.models import DigestSelection
from news_digest.store.models import Edition, RawArticle
from news_digest.urgency.models import BreakingCandidate


class KeyedEmbedder:
    """Returns a preset vector for each text; unknown texts get ``default``."""

    def __init__(
        self,
        vectors: dict[str, list[float]],
        default: list[float] | None = None,
        fail: bool = False,
    ) -> None:
        self.vectors = vectors
        self.default = default
        self.fail = fail
        self.calls: list[list[str]] = []

    def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        if self.fail:
            msg = "quota exceeded"
            raise TransientProviderError(msg, status_code=429)
        result = []
        for text in texts:
            vector = self.vectors.get(text, self.default)
            if vector is None:
                msg = f"no vector for {text!r}"
                raise KeyError(msg)
            result.append(vector)
        return result


class StaticSource:
    """Article source returning a fixed batch."""

    def __init__(self, articles: list[RawArticle]) -> None:
        self.articles = articles

    def fetch(self) -> list[RawArticle]:
        return list(self.articles)


class RecordingDispatcher:
    """Records digests and alerts; can be told to fail for some users."""

    def __init__(self, fail_users: set[str] | None = None) -> None:
        self.fail_users = fail_users or set()
        self.digests: list[tuple[str, Edition, DigestSelection]] = []
        self.alerts: list[tuple[str, str]] = []

    def dispatch_digest(
        self,
        user: str,
        profile: UserProfile,
        edition: Edition,
        selection: DigestSelection,
    ) -> DeliveryReceipt:
        if user in self.fail_users:
            msg = "relay unavailable"
            raise DeliveryError(msg, user=user)
        self.digests.append((user, edition, selection))
        return DeliveryReceipt(
            message_id=f"digest-{user}-{len(self.digests)}",
            path="memory",
            bytes_written=0,
            sha256="",
        )

    def send_alert(
        self, user: str, profile: UserProfile, candidate: BreakingCandidate
    ) -> DeliveryReceipt:
        if user in self.fail_users:
            msg = "relay unavailable"
            raise DeliveryError(msg, user=user)
        self.alerts.append((user, candidate.cluster.id))
        return DeliveryReceipt(
            message_id=f"alert-{user}-{len(self.alerts)}",
            path="memory",
            bytes_written=0,
            sha256="",
        )
