"""Result models for the curation, breaking and digest flows."""

from dataclasses import dataclass, field
from datetime import datetime

from news_digest.pipeline.state_machine import CycleState
from news_digest.store.models import Edition
from news_digest.urgency.models import AlertDecision


@dataclass
class IngestStats:
    """Counts from the ingestion step of a cycle."""

    articles_in: int = 0
    articles_new: int = 0
    articles_duplicate: int = 0


@dataclass
class CycleResult:
    """Outcome of one curation cycle."""

    run_id: str
    started_at: datetime
    state: CycleState = CycleState.STARTED
    finished_at: datetime | None = None
    ingest: IngestStats = field(default_factory=IngestStats)
    articles_clustered: int = 0
    outcomes: dict[str, int] = field(default_factory=dict)
    clusters_refreshed: int = 0
    clusters_merged: int = 0
    clusters_staled: int = 0
    error: str | None = None

    @property
    def success(self) -> bool:
        """Check if the cycle finished successfully."""
        return self.state == CycleState.FINISHED_SUCCESS

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for reporting."""
        return {
            "run_id": self.run_id,
            "success": self.success,
            "state": self.state.name,
            "articles_in": self.ingest.articles_in,
            "articles_new": self.ingest.articles_new,
            "articles_duplicate": self.ingest.articles_duplicate,
            "articles_clustered": self.articles_clustered,
            "outcomes": dict(self.outcomes),
            "clusters_refreshed": self.clusters_refreshed,
            "clusters_merged": self.clusters_merged,
            "clusters_staled": self.clusters_staled,
            "error": self.error,
        }


@dataclass(frozen=True)
class UserAlertResult:
    """Breaking-alert outcome for one user and one candidate."""

    decision: AlertDecision
    message_id: str | None = None
    error: str | None = None

    @property
    def sent(self) -> bool:
        """Check if the alert went out."""
        return self.message_id is not None


@dataclass
class BreakingResult:
    """Outcome of one breaking-news check."""

    candidates: int = 0
    results: list[UserAlertResult] = field(default_factory=list)

    @property
    def alerts_sent(self) -> int:
        """Number of alerts delivered."""
        return sum(1 for r in self.results if r.sent)

    @property
    def errors(self) -> list[UserAlertResult]:
        """Results whose delivery failed."""
        return [r for r in self.results if r.error is not None]


@dataclass(frozen=True)
class UserDigestResult:
    """Digest outcome for one user."""

    user: str
    edition: Edition | None = None
    cluster_ids: list[str] = field(default_factory=list)
    message_id: str | None = None
    skipped_reason: str | None = None
    error: str | None = None
    dry_run: bool = False

    @property
    def sent(self) -> bool:
        """Check if the digest was delivered."""
        return self.message_id is not None


@dataclass
class DigestRunResult:
    """Outcome of one digest run across users."""

    users: dict[str, UserDigestResult] = field(default_factory=dict)

    @property
    def sent(self) -> int:
        """Number of digests delivered."""
        return sum(1 for r in self.users.values() if r.sent)

    @property
    def failed(self) -> int:
        """Number of users whose digest failed."""
        return sum(1 for r in self.users.values() if r.error is not None)
