"""Protocol interface for durable curation state."""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol, runtime_checkable

from news_digest.store.models import (
    Article,
    BreakingAlertRecord,
    ClusterStatus,
    CurationStatus,
    CycleRun,
    Edition,
    SendLogRecord,
    StoryCluster,
    UserCuration,
)


@runtime_checkable
class Store(Protocol):
    """Relational storage for articles, clusters and per-user delivery state.

    The cluster engine, urgency detector, selector and pipelines depend on
    this protocol only, so tests can substitute an in-memory double for the
    SQLite implementation.
    """

    def insert_article(self, article: Article) -> bool:
        """Insert an article; return False when its URL is already stored."""
        ...

    def article_exists(self, url: str) -> bool:
        """Check whether an article with this canonical URL is stored."""
        ...

    def get_article(self, article_id: str) -> Article | None:
        """Get an article by ID."""
        ...

    def get_unclustered_articles(self) -> list[Article]:
        """Get articles with no owning cluster, oldest first."""
        ...

    def get_pending_articles(self) -> list[Article]:
        """Get unclustered or unindexed articles, oldest first."""
        ...

    def get_active_clusters(self, min_sources: int | None = None) -> list[StoryCluster]:
        """Get ACTIVE clusters with members, in creation order."""
        ...

    def get_clusters(
        self,
        since: datetime | None = None,
        status: ClusterStatus | None = None,
    ) -> list[StoryCluster]:
        """Get clusters updated since a time, optionally filtered by status."""
        ...

    def get_cluster_by_id(self, cluster_id: str) -> StoryCluster | None:
        """Get one cluster with its members."""
        ...

    def save_cluster(self, cluster: StoryCluster) -> None:
        """Persist a cluster aggregate and its membership atomically."""
        ...

    def save_clusters(self, clusters: Iterable[StoryCluster]) -> None:
        """Persist several cluster aggregates in one transaction."""
        ...

    def get_user_curations(
        self, user: str, status: CurationStatus | None = None
    ) -> list[UserCuration]:
        """Get stored curation rows for a user."""
        ...

    def get_sent_cluster_ids(self, user: str) -> set[str]:
        """Get IDs of clusters already sent to a user."""
        ...

    def mark_sent(
        self,
        user: str,
        cluster_ids: Iterable[str],
        edition: Edition,
        sent_at: datetime,
    ) -> int:
        """Mark clusters SENT for a user; return the number of rows changed."""
        ...

    def append_alert_record(self, record: BreakingAlertRecord) -> None:
        """Append a breaking alert record."""
        ...

    def count_alerts_since(self, user: str, since: datetime) -> int:
        """Count a user's alerts sent at or after ``since``."""
        ...

    def has_alert(self, user: str, cluster_id: str) -> bool:
        """Check whether a user was already alerted about a cluster."""
        ...

    def append_send_log(self, record: SendLogRecord) -> None:
        """Append a digest send log record."""
        ...

    def begin_run(
        self, run_id: str | None = None, started_at: datetime | None = None
    ) -> CycleRun:
        """Record the start of a curation cycle."""
        ...

    def end_run(  # noqa: PLR0913
        self,
        run_id: str,
        success: bool,
        error_summary: str | None = None,
        articles_in: int = 0,
        articles_new: int = 0,
        articles_clustered: int = 0,
    ) -> CycleRun:
        """Close a curation cycle record."""
        ...
