"""Data models for articles, story clusters and per-user delivery state."""

from datetime import UTC, datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from news_digest.data_model import StrictBaseModel


def _as_utc(value: Any) -> Any:
    """Coerce naive datetimes to UTC and aware ones to the UTC zone."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    return value


class ClusterStatus(str, Enum):
    """Lifecycle status of a story cluster.

    - ACTIVE: Accepting new members and eligible for digests and alerts
    - STALE: Terminal; no longer updated or selected
    """

    ACTIVE = "ACTIVE"
    STALE = "STALE"


class CurationStatus(str, Enum):
    """Per-user delivery status of a cluster."""

    PENDING = "PENDING"
    SENT = "SENT"


class Edition(str, Enum):
    """Scheduled digest slot."""

    MORNING = "MORNING"
    EVENING = "EVENING"


class ArticleEntities(StrictBaseModel):
    """Naively extracted entities for an article.

    Attributes:
        people: Person names (currently never populated).
        orgs: Organisation names (currently never populated).
        locations: Capitalised words from the title and summary.
    """

    people: list[str] = Field(default_factory=list)
    orgs: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)


class RawArticle(StrictBaseModel):
    """Article record as returned by a feed source, before scoring."""

    url: Annotated[str, Field(min_length=1)]
    title: Annotated[str, Field(min_length=1)]
    summary: str | None = None
    content: str | None = None
    author: str | None = None
    source: Annotated[str, Field(min_length=1, description="Outlet name")]
    source_url: str | None = None
    published_at: datetime
    image_url: str | None = None

    @field_validator("published_at", mode="after")
    @classmethod
    def coerce_published_at(cls, v: Any) -> Any:
        """Normalize publication time to UTC."""
        return _as_utc(v)


class Article(StrictBaseModel):
    """Stored article. Immutable once stored.

    The owning cluster holds the membership edge; ``cluster_id`` is only a
    back-reference and is ``None`` until clustering has run over the article.
    """

    id: Annotated[str, Field(min_length=1)]
    url: Annotated[str, Field(min_length=1, description="Canonical URL (unique)")]
    title: Annotated[str, Field(min_length=1)]
    summary: str | None = None
    content: str | None = None
    author: str | None = None
    source: Annotated[str, Field(min_length=1)]
    source_url: str | None = None
    published_at: datetime
    image_url: str | None = None
    base_score: Annotated[int, Field(ge=0)] = 1
    entities: ArticleEntities | None = None
    cluster_id: str | None = None

    @field_validator("published_at", mode="after")
    @classmethod
    def coerce_published_at(cls, v: Any) -> Any:
        """Normalize publication time to UTC."""
        return _as_utc(v)

    @property
    def has_image(self) -> bool:
        """Whether the article carries an image."""
        return bool(self.image_url)

    @property
    def embedding_text(self) -> str:
        """Text sent to the embedder: title plus summary when present."""
        if self.summary:
            return f"{self.title}. {self.summary}"
        return self.title

    def with_cluster(self, cluster_id: str | None) -> "Article":
        """Return a copy pointing at a different owning cluster."""
        return self.model_copy(update={"cluster_id": cluster_id})


class StoryCluster(BaseModel):
    """A set of articles judged to describe the same real-world event.

    Mutable aggregate: membership, statistics and status are changed only by
    the cluster engine and persisted as one unit.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    id: Annotated[str, Field(min_length=1)]
    label: Annotated[str, Field(min_length=1)]
    keywords: list[str] = Field(default_factory=list)
    status: ClusterStatus = ClusterStatus.ACTIVE
    source_count: Annotated[int, Field(ge=0)] = 0
    article_count: Annotated[int, Field(ge=0)] = 0
    peak_velocity: Annotated[float, Field(ge=0.0)] = 0.0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_updated: datetime = Field(default_factory=lambda: datetime.now(UTC))
    merged_into: str | None = None
    articles: list[Article] = Field(default_factory=list)

    @field_validator("created_at", "last_updated", mode="after")
    @classmethod
    def coerce_timestamps(cls, v: Any) -> Any:
        """Normalize lifecycle timestamps to UTC."""
        return _as_utc(v)

    @property
    def is_active(self) -> bool:
        """Whether the cluster is still ACTIVE."""
        return self.status == ClusterStatus.ACTIVE

    @property
    def has_image(self) -> bool:
        """Whether any member article carries an image."""
        return any(a.has_image for a in self.articles)

    @property
    def sources(self) -> set[str]:
        """Distinct outlets among member articles."""
        return {a.source for a in self.articles}

    @property
    def latest_article(self) -> Article | None:
        """Member with the most recent ``published_at``.

        Ties resolve to the earliest member in membership order.
        """
        latest: Article | None = None
        for article in self.articles:
            if latest is None or article.published_at > latest.published_at:
                latest = article
        return latest

    @property
    def article_ids(self) -> list[str]:
        """IDs of member articles in membership order."""
        return [a.id for a in self.articles]


class UserCuration(StrictBaseModel):
    """Per-user, per-cluster delivery state.

    A cluster with no record for a user is treated as PENDING.
    """

    user: Annotated[str, Field(min_length=1)]
    cluster_id: Annotated[str, Field(min_length=1)]
    status: CurationStatus = CurationStatus.PENDING
    sent_at: datetime | None = None
    edition: Edition | None = None


class BreakingAlertRecord(StrictBaseModel):
    """Append-only record of a breaking alert sent to a user."""

    user: Annotated[str, Field(min_length=1)]
    cluster_id: Annotated[str, Field(min_length=1)]
    headline: Annotated[str, Field(min_length=1)]
    urgency: Annotated[float, Field(ge=0.0)]
    article_ids: list[str] = Field(default_factory=list)
    sent_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @field_validator("sent_at", mode="after")
    @classmethod
    def coerce_sent_at(cls, v: Any) -> Any:
        """Normalize send time to UTC."""
        return _as_utc(v)


class SendLogRecord(StrictBaseModel):
    """Record of one digest delivery attempt."""

    user: Annotated[str, Field(min_length=1)]
    edition: Edition
    success: bool
    message_id: str | None = None
    feature_cluster_id: str | None = None
    key_cluster_ids: list[str] = Field(default_factory=list)
    quick_cluster_ids: list[str] = Field(default_factory=list)
    sent_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CycleRun(StrictBaseModel):
    """Tracking record for one curation cycle."""

    run_id: Annotated[str, Field(min_length=1, description="Unique run identifier")]
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the cycle started",
    )
    finished_at: datetime | None = Field(
        default=None, description="When the cycle finished (nullable if in progress)"
    )
    success: bool | None = Field(
        default=None, description="Whether the cycle succeeded"
    )
    error_summary: str | None = Field(
        default=None, description="Error summary if failed"
    )
    articles_in: int = 0
    articles_new: int = 0
    articles_clustered: int = 0
