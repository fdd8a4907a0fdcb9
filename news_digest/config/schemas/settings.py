"""Schema for settings.yaml."""

from typing import Annotated

from pydantic import Field, model_validator

from news_digest.data_model import StrictBaseModel


class QuietHours(StrictBaseModel):
    """Local-hour window during which only critical alerts go out.

    ``start > end`` wraps around midnight; ``start == end`` is an empty window.

    Attributes:
        start: First quiet hour (inclusive).
        end: First non-quiet hour (exclusive).
    """

    start: Annotated[int, Field(ge=0, le=23)] = 22
    end: Annotated[int, Field(ge=0, le=23)] = 7


class BreakingSettings(StrictBaseModel):
    """Breaking alert gating configuration.

    Attributes:
        enabled: Global switch for the breaking flow.
        max_per_day: Alerts per user per local day. Never overridden.
        quiet_hours: Default quiet window for users without their own.
        urgency_threshold: Minimum urgency for a breaking candidate.
        critical_override_threshold: Urgency at which quiet hours are ignored.
        top_candidates: Highest-velocity clusters considered per check.
    """

    enabled: bool = True
    max_per_day: Annotated[int, Field(ge=0)] = 3
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    urgency_threshold: Annotated[float, Field(ge=0.0, le=1.0)] = 0.6
    critical_override_threshold: Annotated[float, Field(ge=0.0, le=1.0)] = 0.85
    top_candidates: Annotated[int, Field(ge=1)] = 10

    @model_validator(mode="after")
    def validate_thresholds(self) -> "BreakingSettings":
        """Ensure the critical override is not below the candidate threshold."""
        if self.critical_override_threshold < self.urgency_threshold:
            msg = "critical_override_threshold must be >= urgency_threshold"
            raise ValueError(msg)
        return self


class ClusteringSettings(StrictBaseModel):
    """Online clustering configuration.

    Attributes:
        similarity_threshold: Minimum cosine similarity to join a cluster.
        min_sources_for_trending: Minimum distinct sources for a breaking candidate.
        cluster_window_hours: Look-back window for the ``clusters`` listing.
        stale_after_hours: Hours without updates before a cluster goes STALE.
        query_k: Nearest neighbours fetched per assignment.
        merge_enabled: Whether related active clusters are merged.
        max_merge_source_overlap: Maximum shared-source ratio for a merge.
    """

    similarity_threshold: Annotated[float, Field(ge=0.0, le=1.0)] = 0.85
    min_sources_for_trending: Annotated[int, Field(ge=1)] = 3
    cluster_window_hours: Annotated[int, Field(ge=1)] = 48
    stale_after_hours: Annotated[float, Field(gt=0.0)] = 24.0
    query_k: Annotated[int, Field(ge=1, le=100)] = 5
    merge_enabled: bool = True
    max_merge_source_overlap: Annotated[float, Field(ge=0.0, le=1.0)] = 0.5


class EmbeddingsSettings(StrictBaseModel):
    """Embedding provider configuration.

    Attributes:
        provider: Provider name (only ``voyage`` is supported).
        model: Embedding model identifier.
        base_url: Embeddings endpoint.
        batch_size: Maximum texts per request.
        timeout_seconds: Per-request HTTP timeout.
        max_retries: Retries on 429/503 responses.
    """

    provider: Annotated[str, Field(pattern=r"^voyage$")] = "voyage"
    model: Annotated[str, Field(min_length=1)] = "voyage-4-lite"
    base_url: Annotated[str, Field(min_length=1)] = (
        "https://api.voyageai.com/v1/embeddings"
    )
    batch_size: Annotated[int, Field(ge=1, le=1000)] = 128
    timeout_seconds: Annotated[float, Field(gt=0.0)] = 30.0
    max_retries: Annotated[int, Field(ge=0, le=10)] = 3


class FeedConfig(StrictBaseModel):
    """A single RSS/Atom feed.

    Attributes:
        name: Outlet name used as the article source.
        url: Feed URL.
        enabled: Whether the feed is fetched.
    """

    name: Annotated[str, Field(min_length=1, max_length=100)]
    url: Annotated[str, Field(pattern=r"^https?://")]
    enabled: bool = True


class PipelineSettings(StrictBaseModel):
    """Pipeline execution configuration.

    Attributes:
        embed_timeout_seconds: Deadline for one cycle's embedding batch.
        max_workers: Concurrent per-user digest tasks.
        fetch_timeout_seconds: HTTP timeout for feed fetches.
        outbox_dir: Directory where digests and alerts are written.
    """

    embed_timeout_seconds: Annotated[float, Field(gt=0.0)] = 120.0
    max_workers: Annotated[int, Field(ge=1, le=32)] = 4
    fetch_timeout_seconds: Annotated[float, Field(gt=0.0)] = 20.0
    outbox_dir: Annotated[str, Field(min_length=1)] = "outbox"


class DigestSettings(StrictBaseModel):
    """Digest branding passed through to the renderer."""

    brand_name: Annotated[str, Field(min_length=1)] = "News Digest"
    tagline: str = ""


class Settings(StrictBaseModel):
    """Root configuration for settings.yaml."""

    breaking: BreakingSettings = Field(default_factory=BreakingSettings)
    clustering: ClusteringSettings = Field(default_factory=ClusteringSettings)
    embeddings: EmbeddingsSettings = Field(default_factory=EmbeddingsSettings)
    pipeline: PipelineSettings = Field(default_factory=PipelineSettings)
    digest: DigestSettings = Field(default_factory=DigestSettings)
    feeds: list[FeedConfig] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_feed_names(self) -> "Settings":
        """Ensure feed names are unique."""
        names = [feed.name for feed in self.feeds]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"Duplicate feed names: {duplicates}"
            raise ValueError(msg)
        return self
