"""Builders for domain objects used across tests."""

from datetime import datetime, timedelta

from news_digest.config.schemas import (
    QuietHours,
    Schedule,
    UserBreaking,
    UserPreferences,
    UserProfile,
)
from news_digest.store.hash import compute_article_id
from news_digest.store.models import Article, ClusterStatus, RawArticle, StoryCluster
from news_digest.store.store import StateStore
from tests.helpers.time import FIXED_NOW


def make_raw_article(
    url: str = "https://news.example.com/story",
    title: str = "Test Story",
    source: str = "Outlet A",
    published_at: datetime | None = None,
    summary: str | None = None,
    image_url: str | None = None,
) -> RawArticle:
    """Create a raw feed article."""
    return RawArticle(
        url=url,
        title=title,
        source=source,
        summary=summary,
        published_at=published_at or FIXED_NOW - timedelta(minutes=30),
        image_url=image_url,
    )


def make_article(  # noqa: PLR0913
    url: str = "https://news.example.com/story",
    title: str = "Test Story",
    source: str = "Outlet A",
    published_at: datetime | None = None,
    summary: str | None = None,
    image_url: str | None = None,
    cluster_id: str | None = None,
) -> Article:
    """Create a stored article whose id is derived from its URL."""
    return Article(
        id=compute_article_id(url),
        url=url,
        title=title,
        source=source,
        summary=summary,
        published_at=published_at or FIXED_NOW - timedelta(minutes=30),
        image_url=image_url,
        cluster_id=cluster_id,
    )


def make_cluster(  # noqa: PLR0913
    cluster_id: str = "cluster-1",
    label: str = "Test Story",
    sources: list[str] | None = None,
    peak_velocity: float = 0.0,
    published_at: datetime | None = None,
    keywords: list[str] | None = None,
    status: ClusterStatus = ClusterStatus.ACTIVE,
    image: bool = False,
    created_at: datetime | None = None,
) -> StoryCluster:
    """Create a cluster with one member per source and consistent counts."""
    sources = sources if sources is not None else ["Outlet A"]
    articles = [
        make_article(
            url=f"https://news.example.com/{cluster_id}/{i}",
            title=label,
            source=source,
            published_at=published_at,
            image_url="https://img.example.com/a.jpg" if image and i == 0 else None,
            cluster_id=cluster_id,
        )
        for i, source in enumerate(sources)
    ]
    created = created_at or FIXED_NOW - timedelta(hours=1)
    return StoryCluster(
        id=cluster_id,
        label=label,
        keywords=keywords or [],
        status=status,
        source_count=len(set(sources)),
        article_count=len(articles),
        peak_velocity=peak_velocity,
        created_at=created,
        last_updated=created,
        articles=articles,
    )


def make_profile(  # noqa: PLR0913
    email: str = "reader@example.com",
    timezone: str = "UTC",
    boost: list[str] | None = None,
    exclude: list[str] | None = None,
    breaking_enabled: bool = True,
    quiet_hours: QuietHours | None = None,
) -> UserProfile:
    """Create a user profile."""
    return UserProfile(
        email=email,
        schedule=Schedule(timezone=timezone),
        topics=UserPreferences(boost=boost or [], exclude=exclude or []),
        breaking=UserBreaking(enabled=breaking_enabled, quiet_hours=quiet_hours),
    )


def persist_cluster(store: StateStore, cluster: StoryCluster) -> StoryCluster:
    """Store a cluster's articles unclustered, then save the cluster over them."""
    for article in cluster.articles:
        store.insert_article(article.with_cluster(None))
    store.save_cluster(cluster)
    return cluster
