"""Persistent state for articles, story clusters and delivery records."""

from news_digest.store.errors import (
    DatabaseError,
    MigrationError,
    RunNotFoundError,
    StateStoreError,
)
from news_digest.store.hash import compute_article_id, new_cluster_id
from news_digest.store.models import (
    Article,
    ArticleEntities,
    BreakingAlertRecord,
    ClusterStatus,
    CurationStatus,
    CycleRun,
    Edition,
    RawArticle,
    SendLogRecord,
    StoryCluster,
    UserCuration,
)
from news_digest.store.protocols import Store
from news_digest.store.store import StateStore
from news_digest.store.url import canonicalize_url


__all__ = [
    "Article",
    "ArticleEntities",
    "BreakingAlertRecord",
    "ClusterStatus",
    "CurationStatus",
    "CycleRun",
    "DatabaseError",
    "Edition",
    "MigrationError",
    "RawArticle",
    "RunNotFoundError",
    "SendLogRecord",
    "StateStore",
    "StateStoreError",
    "Store",
    "StoryCluster",
    "UserCuration",
    "canonicalize_url",
    "compute_article_id",
    "new_cluster_id",
]
