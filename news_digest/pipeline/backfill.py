"""Backfill: index embeddings for clustered articles missing from the index."""

from dataclasses import dataclass

import structlog

from news_digest.clustering.engine import ClusterEngine
from news_digest.embeddings.protocols import Embedder
from news_digest.store.store import StateStore
from news_digest.vector.protocols import VectorIndex


logger = structlog.get_logger()


@dataclass
class BackfillResult:
    """Counts from one backfill pass."""

    examined: int = 0
    already_indexed: int = 0
    unclustered: int = 0
    indexed: int = 0


def backfill_index(  # noqa: PLR0913
    store: StateStore,
    index: VectorIndex,
    embedder: Embedder,
    engine: ClusterEngine,
    limit: int,
    run_id: str,
) -> BackfillResult:
    """Embed and index recent clustered articles absent from the index.

    Unclustered articles are left to the next curation cycle, which indexes
    them once their cluster commits.

    Args:
        store: State store.
        index: Vector index.
        embedder: Embedding client.
        engine: Cluster engine (owns the index metadata layout).
        limit: Most recent articles to examine.
        run_id: Run identifier for logging.

    Returns:
        Backfill counts.

    Raises:
        TransientProviderError: If embedding or indexing fails.
    """
    log = logger.bind(component="backfill", run_id=run_id)
    result = BackfillResult()

    articles = store.get_recent_articles(limit)
    result.examined = len(articles)

    pending = []
    for article in articles:
        if article.cluster_id is None:
            result.unclustered += 1
        elif index.exists(article.id):
            result.already_indexed += 1
        else:
            pending.append(article)

    if pending:
        vectors = embedder.embed([a.embedding_text for a in pending])
        for article, vector in zip(pending, vectors, strict=True):
            engine.index_article(article, vector)
        result.indexed = len(pending)

    log.info(
        "backfill_complete",
        examined=result.examined,
        already_indexed=result.already_indexed,
        unclustered=result.unclustered,
        indexed=result.indexed,
        index_size=index.count(),
    )
    return result
