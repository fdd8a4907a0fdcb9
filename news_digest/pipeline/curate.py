"""Curation cycle: ingest, embed, cluster and maintain."""

from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from datetime import UTC, datetime

import structlog

from news_digest.clustering.engine import ClusterEngine
from news_digest.config.schemas import Settings
from news_digest.embeddings.errors import ProviderError, TransientProviderError
from news_digest.embeddings.protocols import Embedder
from news_digest.pipeline.models import CycleResult, IngestStats
from news_digest.pipeline.state_machine import CycleState, CycleStateMachine
from news_digest.scoring.extraction import extract_entities
from news_digest.scoring.scorer import score_article
from news_digest.sources.protocols import ArticleSource
from news_digest.store.errors import StateStoreError
from news_digest.store.hash import compute_article_id
from news_digest.store.models import Article, RawArticle
from news_digest.store.protocols import Store
from news_digest.store.url import canonicalize_url


logger = structlog.get_logger()


def build_article(raw: RawArticle, now: datetime) -> Article:
    """Turn a raw feed article into a stored article.

    The URL is canonicalized and hashed into the article id; base score and
    entities are computed at ingestion time.
    """
    url = canonicalize_url(raw.url)
    entity_text = f"{raw.title} {raw.summary}" if raw.summary else raw.title
    return Article(
        id=compute_article_id(url),
        url=url,
        title=raw.title,
        summary=raw.summary,
        content=raw.content,
        author=raw.author,
        source=raw.source,
        source_url=raw.source_url,
        published_at=raw.published_at,
        image_url=raw.image_url,
        base_score=score_article(raw, now),
        entities=extract_entities(entity_text),
    )


class CurationCycle:
    """Runs one ingestion and clustering pass.

    A failure before clustering (source, embedding, store) aborts the cycle
    with nothing clustered. Unclustered articles, and clustered ones whose
    vector was never indexed, are retried next cycle.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: Store,
        source: ArticleSource,
        embedder: Embedder,
        engine: ClusterEngine,
        settings: Settings,
        run_id: str,
    ) -> None:
        """Initialize the cycle.

        Args:
            store: Durable state.
            source: Where raw articles come from.
            embedder: Text embedding client.
            engine: Cluster engine bound to the same store.
            settings: Application settings.
            run_id: Run identifier.
        """
        self._store = store
        self._source = source
        self._embedder = embedder
        self._engine = engine
        self._settings = settings
        self._run_id = run_id
        self._log = logger.bind(component="pipeline", run_id=run_id)

    def run(self, now: datetime | None = None) -> CycleResult:
        """Execute the cycle.

        Args:
            now: Time snapshot used for the whole cycle.

        Returns:
            The cycle outcome; ``success`` is False if the cycle aborted.
        """
        now = now or datetime.now(UTC)
        machine = CycleStateMachine(self._run_id)
        result = CycleResult(run_id=self._run_id, started_at=now)
        self._store.begin_run(self._run_id, started_at=now)
        self._log.info("cycle_started")

        try:
            self._run_phases(machine, result, now)
        except (ProviderError, StateStoreError) as e:
            self._finish_failed(machine, result, e)
            return result
        except Exception as e:
            self._finish_failed(machine, result, e)
            raise

        result.finished_at = datetime.now(UTC)
        self._store.end_run(
            self._run_id,
            success=True,
            articles_in=result.ingest.articles_in,
            articles_new=result.ingest.articles_new,
            articles_clustered=result.articles_clustered,
        )
        self._log.info("cycle_complete", **result.to_dict())
        return result

    def _run_phases(
        self, machine: CycleStateMachine, result: CycleResult, now: datetime
    ) -> None:
        raw_articles = self._source.fetch()
        result.ingest = self.ingest(raw_articles, now)

        pending = self._store.get_pending_articles()
        machine.transition(CycleState.EMBEDDING)
        embeddings = self.embed([a.embedding_text for a in pending])

        machine.transition(CycleState.CLUSTERING)
        outcomes: Counter[str] = Counter()
        for article, embedding in zip(pending, embeddings, strict=True):
            assignment = self._engine.assign(article, embedding, now)
            outcomes[assignment.outcome.value] += 1
        result.articles_clustered = len(pending)
        result.outcomes = dict(outcomes)

        machine.transition(CycleState.MAINTAINING)
        active = self._store.get_active_clusters()
        result.clusters_refreshed = self._engine.refresh_active(active, now)
        result.clusters_merged = self._engine.merge_related(active, now)
        result.clusters_staled = self._engine.mark_stale(
            active, self._settings.clustering.stale_after_hours, now
        )

        machine.transition(CycleState.FINISHED_SUCCESS)
        result.state = machine.state

    def _finish_failed(
        self, machine: CycleStateMachine, result: CycleResult, error: Exception
    ) -> None:
        machine.fail()
        result.state = machine.state
        result.error = f"{type(error).__name__}: {error}"
        result.finished_at = datetime.now(UTC)
        self._log.error("cycle_failed", error=result.error)
        self._store.end_run(
            self._run_id,
            success=False,
            error_summary=result.error,
            articles_in=result.ingest.articles_in,
            articles_new=result.ingest.articles_new,
            articles_clustered=result.articles_clustered,
        )

    def ingest(self, raw_articles: list[RawArticle], now: datetime) -> IngestStats:
        """Canonicalize, deduplicate and store a batch of raw articles.

        Duplicates are dropped within the batch and against the store; the
        canonical URL is the unique key.

        Args:
            raw_articles: Articles from the source.
            now: Time snapshot for base scoring.

        Returns:
            Ingestion counts.
        """
        stats = IngestStats(articles_in=len(raw_articles))
        seen: set[str] = set()

        for raw in raw_articles:
            article = build_article(raw, now)
            if article.url in seen or self._store.article_exists(article.url):
                stats.articles_duplicate += 1
                continue
            seen.add(article.url)

            if self._store.insert_article(article):
                stats.articles_new += 1
            else:
                stats.articles_duplicate += 1

        self._log.info(
            "articles_ingested",
            articles_in=stats.articles_in,
            articles_new=stats.articles_new,
            articles_duplicate=stats.articles_duplicate,
        )
        return stats

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed a batch under the configured timeout.

        Raises:
            TransientProviderError: On provider failure, timeout or a
                vector count that does not match the input.
        """
        if not texts:
            return []

        timeout = self._settings.pipeline.embed_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=1)
        future = executor.submit(self._embedder.embed, texts)
        try:
            vectors = future.result(timeout=timeout)
        except FuturesTimeoutError as e:
            self._log.warning("embedding_timeout", timeout_seconds=timeout)
            raise TransientProviderError(
                f"embedding batch timed out after {timeout}s"
            ) from e
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if len(vectors) != len(texts):
            raise TransientProviderError(
                f"embedder returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors
