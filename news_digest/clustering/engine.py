"""Incremental online clustering of articles into story clusters."""

from datetime import datetime, timedelta

import structlog

from news_digest.clustering.errors import DataInconsistencyError
from news_digest.clustering.locks import ClusterLockRegistry
from news_digest.clustering.metrics import ClusteringMetrics
from news_digest.clustering.models import AssignmentOutcome, AssignmentResult
from news_digest.clustering.state_machine import ClusterLifecycle
from news_digest.config.schemas import ClusteringSettings
from news_digest.scoring.extraction import extract_keywords
from news_digest.store.hash import new_cluster_id
from news_digest.store.models import Article, StoryCluster
from news_digest.store.protocols import Store
from news_digest.vector.protocols import VectorIndex, VectorMatch
from news_digest.vector.similarity import FloatArray, cosine_similarity, mean_vector


logger = structlog.get_logger()

# Window over which velocity (articles per hour) is measured
VELOCITY_WINDOW = timedelta(hours=1)


def source_overlap(a: set[str], b: set[str]) -> float:
    """Shared-source ratio ``|A & B| / min(|A|, |B|)``; 1.0 if either is empty."""
    smaller = min(len(a), len(b))
    if smaller == 0:
        return 1.0
    return len(a & b) / smaller


class ClusterEngine:
    """Assigns embedded articles to story clusters and maintains them.

    Every read-modify-write of a cluster aggregate happens under that
    cluster's lock and is persisted in one store transaction. Vectors enter
    the index only after the owning cluster has been committed, so an
    article that fails mid-assignment is retried cleanly on the next cycle.
    """

    def __init__(  # noqa: PLR0913
        self,
        store: Store,
        index: VectorIndex,
        settings: ClusteringSettings,
        run_id: str,
        locks: ClusterLockRegistry | None = None,
        metrics: ClusteringMetrics | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            store: Durable cluster and article storage.
            index: Vector index over article embeddings.
            settings: Clustering thresholds.
            run_id: Run identifier for logging.
            locks: Shared per-cluster lock registry.
            metrics: Metrics sink (defaults to the singleton).
        """
        self._store = store
        self._index = index
        self._settings = settings
        self._locks = locks or ClusterLockRegistry()
        self._metrics = metrics or ClusteringMetrics.get_instance()
        self._lifecycle = ClusterLifecycle(run_id)
        self._log = logger.bind(component="clustering", run_id=run_id)

    @property
    def locks(self) -> ClusterLockRegistry:
        """Get the per-cluster lock registry."""
        return self._locks

    # ===== Assignment =====

    def assign(
        self, article: Article, embedding: list[float], now: datetime
    ) -> AssignmentResult:
        """Assign an article to an existing cluster or a new one.

        Args:
            article: Stored article to assign.
            embedding: The article's embedding.
            now: Cycle time snapshot.

        Returns:
            What happened to the article.

        Raises:
            TransientProviderError: If the vector index fails.
        """
        if self._index.exists(article.id):
            self._metrics.record_skipped()
            self._log.debug("article_already_indexed", article_id=article.id)
            return AssignmentResult(
                article_id=article.id, outcome=AssignmentOutcome.SKIPPED
            )

        stored = self._store.get_article(article.id) or article
        if stored.cluster_id is not None:
            # Cluster committed on an earlier attempt; only the vector is missing
            self.index_article(stored, embedding)
            self._metrics.record_already_clustered()
            return AssignmentResult(
                article_id=article.id,
                outcome=AssignmentOutcome.EXISTING,
                cluster_id=stored.cluster_id,
            )

        matches = self._index.query(
            embedding,
            k=self._settings.query_k,
            min_similarity=self._settings.similarity_threshold,
        )
        candidates = [
            m
            for m in matches
            if m.id != article.id and m.metadata.get("source") != article.source
        ]

        result: AssignmentResult | None = None
        if candidates:
            best = candidates[0]
            try:
                result = self._join_owner(stored, best, now)
            except DataInconsistencyError as e:
                self._metrics.record_inconsistency()
                self._log.warning(
                    "data_inconsistency",
                    article_id=e.article_id,
                    matched_article_id=e.matched_article_id,
                    error=str(e),
                )

        if result is None:
            nearest = candidates[0] if candidates else None
            result = self._create_cluster(stored, now, nearest)

        self.index_article(stored, embedding)
        return result

    def _join_owner(
        self, article: Article, match: VectorMatch, now: datetime
    ) -> AssignmentResult:
        """Add an article to the cluster owning its best match.

        Raises:
            DataInconsistencyError: If the match has no ACTIVE owner.
        """
        matched = self._store.get_article(match.id)
        if matched is None or matched.cluster_id is None:
            msg = f"Indexed article {match.id} has no owning cluster"
            raise DataInconsistencyError(msg, article.id, match.id)

        with self._locks.hold(matched.cluster_id):
            owner = self._store.get_cluster_by_id(matched.cluster_id)
            if owner is None:
                msg = f"Cluster {matched.cluster_id} owning {match.id} is gone"
                raise DataInconsistencyError(msg, article.id, match.id)
            if not owner.is_active:
                msg = f"Cluster {owner.id} owning {match.id} is {owner.status.value}"
                raise DataInconsistencyError(msg, article.id, match.id)
            if not owner.articles:
                msg = f"Cluster {owner.id} owning {match.id} has no members"
                raise DataInconsistencyError(msg, article.id, match.id)

            owner.articles = [*owner.articles, article.with_cluster(owner.id)]
            self.refresh_stats(owner, now)
            self._store.save_cluster(owner)

        self._metrics.record_joined()
        self._log.info(
            "article_joined_cluster",
            article_id=article.id,
            cluster_id=owner.id,
            matched_article_id=match.id,
            similarity=round(match.similarity, 4),
            source_count=owner.source_count,
        )
        return AssignmentResult(
            article_id=article.id,
            outcome=AssignmentOutcome.JOINED,
            cluster_id=owner.id,
            matched_article_id=match.id,
            similarity=match.similarity,
        )

    def _create_cluster(
        self, article: Article, now: datetime, match: VectorMatch | None
    ) -> AssignmentResult:
        """Make the article the first member of a new cluster."""
        cluster_id = new_cluster_id()
        with self._locks.hold(cluster_id):
            cluster = StoryCluster(
                id=cluster_id,
                label=article.title,
                keywords=extract_keywords(article.title),
                created_at=now,
                last_updated=now,
                articles=[article.with_cluster(cluster_id)],
            )
            self.refresh_stats(cluster, now)
            self._store.save_cluster(cluster)

        self._metrics.record_created()
        self._log.info(
            "cluster_created",
            article_id=article.id,
            cluster_id=cluster_id,
            keyword_count=len(cluster.keywords),
        )
        return AssignmentResult(
            article_id=article.id,
            outcome=AssignmentOutcome.CREATED,
            cluster_id=cluster_id,
            matched_article_id=match.id if match else None,
            similarity=match.similarity if match else None,
        )

    def index_article(self, article: Article, embedding: list[float]) -> None:
        """Add an article embedding to the vector index with its metadata."""
        self._index.upsert(
            article.id,
            embedding,
            {
                "title": article.title,
                "source": article.source,
                "published_at": article.published_at.isoformat(),
            },
        )

    # ===== Statistics =====

    def refresh_stats(self, cluster: StoryCluster, now: datetime) -> StoryCluster:
        """Recompute a cluster's derived statistics in place.

        Counts are recomputed from membership, never incremented. The label
        becomes the newest member's title; an empty cluster keeps its label.
        ``peak_velocity`` only ever grows.

        Args:
            cluster: Cluster to refresh.
            now: Time snapshot.

        Returns:
            The same cluster, for chaining.
        """
        with self._locks.hold(cluster.id):
            cluster.source_count = len(cluster.sources)
            cluster.article_count = len(cluster.articles)

            latest = cluster.latest_article
            if latest is not None:
                cluster.label = latest.title

            velocity = self._velocity(cluster, now)
            cluster.peak_velocity = max(cluster.peak_velocity, float(velocity))
            cluster.last_updated = now
        return cluster

    @staticmethod
    def _velocity(cluster: StoryCluster, now: datetime) -> int:
        """Members published within the trailing hour."""
        window_start = now - VELOCITY_WINDOW
        return sum(1 for a in cluster.articles if a.published_at > window_start)

    def needs_refresh(self, cluster: StoryCluster, now: datetime) -> bool:
        """Check whether refreshing would change any derived statistic.

        Args:
            cluster: Cluster to inspect.
            now: Time snapshot.

        Returns:
            True if counts, label or peak velocity are out of date.
        """
        latest = cluster.latest_article
        return (
            cluster.source_count != len(cluster.sources)
            or cluster.article_count != len(cluster.articles)
            or (latest is not None and cluster.label != latest.title)
            or self._velocity(cluster, now) > cluster.peak_velocity
        )

    def refresh_active(self, clusters: list[StoryCluster], now: datetime) -> int:
        """Refresh and persist every ACTIVE cluster whose statistics drifted.

        Clusters with nothing to update keep their ``last_updated`` so that
        they can age into STALE.

        Args:
            clusters: Clusters to inspect.
            now: Time snapshot.

        Returns:
            Number of clusters refreshed.
        """
        changed: list[StoryCluster] = []
        for cluster in clusters:
            with self._locks.hold(cluster.id):
                if cluster.is_active and self.needs_refresh(cluster, now):
                    self.refresh_stats(cluster, now)
                    changed.append(cluster)

        self._store.save_clusters(changed)
        self._metrics.record_refreshed(len(changed))
        self._log.info(
            "cluster_stats_refreshed",
            clusters_checked=len(clusters),
            clusters_refreshed=len(changed),
        )
        return len(changed)

    # ===== Lifecycle =====

    def mark_stale(
        self,
        active_clusters: list[StoryCluster],
        stale_after_hours: float,
        now: datetime,
    ) -> int:
        """Move clusters without recent updates to STALE.

        Args:
            active_clusters: Clusters to inspect.
            stale_after_hours: Hours without an update before going STALE.
            now: Time snapshot.

        Returns:
            Number of clusters transitioned.
        """
        cutoff = now - timedelta(hours=stale_after_hours)
        staled: list[StoryCluster] = []

        for cluster in active_clusters:
            with self._locks.hold(cluster.id):
                if cluster.is_active and cluster.last_updated < cutoff:
                    self._lifecycle.mark_stale(cluster)
                    staled.append(cluster)
        for cluster in staled:
            self._locks.discard(cluster.id)

        self._store.save_clusters(staled)
        self._metrics.record_staled(len(staled))
        if staled:
            self._log.info(
                "clusters_marked_stale",
                count=len(staled),
                stale_after_hours=stale_after_hours,
            )
        return len(staled)

    # ===== Merging =====

    def merge_related(self, active_clusters: list[StoryCluster], now: datetime) -> int:
        """Merge ACTIVE clusters that describe the same event.

        Two clusters merge when the cosine similarity of their mean member
        embeddings reaches ``similarity_threshold`` and their shared-source
        ratio is at most ``max_merge_source_overlap``. The newer cluster's
        members move into the older one; the absorbed cluster is emptied,
        marked STALE and pointed at the survivor.

        Args:
            active_clusters: Clusters to consider.
            now: Time snapshot.

        Returns:
            Number of merges performed.
        """
        if not self._settings.merge_enabled:
            return 0

        clusters = sorted(
            (c for c in active_clusters if c.is_active and c.articles),
            key=lambda c: (c.created_at, c.id),
        )
        representatives = {c.id: self._representative(c) for c in clusters}
        absorbed: set[str] = set()
        merges = 0

        for i, survivor in enumerate(clusters):
            if survivor.id in absorbed:
                continue
            for candidate in clusters[i + 1 :]:
                if candidate.id in absorbed:
                    continue
                if not self._should_merge(
                    survivor,
                    candidate,
                    representatives[survivor.id],
                    representatives[candidate.id],
                ):
                    continue

                self._absorb(survivor, candidate, now)
                absorbed.add(candidate.id)
                merges += 1
                representatives[survivor.id] = self._representative(survivor)

        if merges:
            self._log.info("clusters_merged", merges=merges)
        return merges

    def _representative(self, cluster: StoryCluster) -> FloatArray | None:
        found = (self._index.get(a.id) for a in cluster.articles)
        vectors = [v for v in found if v is not None]
        return mean_vector(vectors)

    def _should_merge(
        self,
        older: StoryCluster,
        newer: StoryCluster,
        older_rep: FloatArray | None,
        newer_rep: FloatArray | None,
    ) -> bool:
        if older_rep is None or newer_rep is None:
            return False
        similarity = cosine_similarity(older_rep, newer_rep)
        if similarity < self._settings.similarity_threshold:
            return False
        overlap = source_overlap(older.sources, newer.sources)
        return overlap <= self._settings.max_merge_source_overlap

    def _absorb(
        self, survivor: StoryCluster, absorbed: StoryCluster, now: datetime
    ) -> None:
        """Move members from ``absorbed`` into ``survivor`` and persist both."""
        with self._locks.hold(survivor.id, absorbed.id):
            moved = [a.with_cluster(survivor.id) for a in absorbed.articles]
            survivor.articles = [*survivor.articles, *moved]
            self.refresh_stats(survivor, now)

            absorbed.articles = []
            self.refresh_stats(absorbed, now)
            self._lifecycle.mark_stale(absorbed)
            absorbed.merged_into = survivor.id

            self._store.save_clusters([survivor, absorbed])
        self._locks.discard(absorbed.id)

        self._metrics.record_merged()
        self._log.info(
            "cluster_absorbed",
            survivor_id=survivor.id,
            absorbed_id=absorbed.id,
            moved_articles=len(moved),
            source_count=survivor.source_count,
        )
