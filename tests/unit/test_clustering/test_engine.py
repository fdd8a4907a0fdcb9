"""Unit tests for the cluster engine over an in-memory store and index."""

import math
from collections.abc import Generator
from datetime import timedelta

import pytest

from news_digest.clustering.engine import ClusterEngine, source_overlap
from news_digest.clustering.metrics import ClusteringMetrics
from news_digest.clustering.models import AssignmentOutcome
from news_digest.config.schemas import ClusteringSettings
from news_digest.store.models import Article, ClusterStatus
from news_digest.store.store import StateStore
from news_digest.vector.index import SqliteVectorIndex
from tests.helpers.factories import make_article
from tests.helpers.time import FIXED_NOW


ELECTION_A = [1.0, 0.0, 0.0]
# cosine 0.92 against ELECTION_A
ELECTION_B = [0.92, math.sqrt(1 - 0.92**2), 0.0]
UNRELATED = [0.0, 0.0, 1.0]


@pytest.fixture
def store() -> Generator[StateStore]:
    """Create a connected in-memory store."""
    store = StateStore(":memory:", run_id="test-run")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def index(store: StateStore) -> SqliteVectorIndex:
    """Create a vector index sharing the store's connection."""
    return SqliteVectorIndex(store.connection, lock=store.lock)


@pytest.fixture
def metrics() -> ClusteringMetrics:
    """Create an isolated metrics sink."""
    return ClusteringMetrics()


def _make_engine(
    store: StateStore,
    index: SqliteVectorIndex,
    metrics: ClusteringMetrics,
    **overrides: object,
) -> ClusterEngine:
    settings = ClusteringSettings.model_validate(
        {"similarity_threshold": 0.8, **overrides}
    )
    return ClusterEngine(store, index, settings, run_id="test-run", metrics=metrics)


def _stored(store: StateStore, **kwargs: object) -> Article:
    article = make_article(**kwargs)  # type: ignore[arg-type]
    store.insert_article(article)
    return article


class TestSourceOverlap:
    """Tests for the shared-source ratio."""

    def test_disjoint(self) -> None:
        """Disjoint sets have no overlap."""
        assert source_overlap({"A"}, {"B"}) == 0.0

    def test_relative_to_smaller(self) -> None:
        """Overlap is measured against the smaller set."""
        assert source_overlap({"A", "B", "C", "D"}, {"A", "E"}) == 0.5

    def test_empty_set(self) -> None:
        """An empty set counts as full overlap."""
        assert source_overlap(set(), {"A"}) == 1.0


class TestAssign:
    """Tests for article assignment."""

    def test_election_scenario(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """A different-source match at 0.92 joins; source_count becomes 2."""
        engine = _make_engine(store, index, metrics)
        first = _stored(
            store,
            url="https://a.example.com/election",
            title="Election called",
            source="A",
        )
        second = _stored(
            store,
            url="https://b.example.com/election",
            title="Election date set",
            source="B",
        )

        created = engine.assign(first, ELECTION_A, FIXED_NOW)
        joined = engine.assign(second, ELECTION_B, FIXED_NOW)

        assert created.outcome == AssignmentOutcome.CREATED
        assert joined.outcome == AssignmentOutcome.JOINED
        assert joined.cluster_id == created.cluster_id
        assert joined.similarity == pytest.approx(0.92, abs=1e-4)

        cluster = store.get_cluster_by_id(created.cluster_id or "")
        assert cluster is not None
        assert cluster.source_count == 2
        assert cluster.article_count == 2
        assert cluster.article_ids == [first.id, second.id]

    def test_same_source_does_not_join(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Matches from the same outlet do not corroborate."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        second = _stored(store, url="https://a.example.com/2", source="A")

        first_result = engine.assign(first, ELECTION_A, FIXED_NOW)
        second_result = engine.assign(second, ELECTION_B, FIXED_NOW)

        assert second_result.outcome == AssignmentOutcome.CREATED
        assert second_result.cluster_id != first_result.cluster_id

    def test_below_threshold_creates(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """A dissimilar article starts its own cluster."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        second = _stored(store, url="https://b.example.com/2", source="B")

        engine.assign(first, ELECTION_A, FIXED_NOW)
        result = engine.assign(second, UNRELATED, FIXED_NOW)

        assert result.outcome == AssignmentOutcome.CREATED
        assert len(store.get_active_clusters()) == 2

    def test_new_cluster_fields(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """A new cluster is labelled from the title and stamped with now."""
        engine = _make_engine(store, index, metrics)
        article = _stored(
            store,
            url="https://a.example.com/1",
            title="Floods close Pacific Highway",
            source="A",
            published_at=FIXED_NOW - timedelta(minutes=10),
        )

        result = engine.assign(article, ELECTION_A, FIXED_NOW)
        cluster = store.get_cluster_by_id(result.cluster_id or "")

        assert cluster is not None
        assert cluster.label == "Floods close Pacific Highway"
        assert cluster.keywords == ["floods", "close", "pacific", "highway"]
        assert cluster.created_at == FIXED_NOW
        assert cluster.peak_velocity == 1.0
        stored = store.get_article(article.id)
        assert stored is not None
        assert stored.cluster_id == cluster.id

    def test_assign_twice_is_idempotent(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Re-assigning an indexed article changes nothing."""
        engine = _make_engine(store, index, metrics)
        article = _stored(store, url="https://a.example.com/1", source="A")

        first = engine.assign(article, ELECTION_A, FIXED_NOW)
        second = engine.assign(article, ELECTION_A, FIXED_NOW)

        cluster = store.get_cluster_by_id(first.cluster_id or "")
        assert second.outcome == AssignmentOutcome.SKIPPED
        assert cluster is not None
        assert cluster.article_count == 1
        assert metrics.articles_skipped == 1

    def test_already_clustered_only_indexes(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """An article whose cluster committed but vector did not is only indexed."""
        engine = _make_engine(store, index, metrics)
        article = _stored(store, url="https://a.example.com/1", source="A")
        result = engine.assign(article, ELECTION_A, FIXED_NOW)

        # Simulate a lost vector write by using a fresh, empty index table
        store.connection.execute("DELETE FROM article_vectors")
        store.connection.commit()
        fresh_index = SqliteVectorIndex(store.connection, lock=store.lock)
        retry_engine = _make_engine(store, fresh_index, metrics)

        retried = retry_engine.assign(article, ELECTION_A, FIXED_NOW)

        assert retried.outcome == AssignmentOutcome.EXISTING
        assert retried.cluster_id == result.cluster_id
        assert fresh_index.exists(article.id)
        assert len(store.get_active_clusters()) == 1

    def test_stale_owner_falls_back_to_new_cluster(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """A match owned by a STALE cluster is a data inconsistency."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        created = engine.assign(first, ELECTION_A, FIXED_NOW)

        owner = store.get_cluster_by_id(created.cluster_id or "")
        assert owner is not None
        engine.mark_stale([owner], 0.5, FIXED_NOW + timedelta(hours=1))

        second = _stored(store, url="https://b.example.com/2", source="B")
        result = engine.assign(second, ELECTION_B, FIXED_NOW + timedelta(hours=1))

        assert result.outcome == AssignmentOutcome.CREATED
        assert result.cluster_id != created.cluster_id
        assert metrics.inconsistencies == 1

    def test_unowned_match_falls_back_to_new_cluster(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """An indexed peer without a cluster does not crash assignment."""
        engine = _make_engine(store, index, metrics)
        orphan = _stored(store, url="https://a.example.com/orphan", source="A")
        index.upsert(orphan.id, ELECTION_A, {"source": "A", "title": orphan.title})

        article = _stored(store, url="https://b.example.com/2", source="B")
        result = engine.assign(article, ELECTION_B, FIXED_NOW)

        assert result.outcome == AssignmentOutcome.CREATED
        assert result.matched_article_id == orphan.id
        assert metrics.inconsistencies == 1


class TestRefreshStats:
    """Tests for derived statistics."""

    def test_counts_follow_membership(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """source_count equals the number of distinct member sources."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        result = engine.assign(first, ELECTION_A, FIXED_NOW)
        cluster = store.get_cluster_by_id(result.cluster_id or "")
        assert cluster is not None

        cluster.articles = [
            *cluster.articles,
            make_article(url="https://a.example.com/2", source="A"),
            make_article(url="https://b.example.com/3", source="B"),
        ]
        engine.refresh_stats(cluster, FIXED_NOW)

        assert cluster.source_count == len({a.source for a in cluster.articles}) == 2
        assert cluster.article_count == 3

    def test_peak_velocity_never_decreases(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Later refreshes with fewer recent members keep the peak."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        result = engine.assign(first, ELECTION_A, FIXED_NOW)
        cluster = store.get_cluster_by_id(result.cluster_id or "")
        assert cluster is not None

        cluster.articles = [
            *cluster.articles,
            make_article(url="https://b.example.com/2", source="B"),
            make_article(url="https://c.example.com/3", source="C"),
        ]
        engine.refresh_stats(cluster, FIXED_NOW)
        peak = cluster.peak_velocity

        velocities = [peak]
        for hours in (1, 5, 24):
            engine.refresh_stats(cluster, FIXED_NOW + timedelta(hours=hours))
            velocities.append(cluster.peak_velocity)

        assert peak == 3.0
        assert velocities == sorted(velocities)
        assert velocities[-1] == peak

    def test_label_follows_latest_member(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """The label is the newest member's title."""
        engine = _make_engine(store, index, metrics)
        first = _stored(
            store,
            url="https://a.example.com/1",
            title="Fire reported",
            source="A",
            published_at=FIXED_NOW - timedelta(hours=2),
        )
        result = engine.assign(first, ELECTION_A, FIXED_NOW)
        cluster = store.get_cluster_by_id(result.cluster_id or "")
        assert cluster is not None

        cluster.articles = [
            *cluster.articles,
            make_article(
                url="https://b.example.com/2",
                title="Fire contained",
                source="B",
                published_at=FIXED_NOW - timedelta(minutes=5),
            ),
        ]
        engine.refresh_stats(cluster, FIXED_NOW)
        assert cluster.label == "Fire contained"

    def test_refresh_active_skips_unchanged(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Clusters with current statistics keep their last_updated."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        engine.assign(first, ELECTION_A, FIXED_NOW)

        later = FIXED_NOW + timedelta(hours=3)
        active = store.get_active_clusters()
        refreshed = engine.refresh_active(active, later)

        assert refreshed == 0
        assert active[0].last_updated == FIXED_NOW


class TestLifecycle:
    """Tests for staleness and one-way status."""

    def test_mark_stale_after_window(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Clusters not updated within the window go STALE and stay there."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        result = engine.assign(first, ELECTION_A, FIXED_NOW)

        later = FIXED_NOW + timedelta(hours=25)
        staled = engine.mark_stale(store.get_active_clusters(), 24.0, later)

        cluster = store.get_cluster_by_id(result.cluster_id or "")
        assert staled == 1
        assert cluster is not None
        assert cluster.status == ClusterStatus.STALE
        assert store.get_active_clusters() == []
        assert len(engine.locks) == 0

    def test_recent_cluster_stays_active(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Clusters updated within the window are untouched."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        engine.assign(first, ELECTION_A, FIXED_NOW)

        staled = engine.mark_stale(
            store.get_active_clusters(), 24.0, FIXED_NOW + timedelta(hours=2)
        )
        assert staled == 0

    def test_stale_is_never_reactivated_by_save(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Saving an ACTIVE copy of a STALE cluster does not revive it."""
        engine = _make_engine(store, index, metrics)
        first = _stored(store, url="https://a.example.com/1", source="A")
        result = engine.assign(first, ELECTION_A, FIXED_NOW)
        cluster_id = result.cluster_id or ""

        stale_copy = store.get_cluster_by_id(cluster_id)
        active_copy = store.get_cluster_by_id(cluster_id)
        assert stale_copy is not None
        assert active_copy is not None
        engine.mark_stale([stale_copy], 1.0, FIXED_NOW + timedelta(hours=2))

        store.save_cluster(active_copy)

        reloaded = store.get_cluster_by_id(cluster_id)
        assert reloaded is not None
        assert reloaded.status == ClusterStatus.STALE


class TestMergeRelated:
    """Tests for merging clusters that describe one event."""

    def test_merges_similar_disjoint_clusters(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """A newer similar cluster is absorbed by the older one."""
        strict = _make_engine(store, index, metrics, similarity_threshold=0.95)
        first = _stored(store, url="https://a.example.com/1", source="A")
        second = _stored(store, url="https://b.example.com/2", source="B")
        older = strict.assign(first, ELECTION_A, FIXED_NOW)
        newer = strict.assign(second, ELECTION_B, FIXED_NOW + timedelta(minutes=1))
        assert older.cluster_id != newer.cluster_id

        merging = _make_engine(store, index, metrics, similarity_threshold=0.9)
        merging.locks.lock_for(newer.cluster_id or "")
        active = store.get_active_clusters()
        merged = merging.merge_related(active, FIXED_NOW + timedelta(minutes=2))

        survivor = store.get_cluster_by_id(older.cluster_id or "")
        absorbed = store.get_cluster_by_id(newer.cluster_id or "")
        assert merged == 1
        assert survivor is not None
        assert absorbed is not None
        assert survivor.article_ids == [first.id, second.id]
        assert survivor.source_count == 2
        assert absorbed.status == ClusterStatus.STALE
        assert absorbed.merged_into == survivor.id
        assert len(merging.locks) == 1
        moved = store.get_article(second.id)
        assert moved is not None
        assert moved.cluster_id == survivor.id

    def test_no_merge_when_sources_overlap(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """Same-outlet clusters are kept apart."""
        engine = _make_engine(store, index, metrics, similarity_threshold=0.9)
        first = _stored(store, url="https://a.example.com/1", source="A")
        second = _stored(store, url="https://a.example.com/2", source="A")
        engine.assign(first, ELECTION_A, FIXED_NOW)
        engine.assign(second, ELECTION_B, FIXED_NOW)

        assert engine.merge_related(store.get_active_clusters(), FIXED_NOW) == 0

    def test_merge_disabled(
        self, store: StateStore, index: SqliteVectorIndex, metrics: ClusteringMetrics
    ) -> None:
        """merge_enabled=false turns the pass off."""
        engine = _make_engine(store, index, metrics, merge_enabled=False)
        assert engine.merge_related(store.get_active_clusters(), FIXED_NOW) == 0
