"""Integration tests for the curation cycle against a real store."""

import tempfile
import time
from collections.abc import Generator
from datetime import timedelta
from pathlib import Path

import pytest

from news_digest.clustering.engine import ClusterEngine
from news_digest.config.schemas import Settings
from news_digest.embeddings.errors import TransientProviderError
from news_digest.pipeline.curate import CurationCycle
from news_digest.pipeline.state_machine import CycleState
from news_digest.store.hash import compute_article_id
from news_digest.store.metrics import StoreMetrics
from news_digest.store.models import RawArticle
from news_digest.store.store import StateStore
from news_digest.vector.index import SqliteVectorIndex
from tests.helpers.factories import make_raw_article
from tests.helpers.fakes import KeyedEmbedder, StaticSource
from tests.helpers.time import FIXED_NOW


ELECTION = "Election results announced"
VOTE_COUNT = "Vote count confirms result"
BAKERY = "Local bakery wins award"

VECTORS = {
    ELECTION: [1.0, 0.0, 0.0],
    VOTE_COUNT: [0.92, 0.3919, 0.0],
    BAKERY: [0.0, 0.0, 1.0],
}


class RejectingIndex(SqliteVectorIndex):
    """Vector index that refuses to store one article."""

    def __init__(self, store: StateStore, rejected_id: str) -> None:
        super().__init__(store.connection, lock=store.lock)
        self.rejected_id = rejected_id

    def upsert(
        self,
        id: str,  # noqa: A002
        vector: list[float],
        metadata: dict[str, str],
    ) -> None:
        if id == self.rejected_id:
            msg = "vector write failed"
            raise TransientProviderError(msg)
        super().upsert(id, vector, metadata)


class SlowEmbedder(KeyedEmbedder):
    """Embedder that outlives the cycle's embedding deadline."""

    def embed(self, texts: list[str]) -> list[list[float]]:
        time.sleep(0.5)
        return super().embed(texts)


@pytest.fixture
def store() -> Generator[StateStore]:
    """Create a connected file-backed store."""
    StoreMetrics.reset()
    with tempfile.TemporaryDirectory() as tmpdir:
        store = StateStore(Path(tmpdir) / "state.db", run_id="test-run")
        store.connect()
        yield store
        store.close()


def _batch() -> list[RawArticle]:
    return [
        make_raw_article(
            url="https://outlet-a.example.com/election",
            title=ELECTION,
            source="Outlet A",
            published_at=FIXED_NOW - timedelta(minutes=50),
        ),
        make_raw_article(
            url="https://outlet-b.example.com/vote-count",
            title=VOTE_COUNT,
            source="Outlet B",
            published_at=FIXED_NOW - timedelta(minutes=40),
        ),
        make_raw_article(
            url="https://outlet-c.example.com/bakery",
            title=BAKERY,
            source="Outlet C",
            published_at=FIXED_NOW - timedelta(minutes=30),
        ),
        make_raw_article(
            url="https://outlet-a.example.com/election?utm_source=twitter",
            title=ELECTION,
            source="Outlet A",
            published_at=FIXED_NOW - timedelta(minutes=50),
        ),
    ]


def _cycle(
    store: StateStore,
    embedder: KeyedEmbedder,
    run_id: str,
    index: SqliteVectorIndex | None = None,
    settings: Settings | None = None,
) -> CurationCycle:
    settings = settings or Settings()
    index = index or SqliteVectorIndex(store.connection, lock=store.lock)
    engine = ClusterEngine(store, index, settings.clustering, run_id)
    return CurationCycle(
        store=store,
        source=StaticSource(_batch()),
        embedder=embedder,
        engine=engine,
        settings=settings,
        run_id=run_id,
    )


class TestCurationCycle:
    """Tests for a full ingest, embed and cluster pass."""

    def test_clusters_related_coverage(self, store: StateStore) -> None:
        """Related articles from different outlets share a cluster."""
        result = _cycle(store, KeyedEmbedder(VECTORS), "run-1").run(FIXED_NOW)

        assert result.success
        assert result.state == CycleState.FINISHED_SUCCESS
        assert result.ingest.articles_in == 4
        assert result.ingest.articles_new == 3
        assert result.ingest.articles_duplicate == 1
        assert result.outcomes == {"CREATED": 2, "JOINED": 1}

        clusters = store.get_active_clusters()
        by_size = sorted(clusters, key=lambda c: c.source_count, reverse=True)
        assert len(clusters) == 2
        assert by_size[0].sources == {"Outlet A", "Outlet B"}
        assert by_size[0].label == VOTE_COUNT
        assert by_size[1].sources == {"Outlet C"}
        assert store.get_unclustered_articles() == []

    def test_run_is_recorded(self, store: StateStore) -> None:
        """The cycle leaves a successful run record with its counts."""
        _cycle(store, KeyedEmbedder(VECTORS), "run-1").run(FIXED_NOW)

        run = store.get_run("run-1")

        assert run is not None
        assert run.success is True
        assert run.articles_new == 3
        assert run.articles_clustered == 3

    def test_rerun_adds_nothing(self, store: StateStore) -> None:
        """A second pass over the same feed finds only duplicates."""
        embedder = KeyedEmbedder(VECTORS)
        _cycle(store, embedder, "run-1").run(FIXED_NOW)

        result = _cycle(store, embedder, "run-2").run(FIXED_NOW)

        assert result.success
        assert result.ingest.articles_new == 0
        assert result.ingest.articles_duplicate == 4
        assert result.articles_clustered == 0
        assert len(embedder.calls) == 1
        assert len(store.get_active_clusters()) == 2

    def test_embedding_failure_leaves_articles_unclustered(
        self, store: StateStore
    ) -> None:
        """A provider failure aborts the cycle before any clustering."""
        result = _cycle(store, KeyedEmbedder(VECTORS, fail=True), "run-1").run(
            FIXED_NOW
        )

        assert not result.success
        assert result.state == CycleState.FINISHED_FAILURE
        assert result.error is not None
        assert "TransientProviderError" in result.error
        assert len(store.get_unclustered_articles()) == 3
        assert store.get_active_clusters() == []

        run = store.get_run("run-1")
        assert run is not None
        assert run.success is False
        assert run.error_summary == result.error

    def test_next_cycle_recovers(self, store: StateStore) -> None:
        """Articles left unclustered by a failed cycle cluster next time."""
        _cycle(store, KeyedEmbedder(VECTORS, fail=True), "run-1").run(FIXED_NOW)

        result = _cycle(store, KeyedEmbedder(VECTORS), "run-2").run(
            FIXED_NOW + timedelta(minutes=15)
        )

        assert result.success
        assert result.ingest.articles_new == 0
        assert result.articles_clustered == 3
        assert result.outcomes == {"CREATED": 2, "JOINED": 1}
        assert store.get_unclustered_articles() == []

    def test_unexpected_errors_propagate(self, store: StateStore) -> None:
        """Errors outside the provider and store families are re-raised."""
        embedder = KeyedEmbedder({})

        with pytest.raises(KeyError):
            _cycle(store, embedder, "run-1").run(FIXED_NOW)

        run = store.get_run("run-1")
        assert run is not None
        assert run.success is False

    def test_embedding_timeout_fails_cycle(self, store: StateStore) -> None:
        """A batch that misses the deadline fails the cycle before clustering."""
        settings = Settings.model_validate(
            {"pipeline": {"embed_timeout_seconds": 0.05}}
        )

        result = _cycle(
            store, SlowEmbedder(VECTORS), "run-1", settings=settings
        ).run(FIXED_NOW)

        assert result.success is False
        assert result.error is not None
        assert "timed out" in result.error
        assert len(store.get_unclustered_articles()) == 3
        assert store.get_active_clusters() == []

    def test_unindexed_article_is_retried(self, store: StateStore) -> None:
        """An article clustered without its vector is indexed next cycle."""
        bakery_id = compute_article_id("https://outlet-c.example.com/bakery")
        embedder = KeyedEmbedder(VECTORS)

        failed = _cycle(
            store, embedder, "run-1", index=RejectingIndex(store, bakery_id)
        ).run(FIXED_NOW)
        assert not failed.success
        assert store.get_unclustered_articles() == []
        assert [a.id for a in store.get_pending_articles()] == [bakery_id]

        result = _cycle(store, embedder, "run-2").run(
            FIXED_NOW + timedelta(minutes=15)
        )

        assert result.success
        assert result.outcomes == {"EXISTING": 1}
        assert embedder.calls[-1] == [BAKERY]
        assert store.get_pending_articles() == []
        assert len(store.get_active_clusters()) == 2
