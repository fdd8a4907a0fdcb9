"""Unit tests for the SQLite-backed vector index."""

from collections.abc import Generator

import pytest

from news_digest.store.store import StateStore
from news_digest.vector.index import SqliteVectorIndex


@pytest.fixture
def store() -> Generator[StateStore]:
    """Create a connected in-memory store that owns the vector table."""
    store = StateStore(":memory:", run_id="test-run")
    store.connect()
    yield store
    store.close()


@pytest.fixture
def index(store: StateStore) -> SqliteVectorIndex:
    """Create an index on the store's connection."""
    return SqliteVectorIndex(store.connection, lock=store.lock)


class TestSqliteVectorIndex:
    """Tests for upsert, lookup and nearest-neighbour queries."""

    def test_empty_index(self, index: SqliteVectorIndex) -> None:
        """An empty index has no matches."""
        assert index.count() == 0
        assert index.query([1.0, 0.0], k=5, min_similarity=0.0) == []

    def test_upsert_and_exists(self, index: SqliteVectorIndex) -> None:
        """Upserted vectors are found by ID."""
        index.upsert("a", [1.0, 0.0], {"source": "A"})

        assert index.exists("a")
        assert not index.exists("b")
        assert index.get("a") == pytest.approx([1.0, 0.0])
        assert index.get("b") is None

    def test_upsert_replaces(self, index: SqliteVectorIndex) -> None:
        """A second upsert replaces the vector and metadata."""
        index.upsert("a", [1.0, 0.0], {"source": "A"})
        index.upsert("a", [0.0, 1.0], {"source": "B"})

        matches = index.query([0.0, 1.0], k=5, min_similarity=0.5)
        assert index.count() == 1
        assert [m.id for m in matches] == ["a"]
        assert matches[0].metadata == {"source": "B"}

    def test_query_orders_by_similarity(self, index: SqliteVectorIndex) -> None:
        """Nearest matches come first and distance is 2 - 2 cos."""
        index.upsert("far", [0.0, 1.0], {})
        index.upsert("near", [1.0, 0.1], {})
        index.upsert("exact", [2.0, 0.0], {})

        matches = index.query([1.0, 0.0], k=3, min_similarity=-1.0)

        assert [m.id for m in matches] == ["exact", "near", "far"]
        assert matches[0].similarity == pytest.approx(1.0)
        assert matches[0].distance == pytest.approx(0.0, abs=1e-6)
        assert matches[2].distance == pytest.approx(2.0)

    def test_query_threshold_and_k(self, index: SqliteVectorIndex) -> None:
        """Matches below the threshold or beyond k are dropped."""
        index.upsert("a", [1.0, 0.0], {})
        index.upsert("b", [1.0, 0.05], {})
        index.upsert("c", [0.0, 1.0], {})

        assert [m.id for m in index.query([1.0, 0.0], k=1, min_similarity=0.5)] == ["a"]
        assert len(index.query([1.0, 0.0], k=5, min_similarity=0.5)) == 2

    def test_dimension_mismatch(self, index: SqliteVectorIndex) -> None:
        """Vectors must match the index dimension."""
        index.upsert("a", [1.0, 0.0], {})

        with pytest.raises(ValueError, match="dimension"):
            index.upsert("b", [1.0, 0.0, 0.0], {})
        with pytest.raises(ValueError, match="dimension"):
            index.query([1.0], k=1, min_similarity=0.0)

    def test_persists_across_instances(self, store: StateStore) -> None:
        """A new index over the same connection loads stored vectors."""
        SqliteVectorIndex(store.connection, lock=store.lock).upsert(
            "a", [1.0, 0.0], {"title": "Stored"}
        )

        reloaded = SqliteVectorIndex(store.connection, lock=store.lock)

        assert reloaded.exists("a")
        assert reloaded.query([1.0, 0.0], k=1, min_similarity=0.9)[0].metadata == {
            "title": "Stored"
        }

    def test_default_lock(self, store: StateStore) -> None:
        """Without a shared lock the index guards itself."""
        index = SqliteVectorIndex(store.connection)

        index.upsert("a", [1.0, 0.0], {})

        assert index.count() == 1
