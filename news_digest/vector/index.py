"""SQLite-backed vector index with brute-force cosine search."""

import json
import sqlite3
import threading
from datetime import UTC, datetime

import numpy as np
import structlog

from news_digest.embeddings.errors import TransientProviderError
from news_digest.vector.protocols import VectorMatch
from news_digest.vector.similarity import FloatArray, normalize


logger = structlog.get_logger()


class SqliteVectorIndex:
    """Vector index persisted in the ``article_vectors`` table.

    Vectors are stored as float32 blobs and mirrored in an in-memory matrix of
    unit-normalised rows, so a query is one matrix-vector product. Writes go
    to SQLite first; the matrix is only updated after the commit.
    """

    def __init__(
        self,
        connection: sqlite3.Connection,
        lock: "threading.RLock | None" = None,
    ) -> None:
        """Initialize the index.

        Args:
            connection: SQLite connection with the ``article_vectors`` table
                (migrated by the state store).
            lock: Lock guarding a connection shared with other components.
        """
        self._conn = connection
        self._lock = lock or threading.RLock()
        self._ids: list[str] = []
        self._rows: dict[str, int] = {}
        self._metadata: list[dict[str, str]] = []
        self._matrix: FloatArray | None = None
        self._loaded = False
        self._log = logger.bind(component="vector_index")

    def _load(self) -> None:
        """Load every stored vector into memory on first use."""
        if self._loaded:
            return
        try:
            rows = self._conn.execute(
                "SELECT id, vector, metadata_json FROM article_vectors ORDER BY rowid"
            ).fetchall()
        except sqlite3.Error as e:
            msg = f"Vector index load failed: {e}"
            raise TransientProviderError(msg) from e

        vectors: list[FloatArray] = []
        for row in rows:
            self._rows[row[0]] = len(self._ids)
            self._ids.append(row[0])
            self._metadata.append(json.loads(row[2]))
            vectors.append(normalize(np.frombuffer(row[1], dtype=np.float32)))

        self._matrix = np.vstack(vectors) if vectors else None
        self._loaded = True
        self._log.info("vector_index_loaded", count=len(self._ids))

    def upsert(
        self,
        id: str,  # noqa: A002
        vector: list[float],
        metadata: dict[str, str],
    ) -> None:
        """Insert or replace a vector.

        Args:
            id: Article ID.
            vector: Raw embedding.
            metadata: String metadata stored alongside.

        Raises:
            TransientProviderError: On database failure.
            ValueError: If the dimension differs from stored vectors.
        """
        arr = np.asarray(vector, dtype=np.float32)
        with self._lock:
            self._load()
            if self._matrix is not None and arr.shape[0] != self._matrix.shape[1]:
                msg = (
                    f"Vector dimension {arr.shape[0]} does not match index "
                    f"dimension {self._matrix.shape[1]}"
                )
                raise ValueError(msg)

            try:
                self._conn.execute(
                    """
                    INSERT INTO article_vectors (id, dim, vector, metadata_json, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        dim = excluded.dim,
                        vector = excluded.vector,
                        metadata_json = excluded.metadata_json
                    """,
                    (
                        id,
                        int(arr.shape[0]),
                        arr.tobytes(),
                        json.dumps(metadata, sort_keys=True),
                        datetime.now(UTC).isoformat(),
                    ),
                )
                self._conn.commit()
            except sqlite3.Error as e:
                self._conn.rollback()
                msg = f"Vector upsert failed for {id}: {e}"
                raise TransientProviderError(msg) from e

            unit = normalize(arr)
            row = self._rows.get(id)
            if row is not None and self._matrix is not None:
                self._matrix[row] = unit
                self._metadata[row] = dict(metadata)
            else:
                self._rows[id] = len(self._ids)
                self._ids.append(id)
                self._metadata.append(dict(metadata))
                self._matrix = (
                    unit.reshape(1, -1)
                    if self._matrix is None
                    else np.vstack([self._matrix, unit])
                )

    def exists(self, id: str) -> bool:  # noqa: A002
        """Check whether a vector with this ID is stored."""
        with self._lock:
            self._load()
            return id in self._rows

    def query(
        self, vector: list[float], k: int, min_similarity: float
    ) -> list[VectorMatch]:
        """Find the nearest stored vectors.

        Args:
            vector: Query embedding.
            k: Maximum number of matches.
            min_similarity: Minimum cosine similarity.

        Returns:
            Up to ``k`` matches, nearest first; ties keep insertion order.
        """
        with self._lock:
            self._load()
            if self._matrix is None or k <= 0:
                return []

            query = normalize(vector)
            if query.shape[0] != self._matrix.shape[1]:
                msg = (
                    f"Query dimension {query.shape[0]} does not match index "
                    f"dimension {self._matrix.shape[1]}"
                )
                raise ValueError(msg)

            similarities = self._matrix @ query
            order = np.argsort(-similarities, kind="stable")[:k]

            matches: list[VectorMatch] = []
            for idx in order:
                similarity = float(similarities[idx])
                if similarity < min_similarity:
                    break
                matches.append(
                    VectorMatch(
                        id=self._ids[idx],
                        distance=2.0 - 2.0 * similarity,
                        similarity=similarity,
                        metadata=dict(self._metadata[idx]),
                    )
                )
            return matches

    def get(self, id: str) -> list[float] | None:  # noqa: A002
        """Get a stored vector as persisted (not normalised)."""
        with self._lock:
            try:
                row = self._conn.execute(
                    "SELECT vector FROM article_vectors WHERE id = ?", (id,)
                ).fetchone()
            except sqlite3.Error as e:
                msg = f"Vector lookup failed for {id}: {e}"
                raise TransientProviderError(msg) from e
        if row is None:
            return None
        return np.frombuffer(row[0], dtype=np.float32).astype(float).tolist()

    def count(self) -> int:
        """Number of stored vectors."""
        with self._lock:
            self._load()
            return len(self._ids)
