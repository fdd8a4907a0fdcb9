"""Protocol interface for the article vector index."""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class VectorMatch:
    """A nearest-neighbour hit.

    Attributes:
        id: Article ID.
        metadata: Metadata stored with the vector (title, source, published_at).
        distance: Squared L2 distance between unit-normalised vectors.
        similarity: Cosine similarity, equal to ``1 - distance / 2``.
    """

    id: str
    distance: float
    similarity: float
    metadata: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class VectorIndex(Protocol):
    """k-nearest-neighbour lookup and existence checks over embeddings."""

    def upsert(
        self,
        id: str,  # noqa: A002
        vector: list[float],
        metadata: dict[str, str],
    ) -> None:
        """Insert or replace a vector."""
        ...

    def exists(self, id: str) -> bool:  # noqa: A002
        """Check whether a vector with this ID is stored."""
        ...

    def query(
        self, vector: list[float], k: int, min_similarity: float
    ) -> list[VectorMatch]:
        """Return up to ``k`` matches at or above ``min_similarity``, nearest first."""
        ...

    def get(self, id: str) -> list[float] | None:  # noqa: A002
        """Get a stored vector."""
        ...

    def count(self) -> int:
        """Number of stored vectors."""
        ...
