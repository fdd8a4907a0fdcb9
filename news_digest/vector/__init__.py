"""Embedding vector index."""

from news_digest.vector.index import SqliteVectorIndex
from news_digest.vector.protocols import VectorIndex, VectorMatch
from news_digest.vector.similarity import cosine_similarity, mean_vector, normalize


__all__ = [
    "SqliteVectorIndex",
    "VectorIndex",
    "VectorMatch",
    "cosine_similarity",
    "mean_vector",
    "normalize",
]
