"""Text embedding clients."""

from news_digest.embeddings.errors import (
    EmbeddingAuthError,
    ProviderError,
    TransientProviderError,
)
from news_digest.embeddings.protocols import Embedder
from news_digest.embeddings.voyage import VoyageEmbedder


__all__ = [
    "Embedder",
    "EmbeddingAuthError",
    "ProviderError",
    "TransientProviderError",
    "VoyageEmbedder",
]
