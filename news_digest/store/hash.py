"""Deterministic identifiers for stored records."""

import hashlib
import uuid


def compute_article_id(canonical_url: str) -> str:
    """Compute the article ID from its canonical URL.

    The URL is the dedup boundary, so the same article fetched twice (or
    from two mirrored feeds) always maps to the same ID.

    Args:
        canonical_url: Canonicalized article URL.

    Returns:
        First 16 characters of the SHA-256 of the URL.

    Examples:
        >>> len(compute_article_id("https://example.com/story"))
        16
    """
    return hashlib.sha256(f"url:{canonical_url}".encode()).hexdigest()[:16]


def new_cluster_id() -> str:
    """Generate a fresh cluster ID."""
    return uuid.uuid4().hex[:16]
