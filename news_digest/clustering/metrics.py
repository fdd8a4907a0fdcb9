"""Metrics for cluster engine operations."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class ClusteringMetrics:
    """Counters for assignments, lifecycle transitions and merges."""

    articles_joined: int = 0
    clusters_created: int = 0
    articles_skipped: int = 0
    articles_already_clustered: int = 0
    inconsistencies: int = 0
    clusters_refreshed: int = 0
    clusters_staled: int = 0
    clusters_merged: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["ClusteringMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ClusteringMetrics":
        """Get or create the singleton instance.

        Returns:
            ClusteringMetrics instance.
        """
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset the singleton instance for testing."""
        cls._instance = None

    def record_joined(self) -> None:
        """Record an article joining an existing cluster."""
        with self._lock:
            self.articles_joined += 1

    def record_created(self) -> None:
        """Record a new singleton cluster."""
        with self._lock:
            self.clusters_created += 1

    def record_skipped(self) -> None:
        """Record an article already present in the vector index."""
        with self._lock:
            self.articles_skipped += 1

    def record_already_clustered(self) -> None:
        """Record an article that already had an owning cluster."""
        with self._lock:
            self.articles_already_clustered += 1

    def record_inconsistency(self) -> None:
        """Record a data inconsistency fallback."""
        with self._lock:
            self.inconsistencies += 1

    def record_refreshed(self, count: int) -> None:
        """Record clusters whose stats were refreshed.

        Args:
            count: Number of clusters refreshed.
        """
        with self._lock:
            self.clusters_refreshed += count

    def record_staled(self, count: int) -> None:
        """Record ACTIVE -> STALE transitions.

        Args:
            count: Number of clusters transitioned.
        """
        with self._lock:
            self.clusters_staled += count

    def record_merged(self) -> None:
        """Record one cluster absorbed into another."""
        with self._lock:
            self.clusters_merged += 1

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric values.
        """
        return {
            "articles_joined": self.articles_joined,
            "clusters_created": self.clusters_created,
            "articles_skipped": self.articles_skipped,
            "articles_already_clustered": self.articles_already_clustered,
            "inconsistencies": self.inconsistencies,
            "clusters_refreshed": self.clusters_refreshed,
            "clusters_staled": self.clusters_staled,
            "clusters_merged": self.clusters_merged,
        }
