"""Metrics collection for the state store."""

import threading
from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for state store operations.

    Attributes:
        articles_inserted_total: New articles written.
        articles_duplicate_total: Articles rejected because the URL exists.
        clusters_saved_total: Cluster aggregates written.
        curations_marked_total: Curation rows moved to SENT.
        alerts_appended_total: Breaking alert records appended.
        db_tx_duration_ms: Cumulative transaction duration in milliseconds.
        db_tx_count: Number of committed transactions.
        db_tx_failed_total: Number of rolled-back transactions.
    """

    articles_inserted_total: int = 0
    articles_duplicate_total: int = 0
    clusters_saved_total: int = 0
    curations_marked_total: int = 0
    alerts_appended_total: int = 0
    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0
    db_tx_failed_total: int = 0

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_article_inserted(self) -> None:
        """Record a new article insert."""
        with self._lock:
            self.articles_inserted_total += 1

    def record_article_duplicate(self) -> None:
        """Record an article skipped as a duplicate."""
        with self._lock:
            self.articles_duplicate_total += 1

    def record_clusters_saved(self, count: int) -> None:
        """Record saved cluster aggregates.

        Args:
            count: Number of clusters written.
        """
        with self._lock:
            self.clusters_saved_total += count

    def record_curations_marked(self, count: int) -> None:
        """Record curation rows marked SENT.

        Args:
            count: Number of rows changed.
        """
        with self._lock:
            self.curations_marked_total += count

    def record_alert_appended(self) -> None:
        """Record an appended breaking alert."""
        with self._lock:
            self.alerts_appended_total += 1

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record transaction duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        with self._lock:
            self.db_tx_duration_ms += duration_ms
            self.db_tx_count += 1

    def record_tx_failed(self) -> None:
        """Record a rolled-back transaction."""
        with self._lock:
            self.db_tx_failed_total += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "articles_inserted_total": self.articles_inserted_total,
            "articles_duplicate_total": self.articles_duplicate_total,
            "clusters_saved_total": self.clusters_saved_total,
            "curations_marked_total": self.curations_marked_total,
            "alerts_appended_total": self.alerts_appended_total,
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "db_tx_failed_total": self.db_tx_failed_total,
        }

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average transaction duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count


@dataclass
class TransactionContext:
    """Context for a single transaction with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    affected_rows: int = field(default=0)

    def add_affected_rows(self, rows: int) -> None:
        """Add to the affected row count.

        Args:
            rows: Number of rows affected.
        """
        self.affected_rows += rows
