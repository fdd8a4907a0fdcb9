"""Per-cluster mutual exclusion."""

import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager


class ClusterLockRegistry:
    """Hands out one re-entrant lock per cluster ID.

    A cluster's membership, stats and status are read-modify-written as one
    unit; every such mutation runs while holding that cluster's lock. Locks
    live until their cluster leaves ACTIVE and is discarded, so the registry
    holds one entry per cluster still open for matching.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock_for(self, cluster_id: str) -> threading.RLock:
        """Get (creating if needed) the lock for a cluster."""
        with self._guard:
            lock = self._locks.get(cluster_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[cluster_id] = lock
            return lock

    def discard(self, cluster_id: str) -> None:
        """Forget a cluster's lock once nothing will mutate it again."""
        with self._guard:
            self._locks.pop(cluster_id, None)

    @contextmanager
    def hold(self, *cluster_ids: str) -> Iterator[None]:
        """Hold the locks for one or more clusters.

        Locks are acquired in sorted ID order so two callers holding the
        same pair cannot deadlock.

        Args:
            cluster_ids: Clusters to lock.
        """
        with ExitStack() as stack:
            for cluster_id in sorted(set(cluster_ids)):
                stack.enter_context(self.lock_for(cluster_id))
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
