"""Lifecycle state machine for story clusters."""

import structlog

from news_digest.clustering.errors import ClusterStateTransitionError
from news_digest.store.models import ClusterStatus, StoryCluster


logger = structlog.get_logger()


# Valid state transitions
_VALID_TRANSITIONS: dict[ClusterStatus, set[ClusterStatus]] = {
    ClusterStatus.ACTIVE: {ClusterStatus.STALE},
    ClusterStatus.STALE: set(),  # Terminal state
}


class ClusterLifecycle:
    """Enforces one-way ACTIVE -> STALE transitions on cluster aggregates.

    A STALE cluster is never reactivated; related articles arriving later
    form or join a different ACTIVE cluster.
    """

    def __init__(self, run_id: str) -> None:
        """Initialize the lifecycle manager.

        Args:
            run_id: Identifier for the current run.
        """
        self._run_id = run_id
        self._log = logger.bind(component="clustering", run_id=run_id)

    @staticmethod
    def can_transition(cluster: StoryCluster, target: ClusterStatus) -> bool:
        """Check if a transition to the target status is valid.

        Args:
            cluster: Cluster to check.
            target: The target status.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(cluster.status, set())

    def transition(self, cluster: StoryCluster, target: ClusterStatus) -> None:
        """Move a cluster to a new status.

        Args:
            cluster: Cluster to update in place.
            target: The target status.

        Raises:
            ClusterStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition(cluster, target):
            self._log.error(
                "illegal_cluster_state_transition",
                cluster_id=cluster.id,
                from_state=cluster.status.value,
                to_state=target.value,
            )
            raise ClusterStateTransitionError(
                cluster_id=cluster.id,
                from_state=cluster.status,
                to_state=target,
            )

        old_state = cluster.status
        cluster.status = target

        self._log.info(
            "cluster_state_transition",
            cluster_id=cluster.id,
            from_state=old_state.value,
            to_state=target.value,
        )

    def mark_stale(self, cluster: StoryCluster) -> None:
        """Transition a cluster to STALE."""
        self.transition(cluster, ClusterStatus.STALE)
