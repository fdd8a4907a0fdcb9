"""Error types for the clustering module."""

from news_digest.store.models import ClusterStatus


class DataInconsistencyError(Exception):
    """Stored state disagrees with the vector index.

    Raised when a nearest match has no owning cluster, or its owner is gone
    or STALE. The engine logs it and falls back to creating a new cluster.

    Attributes:
        article_id: Article being assigned.
        matched_article_id: Nearest match that triggered the error.
    """

    def __init__(self, message: str, article_id: str, matched_article_id: str) -> None:
        super().__init__(message)
        self.article_id = article_id
        self.matched_article_id = matched_article_id


class ClusterStateTransitionError(Exception):
    """Raised when an illegal cluster status transition is attempted."""

    def __init__(
        self,
        cluster_id: str,
        from_state: ClusterStatus,
        to_state: ClusterStatus,
    ) -> None:
        """Initialize the transition error.

        Args:
            cluster_id: Identifier of the cluster.
            from_state: Current status.
            to_state: Attempted target status.
        """
        self.cluster_id = cluster_id
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal cluster state transition for '{cluster_id}': "
            f"{from_state.value} -> {to_state.value}"
        )
