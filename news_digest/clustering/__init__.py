"""Online story clustering."""

from news_digest.clustering.engine import ClusterEngine, source_overlap
from news_digest.clustering.errors import (
    ClusterStateTransitionError,
    DataInconsistencyError,
)
from news_digest.clustering.locks import ClusterLockRegistry
from news_digest.clustering.metrics import ClusteringMetrics
from news_digest.clustering.models import AssignmentOutcome, AssignmentResult
from news_digest.clustering.state_machine import ClusterLifecycle


__all__ = [
    "AssignmentOutcome",
    "AssignmentResult",
    "ClusterEngine",
    "ClusterLifecycle",
    "ClusterLockRegistry",
    "ClusterStateTransitionError",
    "ClusteringMetrics",
    "DataInconsistencyError",
    "source_overlap",
]
