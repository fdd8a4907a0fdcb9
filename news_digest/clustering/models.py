"""Data models for cluster assignment."""

from dataclasses import dataclass
from enum import Enum


class AssignmentOutcome(str, Enum):
    """What ``ClusterEngine.assign`` did with an article.

    - JOINED: Added to the owning cluster of a different-source match
    - CREATED: Became the first member of a new cluster
    - SKIPPED: Already in the vector index; nothing done
    - EXISTING: Already owned by a cluster; only the vector was indexed
    """

    JOINED = "JOINED"
    CREATED = "CREATED"
    SKIPPED = "SKIPPED"
    EXISTING = "EXISTING"


@dataclass(frozen=True)
class AssignmentResult:
    """Result of assigning one article.

    Attributes:
        article_id: The assigned article.
        outcome: What happened.
        cluster_id: Owning cluster after the call (None when skipped).
        matched_article_id: Nearest different-source match, if any.
        similarity: Cosine similarity of that match.
    """

    article_id: str
    outcome: AssignmentOutcome
    cluster_id: str | None = None
    matched_article_id: str | None = None
    similarity: float | None = None
