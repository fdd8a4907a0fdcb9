"""Data models for cluster scoring."""

from dataclasses import dataclass

from news_digest.store.models import StoryCluster


@dataclass(frozen=True)
class ClusterScoreComponents:
    """Breakdown of a cluster's per-user relevance score.

    Attributes:
        source_score: 3 per distinct source.
        article_score: 2 * log2(article_count + 1).
        velocity_score: 2 * peak_velocity.
        boost_score: 5 per boosted topic found.
        exclude_score: -100 per excluded topic found.
        region_score: Australia (+3) and NSW (+2) bonuses.
        image_score: +2 when any member has an image.
        total_score: Sum of all components.
    """

    source_score: float
    article_score: float
    velocity_score: float
    boost_score: float = 0.0
    exclude_score: float = 0.0
    region_score: float = 0.0
    image_score: float = 0.0
    total_score: float = 0.0

    def to_dict(self) -> dict[str, float]:
        """Convert to dictionary for serialization.

        Returns:
            Dictionary of component name to value.
        """
        return {
            "source_score": self.source_score,
            "article_score": self.article_score,
            "velocity_score": self.velocity_score,
            "boost_score": self.boost_score,
            "exclude_score": self.exclude_score,
            "region_score": self.region_score,
            "image_score": self.image_score,
            "total_score": self.total_score,
        }


@dataclass(frozen=True)
class ScoredCluster:
    """A cluster with its per-user score.

    Attributes:
        cluster: The scored cluster.
        components: Score breakdown.
    """

    cluster: StoryCluster
    components: ClusterScoreComponents

    @property
    def score(self) -> float:
        """Total score."""
        return self.components.total_score
