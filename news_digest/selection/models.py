"""Data models for digest content selection."""

from dataclasses import dataclass, field

from news_digest.scoring.models import ScoredCluster


@dataclass(frozen=True)
class DigestSelection:
    """Clusters chosen for one user's digest.

    Attributes:
        feature: Lead story, if any cluster was eligible.
        key_stories: Stories following the feature, in rank order.
        quickfire: Short-form stories after the key stories.
    """

    feature: ScoredCluster | None = None
    key_stories: list[ScoredCluster] = field(default_factory=list)
    quickfire: list[ScoredCluster] = field(default_factory=list)

    @property
    def cluster_ids(self) -> list[str]:
        """All selected cluster ids, feature first."""
        selected = [self.feature] if self.feature else []
        selected.extend(self.key_stories)
        selected.extend(self.quickfire)
        return [s.cluster.id for s in selected]

    @property
    def is_empty(self) -> bool:
        """True when there is neither a feature nor any key story."""
        return self.feature is None and not self.key_stories

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""

        def entry(scored: ScoredCluster) -> dict[str, object]:
            cluster = scored.cluster
            return {
                "cluster_id": cluster.id,
                "label": cluster.label,
                "score": round(scored.score, 3),
                "source_count": cluster.source_count,
                "article_count": cluster.article_count,
                "sources": sorted(cluster.sources),
                "urls": [a.url for a in cluster.articles],
            }

        return {
            "feature": entry(self.feature) if self.feature else None,
            "key_stories": [entry(s) for s in self.key_stories],
            "quickfire": [entry(s) for s in self.quickfire],
        }
