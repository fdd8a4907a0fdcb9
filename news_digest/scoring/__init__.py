"""Article, cluster and urgency scoring."""

from news_digest.scoring.extraction import extract_entities, extract_keywords
from news_digest.scoring.models import ClusterScoreComponents, ScoredCluster
from news_digest.scoring.scorer import (
    ClusterScorer,
    calculate_urgency,
    score_article,
    score_cluster_components,
    score_cluster_for_user,
)


__all__ = [
    "ClusterScoreComponents",
    "ClusterScorer",
    "ScoredCluster",
    "calculate_urgency",
    "extract_entities",
    "extract_keywords",
    "score_article",
    "score_cluster_components",
    "score_cluster_for_user",
]
