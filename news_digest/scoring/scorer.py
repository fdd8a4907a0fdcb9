"""Scoring engine for articles and story clusters.

All functions are pure: no I/O and no clock reads. Callers pass ``now``.
"""

import math
from datetime import datetime

import structlog

from news_digest.config.schemas import UserPreferences
from news_digest.scoring.constants import (
    ARTICLE_BASE_SCORE,
    ARTICLE_COUNT_WEIGHT,
    ARTICLE_IMAGE_BONUS,
    AUSTRALIA_BONUS,
    AUSTRALIA_TERMS,
    BOOST_TOPIC_SCORE,
    BREAKING_TERMS,
    CLUSTER_IMAGE_BONUS,
    EXCLUDE_TOPIC_PENALTY,
    FRESH_ARTICLE_BONUS,
    FRESH_ARTICLE_HOURS,
    NSW_BONUS,
    NSW_TERMS,
    RECENT_ARTICLE_BONUS,
    RECENT_ARTICLE_HOURS,
    SOURCE_WEIGHT,
    URGENCY_DIVISOR,
    URGENCY_FRESH_HOURS,
    URGENCY_FRESH_SCORE,
    URGENCY_KEYWORD_SCORE,
    URGENCY_RECENT_HOURS,
    URGENCY_RECENT_SCORE,
    URGENCY_SOURCE_CAP,
    URGENCY_VELOCITY_CAP,
    VELOCITY_WEIGHT,
)
from news_digest.scoring.models import ClusterScoreComponents, ScoredCluster
from news_digest.scoring.topic_matcher import TopicMatcher, cluster_text, contains_any
from news_digest.store.models import Article, RawArticle, StoryCluster


logger = structlog.get_logger()


def _age_hours(published_at: datetime, now: datetime) -> float:
    return (now - published_at).total_seconds() / 3600


def score_article(article: Article | RawArticle, now: datetime) -> int:
    """Compute an article's base score at ingestion.

    Starts at 1, adds 2 for an image, and adds 2 if younger than two hours
    or 1 if younger than six.

    Args:
        article: Article to score.
        now: Ingestion time.

    Returns:
        Base score between 1 and 5.
    """
    score = ARTICLE_BASE_SCORE
    if article.image_url:
        score += ARTICLE_IMAGE_BONUS

    age = _age_hours(article.published_at, now)
    if age < FRESH_ARTICLE_HOURS:
        score += FRESH_ARTICLE_BONUS
    elif age < RECENT_ARTICLE_HOURS:
        score += RECENT_ARTICLE_BONUS
    return score


def score_cluster_components(
    cluster: StoryCluster, prefs: UserPreferences
) -> ClusterScoreComponents:
    """Compute the per-user relevance breakdown for a cluster.

    Args:
        cluster: Cluster to score.
        prefs: The user's topic preferences.

    Returns:
        Component breakdown; ``total_score`` is unbounded in both directions.
    """
    text = cluster_text(cluster)

    source_score = SOURCE_WEIGHT * cluster.source_count
    article_score = ARTICLE_COUNT_WEIGHT * math.log2(cluster.article_count + 1)
    velocity_score = VELOCITY_WEIGHT * cluster.peak_velocity

    boost_score = 0.0
    exclude_score = 0.0
    for match in TopicMatcher(prefs.boost, prefs.exclude).match_text(text):
        if match.excluded:
            exclude_score -= EXCLUDE_TOPIC_PENALTY
        else:
            boost_score += BOOST_TOPIC_SCORE

    region_score = 0.0
    if prefs.boost_australia and contains_any(text, AUSTRALIA_TERMS):
        region_score += AUSTRALIA_BONUS
    if prefs.boost_nsw and contains_any(text, NSW_TERMS):
        region_score += NSW_BONUS

    image_score = CLUSTER_IMAGE_BONUS if cluster.has_image else 0.0

    total = (
        source_score
        + article_score
        + velocity_score
        + boost_score
        + exclude_score
        + region_score
        + image_score
    )

    return ClusterScoreComponents(
        source_score=source_score,
        article_score=article_score,
        velocity_score=velocity_score,
        boost_score=boost_score,
        exclude_score=exclude_score,
        region_score=region_score,
        image_score=image_score,
        total_score=total,
    )


def score_cluster_for_user(cluster: StoryCluster, prefs: UserPreferences) -> float:
    """Compute a cluster's relevance score for one user.

    Args:
        cluster: Cluster to score.
        prefs: The user's topic preferences.

    Returns:
        Additive, unbounded score.
    """
    return score_cluster_components(cluster, prefs).total_score


def calculate_urgency(cluster: StoryCluster, now: datetime) -> float:
    """Compute the urgency of a cluster.

    Velocity and source diversity contribute up to 0.3 each, freshness of
    the newest member up to 0.2, and a breaking term in the label 0.2.

    Args:
        cluster: Cluster to evaluate.
        now: Evaluation time.

    Returns:
        Urgency in [0, 1.0].
    """
    score = min(URGENCY_VELOCITY_CAP, cluster.peak_velocity / URGENCY_DIVISOR)
    score += min(URGENCY_SOURCE_CAP, cluster.source_count / URGENCY_DIVISOR)

    latest = cluster.latest_article
    if latest is not None:
        age = _age_hours(latest.published_at, now)
        if age < URGENCY_FRESH_HOURS:
            score += URGENCY_FRESH_SCORE
        elif age < URGENCY_RECENT_HOURS:
            score += URGENCY_RECENT_SCORE

    if contains_any(cluster.label.lower(), BREAKING_TERMS):
        score += URGENCY_KEYWORD_SCORE

    return score


class ClusterScorer:
    """Scores and orders clusters for one user."""

    def __init__(self, user: str, prefs: UserPreferences) -> None:
        """Initialize the scorer.

        Args:
            user: User name for logging.
            prefs: The user's topic preferences.
        """
        self._prefs = prefs
        self._log = logger.bind(component="scoring", user=user)

    def score_cluster(self, cluster: StoryCluster) -> ScoredCluster:
        """Score a single cluster."""
        return ScoredCluster(
            cluster=cluster,
            components=score_cluster_components(cluster, self._prefs),
        )

    def rank(self, clusters: list[StoryCluster]) -> list[ScoredCluster]:
        """Score clusters and sort them by score, highest first.

        The sort is stable: equal scores keep the input order.

        Args:
            clusters: Clusters in fetch order.

        Returns:
            Scored clusters in rank order.
        """
        scored = [self.score_cluster(c) for c in clusters]
        scored.sort(key=lambda s: s.score, reverse=True)

        self._log.debug(
            "clusters_ranked",
            clusters_scored=len(scored),
            min_score=min((s.score for s in scored), default=0.0),
            max_score=max((s.score for s in scored), default=0.0),
        )
        return scored
