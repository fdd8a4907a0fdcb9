"""Per-user digest selection over ranked clusters."""

import structlog

from news_digest.config.schemas import NewsletterLayout, UserPreferences
from news_digest.scoring.models import ScoredCluster
from news_digest.scoring.scorer import ClusterScorer
from news_digest.selection.models import DigestSelection
from news_digest.store.protocols import Store


logger = structlog.get_logger()


def _pick_feature(ranked: list[ScoredCluster]) -> ScoredCluster | None:
    for scored in ranked:
        if scored.cluster.has_image:
            return scored
    return ranked[0] if ranked else None


class SelectionEngine:
    """Ranks unsent clusters for a user and fills the digest layout."""

    def __init__(self, store: Store, run_id: str | None = None) -> None:
        """Initialize the engine.

        Args:
            store: Cluster and curation storage.
            run_id: Optional run identifier for logging.
        """
        self._store = store
        self._log = logger.bind(component="selection", run_id=run_id)

    def rank(self, user: str, prefs: UserPreferences) -> list[ScoredCluster]:
        """Score ACTIVE clusters the user has not been sent.

        Args:
            user: User name.
            prefs: The user's topic preferences.

        Returns:
            Scored clusters, highest first (stable on ties).
        """
        sent = self._store.get_sent_cluster_ids(user)
        eligible = [c for c in self._store.get_active_clusters() if c.id not in sent]
        return ClusterScorer(user, prefs).rank(eligible)

    def select(
        self, user: str, newsletter: NewsletterLayout, prefs: UserPreferences
    ) -> DigestSelection:
        """Choose the feature, key stories and quick-fire items.

        The feature is the highest-ranked cluster with an image, falling
        back to the top cluster. Key stories and quick-fire items follow in
        rank order with the feature removed.

        Args:
            user: User name.
            newsletter: Section sizes.
            prefs: The user's topic preferences.

        Returns:
            The selection; clusters left out stay pending.
        """
        ranked = self.rank(user, prefs)

        feature = _pick_feature(ranked) if newsletter.feature_count else None
        feature_id = feature.cluster.id if feature else None
        rest = [s for s in ranked if s.cluster.id != feature_id]

        key_end = newsletter.key_stories_count
        quick_end = key_end + newsletter.quickfire_count
        selection = DigestSelection(
            feature=feature,
            key_stories=rest[:key_end],
            quickfire=rest[key_end:quick_end],
        )

        self._log.info(
            "digest_selected",
            user=user,
            eligible=len(ranked),
            has_feature=feature is not None,
            key_stories=len(selection.key_stories),
            quickfire=len(selection.quickfire),
        )
        return selection
