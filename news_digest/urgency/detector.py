"""Breaking-news candidate detection and per-user alert gating."""

from datetime import datetime

import structlog

from news_digest.config.schemas import BreakingSettings, QuietHours, UserProfile
from news_digest.scoring.scorer import calculate_urgency
from news_digest.store.models import StoryCluster
from news_digest.store.protocols import Store
from news_digest.timeutil import local_midnight, local_now
from news_digest.urgency.models import AlertDecision, BreakingCandidate, SkipReason


logger = structlog.get_logger()

# Highest-velocity clusters examined per check
DEFAULT_TOP_CANDIDATES = 10


def find_candidates(
    active_clusters: list[StoryCluster],
    min_sources_for_trending: int,
    urgency_threshold: float,
    now: datetime,
    top_n: int = DEFAULT_TOP_CANDIDATES,
) -> list[BreakingCandidate]:
    """Select breaking candidates from ACTIVE clusters.

    Keeps ACTIVE clusters with enough sources, takes the ``top_n`` by peak
    velocity (stable, so ties keep input order), then keeps those whose
    urgency reaches the threshold. Truncation happens before the urgency
    filter.

    Args:
        active_clusters: Clusters to consider.
        min_sources_for_trending: Minimum distinct sources.
        urgency_threshold: Minimum urgency.
        now: Evaluation time.
        top_n: Velocity cut-off.

    Returns:
        Candidates in velocity order.
    """
    trending = [
        c
        for c in active_clusters
        if c.is_active and c.source_count >= min_sources_for_trending
    ]
    trending.sort(key=lambda c: c.peak_velocity, reverse=True)

    candidates: list[BreakingCandidate] = []
    for cluster in trending[:top_n]:
        urgency = calculate_urgency(cluster, now)
        if urgency >= urgency_threshold:
            candidates.append(BreakingCandidate(cluster=cluster, urgency=urgency))
    return candidates


def is_in_quiet_hours(local_hour: int, quiet_start: int, quiet_end: int) -> bool:
    """Check whether a local hour falls inside a quiet window.

    A window with ``start > end`` wraps past midnight. Otherwise it is the
    half-open interval ``[start, end)``, empty when the two are equal.

    Examples:
        >>> is_in_quiet_hours(23, 22, 7)
        True
        >>> is_in_quiet_hours(7, 22, 7)
        False
    """
    if quiet_start > quiet_end:
        return local_hour >= quiet_start or local_hour < quiet_end
    return quiet_start <= local_hour < quiet_end


def can_send_breaking(
    user: str, max_per_day: int, alerts_since_local_midnight: int
) -> bool:
    """Check a user's daily alert cap.

    Args:
        user: User name.
        max_per_day: Daily cap.
        alerts_since_local_midnight: Alerts already sent today.

    Returns:
        True while the user is under the cap.
    """
    allowed = alerts_since_local_midnight < max_per_day
    if not allowed:
        logger.debug(
            "breaking_daily_cap_reached",
            user=user,
            alerts_today=alerts_since_local_midnight,
            max_per_day=max_per_day,
        )
    return allowed


class UrgencyDetector:
    """Finds breaking candidates and decides who may be alerted.

    Gating order for each candidate and user: opt-out, already alerted,
    quiet hours (bypassed by critical urgency or ``force``), then the daily
    cap, which nothing bypasses.
    """

    def __init__(
        self,
        store: Store,
        settings: BreakingSettings,
        min_sources_for_trending: int,
        run_id: str,
    ) -> None:
        """Initialize the detector.

        Args:
            store: Cluster and alert log storage.
            settings: Breaking alert settings.
            min_sources_for_trending: Minimum sources for a candidate.
            run_id: Run identifier for logging.
        """
        self._store = store
        self._settings = settings
        self._min_sources = min_sources_for_trending
        self._log = logger.bind(component="urgency", run_id=run_id)

    def candidates(self, now: datetime) -> list[BreakingCandidate]:
        """Load ACTIVE clusters and select breaking candidates.

        Args:
            now: Evaluation time.

        Returns:
            Candidates in velocity order.
        """
        clusters = self._store.get_active_clusters(min_sources=self._min_sources)
        found = find_candidates(
            clusters,
            self._min_sources,
            self._settings.urgency_threshold,
            now,
            top_n=self._settings.top_candidates,
        )
        self._log.info(
            "breaking_candidates_found",
            clusters_considered=len(clusters),
            candidates=len(found),
        )
        return found

    def alerts_today(self, user: str, timezone: str, now: datetime) -> int:
        """Count a user's alerts since local midnight in their timezone."""
        return self._store.count_alerts_since(user, local_midnight(timezone, now))

    def quiet_hours_for(self, profile: UserProfile) -> QuietHours:
        """The user's own quiet window, or the global default."""
        return profile.breaking.quiet_hours or self._settings.quiet_hours

    def evaluate(
        self,
        candidate: BreakingCandidate,
        user: str,
        profile: UserProfile,
        now: datetime,
        force: bool = False,
    ) -> AlertDecision:
        """Decide whether one user gets an alert for one candidate.

        Args:
            candidate: Breaking candidate.
            user: User name.
            profile: The user's profile.
            now: Evaluation time.
            force: Operator override for quiet hours (not the daily cap).

        Returns:
            The gating decision.
        """
        cluster_id = candidate.cluster.id

        def skip(reason: SkipReason, alerts_today: int = 0) -> AlertDecision:
            self._log.info(
                "breaking_alert_skipped",
                user=user,
                cluster_id=cluster_id,
                reason=reason.value,
                urgency=round(candidate.urgency, 3),
            )
            return AlertDecision(
                user=user,
                cluster_id=cluster_id,
                urgency=candidate.urgency,
                send=False,
                reason=reason,
                alerts_today=alerts_today,
            )

        if not profile.breaking.enabled:
            return skip(SkipReason.BREAKING_DISABLED)

        if self._store.has_alert(user, cluster_id):
            return skip(SkipReason.ALREADY_ALERTED)

        quiet = self.quiet_hours_for(profile)
        hour = local_now(profile.schedule.timezone, now).hour
        in_quiet = is_in_quiet_hours(hour, quiet.start, quiet.end)
        critical = candidate.urgency >= self._settings.critical_override_threshold
        if in_quiet and not (critical or force):
            return skip(SkipReason.QUIET_HOURS)

        sent_today = self.alerts_today(user, profile.schedule.timezone, now)
        if not can_send_breaking(user, self._settings.max_per_day, sent_today):
            return skip(SkipReason.DAILY_CAP, sent_today)

        return AlertDecision(
            user=user,
            cluster_id=cluster_id,
            urgency=candidate.urgency,
            send=True,
            alerts_today=sent_today,
            quiet_hours_overridden=in_quiet,
        )
