"""Data models for breaking-news detection."""

from dataclasses import dataclass
from enum import Enum

from news_digest.store.models import StoryCluster


class SkipReason(str, Enum):
    """Why an alert was not sent to a user."""

    BREAKING_DISABLED = "breaking_disabled"
    ALREADY_ALERTED = "already_alerted"
    QUIET_HOURS = "quiet_hours"
    DAILY_CAP = "daily_cap"


@dataclass(frozen=True)
class BreakingCandidate:
    """An ACTIVE cluster whose urgency cleared the threshold.

    Attributes:
        cluster: The candidate cluster.
        urgency: Urgency score in [0, 1.0].
    """

    cluster: StoryCluster
    urgency: float


@dataclass(frozen=True)
class AlertDecision:
    """Gating outcome for one candidate and one user.

    Attributes:
        user: User name.
        cluster_id: Candidate cluster.
        urgency: Candidate urgency.
        send: Whether the alert should go out.
        reason: Why it was skipped, when ``send`` is False.
        alerts_today: Alerts already sent since the user's local midnight.
        quiet_hours_overridden: Quiet hours were active but bypassed.
    """

    user: str
    cluster_id: str
    urgency: float
    send: bool
    reason: SkipReason | None = None
    alerts_today: int = 0
    quiet_hours_overridden: bool = False
