"""Breaking-news urgency detection and gating."""

from news_digest.urgency.detector import (
    UrgencyDetector,
    can_send_breaking,
    find_candidates,
    is_in_quiet_hours,
)
from news_digest.urgency.models import AlertDecision, BreakingCandidate, SkipReason


__all__ = [
    "AlertDecision",
    "BreakingCandidate",
    "SkipReason",
    "UrgencyDetector",
    "can_send_breaking",
    "find_candidates",
    "is_in_quiet_hours",
]
