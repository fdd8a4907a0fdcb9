"""Topic matching over cluster text.

Topics match as case-insensitive substrings of ``label + " " + keywords``,
so "elect" matches "election". Each configured topic counts once.
"""

from dataclasses import dataclass

from news_digest.store.models import StoryCluster


def cluster_text(cluster: StoryCluster) -> str:
    """Build the lowercase text topics are matched against.

    Args:
        cluster: Cluster to describe.

    Returns:
        Lowercased label followed by space-joined keywords.
    """
    return f"{cluster.label} {' '.join(cluster.keywords)}".lower()


@dataclass(frozen=True)
class TopicMatch:
    """Result of a topic match.

    Attributes:
        topic: The configured topic string.
        excluded: Whether the topic came from the exclude list.
    """

    topic: str
    excluded: bool


class TopicMatcher:
    """Matches text against a user's boost and exclude topics."""

    def __init__(self, boost: list[str], exclude: list[str]) -> None:
        """Initialize the matcher.

        Args:
            boost: Topics that lift a cluster.
            exclude: Topics that bury a cluster.
        """
        self._boost = [(t, t.lower()) for t in boost]
        self._exclude = [(t, t.lower()) for t in exclude]

    def match_text(self, text: str) -> list[TopicMatch]:
        """Find all topic matches in lowercase text.

        Args:
            text: Lowercased text to search.

        Returns:
            Boost matches first, then exclude matches, in configured order.
        """
        matches = [
            TopicMatch(topic=topic, excluded=False)
            for topic, needle in self._boost
            if needle in text
        ]
        matches.extend(
            TopicMatch(topic=topic, excluded=True)
            for topic, needle in self._exclude
            if needle in text
        )
        return matches


def contains_any(text: str, terms: tuple[str, ...]) -> bool:
    """Check whether lowercase text contains any of the terms."""
    return any(term in text for term in terms)
