"""Constants for the scoring module."""

# Region terms, matched as case-insensitive substrings of label + keywords
AUSTRALIA_TERMS: tuple[str, ...] = (
    "australia",
    "australian",
    "canberra",
    "sydney",
    "melbourne",
    "brisbane",
    "perth",
    "adelaide",
)
NSW_TERMS: tuple[str, ...] = (
    "nsw",
    "new south wales",
    "sydney",
    "wollongong",
    "newcastle",
)

# Words in a cluster label that signal a breaking story
BREAKING_TERMS: tuple[str, ...] = (
    "breaking",
    "urgent",
    "emergency",
    "death",
    "attack",
    "crash",
    "disaster",
)

# Cluster score weights
SOURCE_WEIGHT: float = 3.0
ARTICLE_COUNT_WEIGHT: float = 2.0
VELOCITY_WEIGHT: float = 2.0
BOOST_TOPIC_SCORE: float = 5.0
EXCLUDE_TOPIC_PENALTY: float = 100.0
AUSTRALIA_BONUS: float = 3.0
NSW_BONUS: float = 2.0
CLUSTER_IMAGE_BONUS: float = 2.0

# Article base score
ARTICLE_BASE_SCORE: int = 1
ARTICLE_IMAGE_BONUS: int = 2
FRESH_ARTICLE_HOURS: float = 2.0
FRESH_ARTICLE_BONUS: int = 2
RECENT_ARTICLE_HOURS: float = 6.0
RECENT_ARTICLE_BONUS: int = 1

# Urgency components; the caps bound the total to [0, 1.0]
URGENCY_VELOCITY_CAP: float = 0.3
URGENCY_SOURCE_CAP: float = 0.3
URGENCY_DIVISOR: float = 10.0
URGENCY_FRESH_HOURS: float = 1.0
URGENCY_FRESH_SCORE: float = 0.2
URGENCY_RECENT_HOURS: float = 2.0
URGENCY_RECENT_SCORE: float = 0.1
URGENCY_KEYWORD_SCORE: float = 0.2

# Keyword extraction
MIN_KEYWORD_LENGTH: int = 4
STOPWORDS: frozenset[str] = frozenset(
    "the a an is are was were in on at to for of and or but as by with from "
    "that this it be have has had do does will would could should may might can".split()
)

# Entity extraction
MAX_ENTITY_LOCATIONS: int = 5
