"""Naive keyword and entity extraction."""

import re

from news_digest.scoring.constants import (
    MAX_ENTITY_LOCATIONS,
    MIN_KEYWORD_LENGTH,
    STOPWORDS,
)
from news_digest.store.models import ArticleEntities


_NON_WORD = re.compile(r"\W+")
_CAPITALISED_WORD = re.compile(r"^[A-Z][a-z]+$")


def extract_keywords(title: str) -> list[str]:
    """Extract advisory keywords from a title.

    Lowercases, splits on non-word characters and keeps tokens longer than
    three characters that are not stopwords. Order and duplicates are kept.

    Args:
        title: Article title.

    Returns:
        Keyword tokens.

    Examples:
        >>> extract_keywords("Storm hits the coast, storm warnings issued")
        ['storm', 'hits', 'coast', 'storm', 'warnings', 'issued']
    """
    return [
        token
        for token in _NON_WORD.split(title.lower())
        if len(token) >= MIN_KEYWORD_LENGTH and token not in STOPWORDS
    ]


def extract_entities(text: str) -> ArticleEntities:
    """Extract entities with a capitalisation heuristic.

    Whitespace-separated words that are a capital letter followed only by
    lowercase letters are treated as locations; at most five are kept.

    Args:
        text: Title and summary joined by a space.

    Returns:
        Entities with only ``locations`` populated.
    """
    capitalised = [w for w in text.split() if _CAPITALISED_WORD.match(w)]
    return ArticleEntities(locations=capitalised[:MAX_ENTITY_LOCATIONS])
