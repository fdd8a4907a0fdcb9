"""Article sources."""

from news_digest.sources.errors import FeedError, FeedErrorClass
from news_digest.sources.feed import (
    FeedResult,
    FeedRunResult,
    FeedSource,
    extract_image_url,
    parse_feed,
)
from news_digest.sources.protocols import ArticleSource


__all__ = [
    "ArticleSource",
    "FeedError",
    "FeedErrorClass",
    "FeedResult",
    "FeedRunResult",
    "FeedSource",
    "extract_image_url",
    "parse_feed",
]
