"""Protocol for article sources."""

from typing import Protocol, runtime_checkable

from news_digest.store.models import RawArticle


@runtime_checkable
class ArticleSource(Protocol):
    """Anything that can produce a batch of raw articles."""

    def fetch(self) -> list[RawArticle]:
        """Fetch the current batch of raw articles."""
        ...
