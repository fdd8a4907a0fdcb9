"""RSS/Atom article source with per-feed failure isolation."""

import calendar
import re
import time
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import feedparser  # type: ignore[import-untyped]
import httpx
import structlog
from pydantic import ValidationError

from news_digest.config.schemas import FeedConfig
from news_digest.sources.errors import FeedError, FeedErrorClass
from news_digest.store.models import RawArticle


logger = structlog.get_logger()

USER_AGENT = "news-digest/0.1 (+feed reader)"

_IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)


@dataclass(frozen=True)
class FeedResult:
    """Outcome of reading one feed."""

    feed_name: str
    articles: list[RawArticle] = field(default_factory=list)
    error: FeedError | None = None
    parse_warnings: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        """Check if the feed was read."""
        return self.error is None


@dataclass(frozen=True)
class FeedRunResult:
    """Outcome of reading every enabled feed."""

    feed_results: dict[str, FeedResult]

    @property
    def articles(self) -> list[RawArticle]:
        """All articles, grouped by feed in name order."""
        return [
            article
            for name in sorted(self.feed_results)
            for article in self.feed_results[name].articles
        ]

    @property
    def feeds_failed(self) -> int:
        """Number of feeds that could not be read."""
        return sum(1 for r in self.feed_results.values() if not r.success)


def extract_image_url(entry: Any) -> str | None:
    """Find an image for a feed entry.

    Looks at media:content, media:thumbnail, image enclosures, then the
    first ``<img>`` in the entry content or summary.
    """
    for media in entry.get("media_content", []) or []:
        medium = media.get("medium", "")
        mime = media.get("type", "")
        if media.get("url") and (medium == "image" or mime.startswith("image/")):
            return str(media["url"])

    for thumb in entry.get("media_thumbnail", []) or []:
        if thumb.get("url"):
            return str(thumb["url"])

    for enclosure in entry.get("enclosures", []) or []:
        if enclosure.get("type", "").startswith("image/") and enclosure.get("href"):
            return str(enclosure["href"])

    html_parts = [c.get("value", "") for c in entry.get("content", []) or []]
    html_parts.append(entry.get("summary", "") or "")
    for html in html_parts:
        match = _IMG_SRC_RE.search(html)
        if match:
            return match.group(1)
    return None


def _extract_date(entry: Any) -> datetime | None:
    for key in ("published_parsed", "updated_parsed"):
        parsed = entry.get(key)
        if parsed:
            try:
                return datetime.fromtimestamp(calendar.timegm(parsed), tz=UTC)
            except (ValueError, OverflowError):
                pass

    for key in ("published", "updated"):
        raw = entry.get(key)
        if raw:
            try:
                return parsedate_to_datetime(raw).astimezone(UTC)
            except (ValueError, TypeError):
                pass
    return None


def _entry_link(entry: Any) -> str:
    link = entry.get("link", "")
    if link:
        return str(link)
    links = entry.get("links", []) or []
    for link_entry in links:
        if link_entry.get("rel") == "alternate" and link_entry.get("href"):
            return str(link_entry["href"])
    return str(links[0].get("href", "")) if links else ""


def parse_feed(
    content: bytes, feed: FeedConfig, now: datetime
) -> tuple[list[RawArticle], list[str]]:
    """Parse an RSS/Atom document into raw articles.

    Entries without a link are skipped. Entries without a date are stamped
    with ``now``. Untitled entries get a placeholder title.

    Args:
        content: Feed body.
        feed: Feed configuration (its name becomes the article source).
        now: Fallback publication time.

    Returns:
        Tuple of (articles, parse warnings).

    Raises:
        FeedError: If the body is not a usable feed.
    """
    parsed = feedparser.parse(content)
    warnings: list[str] = []

    if parsed.bozo and parsed.bozo_exception:
        if not parsed.entries:
            raise FeedError(
                FeedErrorClass.PARSE,
                f"unparseable feed: {parsed.bozo_exception}",
                feed_name=feed.name,
            )
        warnings.append(f"Feed parsing warning: {parsed.bozo_exception}")

    articles: list[RawArticle] = []
    for entry in parsed.entries:
        link = _entry_link(entry)
        if not link:
            continue

        contents = entry.get("content", []) or []
        try:
            articles.append(
                RawArticle(
                    url=link,
                    title=(entry.get("title", "") or "").strip() or "Untitled",
                    summary=entry.get("summary") or entry.get("description") or None,
                    content=contents[0].get("value") if contents else None,
                    author=entry.get("author") or None,
                    source=feed.name,
                    source_url=feed.url,
                    published_at=_extract_date(entry) or now,
                    image_url=extract_image_url(entry),
                )
            )
        except ValidationError as e:
            warnings.append(f"Failed to parse entry {link}: {e.error_count()} errors")

    return articles, warnings


class FeedSource:
    """Reads a set of RSS/Atom feeds over HTTP.

    Feeds are fetched in parallel. A failing feed is logged and reported in
    its ``FeedResult``; the rest of the batch still comes through.
    """

    def __init__(
        self,
        feeds: Sequence[FeedConfig],
        timeout: float = 20.0,
        max_workers: int = 4,
        run_id: str = "",
    ) -> None:
        """Initialize the source.

        Args:
            feeds: Feed configurations (disabled feeds are skipped).
            timeout: Per-request timeout in seconds.
            max_workers: Parallel fetches.
            run_id: Run identifier for logging.
        """
        self._feeds = [f for f in feeds if f.enabled]
        self._timeout = timeout
        self._max_workers = max(1, max_workers)
        self._log = logger.bind(component="sources", run_id=run_id)

    def fetch(self) -> list[RawArticle]:
        """Fetch every enabled feed and return the combined articles."""
        return self.collect().articles

    def collect(self, now: datetime | None = None) -> FeedRunResult:
        """Fetch every enabled feed, keeping per-feed outcomes.

        Args:
            now: Fallback publication time for undated entries.

        Returns:
            Per-feed results.
        """
        now = now or datetime.now(UTC)
        results: dict[str, FeedResult] = {}

        with ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            future_to_feed = {
                executor.submit(self._read_feed, feed, now): feed
                for feed in self._feeds
            }
            for future in as_completed(future_to_feed):
                feed = future_to_feed[future]
                results[feed.name] = future.result()

        run = FeedRunResult(feed_results=results)
        self._log.info(
            "feeds_collected",
            feeds=len(results),
            feeds_failed=run.feeds_failed,
            articles=sum(len(r.articles) for r in results.values()),
        )
        return run

    def fetch_feed(self, feed: FeedConfig) -> bytes:
        """Download one feed body.

        Raises:
            FeedError: On network failure or a non-2xx response.
        """
        try:
            response = httpx.get(
                feed.url,
                headers={"User-Agent": USER_AGENT},
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.HTTPError as e:
            raise FeedError(FeedErrorClass.FETCH, str(e), feed_name=feed.name) from e

        if not response.is_success:
            raise FeedError(
                FeedErrorClass.FETCH,
                f"HTTP {response.status_code}",
                feed_name=feed.name,
                status_code=response.status_code,
            )
        return response.content

    def _read_feed(self, feed: FeedConfig, now: datetime) -> FeedResult:
        start_ns = time.perf_counter_ns()
        log = self._log.bind(feed=feed.name)

        try:
            body = self.fetch_feed(feed)
            articles, warnings = parse_feed(body, feed, now)
        except FeedError as e:
            log.warning("feed_failed", **e.to_dict())
            return FeedResult(
                feed_name=feed.name,
                error=e,
                duration_ms=(time.perf_counter_ns() - start_ns) / 1_000_000,
            )

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        log.info(
            "feed_read",
            articles=len(articles),
            parse_warnings_count=len(warnings),
            duration_ms=round(duration_ms, 2),
        )
        return FeedResult(
            feed_name=feed.name,
            articles=articles,
            parse_warnings=warnings,
            duration_ms=duration_ms,
        )
