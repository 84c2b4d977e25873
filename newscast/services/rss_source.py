"""Content sources: RSS news feeds and fixed topics."""

import asyncio
import html
import logging
import re
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import List, Optional

import aiohttp
import feedparser

from newscast.errors import TransientError, ValidationError
from newscast.services.downloader import DEFAULT_USER_AGENT, raise_for_status
from newscast.services.interfaces import SourceItem

logger = logging.getLogger(__name__)


def clean_html(text: Optional[str]) -> str:
    """Strip tags, decode entities and normalize whitespace."""
    if not text:
        return ""
    clean = re.sub(r"<[^>]+>", "", text)
    clean = html.unescape(clean)
    return re.sub(r"\s+", " ", clean).strip()


def _entry_timestamp(entry: feedparser.FeedParserDict) -> Optional[datetime]:
    if entry.get("published_parsed"):
        try:
            return datetime(*entry.published_parsed[:6], tzinfo=UTC)
        except (TypeError, ValueError):
            pass
    if entry.get("published"):
        try:
            return parsedate_to_datetime(entry.published)
        except (TypeError, ValueError):
            pass
    return None


def parse_feed(content: str, max_items: int) -> List[SourceItem]:
    """Parse RSS/Atom content into source items, newest first.

    Raises:
        ValidationError: If the content is not a feed or has no usable entries.
    """
    feed = feedparser.parse(content)

    if feed.bozo and feed.bozo_exception:
        logger.warning(f"Feed parsing warning: {feed.bozo_exception}")

    items = []
    for entry in feed.entries:
        title = clean_html(entry.get("title"))
        if not title:
            continue
        body = clean_html(
            entry.get("summary")
            or entry.get("description")
            or entry.get("content", [{}])[0].get("value")
        )
        items.append(
            SourceItem(
                title=title,
                body=body,
                timestamp=_entry_timestamp(entry),
                source_url=entry.get("link"),
            )
        )

    if not items:
        raise ValidationError("Feed contains no usable entries")

    items.sort(
        key=lambda item: item.timestamp or datetime.min.replace(tzinfo=UTC),
        reverse=True,
    )
    return items[:max_items]


class RssSourceFetcher:
    """Fetches news stories from an RSS feed.

    Example:
        fetcher = RssSourceFetcher("https://feeds.bbci.co.uk/news/world/rss.xml")
        items = await fetcher.fetch(limit=5)
    """

    def __init__(
        self,
        feed_url: str,
        max_items: int = 10,
        timeout: int = 30,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.feed_url = feed_url
        self.max_items = max_items
        self.timeout = timeout
        self.user_agent = user_agent

    async def _download(self) -> str:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(
                timeout=timeout,
                headers={"User-Agent": self.user_agent},
            ) as session:
                async with session.get(self.feed_url, allow_redirects=True) as response:
                    await raise_for_status(response, f"Fetch of {self.feed_url}")
                    return await response.text()
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TransientError(f"Fetch of {self.feed_url} failed: {e}") from e

    async def fetch(self, limit: Optional[int] = None) -> List[SourceItem]:
        logger.info(f"Fetching feed: {self.feed_url}")
        content = await self._download()
        items = parse_feed(content, limit or self.max_items)
        logger.info(f"Fetched {len(items)} items from {self.feed_url}")
        return items


class TopicSourceFetcher:
    """Serves a single, fixed topic as the episode's source content."""

    def __init__(self, title: str, description: str = ""):
        if not title.strip():
            raise ValueError("A topic title is required for the topic source")
        self.title = title.strip()
        self.description = description.strip()

    async def fetch(self, limit: Optional[int] = None) -> List[SourceItem]:
        return [
            SourceItem(
                title=self.title,
                body=self.description or self.title,
                timestamp=datetime.now(UTC),
            )
        ]
