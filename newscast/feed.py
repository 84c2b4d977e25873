"""Podcast RSS feed of completed episodes.

The feed is built with feedgen and its podcast (iTunes) extension. Each
completed episode with stored audio becomes one item with an audio
enclosure, its duration and its publication date, newest first.
"""

import logging
from datetime import UTC, datetime
from typing import Iterable, Optional

from feedgen.feed import FeedGenerator

from newscast.audio import content_type_for
from newscast.db.models import Episode
from newscast.db.repository import EpisodeRepositoryInterface

logger = logging.getLogger(__name__)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; they are stored in UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _enclosure_type(episode: Episode) -> str:
    content_type = (episode.metadata_json or {}).get("content_type")
    if content_type:
        return content_type
    return content_type_for(episode.audio_url.rsplit(".", 1)[-1])


def episode_link(config, episode: Episode) -> str:
    return f"{config.FEED_LINK}/episodes/{episode.id}"


def build_feed(episodes: Iterable[Episode], config) -> bytes:
    """Render episodes as a podcast RSS document.

    Args:
        episodes: Episodes in the order they should appear (newest first).
            Episodes that are not completed or have no audio are skipped.
        config: Config providing the FEED_* channel settings.

    Returns:
        The RSS XML, UTF-8 encoded.
    """
    fg = FeedGenerator()
    fg.load_extension("podcast")

    fg.title(config.FEED_TITLE)
    fg.description(config.FEED_DESCRIPTION)
    fg.link(href=config.FEED_LINK, rel="alternate")
    fg.language(config.FEED_LANGUAGE)
    fg.author({"name": config.FEED_AUTHOR})
    fg.podcast.itunes_author(config.FEED_AUTHOR)
    fg.podcast.itunes_summary(config.FEED_DESCRIPTION)
    fg.podcast.itunes_explicit("no")

    if config.FEED_IMAGE_URL:
        fg.podcast.itunes_image(config.FEED_IMAGE_URL)
        fg.image(url=config.FEED_IMAGE_URL, title=config.FEED_TITLE, link=config.FEED_LINK)

    count = 0
    for episode in episodes:
        if episode.status != "completed" or not episode.audio_url:
            logger.debug(f"Skipping episode {episode.id} ({episode.status}) in feed")
            continue

        fe = fg.add_entry(order="append")
        fe.id(episode_link(config, episode))
        fe.guid(episode_link(config, episode), permalink=True)
        fe.title(episode.title or episode.id)
        fe.link(href=episode_link(config, episode))
        fe.description(episode.description or episode.title or episode.id)
        fe.enclosure(episode.audio_url, str(episode.file_size_bytes or 0), _enclosure_type(episode))
        fe.pubDate(_aware(episode.completed_at or episode.created_at))
        if episode.duration_seconds:
            fe.podcast.itunes_duration(int(round(episode.duration_seconds)))
        count += 1

    logger.info(f"Built feed with {count} episodes")
    return fg.rss_str(pretty=True)


def feed_from_repository(
    repository: EpisodeRepositoryInterface, config, limit: Optional[int] = None
) -> bytes:
    """Build the feed from the most recent completed episodes."""
    episodes = repository.list_episodes(
        status="completed", limit=limit or config.FEED_MAX_EPISODES
    )
    return build_feed(episodes, config)
