"""Record-metadata step: the terminal bookkeeping step of every run.

Success marks the episode completed with its final metadata. Failed runs,
whether they failed inside the pipeline or later in the speech synthesis
job, are recorded through ``record_failure``.
"""

import asyncio
import logging
from typing import Any, Dict

from newscast.workflow.results import (
    FETCH_SOURCE,
    GENERATE_SCRIPT,
    GENERATE_SUBTITLES,
    RECORD_METADATA,
    STORE_ARTIFACTS,
    SYNTHESIZE_AUDIO,
    GenerationContext,
    RecordResult,
)
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)


class RecordMetadataStep(PipelineStep):
    """Persists the finished episode and marks it completed."""

    @property
    def name(self) -> str:
        return RECORD_METADATA

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> RecordResult:
        script = results[GENERATE_SCRIPT]
        audio = results[SYNTHESIZE_AUDIO]
        locations = results[STORE_ARTIFACTS]
        subtitles = results.get(GENERATE_SUBTITLES)
        source = results.get(FETCH_SOURCE)

        fields = {
            "status": "completed",
            "title": script.title,
            "description": script.description,
            "script_text": script.text,
            "word_count": script.word_count,
            "duration_seconds": audio.duration_seconds,
            "file_size_bytes": audio.file_size_bytes,
            "is_async": audio.is_async,
            "script_url": locations.script_url,
            "audio_url": locations.audio_url,
            "srt_url": locations.srt_url,
            "vtt_url": locations.vtt_url,
            "transcript_url": locations.transcript_url,
            "error": None,
            "metadata_json": {
                "style_title": context.style.display_title,
                "duration_estimated": audio.duration_estimated,
                "content_type": audio.content_type,
                "subtitle_blocks": subtitles.block_count if subtitles else None,
            },
        }
        if source is not None:
            fields["source_count"] = source.count
            fields["metadata_json"]["source_titles"] = [item.title for item in source.items]

        episode = await asyncio.to_thread(
            context.services.repository.upsert_episode,
            context.episode_id,
            context.style.name,
            **fields,
        )
        logger.info(f"Episode {context.episode_id}: completed ({script.word_count} words, {audio.duration_seconds:.1f}s)")
        return RecordResult(episode_id=episode.id, status=episode.status)

    @staticmethod
    async def record_failure(services, episode_id: str, error: str) -> bool:
        """Mark an episode failed with a human-readable error.

        Returns:
            True if the episode was marked failed, False if it does not exist
            or had already reached a terminal status.
        """
        repository = services.repository
        episode = await asyncio.to_thread(repository.get_episode, episode_id)
        if episode is None:
            logger.warning(f"Cannot record failure for unknown episode {episode_id}")
            return False
        if episode.is_terminal:
            logger.info(f"Episode {episode_id} is already {episode.status}; failure not recorded")
            return False

        try:
            await asyncio.to_thread(
                repository.update_episode, episode_id, status="failed", error=error
            )
        except ValueError as e:
            # Another poller reached a terminal status first
            logger.warning(f"Failure for episode {episode_id} not recorded: {e}")
            return False

        logger.error(f"Episode {episode_id}: failed: {error}")
        return True
