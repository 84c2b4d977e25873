"""Store-artifacts step: write script, audio and subtitles to binary storage."""

import logging
from typing import Any, Dict

from newscast.workflow.results import (
    GENERATE_SCRIPT,
    GENERATE_SUBTITLES,
    STORE_ARTIFACTS,
    SYNTHESIZE_AUDIO,
    GenerationContext,
    StorageResult,
)
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)


def artifact_key(episode_id: str, filename: str) -> str:
    return f"episodes/{episode_id}/{filename}"


class StoreArtifactsStep(PipelineStep):
    """Uploads every artifact of the episode and records their locations.

    Keys are derived from the episode ID, so a retried attempt overwrites
    the objects of the failed one.
    """

    @property
    def name(self) -> str:
        return STORE_ARTIFACTS

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> StorageResult:
        script = results[GENERATE_SCRIPT]
        audio = results[SYNTHESIZE_AUDIO]
        subtitles = results[GENERATE_SUBTITLES]
        storage = context.services.storage
        episode_id = context.episode_id

        script_url = await storage.put(
            artifact_key(episode_id, "script.txt"),
            script.text.encode("utf-8"),
            "text/plain; charset=utf-8",
        )
        audio_url = await storage.put(
            artifact_key(episode_id, f"audio.{audio.file_extension}"),
            audio.audio_bytes,
            audio.content_type,
        )
        srt_url = await storage.put(
            artifact_key(episode_id, "subtitles.srt"),
            subtitles.srt.encode("utf-8"),
            "application/x-subrip",
        )
        vtt_url = await storage.put(
            artifact_key(episode_id, "subtitles.vtt"),
            subtitles.vtt.encode("utf-8"),
            "text/vtt",
        )
        transcript_url = await storage.put(
            artifact_key(episode_id, "transcript.json"),
            subtitles.transcript_json.encode("utf-8"),
            "application/json",
        )

        locations = StorageResult(
            script_url=script_url,
            audio_url=audio_url,
            srt_url=srt_url,
            vtt_url=vtt_url,
            transcript_url=transcript_url,
        )
        await self.checkpoint(
            context,
            script_url=script_url,
            audio_url=audio_url,
            srt_url=srt_url,
            vtt_url=vtt_url,
            transcript_url=transcript_url,
            duration_seconds=audio.duration_seconds,
            file_size_bytes=audio.file_size_bytes,
        )
        logger.info(f"Episode {episode_id}: stored artifacts, audio at {audio_url}")
        return locations
