"""Synthesize-audio step, in a blocking and a submitting variant.

Both variants run under the same step name. The blocking variant returns
finished audio; the submitting variant registers a job handle and returns
immediately, leaving the rest of the pipeline to the completion tracker.
"""

import logging
from typing import Any, Dict

from newscast.audio import estimate_duration, read_duration
from newscast.workflow.results import (
    GENERATE_SCRIPT,
    SYNTHESIZE_AUDIO,
    AudioResult,
    AudioSubmission,
    GenerationContext,
)
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)


class SynthesizeAudioStep(PipelineStep):
    """Synthesizes the script and waits for the audio."""

    def __init__(self, words_per_minute: int = 150):
        self.words_per_minute = words_per_minute

    @property
    def name(self) -> str:
        return SYNTHESIZE_AUDIO

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> AudioResult:
        script = results[GENERATE_SCRIPT]
        synthesizer = context.services.synthesizer
        if synthesizer is None:
            raise RuntimeError("No blocking speech synthesizer is configured")

        audio = await synthesizer.synthesize(script.text, context.style)

        duration = audio.duration_seconds or read_duration(audio.audio_bytes)
        estimated = duration is None
        if estimated:
            duration = estimate_duration(script.word_count, self.words_per_minute)

        logger.info(
            f"Episode {context.episode_id}: synthesized {len(audio.audio_bytes)} bytes, "
            f"{duration:.1f}s{' (estimated)' if estimated else ''}"
        )
        return AudioResult(
            audio_bytes=audio.audio_bytes,
            duration_seconds=duration,
            duration_estimated=estimated,
            content_type=audio.content_type,
            file_extension=audio.file_extension,
        )


class SubmitAudioStep(PipelineStep):
    """Submits the script as a remote job and registers its handle."""

    @property
    def name(self) -> str:
        return SYNTHESIZE_AUDIO

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> AudioSubmission:
        script = results[GENERATE_SCRIPT]
        services = context.services
        if services.async_synthesizer is None:
            raise RuntimeError("No asynchronous speech synthesizer is configured")

        job_id = await services.async_synthesizer.submit(script.text, context.style)
        await self.checkpoint(context, tts_job_id=job_id, is_async=True)
        await services.job_store.put(context.episode_id, job_id)

        logger.info(f"Episode {context.episode_id}: submitted speech job {job_id}")
        return AudioSubmission(job_id=job_id)
