"""Generate-subtitles step."""

import logging
from typing import Any, Dict

from newscast.errors import ValidationError
from newscast.subtitles import SubtitleBundle
from newscast.workflow.results import (
    GENERATE_SCRIPT,
    GENERATE_SUBTITLES,
    SYNTHESIZE_AUDIO,
    AudioSubmission,
    GenerationContext,
)
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)


class GenerateSubtitlesStep(PipelineStep):
    """Produces SRT, WebVTT and JSON transcript output for the finished audio."""

    @property
    def name(self) -> str:
        return GENERATE_SUBTITLES

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> SubtitleBundle:
        script = results[GENERATE_SCRIPT]
        audio = results[SYNTHESIZE_AUDIO]
        if isinstance(audio, AudioSubmission):
            raise ValidationError("Subtitles need finished audio, but speech synthesis is still pending")

        return context.services.subtitles.generate(script.text, audio.duration_seconds)
