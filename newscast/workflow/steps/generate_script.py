"""Generate-script step: write the episode script with the text generator."""

import logging
from datetime import datetime
from typing import Any, Dict, List

from newscast.audio import count_words
from newscast.errors import ValidationError
from newscast.prompt_manager import format_sources
from newscast.services.interfaces import SourceItem
from newscast.styles import StyleProfile
from newscast.workflow.results import (
    FETCH_SOURCE,
    GENERATE_SCRIPT,
    GenerationContext,
    ScriptResult,
)
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)

DESCRIPTION_TITLE_COUNT = 3


def clean_script(text: str) -> str:
    """Normalize generated text: one paragraph per non-blank line, separated by blank lines."""
    if not text:
        return ""
    paragraphs = [line.strip() for line in text.strip().splitlines()]
    return "\n\n".join(p for p in paragraphs if p)


def build_title(style: StyleProfile, when: datetime) -> str:
    return f"{style.display_title} - {when:%Y-%m-%d}"


def build_description(items: List[SourceItem]) -> str:
    """Summarize an episode by the first few source titles.

    Feed titles often carry a " - Publisher" suffix, which is dropped.
    """
    titles = [item.title.split(" - ")[0].strip() for item in items[:DESCRIPTION_TITLE_COUNT]]
    description = "Covering: " + "; ".join(titles)
    if len(items) > DESCRIPTION_TITLE_COUNT:
        description += "; and more"
    return description


class GenerateScriptStep(PipelineStep):
    """Builds a prompt from the source items, generates and validates the script.

    Validation failures (empty or too-short scripts) are never retried.
    """

    def __init__(self, min_words: int = 50):
        self.min_words = min_words

    @property
    def name(self) -> str:
        return GENERATE_SCRIPT

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> ScriptResult:
        services = context.services
        items = results[FETCH_SOURCE].items
        style = context.style

        prompt = services.prompts.build_prompt(
            style.prompt_name,
            sources=format_sources(items),
            date=f"{context.started_at:%B %d, %Y}",
            show_title=style.display_title,
        )
        raw_text = await services.text_generator.generate(prompt, style)

        text = clean_script(raw_text)
        if not text:
            raise ValidationError("Text generator returned an empty script")

        word_count = count_words(text)
        if word_count < self.min_words:
            raise ValidationError(
                f"Generated script is too short: {word_count} words (minimum {self.min_words})"
            )

        script = ScriptResult(
            text=text,
            word_count=word_count,
            title=build_title(style, context.started_at),
            description=build_description(items),
        )
        await self.checkpoint(
            context,
            title=script.title,
            description=script.description,
            script_text=script.text,
            word_count=script.word_count,
            source_count=len(items),
        )
        logger.info(f"Episode {context.episode_id}: generated {word_count}-word script")
        return script
