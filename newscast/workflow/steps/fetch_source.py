"""Fetch-source step: obtain the source items an episode is written from."""

import logging
from typing import Any, Dict, Optional

from newscast.errors import ValidationError
from newscast.workflow.results import FETCH_SOURCE, GenerationContext, SourceResult
from newscast.workflow.steps.base import PipelineStep

logger = logging.getLogger(__name__)


class FetchSourceStep(PipelineStep):
    """Fetches an ordered list of source items from the configured source."""

    def __init__(self, max_items: Optional[int] = None):
        self.max_items = max_items

    @property
    def name(self) -> str:
        return FETCH_SOURCE

    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> SourceResult:
        items = await context.services.source.fetch(limit=self.max_items)
        if not items:
            raise ValidationError("Content source returned no items")

        logger.info(f"Episode {context.episode_id}: fetched {len(items)} source items")
        return SourceResult(items=list(items))
