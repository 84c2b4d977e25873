"""Base class for pipeline steps.

Defines the interface shared by all steps of the episode pipeline.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from newscast.workflow.results import GenerationContext
from newscast.workflow.retry import RetryPolicy

logger = logging.getLogger(__name__)


class PipelineStep(ABC):
    """Abstract base class for pipeline steps.

    A step reads the results of the steps before it, calls out to
    collaborators and returns its own result. The workflow executor stores
    that result under the step's name. A step may set ``policy`` to
    override the workflow's default retry policy.
    """

    policy: Optional[RetryPolicy] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Name of this step, unique within a workflow."""
        pass

    @abstractmethod
    async def run(self, context: GenerationContext, results: Dict[str, Any]) -> Any:
        """Run the step.

        Args:
            context: Identity and collaborators of the current run.
            results: Results of the steps that ran before this one.

        Returns:
            The step's result.
        """
        pass

    async def checkpoint(self, context: GenerationContext, **fields) -> None:
        """Persist intermediate outputs on the episode row."""
        await asyncio.to_thread(
            context.services.repository.update_episode, context.episode_id, **fields
        )
        logger.debug(f"{self.name}: saved {sorted(fields)} for episode {context.episode_id}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
