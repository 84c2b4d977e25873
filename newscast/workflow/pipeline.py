"""Episode generation pipeline.

Six steps in a fixed order:

    fetch-source -> generate-script -> synthesize-audio
        -> generate-subtitles -> store-artifacts -> record-metadata

With a blocking synthesizer all six run in one call. With an asynchronous
synthesizer the run stops after synthesize-audio has submitted the job and
registered its handle; the completion tracker runs the remaining steps once
the job finishes. Both halves end in the record-metadata step, which marks
the episode completed or failed.
"""

import asyncio
import logging
import secrets
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Dict, List, Optional

from newscast.db.models import Episode
from newscast.errors import DeadlineExceededError, WorkflowStepError
from newscast.styles import DEFAULT_STYLE, get_style
from newscast.workflow.executor import WorkflowExecutor
from newscast.workflow.results import SYNTHESIZE_AUDIO, GenerationContext
from newscast.workflow.retry import RetryExecutor, RetryPolicy
from newscast.workflow.steps import (
    FetchSourceStep,
    GenerateScriptStep,
    GenerateSubtitlesStep,
    PipelineStep,
    RecordMetadataStep,
    StoreArtifactsStep,
    SubmitAudioStep,
    SynthesizeAudioStep,
)

if TYPE_CHECKING:
    from newscast.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def new_episode_id(style_name: str, now: Optional[datetime] = None) -> str:
    """Build an episode ID of the form "{style}-{UTC timestamp}-{random suffix}"."""
    now = now or datetime.now(UTC)
    return f"{style_name}-{now:%Y%m%dT%H%M%SZ}-{secrets.token_hex(3)}"


def create_executor(services: "ServiceContainer", retry_executor: Optional[RetryExecutor] = None) -> WorkflowExecutor:
    """Build a workflow executor whose default policy comes from the pipeline config."""
    return WorkflowExecutor(
        retry_executor=retry_executor or RetryExecutor(),
        default_policy=RetryPolicy.from_config(services.pipeline_config),
    )


class EpisodePipeline:
    """Runs the episode generation pipeline.

    Example:
        services = build_services(Config(), PipelineConfig.from_env())
        pipeline = EpisodePipeline(services)
        episode = await pipeline.generate("news-anchor")
    """

    def __init__(self, services: "ServiceContainer", executor: Optional[WorkflowExecutor] = None):
        """Initialize the pipeline.

        Args:
            services: Collaborators and stores shared by all runs.
            executor: Workflow executor to run steps with. Defaults to one
                using the pipeline config's retry settings.
        """
        self.services = services
        self.executor = executor or create_executor(services)
        self._abandoned: Dict[asyncio.Task, str] = {}

    def synchronous_steps(self) -> List[PipelineStep]:
        config = self.services.pipeline_config
        return [
            FetchSourceStep(),
            GenerateScriptStep(min_words=config.min_script_words),
            SynthesizeAudioStep(words_per_minute=config.words_per_minute),
            GenerateSubtitlesStep(),
            StoreArtifactsStep(),
            RecordMetadataStep(),
        ]

    def submission_steps(self) -> List[PipelineStep]:
        config = self.services.pipeline_config
        return [
            FetchSourceStep(),
            GenerateScriptStep(min_words=config.min_script_words),
            SubmitAudioStep(),
        ]

    async def _run(self, context: GenerationContext, use_async: bool) -> Episode:
        repository = self.services.repository
        episode_id = context.episode_id

        await asyncio.to_thread(
            repository.create_episode,
            episode_id,
            context.style.name,
            status="pending",
            is_async=use_async,
        )
        await asyncio.to_thread(repository.update_episode, episode_id, status="processing")

        try:
            if use_async:
                results: Dict = await self.executor.execute_async(self.submission_steps(), context)
                logger.info(
                    f"Episode {episode_id}: awaiting speech job "
                    f"{results[SYNTHESIZE_AUDIO].job_id}"
                )
            else:
                await self.executor.execute(self.synchronous_steps(), context)
        except WorkflowStepError as e:
            await RecordMetadataStep.record_failure(self.services, episode_id, str(e))
        except Exception as e:
            await RecordMetadataStep.record_failure(
                self.services, episode_id, f"Workflow failed: {type(e).__name__}: {e}"
            )
            raise

        return await asyncio.to_thread(repository.get_episode, episode_id)

    async def generate(
        self,
        style_name: Optional[str] = None,
        use_async: Optional[bool] = None,
        deadline_seconds: Optional[float] = None,
        episode_id: Optional[str] = None,
    ) -> Episode:
        """Run the pipeline for a new episode.

        A run that fails at any step does not raise: the returned episode has
        status "failed" and an error naming the failed step.

        Args:
            style_name: Style tag; defaults to "news-anchor".
            use_async: Submit speech synthesis as a remote job. Defaults to
                the container's setting.
            deadline_seconds: Overall deadline for the run. When it elapses
                the run is abandoned and DeadlineExceededError is raised. The
                run keeps going until it finishes or ``drain`` stops it.
            episode_id: Explicit episode ID; generated when omitted.

        Returns:
            The episode row after the run: "completed" or "failed" for
            synchronous runs, "processing" while an asynchronous job is pending.

        Raises:
            ValidationError: If the style is unknown.
            DeadlineExceededError: If the deadline elapsed first.
        """
        style = get_style(style_name or DEFAULT_STYLE)
        if use_async is None:
            use_async = self.services.use_async_tts
        if use_async and self.services.async_synthesizer is None:
            raise ValueError("Asynchronous generation requested but no asynchronous synthesizer is configured")
        if not use_async and self.services.synthesizer is None:
            raise ValueError("Synchronous generation requested but no blocking synthesizer is configured")

        context = GenerationContext(
            episode_id=episode_id or new_episode_id(style.name),
            style=style,
            services=self.services,
        )
        logger.info(
            f"Generating episode {context.episode_id} "
            f"(style={style.name}, {'async' if use_async else 'sync'} speech)"
        )

        if deadline_seconds is None:
            return await self._run(context, use_async)

        task = asyncio.ensure_future(self._run(context, use_async))
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=deadline_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Episode {context.episode_id}: deadline of {deadline_seconds}s elapsed, "
                f"abandoning the run"
            )
            self._abandoned[task] = context.episode_id
            task.add_done_callback(self._on_abandoned_done)
            raise DeadlineExceededError(
                f"Episode {context.episode_id} did not finish within {deadline_seconds}s"
            )

    @property
    def pending_runs(self) -> List[str]:
        """Episode IDs of abandoned runs that are still going."""
        return list(self._abandoned.values())

    def _on_abandoned_done(self, task: asyncio.Task) -> None:
        episode_id = self._abandoned.pop(task, None)
        if task.cancelled():
            logger.warning(f"Abandoned run of episode {episode_id} was cancelled")
        elif task.exception() is not None:
            logger.error(f"Abandoned run of episode {episode_id} failed: {task.exception()}")
        else:
            logger.info(f"Abandoned run of episode {episode_id} finished: {task.result().status}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for abandoned runs, then stop the ones still going.

        Runs that do not finish within ``timeout`` seconds are cancelled and
        their episodes are marked failed, so no episode is left processing
        once the caller shuts down.
        """
        if not self._abandoned:
            return

        abandoned = dict(self._abandoned)
        _, pending = await asyncio.wait(list(abandoned), timeout=timeout)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in pending:
            await RecordMetadataStep.record_failure(
                self.services,
                abandoned[task],
                "Run abandoned after its deadline and stopped before finishing",
            )
