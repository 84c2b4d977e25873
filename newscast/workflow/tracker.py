"""Async completion tracker for speech synthesis jobs.

``poll_once`` advances an episode's outstanding job by exactly one check of
the remote system:

- pending: the handle moves to in_progress and the caller polls again later.
- done: the audio is downloaded, subtitles are generated, artifacts are
  stored, the handle is marked completed and the record-metadata step marks
  the episode completed.
- error, or the remote session has expired: the handle and the episode are
  marked failed.

Transport failures while checking or downloading surface as
PollTransportError and leave the handle untouched, so polling can simply be
retried. Scheduling further polls is the caller's job: ``wait_for_completion``
is a client-side re-poll loop and ``sweep`` polls every outstanding job once.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

from newscast.audio import content_type_for, estimate_duration, read_duration
from newscast.db.models import Episode
from newscast.errors import (
    CollaboratorError,
    DeadlineExceededError,
    EpisodeNotFoundError,
    JobNotFoundError,
    JobSessionExpiredError,
    PollTransportError,
    TransientError,
    WorkflowStepError,
)
from newscast.styles import get_style
from newscast.workflow.executor import WorkflowExecutor
from newscast.workflow.job_store import JobHandle
from newscast.workflow.pipeline import create_executor
from newscast.workflow.results import (
    GENERATE_SCRIPT,
    STORE_ARTIFACTS,
    SYNTHESIZE_AUDIO,
    AudioResult,
    GenerationContext,
    PollResult,
    ScriptResult,
    StorageResult,
)
from newscast.workflow.retry import default_should_retry
from newscast.workflow.steps import (
    GenerateSubtitlesStep,
    RecordMetadataStep,
    StoreArtifactsStep,
)

if TYPE_CHECKING:
    from newscast.services.container import ServiceContainer

logger = logging.getLogger(__name__)

_TRANSPORT_ERRORS = (TransientError, aiohttp.ClientError, asyncio.TimeoutError)


def _job_failure(error: str) -> str:
    return f"Workflow failed at step {SYNTHESIZE_AUDIO}: {error}"


def _still_running(result: PollResult) -> bool:
    return not result.is_terminal


@dataclass
class SweepResult:
    """Result of polling every outstanding job once.

    Attributes:
        polled: Number of jobs polled.
        completed: Jobs that completed during this sweep.
        failed: Jobs that failed during this sweep.
        in_progress: Jobs still running.
        errors: Messages for polls that could not be carried out.
    """

    polled: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    errors: List[str] = field(default_factory=list)


class CompletionTracker:
    """Resumes and finishes episodes whose speech synthesis runs as a remote job.

    Example:
        tracker = CompletionTracker(services)
        result = await tracker.poll_once("news-anchor-20250101T080000Z-a1b2c3")
        if result.status == "in_progress":
            ...  # poll again later
    """

    def __init__(
        self,
        services: "ServiceContainer",
        executor: Optional[WorkflowExecutor] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if services.async_synthesizer is None:
            raise ValueError("CompletionTracker requires an asynchronous speech synthesizer")
        self.services = services
        self.executor = executor or create_executor(services)
        self._sleep = sleep

    # --- Single poll ---

    async def poll_once(self, episode_id: str) -> PollResult:
        """Check an episode's job once and act on the outcome.

        Returns:
            PollResult with status "completed", "failed" or "in_progress".

        Raises:
            JobNotFoundError: If no job handle exists for the episode.
            PollTransportError: If the remote system or the artifact could not
                be reached. The handle is unchanged.
            WorkflowStepError: If recording the completed episode failed; the
                next poll records it again.
        """
        store = self.services.job_store
        handle = await store.get(episode_id)
        if handle is None:
            raise JobNotFoundError(f"No speech job registered for episode {episode_id}")

        if handle.status == "completed":
            await self._ensure_recorded(handle)
            return PollResult(episode_id, "completed", artifact_ref=handle.artifact_ref)
        if handle.status == "failed":
            await RecordMetadataStep.record_failure(
                self.services, episode_id, _job_failure(handle.error or "Speech job failed")
            )
            return PollResult(episode_id, "failed", error=handle.error)

        try:
            status = await self.services.async_synthesizer.check_status(handle.external_job_id)
        except JobSessionExpiredError as e:
            return await self._fail(handle, f"Speech job session expired: {e}")
        except _TRANSPORT_ERRORS as e:
            logger.warning(f"Poll of job {handle.external_job_id} for episode {episode_id} failed: {e}")
            raise PollTransportError(
                f"Could not check speech job {handle.external_job_id}: {e}"
            ) from e

        if status.state == "pending":
            await store.update(episode_id, status="in_progress", polled=True)
            logger.info(
                f"Episode {episode_id}: speech job {handle.external_job_id} still running "
                f"(poll {handle.poll_count + 1})"
            )
            return PollResult(episode_id, "in_progress")

        if status.state == "error":
            return await self._fail(handle, status.error or "Speech job reported an error")

        return await self._complete(handle, status.result_ref)

    async def _load_episode(self, episode_id: str) -> Episode:
        episode = await asyncio.to_thread(self.services.repository.get_episode, episode_id)
        if episode is None:
            raise EpisodeNotFoundError(f"Episode {episode_id} not found")
        return episode

    def _context(self, episode: Episode) -> GenerationContext:
        return GenerationContext(
            episode_id=episode.id,
            style=get_style(episode.style),
            services=self.services,
            started_at=episode.created_at,
        )

    @staticmethod
    def _script_from_row(episode: Episode) -> ScriptResult:
        return ScriptResult(
            text=episode.script_text or "",
            word_count=episode.word_count or 0,
            title=episode.title or "",
            description=episode.description or "",
        )

    async def _fail(self, handle: JobHandle, error: str) -> PollResult:
        episode_id = handle.episode_id
        await self.services.job_store.update(episode_id, status="failed", error=error, polled=True)
        await RecordMetadataStep.record_failure(
            self.services, episode_id, _job_failure(error)
        )
        logger.info(f"Episode {episode_id}: speech job {handle.external_job_id} failed: {error}")
        return PollResult(episode_id, "failed", error=error)

    async def _complete(self, handle: JobHandle, result_ref: Optional[str]) -> PollResult:
        episode_id = handle.episode_id
        if not result_ref:
            return await self._fail(handle, "Speech job finished without an audio reference")

        episode = await self._load_episode(episode_id)

        try:
            artifact = await self.services.downloader.download(result_ref)
        except _TRANSPORT_ERRORS as e:
            logger.warning(f"Download of {result_ref} for episode {episode_id} failed: {e}")
            raise PollTransportError(f"Could not download audio for episode {episode_id}: {e}") from e
        except CollaboratorError as e:
            return await self._fail(handle, f"Could not download audio from {result_ref}: {e}")

        script = self._script_from_row(episode)
        duration = read_duration(artifact.data)
        estimated = duration is None
        if estimated:
            duration = estimate_duration(script.word_count, self.services.pipeline_config.words_per_minute)

        audio_format = self.services.audio_format
        audio = AudioResult(
            audio_bytes=artifact.data,
            duration_seconds=duration,
            duration_estimated=estimated,
            content_type=content_type_for(audio_format),
            file_extension=audio_format,
            is_async=True,
        )
        context = self._context(episode)
        seed = {GENERATE_SCRIPT: script, SYNTHESIZE_AUDIO: audio}

        try:
            results = await self.executor.execute(
                [GenerateSubtitlesStep(), StoreArtifactsStep()], context, initial_results=seed
            )
        except WorkflowStepError as e:
            if default_should_retry(e.cause):
                raise PollTransportError(
                    f"Completing episode {episode_id} failed at step {e.step_name}: {e.cause}"
                ) from e
            return await self._fail(handle, f"Completion failed at step {e.step_name}: {e.cause}")

        locations: StorageResult = results[STORE_ARTIFACTS]
        updated = await self.services.job_store.update(
            episode_id, status="completed", artifact_ref=locations.audio_url, polled=True
        )
        if not updated:
            # A concurrent poll finished the job first
            current = await self.services.job_store.get(episode_id)
            logger.info(f"Episode {episode_id}: job already {current.status if current else 'gone'}")
            if current is not None and current.status == "completed":
                return PollResult(episode_id, "completed", artifact_ref=current.artifact_ref)
            return PollResult(episode_id, "failed", error=current.error if current else None)

        await self.executor.execute([RecordMetadataStep()], context, initial_results=results)
        logger.info(f"Episode {episode_id}: speech job {handle.external_job_id} completed")
        return PollResult(episode_id, "completed", artifact_ref=locations.audio_url)

    async def _ensure_recorded(self, handle: JobHandle) -> None:
        """Finish the bookkeeping of a completed job whose episode is not terminal yet."""
        episode = await self._load_episode(handle.episode_id)
        if episode.is_terminal:
            return

        logger.info(f"Episode {episode.id}: recording completed speech job")
        await asyncio.to_thread(
            self.services.repository.update_episode,
            episode.id,
            status="completed",
            audio_url=episode.audio_url or handle.artifact_ref,
            error=None,
        )

    # --- Re-poll loop ---

    async def wait_for_completion(
        self,
        episode_id: str,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> PollResult:
        """Poll an episode's job until it completes or fails.

        Transport failures of individual polls are logged and retried at the
        next interval.

        Raises:
            JobNotFoundError: If no job handle exists for the episode.
            DeadlineExceededError: If the job is still running after ``timeout``.
        """
        config = self.services.pipeline_config
        interval = config.poll_interval_seconds if interval is None else interval
        timeout = config.poll_timeout_seconds if timeout is None else timeout

        def log_failed_poll(retry_state: RetryCallState) -> None:
            if retry_state.outcome.failed:
                logger.warning(
                    f"Poll {retry_state.attempt_number} for episode {episode_id} failed, "
                    f"will retry: {retry_state.outcome.exception()}"
                )

        def give_up(retry_state: RetryCallState):
            raise DeadlineExceededError(
                f"Speech job for episode {episode_id} still running after {timeout:.0f}s"
            )

        retrying = AsyncRetrying(
            stop=stop_after_delay(timeout),
            wait=wait_fixed(interval),
            retry=retry_if_exception_type(PollTransportError) | retry_if_result(_still_running),
            before_sleep=log_failed_poll,
            retry_error_callback=give_up,
            sleep=self._sleep,
        )
        return await retrying(self.poll_once, episode_id)

    # --- Sweep ---

    async def sweep(self, limit: Optional[int] = None, max_concurrent: Optional[int] = None) -> SweepResult:
        """Poll every outstanding job once, a bounded number at a time."""
        config = self.services.pipeline_config
        limit = limit or config.sweep_batch_size
        max_concurrent = max_concurrent or config.sweep_concurrency

        handles = await self.services.job_store.list_outstanding(limit)
        result = SweepResult()
        if not handles:
            logger.info("Sweep: no outstanding speech jobs")
            return result

        semaphore = asyncio.Semaphore(max_concurrent)

        async def poll_with_semaphore(handle: JobHandle):
            async with semaphore:
                try:
                    return await self.poll_once(handle.episode_id)
                except Exception as e:
                    return e

        outcomes = await asyncio.gather(*(poll_with_semaphore(h) for h in handles))

        for handle, outcome in zip(handles, outcomes):
            result.polled += 1
            if isinstance(outcome, Exception):
                logger.error(f"Sweep: poll of episode {handle.episode_id} failed: {outcome}")
                result.errors.append(f"Episode {handle.episode_id}: {outcome}")
            elif outcome.status == "completed":
                result.completed += 1
            elif outcome.status == "failed":
                result.failed += 1
            else:
                result.in_progress += 1

        logger.info(
            f"Sweep: polled {result.polled} jobs: {result.completed} completed, "
            f"{result.failed} failed, {result.in_progress} in progress, {len(result.errors)} errors"
        )
        return result
