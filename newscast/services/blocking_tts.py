"""Blocking speech synthesis built on a submit/check synthesizer.

Lets the synchronous pipeline variant run against a provider that only
offers asynchronous jobs: submit, re-poll with backoff until a terminal
state, then download the audio.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_exponential,
)

from newscast.audio import content_type_for, read_duration
from newscast.errors import (
    CollaboratorError,
    DeadlineExceededError,
    TransientError,
)
from newscast.schemas import RemoteJobStatus
from newscast.services.interfaces import (
    ArtifactFetcher,
    AsyncSpeechSynthesizer,
    SynthesizedAudio,
)
from newscast.styles import StyleProfile

logger = logging.getLogger(__name__)


def _is_pending(status: RemoteJobStatus) -> bool:
    return status.state == "pending"


class BlockingSynthesizer:
    """Adapts an AsyncSpeechSynthesizer to the blocking synthesize() contract."""

    def __init__(
        self,
        client: AsyncSpeechSynthesizer,
        downloader: ArtifactFetcher,
        poll_interval: float = 5.0,
        max_poll_interval: float = 30.0,
        timeout: float = 900.0,
        audio_format: str = "wav",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.downloader = downloader
        self.poll_interval = poll_interval
        self.max_poll_interval = max_poll_interval
        self.timeout = timeout
        self.audio_format = audio_format
        self._sleep = sleep

    async def synthesize(self, text: str, style: StyleProfile) -> SynthesizedAudio:
        """Submit a job and wait for its audio.

        Raises:
            DeadlineExceededError: If the job does not finish within the timeout.
            CollaboratorError: If the remote job reports a failure.
            JobSessionExpiredError: If the remote job disappears.
        """
        job_id = await self.client.submit(text, style)

        def give_up(retry_state: RetryCallState):
            raise DeadlineExceededError(
                f"Speech job {job_id} did not finish within {self.timeout:.0f}s "
                f"({retry_state.attempt_number} checks)"
            )

        retrying = AsyncRetrying(
            stop=stop_after_delay(self.timeout),
            wait=wait_exponential(multiplier=self.poll_interval, max=self.max_poll_interval),
            retry=retry_if_exception_type(TransientError) | retry_if_result(_is_pending),
            before_sleep=before_sleep_log(logger, logging.DEBUG),
            retry_error_callback=give_up,
            sleep=self._sleep,
        )
        status = await retrying(self._check, job_id)

        if status.state == "error":
            raise CollaboratorError(
                f"Speech job {job_id} failed: {status.error or 'unknown error'}"
            )

        logger.info(f"Speech job {job_id} finished")
        artifact = await self.downloader.download(status.result_ref)
        return SynthesizedAudio(
            audio_bytes=artifact.data,
            duration_seconds=read_duration(artifact.data),
            content_type=content_type_for(self.audio_format),
            file_extension=self.audio_format,
        )

    async def _check(self, job_id: str) -> RemoteJobStatus:
        try:
            return await self.client.check_status(job_id)
        except TransientError as e:
            logger.warning(f"Status check for speech job {job_id} failed: {e}")
            raise
