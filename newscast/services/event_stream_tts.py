"""Speech synthesis over a Gradio-style HTTP call API.

Submitting a job POSTs the script to ``{base}/gradio_api/call/{api_name}``
and returns the ``event_id``. Checking a job GETs
``{base}/gradio_api/call/{api_name}/{event_id}``, which answers with a
one-shot server-sent event stream that is read to its end and interpreted
by ``newscast.services.sse``.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Tuple

import aiohttp

from newscast.errors import (
    CollaboratorError,
    JobSessionExpiredError,
    TransientError,
    ValidationError,
)
from newscast.schemas import RemoteJobStatus
from newscast.services import sse
from newscast.styles import StyleProfile

logger = logging.getLogger(__name__)

# Order of the emotion vector inputs expected by the synthesis endpoint.
EMOTION_SLOTS = (
    "happy",
    "angry",
    "sad",
    "afraid",
    "disgusted",
    "melancholic",
    "surprised",
    "calm",
)


class EventStreamSpeechClient:
    """Submit/check client for a remote speech synthesis service.

    Example:
        client = EventStreamSpeechClient("https://tts.example.com")
        job_id = await client.submit(script_text, get_style("news-anchor"))
        status = await client.check_status(job_id)
    """

    DEFAULT_TIMEOUT = 120

    def __init__(
        self,
        base_url: str,
        api_name: str = "gen_single",
        timeout: int = DEFAULT_TIMEOUT,
        max_text_tokens_per_segment: int = 120,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the synthesis service.
            api_name: Name of the Gradio endpoint to call.
            timeout: Timeout in seconds for each HTTP request.
            max_text_tokens_per_segment: Segment size used by the synthesizer.
        """
        if not base_url:
            raise ValueError("A TTS base URL is required")
        self.base_url = base_url.rstrip("/")
        self.api_name = api_name
        self.timeout = timeout
        self.max_text_tokens_per_segment = max_text_tokens_per_segment

    @property
    def call_url(self) -> str:
        return f"{self.base_url}/gradio_api/call/{self.api_name}"

    def _voice_file(self, reference: str) -> Dict[str, Any]:
        file_data: Dict[str, Any] = {"path": reference, "meta": {"_type": "gradio.FileData"}}
        if reference.startswith(("http://", "https://")):
            file_data["url"] = reference
        return file_data

    def build_payload(self, text: str, style: StyleProfile) -> Dict[str, List[Any]]:
        """Build the positional input list for the synthesis endpoint."""
        voice = style.voice
        emotion_vector = [voice.emotion_vector.get(slot, 0) for slot in EMOTION_SLOTS]
        return {
            "data": [
                "Same as the voice reference",
                self._voice_file(voice.speaker_reference),
                text,
                None,
                voice.emotion_weight,
                *emotion_vector,
                "",
                False,
                self.max_text_tokens_per_segment,
                True,  # do_sample
                0.8,  # top_p
                30,  # top_k
                0.8,  # temperature
                0,  # length_penalty
                3,  # num_beams
                10,  # repetition_penalty
                1500,  # max_mel_tokens
            ]
        }

    def resolve_url(self, reference: str) -> str:
        """Turn a file reference from the event stream into an absolute URL."""
        if reference.startswith(("http://", "https://")):
            return reference
        if reference.startswith(("/gradio_api/", "/file=")):
            return f"{self.base_url}{reference}"
        return f"{self.base_url}/gradio_api/file={reference}"

    async def _fetch(
        self, method: str, url: str, payload: Any = None
    ) -> Tuple[int, str]:
        """Perform one HTTP request and return (status, body text).

        Raises:
            TransientError: On connection failures and timeouts.
        """
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {"Accept": "text/event-stream"} if method == "GET" else {}
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(
                    method, url, json=payload, headers=headers
                ) as response:
                    return response.status, await response.text()
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise TransientError(f"{method} {url} failed: {e}") from e

    @staticmethod
    def _raise_for_status(status: int, body: str, context: str) -> None:
        if status < 400:
            return
        message = f"{context}: HTTP {status} {body[:300]}".strip()
        if status >= 500 or status == 429:
            raise TransientError(message, status=status)
        raise CollaboratorError(message, status=status)

    async def submit(self, text: str, style: StyleProfile) -> str:
        """Submit a synthesis job.

        Returns:
            The event ID identifying the job.

        Raises:
            ValidationError: If the text is empty or no event ID is returned.
            TransientError: On transport failures and 5xx responses.
            CollaboratorError: On other HTTP errors.
        """
        if not text or not text.strip():
            raise ValidationError("Cannot synthesize empty text")

        logger.info(
            f"Submitting speech job ({len(text)} chars, style={style.name}) to {self.call_url}"
        )
        status, body = await self._fetch("POST", self.call_url, self.build_payload(text, style))
        self._raise_for_status(status, body, "Speech job submission failed")

        try:
            event_id = json.loads(body).get("event_id")
        except (json.JSONDecodeError, AttributeError):
            event_id = None
        if not event_id:
            raise ValidationError(f"Speech job submission returned no event_id: {body[:200]}")

        logger.info(f"Speech job submitted: {event_id}")
        return event_id

    async def check_status(self, job_id: str) -> RemoteJobStatus:
        """Read the job's event stream once and report its state.

        A stream that ends without a terminal event is reported as pending.

        Raises:
            JobSessionExpiredError: If the service no longer knows the job (HTTP 404).
            TransientError: On transport failures and 5xx responses.
            CollaboratorError: On other HTTP errors.
        """
        url = f"{self.call_url}/{job_id}"
        status, body = await self._fetch("GET", url)
        if status == 404:
            raise JobSessionExpiredError(f"Speech job {job_id} is unknown or expired")
        self._raise_for_status(status, body, f"Status check for speech job {job_id} failed")

        outcome = sse.interpret_stream(body)
        if outcome.kind == sse.COMPLETED:
            reference = sse.extract_output_url(outcome.output)
            if not reference:
                return RemoteJobStatus(
                    state="error", error="Speech job completed without an output file"
                )
            return RemoteJobStatus(state="done", result_ref=self.resolve_url(reference))
        if outcome.kind == sse.FAILED:
            return RemoteJobStatus(state="error", error=outcome.error)

        logger.debug(f"Event stream for speech job {job_id} ended without a terminal event")
        return RemoteJobStatus(state="pending")
