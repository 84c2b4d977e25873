"""Contracts for the external collaborators the pipeline depends on.

Concrete implementations live alongside this module; tests substitute
in-memory fakes that satisfy the same protocols.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol

from newscast.schemas import RemoteJobStatus
from newscast.styles import StyleProfile


@dataclass(frozen=True)
class SourceItem:
    """One piece of source content (a news story or a topic)."""

    title: str
    body: str
    timestamp: Optional[datetime] = None
    source_url: Optional[str] = None


@dataclass(frozen=True)
class SynthesizedAudio:
    """Audio produced by a blocking speech synthesizer."""

    audio_bytes: bytes
    duration_seconds: Optional[float] = None
    content_type: str = "audio/wav"
    file_extension: str = "wav"


@dataclass(frozen=True)
class DownloadedArtifact:
    """Bytes fetched from a remote artifact reference."""

    data: bytes
    content_type: str = "application/octet-stream"


class SourceFetcher(Protocol):
    async def fetch(self, limit: Optional[int] = None) -> List[SourceItem]:
        """Return an ordered list of source items, newest first."""
        ...


class TextGenerator(Protocol):
    async def generate(self, prompt: str, style: StyleProfile) -> str:
        """Produce text for a prompt."""
        ...


class SpeechSynthesizer(Protocol):
    async def synthesize(self, text: str, style: StyleProfile) -> SynthesizedAudio:
        """Synthesize speech and return the finished audio."""
        ...


class AsyncSpeechSynthesizer(Protocol):
    async def submit(self, text: str, style: StyleProfile) -> str:
        """Submit a synthesis job and return its external job ID."""
        ...

    async def check_status(self, job_id: str) -> RemoteJobStatus:
        """Check a submitted job once.

        Raises:
            JobSessionExpiredError: If the remote system no longer knows the job.
            TransientError: If the remote system could not be reached.
        """
        ...


class BinaryStorage(Protocol):
    async def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under a key and return their public URL."""
        ...


class ArtifactFetcher(Protocol):
    async def download(self, url: str) -> DownloadedArtifact:
        """Fetch the bytes behind an artifact reference."""
        ...
