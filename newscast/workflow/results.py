"""Typed step results and the per-run context shared by pipeline steps.

Each pipeline step stores its result in the run's result map under the
step name; later steps read earlier results by those names.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, List, Optional

from newscast.services.interfaces import SourceItem
from newscast.styles import StyleProfile

if TYPE_CHECKING:
    from newscast.services.container import ServiceContainer

# Step names, in pipeline order
FETCH_SOURCE = "fetch-source"
GENERATE_SCRIPT = "generate-script"
SYNTHESIZE_AUDIO = "synthesize-audio"
GENERATE_SUBTITLES = "generate-subtitles"
STORE_ARTIFACTS = "store-artifacts"
RECORD_METADATA = "record-metadata"

STEP_ORDER = [
    FETCH_SOURCE,
    GENERATE_SCRIPT,
    SYNTHESIZE_AUDIO,
    GENERATE_SUBTITLES,
    STORE_ARTIFACTS,
    RECORD_METADATA,
]


@dataclass
class GenerationContext:
    """Identity and collaborators for one pipeline run.

    Attributes:
        episode_id: Identifier of the episode being generated.
        style: Resolved style of the episode.
        services: Collaborators and stores shared by all runs.
        started_at: When the run started (UTC).
    """

    episode_id: str
    style: StyleProfile
    services: "ServiceContainer"
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SourceResult:
    items: List[SourceItem]

    @property
    def count(self) -> int:
        return len(self.items)


@dataclass
class ScriptResult:
    text: str
    word_count: int
    title: str
    description: str


@dataclass
class AudioResult:
    """Finished audio, either synthesized directly or downloaded after a job."""

    audio_bytes: bytes
    duration_seconds: float
    duration_estimated: bool = False
    content_type: str = "audio/wav"
    file_extension: str = "wav"
    is_async: bool = False

    @property
    def file_size_bytes(self) -> int:
        return len(self.audio_bytes)


@dataclass
class AudioSubmission:
    """A submitted speech synthesis job; the audio is not available yet."""

    job_id: str
    is_async: bool = True


@dataclass
class StorageResult:
    script_url: str
    audio_url: str
    srt_url: str
    vtt_url: str
    transcript_url: str


@dataclass
class RecordResult:
    episode_id: str
    status: str


@dataclass
class PollResult:
    """Outcome of one poll of an episode's speech synthesis job.

    Attributes:
        episode_id: Episode the job belongs to.
        status: "completed", "failed" or "in_progress".
        artifact_ref: URL of the stored audio (completed only).
        error: Error text reported for the job (failed only).
    """

    episode_id: str
    status: str
    artifact_ref: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
