from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RemoteJobStatus(BaseModel):
    """Status of a remote speech synthesis job as reported by one check."""

    state: Literal["pending", "done", "error"] = Field(
        description="pending while the job runs, done on success, error on failure"
    )
    result_ref: Optional[str] = Field(
        default=None,
        description="Where the finished artifact can be fetched from (set when done)"
    )
    error: Optional[str] = Field(
        default=None,
        description="Error text reported by the remote system (set on error)"
    )


class GradioFileData(BaseModel):
    """File reference returned in the output of a Gradio event stream."""

    model_config = ConfigDict(extra="allow")

    path: Optional[str] = None
    url: Optional[str] = None
    orig_name: Optional[str] = None
    mime_type: Optional[str] = None


class TranscriptWord(BaseModel):
    word: str
    start: float = Field(description="Start time in seconds")
    end: float = Field(description="End time in seconds")
    confidence: float = 0.95


class TranscriptSegment(BaseModel):
    id: int
    start: float
    end: float
    text: str
    words: List[TranscriptWord] = Field(default_factory=list)


class Transcript(BaseModel):
    """Word-level transcript aligned to an episode's audio."""

    version: str = "1.0.0"
    type: Literal["transcript"] = "transcript"
    language: str = "en"
    duration: float = Field(description="Audio duration in seconds")
    segments: List[TranscriptSegment] = Field(default_factory=list)
