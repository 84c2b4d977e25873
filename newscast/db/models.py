"""SQLAlchemy ORM models for generated episodes and their speech synthesis jobs."""

from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

EPISODE_STATUSES = ("pending", "processing", "completed", "failed")
TERMINAL_EPISODE_STATUSES = ("completed", "failed")

JOB_STATUSES = ("submitted", "in_progress", "completed", "failed")
TERMINAL_JOB_STATUSES = ("completed", "failed")

# Position of each job status in its lifecycle; transitions may only move forward.
JOB_STATUS_RANK = {
    "submitted": 0,
    "in_progress": 1,
    "completed": 2,
    "failed": 2,
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Episode(Base):
    """Generated episode model.

    One row per pipeline run. Accumulates the outputs of each step (script,
    audio and subtitle locations, durations) and tracks the lifecycle status
    ``pending -> processing -> completed | failed``. Rows in a terminal
    status are never modified again.
    """

    __tablename__ = "episodes"

    # Primary key: "{style}-{timestamp}-{suffix}"
    id: Mapped[str] = mapped_column(String(128), primary_key=True)

    style: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)

    # Descriptive metadata
    title: Mapped[Optional[str]] = mapped_column(String(512))
    description: Mapped[Optional[str]] = mapped_column(Text)
    source_count: Mapped[Optional[int]] = mapped_column(Integer)

    # Script
    script_text: Mapped[Optional[str]] = mapped_column(Text)
    word_count: Mapped[Optional[int]] = mapped_column(Integer)

    # Audio
    duration_seconds: Mapped[Optional[float]] = mapped_column(Float)
    file_size_bytes: Mapped[Optional[int]] = mapped_column(Integer)
    is_async: Mapped[bool] = mapped_column(Boolean, default=False)
    tts_job_id: Mapped[Optional[str]] = mapped_column(String(256))

    # Storage locations
    script_url: Mapped[Optional[str]] = mapped_column(String(2048))
    audio_url: Mapped[Optional[str]] = mapped_column(String(2048))
    srt_url: Mapped[Optional[str]] = mapped_column(String(2048))
    vtt_url: Mapped[Optional[str]] = mapped_column(String(2048))
    transcript_url: Mapped[Optional[str]] = mapped_column(String(2048))

    error: Mapped[Optional[str]] = mapped_column(Text)
    metadata_json: Mapped[Optional[dict]] = mapped_column(JSON)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    tts_job: Mapped[Optional["TtsJob"]] = relationship(
        "TtsJob", back_populates="episode", cascade="all, delete-orphan", uselist=False
    )

    __table_args__ = (
        Index("ix_episodes_status", "status"),
        Index("ix_episodes_style", "style"),
        Index("ix_episodes_created_at", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        """True once the episode has completed or failed."""
        return self.status in TERMINAL_EPISODE_STATUSES

    def __repr__(self) -> str:
        return f"<Episode(id={self.id}, style={self.style!r}, status={self.status!r})>"


class TtsJob(Base):
    """Outstanding remote speech synthesis job for an episode.

    At most one row per episode. The status moves monotonically
    ``submitted -> in_progress* -> completed | failed``.
    """

    __tablename__ = "tts_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    episode_id: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("episodes.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    external_job_id: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="submitted", nullable=False)
    artifact_ref: Mapped[Optional[str]] = mapped_column(String(2048))
    error: Mapped[Optional[str]] = mapped_column(Text)

    poll_count: Mapped[int] = mapped_column(Integer, default=0)
    last_polled_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    episode: Mapped["Episode"] = relationship("Episode", back_populates="tts_job")

    __table_args__ = (Index("ix_tts_jobs_status", "status"),)

    @property
    def is_terminal(self) -> bool:
        """True once the job has completed or failed."""
        return self.status in TERMINAL_JOB_STATUSES

    def __repr__(self) -> str:
        return (
            f"<TtsJob(episode_id={self.episode_id}, "
            f"external_job_id={self.external_job_id!r}, status={self.status!r})>"
        )
