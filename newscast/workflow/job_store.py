"""Job handle store.

Persists the external identifier and status of an episode's outstanding
speech synthesis job so that polling can resume after a restart. The
repository is synchronous; calls run in a worker thread.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from newscast.db.models import TERMINAL_JOB_STATUSES, TtsJob
from newscast.db.repository import EpisodeRepositoryInterface

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobHandle:
    """Snapshot of an episode's speech synthesis job."""

    episode_id: str
    external_job_id: str
    status: str
    artifact_ref: Optional[str] = None
    error: Optional[str] = None
    poll_count: int = 0
    last_polled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_JOB_STATUSES

    @classmethod
    def from_row(cls, row: TtsJob) -> "JobHandle":
        return cls(
            episode_id=row.episode_id,
            external_job_id=row.external_job_id,
            status=row.status,
            artifact_ref=row.artifact_ref,
            error=row.error,
            poll_count=row.poll_count or 0,
            last_polled_at=row.last_polled_at,
            created_at=row.created_at,
        )


class JobHandleStore:
    """Async facade over the repository's job handle operations."""

    def __init__(self, repository: EpisodeRepositoryInterface):
        self.repository = repository

    async def put(
        self, episode_id: str, external_job_id: str, status: str = "submitted"
    ) -> JobHandle:
        """Insert or replace the single outstanding handle of an episode."""
        row = await asyncio.to_thread(
            self.repository.put_job_handle, episode_id, external_job_id, status
        )
        return JobHandle.from_row(row)

    async def get(self, episode_id: str) -> Optional[JobHandle]:
        row = await asyncio.to_thread(self.repository.get_job_handle, episode_id)
        return JobHandle.from_row(row) if row else None

    async def update(
        self,
        episode_id: str,
        status: Optional[str] = None,
        artifact_ref: Optional[str] = None,
        error: Optional[str] = None,
        polled: bool = False,
    ) -> bool:
        """Merge a partial update into a handle.

        Returns:
            True if the handle changed. False if it does not exist or the
            update was refused as a backward or post-terminal transition.
        """
        return await asyncio.to_thread(
            self.repository.update_job_handle,
            episode_id,
            status=status,
            artifact_ref=artifact_ref,
            error=error,
            polled=polled,
        )

    async def list_outstanding(self, limit: Optional[int] = None) -> List[JobHandle]:
        rows = await asyncio.to_thread(self.repository.list_outstanding_job_handles, limit)
        return [JobHandle.from_row(row) for row in rows]
