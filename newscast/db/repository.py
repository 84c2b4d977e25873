"""Repository pattern implementation for episode and job handle persistence.

Provides an abstract interface and SQLAlchemy implementation for database operations.
Supports both SQLite (local development) and PostgreSQL (production).
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import List, Optional

from sqlalchemy import create_engine, func, select, update
from sqlalchemy.orm import Session, sessionmaker

from .models import (
    EPISODE_STATUSES,
    JOB_STATUS_RANK,
    JOB_STATUSES,
    Base,
    Episode,
    TtsJob,
)

logger = logging.getLogger(__name__)


def redact_url(database_url: str) -> str:
    """Drop the credentials part of a database URL for logging."""
    scheme, sep, rest = database_url.partition("://")
    if not sep or "@" not in rest:
        return database_url
    return f"{scheme}://...@{rest.rsplit('@', 1)[-1]}"


class EpisodeRepositoryInterface(ABC):
    """Abstract interface for episode and job handle persistence.

    Implementations must support both SQLite and PostgreSQL backends.
    """

    # --- Episode Operations ---

    @abstractmethod
    def create_episode(self, episode_id: str, style: str, **kwargs) -> Episode:
        """Create and persist a new episode.

        Args:
            episode_id: Identifier of the episode.
            style: Style tag of the episode.
            **kwargs: Additional Episode fields to set on creation.

        Returns:
            The persisted Episode.
        """
        pass

    @abstractmethod
    def upsert_episode(self, episode_id: str, style: str, **kwargs) -> Episode:
        """Insert an episode, or update it if it already exists.

        Raises:
            ValueError: If the existing episode is already in a terminal status.
        """
        pass

    @abstractmethod
    def get_episode(self, episode_id: str) -> Optional[Episode]:
        """Get an episode by ID, or None if it does not exist."""
        pass

    @abstractmethod
    def list_episodes(
        self,
        status: Optional[str] = None,
        style: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Episode]:
        """List episodes, newest first, optionally filtered by status and style."""
        pass

    @abstractmethod
    def update_episode(self, episode_id: str, **kwargs) -> Optional[Episode]:
        """Update attributes of an existing episode.

        Returns:
            The updated Episode, or None if no episode with that ID exists.

        Raises:
            ValueError: If the episode is in a terminal status or the new
                status is unknown.
        """
        pass

    # --- Job Handle Operations ---

    @abstractmethod
    def put_job_handle(
        self, episode_id: str, external_job_id: str, status: str = "submitted"
    ) -> TtsJob:
        """Insert or replace the single job handle of an episode."""
        pass

    @abstractmethod
    def get_job_handle(self, episode_id: str) -> Optional[TtsJob]:
        """Get the job handle of an episode, or None if none is registered."""
        pass

    @abstractmethod
    def update_job_handle(
        self,
        episode_id: str,
        status: Optional[str] = None,
        artifact_ref: Optional[str] = None,
        error: Optional[str] = None,
        polled: bool = False,
    ) -> bool:
        """Merge a partial update into the job handle of an episode.

        Status transitions are monotonic: a move backward, or any change to
        a handle that is already terminal, is refused. The update only
        applies if the handle still has the status it was read with, so of
        two concurrent updates from the same status only one succeeds.

        Args:
            episode_id: Episode that owns the handle.
            status: New status, or None to keep the current one.
            artifact_ref: Reference to the fetched artifact.
            error: Error message reported by the remote system.
            polled: Record a poll attempt (increments poll_count).

        Returns:
            True if the row was changed, False otherwise.
        """
        pass

    @abstractmethod
    def list_outstanding_job_handles(self, limit: Optional[int] = None) -> List[TtsJob]:
        """List job handles that have not reached a terminal status, oldest first."""
        pass

    # --- Lifecycle ---

    @abstractmethod
    def close(self) -> None:
        """Close database connections."""
        pass


class SQLAlchemyEpisodeRepository(EpisodeRepositoryInterface):
    """SQLAlchemy-based implementation of the episode repository.

    Supports SQLite for local development and PostgreSQL for production.
    """

    def __init__(
        self,
        database_url: str,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
        create_tables: bool = False,
    ):
        """
        Initialize the repository and configure its SQLAlchemy engine and session factory.

        Parameters:
            database_url (str): SQLAlchemy-compatible database URL.
            pool_size (int): Connection pool size for non-SQLite databases.
            max_overflow (int): Maximum overflow connections for non-SQLite databases.
            echo (bool): If true, enable SQLAlchemy SQL statement logging.
            create_tables (bool): If true, create missing tables (development and tests;
                production schemas are managed by Alembic).
        """
        self.database_url = database_url

        # SQLite doesn't support connection pooling
        if database_url.startswith("sqlite"):
            self.engine = create_engine(
                database_url,
                echo=echo,
                connect_args={"check_same_thread": False},
            )
        else:
            self.engine = create_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
            )

        if create_tables:
            Base.metadata.create_all(self.engine)

        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        logger.info(f"Database initialized: {redact_url(database_url)}")

    def _get_session(self) -> Session:
        return self.SessionLocal()

    @staticmethod
    def _find_job(session: Session, episode_id: str) -> Optional[TtsJob]:
        return session.scalar(select(TtsJob).where(TtsJob.episode_id == episode_id))

    @staticmethod
    def _apply_episode_fields(episode: Episode, fields: dict) -> None:
        status = fields.get("status")
        if status is not None and status not in EPISODE_STATUSES:
            raise ValueError(f"Unknown episode status: {status}")

        for key, value in fields.items():
            if hasattr(episode, key):
                setattr(episode, key, value)

        now = datetime.now(UTC)
        if status == "completed" and episode.completed_at is None:
            episode.completed_at = now
        episode.updated_at = now

    # --- Episode Operations ---

    def create_episode(self, episode_id: str, style: str, **kwargs) -> Episode:
        status = kwargs.pop("status", "pending")
        if status not in EPISODE_STATUSES:
            raise ValueError(f"Unknown episode status: {status}")

        with self._get_session() as session:
            episode = Episode(id=episode_id, style=style, status=status, **kwargs)
            session.add(episode)
            session.commit()
            session.refresh(episode)
            logger.info(f"Created episode: {episode_id} ({style})")
            return episode

    def upsert_episode(self, episode_id: str, style: str, **kwargs) -> Episode:
        with self._get_session() as session:
            episode = session.get(Episode, episode_id)
            if episode is None:
                episode = Episode(id=episode_id, style=style)
                session.add(episode)
                created = True
            elif episode.is_terminal:
                raise ValueError(
                    f"Episode {episode_id} is {episode.status} and can no longer be modified"
                )
            else:
                created = False

            episode.style = style
            self._apply_episode_fields(episode, kwargs)
            session.commit()
            session.refresh(episode)

            if created:
                logger.info(f"Created episode: {episode_id} ({style})")
            else:
                logger.debug(f"Upserted episode {episode_id}: {list(kwargs.keys())}")
            return episode

    def get_episode(self, episode_id: str) -> Optional[Episode]:
        with self._get_session() as session:
            return session.get(Episode, episode_id)

    def list_episodes(
        self,
        status: Optional[str] = None,
        style: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Episode]:
        with self._get_session() as session:
            stmt = select(Episode)

            if status:
                stmt = stmt.where(Episode.status == status)
            if style:
                stmt = stmt.where(Episode.style == style)

            stmt = stmt.order_by(Episode.created_at.desc(), Episode.id.desc())
            stmt = stmt.offset(offset)
            if limit:
                stmt = stmt.limit(limit)

            return list(session.scalars(stmt).all())

    def update_episode(self, episode_id: str, **kwargs) -> Optional[Episode]:
        with self._get_session() as session:
            episode = session.get(Episode, episode_id)
            if episode is None:
                return None

            if episode.is_terminal:
                raise ValueError(
                    f"Episode {episode_id} is {episode.status} and can no longer be modified"
                )

            self._apply_episode_fields(episode, kwargs)
            session.commit()
            session.refresh(episode)
            logger.debug(f"Updated episode {episode_id}: {list(kwargs.keys())}")
            return episode

    # --- Job Handle Operations ---

    def put_job_handle(
        self, episode_id: str, external_job_id: str, status: str = "submitted"
    ) -> TtsJob:
        if status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status: {status}")

        with self._get_session() as session:
            job = self._find_job(session, episode_id)
            now = datetime.now(UTC)
            if job is None:
                job = TtsJob(episode_id=episode_id, external_job_id=external_job_id)
                session.add(job)
            else:
                logger.info(
                    f"Replacing job handle for episode {episode_id}: "
                    f"{job.external_job_id} -> {external_job_id}"
                )
                job.artifact_ref = None
                job.error = None
                job.poll_count = 0
                job.last_polled_at = None
                job.created_at = now

            job.external_job_id = external_job_id
            job.status = status
            job.updated_at = now
            session.commit()
            session.refresh(job)
            logger.info(f"Registered job {external_job_id} for episode {episode_id}")
            return job

    def get_job_handle(self, episode_id: str) -> Optional[TtsJob]:
        with self._get_session() as session:
            return self._find_job(session, episode_id)

    def update_job_handle(
        self,
        episode_id: str,
        status: Optional[str] = None,
        artifact_ref: Optional[str] = None,
        error: Optional[str] = None,
        polled: bool = False,
    ) -> bool:
        if status is not None and status not in JOB_STATUSES:
            raise ValueError(f"Unknown job status: {status}")

        with self._get_session() as session:
            job = self._find_job(session, episode_id)
            if job is None:
                return False

            if job.is_terminal:
                if status != job.status:
                    logger.warning(
                        f"Refusing to update {job.status} job handle for episode "
                        f"{episode_id} (requested status={status})"
                    )
                # Repeated terminal update (e.g. completed -> completed) is a no-op
                return False

            if status is not None and JOB_STATUS_RANK[status] < JOB_STATUS_RANK[job.status]:
                logger.warning(
                    f"Refusing backward job handle transition for episode "
                    f"{episode_id}: {job.status} -> {status}"
                )
                return False

            now = datetime.now(UTC)
            values = {"updated_at": now}
            if status is not None:
                values["status"] = status
            if artifact_ref is not None:
                values["artifact_ref"] = artifact_ref
            if error is not None:
                values["error"] = error
            if polled:
                values["poll_count"] = func.coalesce(TtsJob.poll_count, 0) + 1
                values["last_polled_at"] = now

            # Compare-and-set on the status that was read
            result = session.execute(
                update(TtsJob)
                .where(TtsJob.id == job.id, TtsJob.status == job.status)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            session.commit()

            if result.rowcount != 1:
                logger.info(
                    f"Job handle for episode {episode_id} changed concurrently; "
                    f"update from {job.status} (requested status={status}) not applied"
                )
                return False

            logger.debug(
                f"Updated job handle for episode {episode_id}: status={status or job.status}"
            )
            return True

    def list_outstanding_job_handles(self, limit: Optional[int] = None) -> List[TtsJob]:
        with self._get_session() as session:
            stmt = (
                select(TtsJob)
                .where(TtsJob.status.in_(("submitted", "in_progress")))
                .order_by(TtsJob.created_at.asc(), TtsJob.id.asc())
            )
            if limit:
                stmt = stmt.limit(limit)
            return list(session.scalars(stmt).all())

    # --- Lifecycle ---

    def close(self) -> None:
        """
        Dispose the SQLAlchemy engine and release database connections and resources.
        """
        self.engine.dispose()
        logger.info("Database connection closed")
