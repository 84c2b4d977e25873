"""Database layer for episode metadata and speech synthesis job handles."""

from .factory import create_repository
from .models import Base, Episode, TtsJob
from .repository import EpisodeRepositoryInterface, SQLAlchemyEpisodeRepository

__all__ = [
    "Base",
    "Episode",
    "TtsJob",
    "EpisodeRepositoryInterface",
    "SQLAlchemyEpisodeRepository",
    "create_repository",
]
