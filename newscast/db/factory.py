"""Repository construction.

SQLite URLs get a single-file database suited to development and tests;
any other SQLAlchemy URL (PostgreSQL in production) gets a pooled engine.
"""

import logging
import os
from typing import Optional

from .repository import EpisodeRepositoryInterface, SQLAlchemyEpisodeRepository, redact_url

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./newscast.db"


def create_repository(
    database_url: Optional[str] = None,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False,
    create_tables: bool = False,
) -> EpisodeRepositoryInterface:
    """Create the episode repository for a database URL.

    Args:
        database_url: SQLAlchemy URL. Defaults to DATABASE_URL from the
            environment, then to a local SQLite file.
        pool_size: Connection pool size (ignored for SQLite).
        max_overflow: Extra connections beyond the pool (ignored for SQLite).
        echo: Log every SQL statement.
        create_tables: Create missing tables instead of relying on migrations.
    """
    database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
    logger.info(f"Creating episode repository: {redact_url(database_url)}")
    return SQLAlchemyEpisodeRepository(
        database_url=database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo,
        create_tables=create_tables,
    )


def repository_from_config(config, create_tables: bool = True) -> EpisodeRepositoryInterface:
    """Create the repository described by a Config's DATABASE_URL and DB_* settings."""
    return create_repository(
        database_url=config.DATABASE_URL,
        pool_size=config.DB_POOL_SIZE,
        max_overflow=config.DB_MAX_OVERFLOW,
        echo=config.DB_ECHO,
        create_tables=create_tables,
    )
