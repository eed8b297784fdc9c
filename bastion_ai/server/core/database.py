"""
Database Connection Setup.

This module builds the asynchronous SQLAlchemy engine and session factory for
the gateway from settings and creates missing tables on startup.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bastion_ai.approval_core.repos.sql import create_all, create_engine, create_sessionmaker
from bastion_ai.core.logging_config import get_logger
from bastion_ai.server.core.config import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class Database:
    """Engine and session factory owned by one application instance."""

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]

    async def dispose(self) -> None:
        await self.engine.dispose()


def build_database(settings: Settings) -> Database:
    engine = create_engine(settings.database.url)
    return Database(engine=engine, session_factory=create_sessionmaker(engine))


async def init_db(database: Database, settings: Settings) -> None:
    """
    Initialize the database.

    Creates all tables defined in the approval_core ORM metadata.
    NOTE: In production, Alembic migrations should be used instead of this function.
    """
    if not settings.database.create_tables:
        logger.info("Skipping table creation; schema is managed by migrations")
        return
    await create_all(database.engine)
    logger.info("Database tables ensured")
