from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool
import logging

from dispensary.core.config import Settings

logger = logging.getLogger(__name__)

# Base model
Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """Engine and session factory for the single storage backend"""

    def __init__(self, settings: Settings):
        self.url = settings.DATABASE_URL
        self.is_sqlite = settings.is_sqlite

        if self.is_sqlite:
            self.engine = create_async_engine(
                self.url,
                echo=settings.DATABASE_ECHO,
                poolclass=NullPool,
                connect_args={"check_same_thread": False}
            )
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
        else:
            self.engine = create_async_engine(
                self.url,
                pool_size=settings.DATABASE_POOL_SIZE,
                max_overflow=settings.DATABASE_MAX_OVERFLOW,
                pool_pre_ping=True,
                pool_recycle=3600,
                echo=settings.DATABASE_ECHO
            )

        self.session_factory = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False
        )

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self):
        """Initialize database tables"""
        # Register every mapped class on Base.metadata
        import dispensary.domain  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ready")

    async def dispose(self):
        """Close database connections"""
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with get_database(request).session() as db:
        yield db
