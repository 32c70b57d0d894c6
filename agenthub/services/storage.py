"""Storage service for database operations."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ..config.models import StorageConfig
from ..models.base import Base
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StorageService:
    """Service for database storage operations.

    Provides async database access with SQLAlchemy.
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False) -> None:
        """Initialize storage service.

        Args:
            database_url: Database URL (defaults to a local SQLite file)
            echo: Log SQL statements
        """
        if database_url is None:
            database_url = StorageConfig().database_url
        self.database_url = database_url

        self.engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False} if "sqlite" in database_url else {},
        )
        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_config(cls, config: StorageConfig) -> "StorageService":
        return cls(config.database_url, echo=config.echo)

    async def initialize(self) -> None:
        """Create database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized", extra={"database_url": self.database_url.split("?")[0]})

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get database session context manager.

        Usage:
            async with storage.session() as db:
                result = await db.execute(...)
        """
        async with self.async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.warning("Database health check failed", extra={"error": str(e)})
            return False
