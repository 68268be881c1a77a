# cargo_billing/services/database_service.py
from contextlib import asynccontextmanager
from typing import AsyncIterator
import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cargo_billing.core.config import Config
from cargo_billing.models import Base

logger = logging.getLogger(__name__)


class DatabaseService:
    """Centralized async database connection and session management."""

    def __init__(self, db_url: str = None):
        url = db_url or Config.database.DATABASE_URL
        self.engine = create_async_engine(url, **Config.database.get_engine_options(url))
        self.SessionLocal = async_sessionmaker(bind=self.engine, expire_on_commit=False)

    async def create_tables(self):
        """Create all tables that don't exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("✅ Database tables verified/created")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Context manager for database sessions."""
        session = self.SessionLocal()
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error(f"Database session error: {e}")
            raise
        finally:
            await session.close()

    async def dispose(self):
        await self.engine.dispose()
