"""Async database session management"""
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from opensea_wrapper.core.config import Settings, settings


def create_engine(config: Optional[Settings] = None) -> AsyncEngine:
    config = config or settings
    return create_async_engine(
        config.DATABASE_URL,
        echo=False,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Process-wide session factory, built on first use from DATABASE_URL."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(create_engine())
    return _session_factory


async def get_session(
    factory: Optional[async_sessionmaker[AsyncSession]] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield one session, closed afterwards.

    Yields:
        AsyncSession: async database session
    """
    async with (factory or get_session_factory())() as session:
        try:
            yield session
        finally:
            await session.close()
