"""Async database wiring for the Intelligence Layer.

Request handlers get their session from ``get_async_session`` (one unit of
work per request). Jobs that run outside a request, such as the cache
cleanup, use ``session_scope`` with the same commit/rollback rules.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from intellayer.config.settings import AppEnvironment, LogLevel, Settings, get_settings


class Base(DeclarativeBase):
    """Declarative base shared by every table in ``intellayer.db.tables``."""


def build_engine(settings: Settings) -> AsyncEngine:
    # SQL echo only when someone asked for DEBUG in a dev environment.
    return create_async_engine(
        settings.DATABASE_URL,
        echo=(settings.ENVIRONMENT == AppEnvironment.DEV and settings.LOG_LEVEL == LogLevel.DEBUG),
        pool_pre_ping=True,
    )


engine = build_engine(get_settings())

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """Open a session, commit on clean exit, roll back and re-raise otherwise.

    Rolling back also discards post-commit actions queued on the session.
    """
    async with (factory or async_session_factory)() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one committed-or-rolled-back session per request.

    Repositories only add and flush; nothing below this layer commits.
    """
    async with session_scope() as session:
        yield session
