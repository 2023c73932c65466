"""Async database wiring for the solve history store.

Two consumers share one engine:
- HTTP handlers, through the ``get_async_session`` unit-of-work dependency
- the history recorder, which runs on the orchestrator's own tasks and
  opens sessions from ``get_session_factory()``
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from treasure_hunt.config.settings import Settings, get_settings


class Base(DeclarativeBase):
    """Declarative base for the history tables."""


def build_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.DATABASE_URL``.

    SQLite (local runs) skips pre-ping; every other backend checks pooled
    connections before handing them out.
    """
    is_sqlite = settings.DATABASE_URL.startswith("sqlite")
    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.ENVIRONMENT == "dev" and settings.LOG_LEVEL == "DEBUG",
        pool_pre_ping=not is_sqlite,
    )


engine = build_engine(get_settings())

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit if the handler returns, roll back if it raises.

    Repositories never commit themselves.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session maker for work that runs outside a request."""
    return async_session_factory
