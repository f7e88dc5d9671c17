"""Database connection management for cardreview.

This module provides factory functions for creating SQLAlchemy async engines
and session factories, configured from the application's DatabaseConfig.

PostgreSQL (asyncpg) is the production store; SQLite (aiosqlite) URLs are
accepted for development and tests, without pool sizing.

Example usage:
    >>> from cardreview.config import DatabaseConfig
    >>> from cardreview.database.connection import get_engine, get_session_factory
    >>>
    >>> engine = get_engine(DatabaseConfig(url="postgresql+asyncpg://localhost/cardreview"))
    >>> SessionFactory = get_session_factory(engine)
    >>>
    >>> async with SessionFactory() as session:
    ...     result = await session.execute(select(ReviewCycle))
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cardreview.config import DatabaseConfig


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Args:
        config: Database configuration containing URL, pool settings,
                and SQL echo preference.

    Returns:
        Configured AsyncEngine instance.
    """
    if config.url.startswith("sqlite"):
        engine = create_async_engine(config.url, echo=config.echo)
        enable_sqlite_foreign_keys(engine)
        return engine

    return create_async_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        echo=config.echo,
    )


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on SQLite foreign key enforcement for every new connection.

    Cascading deletes of cycles, evaluations and dimension roles rely on it.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the given engine.

    The returned factory produces AsyncSession instances configured with
    expire_on_commit=False so attributes stay readable after commit without
    triggering lazy loads in async code.

    Args:
        engine: AsyncEngine to bind sessions to.

    Returns:
        Configured async_sessionmaker that produces AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
