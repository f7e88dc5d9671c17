"""Database layer for cardreview.

This module handles database connections, session management, and provides
the SQLAlchemy async engine configuration for PostgreSQL (asyncpg) with
SQLite (aiosqlite) accepted for development and tests.

Public API:
    get_engine: Create an AsyncEngine from DatabaseConfig.
    get_session_factory: Create an async_sessionmaker from an engine.
    Base: SQLAlchemy declarative base for all models.
"""

from cardreview.database.connection import get_engine, get_session_factory
from cardreview.database.models import (
    Base,
    Board,
    BoardList,
    Card,
    DimensionScore,
    Evaluation,
    EvaluatorRole,
    PermissionLevel,
    ReviewCycle,
    ReviewDimension,
    ScoreValue,
    TimestampMixin,
    User,
)

__all__ = [
    "get_engine",
    "get_session_factory",
    "Base",
    "TimestampMixin",
    "Board",
    "BoardList",
    "Card",
    "User",
    "PermissionLevel",
    "ReviewCycle",
    "Evaluation",
    "DimensionScore",
    "ReviewDimension",
    "EvaluatorRole",
    "ScoreValue",
]
