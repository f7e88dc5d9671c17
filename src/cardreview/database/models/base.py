"""SQLAlchemy declarative base and common column mixins for cardreview.

This module defines the DeclarativeBase class and a TimestampMixin that
provides id, created_at, and updated_at columns shared across models.

Example:
    >>> class MyModel(TimestampMixin, Base):
    ...     __tablename__ = "my_table"
    ...     name: Mapped[str] = mapped_column(Text, nullable=False)
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """SQLAlchemy 2.0 declarative base for all cardreview models."""

    pass


class TimestampMixin:
    """Mixin providing id (UUID), created_at, and updated_at columns.

    This mixin should be listed before Base in the class hierarchy
    to ensure the columns are included in the model's table definition.

    Attributes:
        id: UUID primary key generated client-side so rows have an id
            before flush.
        created_at: Timestamp set by the database on row creation.
        updated_at: Timestamp set on row creation and on each modification.
    """

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime.

    SQLite drops tzinfo on round trip; stored values are always UTC, so a
    naive value read back is tagged rather than converted.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
