"""SQLAlchemy ORM models for cardreview.

This module defines the database schema: the board-layer tables the engine
reads (boards, lists, cards, users and their company roles) and the tables
it owns (review cycles, evaluations, scores, dimensions).

All models use SQLAlchemy 2.0 declarative style with Mapped[] type annotations.
"""

from cardreview.database.models.base import Base, TimestampMixin, ensure_utc
from cardreview.database.models.board import Board, BoardList, Card
from cardreview.database.models.review import (
    DimensionRole,
    DimensionScore,
    Evaluation,
    EvaluatorRole,
    ReviewCycle,
    ReviewDimension,
    ScoreValue,
)
from cardreview.database.models.user import (
    CompanyRole,
    PermissionLevel,
    User,
    UserCompanyRole,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "ensure_utc",
    "Board",
    "BoardList",
    "Card",
    "CompanyRole",
    "PermissionLevel",
    "User",
    "UserCompanyRole",
    "DimensionRole",
    "DimensionScore",
    "Evaluation",
    "EvaluatorRole",
    "ReviewCycle",
    "ReviewDimension",
    "ScoreValue",
]
