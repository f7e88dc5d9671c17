"""Review cycle, evaluation and dimension models for cardreview.

Defines the tables owned by the review engine:

- review_cycles: one open-to-closed span a card spends in a review list.
- evaluations: one reviewer's submission for one cycle.
- dimension_scores: the ordinal score an evaluation gives one dimension.
- review_dimensions: the catalog of scored quality axes.
- dimension_roles: evaluator roles a dimension is restricted to.

At most one cycle per card may be open (closed_at IS NULL). The partial
unique index uq_review_cycles_open_card enforces that in the store so two
racing "entered review" transitions cannot both create a cycle.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardreview.database.models.base import Base, TimestampMixin


class ScoreValue(str, enum.Enum):
    """Ordinal score a reviewer gives one dimension.

    NOT_APPLICABLE is always accepted and is excluded from averages.
    """

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class EvaluatorRole(str, enum.Enum):
    """Coarse rater category derived from a user's company role names."""

    LEAD = "LEAD"
    PRODUCT_OWNER = "PRODUCT_OWNER"
    HEAD_OF_DEPARTMENT = "HEAD_OF_DEPARTMENT"


class ReviewCycle(TimestampMixin, Base):
    """One review span of a card.

    Attributes:
        card_id: Card under review.
        cycle_number: 1-based, increasing per card.
        opened_at: When the card entered the review list.
        closed_at: When the card left the review list; NULL while open.
        is_final: True for the latest cycle once the card reached done.
        locked_at: Set while the card is done; scores are immutable then.
        evaluations: Submitted evaluations for this cycle.
    """

    __tablename__ = "review_cycles"
    __table_args__ = (
        UniqueConstraint("card_id", "cycle_number", name="uq_review_cycles_card_number"),
        Index(
            "uq_review_cycles_open_card",
            "card_id",
            unique=True,
            postgresql_where=text("closed_at IS NULL"),
            sqlite_where=text("closed_at IS NULL"),
        ),
    )

    card_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    cycle_number: Mapped[int] = mapped_column(Integer, nullable=False)
    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    is_final: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    locked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    evaluations: Mapped[list[Evaluation]] = relationship(
        "Evaluation",
        back_populates="review_cycle",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_open(self) -> bool:
        return self.closed_at is None


class Evaluation(TimestampMixin, Base):
    """A reviewer's scores for one cycle; one per (cycle, reviewer)."""

    __tablename__ = "evaluations"
    __table_args__ = (
        UniqueConstraint(
            "review_cycle_id", "reviewer_id", name="uq_evaluations_cycle_reviewer"
        ),
    )

    review_cycle_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("review_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        nullable=False,
    )
    submitted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    review_cycle: Mapped[ReviewCycle] = relationship(
        "ReviewCycle",
        back_populates="evaluations",
    )
    scores: Mapped[list[DimensionScore]] = relationship(
        "DimensionScore",
        back_populates="evaluation",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class DimensionScore(TimestampMixin, Base):
    """The score one evaluation gives one dimension."""

    __tablename__ = "dimension_scores"
    __table_args__ = (
        UniqueConstraint(
            "evaluation_id", "dimension_id", name="uq_dimension_scores_evaluation_dimension"
        ),
    )

    evaluation_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("evaluations.id", ondelete="CASCADE"),
        nullable=False,
    )
    dimension_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("review_dimensions.id", ondelete="CASCADE"),
        nullable=False,
    )
    score: Mapped[ScoreValue] = mapped_column(
        Enum(ScoreValue, name="review_score_value"),
        nullable=False,
    )

    evaluation: Mapped[Evaluation] = relationship("Evaluation", back_populates="scores")


class ReviewDimension(TimestampMixin, Base):
    """A scored quality axis.

    Attributes:
        name: Display name.
        description: Optional guidance shown to reviewers.
        position: Display order (ascending).
        is_active: Inactive dimensions are hidden from forms and summaries.
        role_links: Evaluator roles the dimension is restricted to; empty
            means visible to every evaluator.
    """

    __tablename__ = "review_dimensions"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    role_links: Mapped[list[DimensionRole]] = relationship(
        "DimensionRole",
        back_populates="dimension",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def evaluator_roles(self) -> frozenset[EvaluatorRole]:
        """Roles this dimension is restricted to."""
        return frozenset(link.role for link in self.role_links)


class DimensionRole(Base):
    """Restricts a dimension to one evaluator role."""

    __tablename__ = "dimension_roles"

    dimension_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("review_dimensions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    role: Mapped[EvaluatorRole] = mapped_column(
        Enum(EvaluatorRole, name="evaluator_role"),
        primary_key=True,
    )

    dimension: Mapped[ReviewDimension] = relationship(
        "ReviewDimension",
        back_populates="role_links",
    )
