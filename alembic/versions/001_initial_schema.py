"""Initial schema for cardreview.

Creates the board tables the engine reads (boards, board_lists, cards,
users, company_roles, user_company_roles) and the review tables it owns
(review_cycles, evaluations, dimension_scores, review_dimensions,
dimension_roles).

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import ENUM, JSONB

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    permission_level = sa.Enum(
        "VIEWER", "MEMBER", "ADMIN", "SUPER_ADMIN",
        name="permission_level",
    )
    permission_level.create(op.get_bind(), checkfirst=True)

    score_value = sa.Enum(
        "LOW", "MEDIUM", "HIGH", "NOT_APPLICABLE",
        name="review_score_value",
    )
    score_value.create(op.get_bind(), checkfirst=True)

    evaluator_role = sa.Enum(
        "LEAD", "PRODUCT_OWNER", "HEAD_OF_DEPARTMENT",
        name="evaluator_role",
    )
    evaluator_role.create(op.get_bind(), checkfirst=True)

    # Board tables
    op.create_table(
        "boards",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("settings", JSONB, nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "board_lists",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("board_id", sa.Uuid(), sa.ForeignKey("boards.id"), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phase", sa.Text(), nullable=True),
        sa.Column("view_type", sa.Text(), nullable=False, server_default="TASKS"),
        *_timestamps(),
    )

    op.create_table(
        "cards",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("list_id", sa.Uuid(), sa.ForeignKey("board_lists.id"), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # Users and company roles
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column(
            "permission",
            ENUM(
                "VIEWER", "MEMBER", "ADMIN", "SUPER_ADMIN",
                name="permission_level",
                create_type=False,
            ),
            nullable=False,
            server_default="MEMBER",
        ),
        *_timestamps(),
    )

    op.create_table(
        "company_roles",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "user_company_roles",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "user_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "company_role_id",
            sa.Uuid(),
            sa.ForeignKey("company_roles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "company_role_id", name="uq_user_company_roles_user_role"),
    )

    # Review dimensions
    op.create_table(
        "review_dimensions",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "dimension_roles",
        sa.Column(
            "dimension_id",
            sa.Uuid(),
            sa.ForeignKey("review_dimensions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "role",
            ENUM(
                "LEAD", "PRODUCT_OWNER", "HEAD_OF_DEPARTMENT",
                name="evaluator_role",
                create_type=False,
            ),
            primary_key=True,
        ),
    )

    # Review cycles
    op.create_table(
        "review_cycles",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "card_id",
            sa.Uuid(),
            sa.ForeignKey("cards.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("cycle_number", sa.Integer(), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_final", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("locked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("card_id", "cycle_number", name="uq_review_cycles_card_number"),
    )
    op.create_index("ix_review_cycles_card_id", "review_cycles", ["card_id"])
    # At most one open cycle per card
    op.create_index(
        "uq_review_cycles_open_card",
        "review_cycles",
        ["card_id"],
        unique=True,
        postgresql_where=sa.text("closed_at IS NULL"),
    )

    # Evaluations and scores
    op.create_table(
        "evaluations",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "review_cycle_id",
            sa.Uuid(),
            sa.ForeignKey("review_cycles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("reviewer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "review_cycle_id", "reviewer_id", name="uq_evaluations_cycle_reviewer"
        ),
    )
    op.create_index("ix_evaluations_review_cycle_id", "evaluations", ["review_cycle_id"])

    op.create_table(
        "dimension_scores",
        sa.Column("id", sa.Uuid(), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column(
            "evaluation_id",
            sa.Uuid(),
            sa.ForeignKey("evaluations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "dimension_id",
            sa.Uuid(),
            sa.ForeignKey("review_dimensions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "score",
            ENUM(
                "LOW", "MEDIUM", "HIGH", "NOT_APPLICABLE",
                name="review_score_value",
                create_type=False,
            ),
            nullable=False,
        ),
        *_timestamps(),
        sa.UniqueConstraint(
            "evaluation_id", "dimension_id", name="uq_dimension_scores_evaluation_dimension"
        ),
    )


def downgrade() -> None:
    op.drop_table("dimension_scores")
    op.drop_index("ix_evaluations_review_cycle_id", table_name="evaluations")
    op.drop_table("evaluations")
    op.drop_index("uq_review_cycles_open_card", table_name="review_cycles")
    op.drop_index("ix_review_cycles_card_id", table_name="review_cycles")
    op.drop_table("review_cycles")
    op.drop_table("dimension_roles")
    op.drop_table("review_dimensions")
    op.drop_table("user_company_roles")
    op.drop_table("company_roles")
    op.drop_table("users")
    op.drop_table("cards")
    op.drop_table("board_lists")
    op.drop_table("boards")

    sa.Enum(name="evaluator_role").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="review_score_value").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="permission_level").drop(op.get_bind(), checkfirst=True)
