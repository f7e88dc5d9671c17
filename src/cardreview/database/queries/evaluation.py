"""Evaluation query functions for cardreview.

Evaluations are unique per (cycle, reviewer). Re-submitting replaces the
previous scores. Commit is handled by the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.review import DimensionScore, Evaluation, ScoreValue

logger = structlog.get_logger(__name__)


async def get_evaluation(
    session: AsyncSession,
    cycle_id: UUID,
    reviewer_id: UUID,
) -> Evaluation | None:
    """Retrieve the reviewer's evaluation for a cycle, if any."""
    stmt = select(Evaluation).where(
        Evaluation.review_cycle_id == cycle_id,
        Evaluation.reviewer_id == reviewer_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def create_evaluation(
    session: AsyncSession,
    cycle_id: UUID,
    reviewer_id: UUID,
    scores: Iterable[tuple[UUID, ScoreValue]],
    submitted_at: datetime,
) -> Evaluation:
    """Insert an evaluation with its scores.

    Raises:
        sqlalchemy.exc.IntegrityError: If the reviewer already evaluated the
            cycle (a concurrent submission won).
    """
    evaluation = Evaluation(
        review_cycle_id=cycle_id,
        reviewer_id=reviewer_id,
        submitted_at=submitted_at,
        scores=[
            DimensionScore(dimension_id=dimension_id, score=score)
            for dimension_id, score in scores
        ],
    )
    session.add(evaluation)
    await session.flush()

    logger.debug(
        "evaluation_inserted",
        evaluation_id=str(evaluation.id),
        cycle_id=str(cycle_id),
        reviewer_id=str(reviewer_id),
        score_count=len(evaluation.scores),
    )
    return evaluation


async def replace_scores(
    session: AsyncSession,
    evaluation: Evaluation,
    scores: Iterable[tuple[UUID, ScoreValue]],
    submitted_at: datetime,
) -> Evaluation:
    """Replace every score of an existing evaluation.

    Old rows are flushed away before the new ones are inserted so the
    (evaluation, dimension) uniqueness holds within the transaction.
    """
    evaluation.scores.clear()
    await session.flush()

    for dimension_id, score in scores:
        evaluation.scores.append(DimensionScore(dimension_id=dimension_id, score=score))
    evaluation.submitted_at = submitted_at
    await session.flush()

    logger.debug(
        "evaluation_scores_replaced",
        evaluation_id=str(evaluation.id),
        score_count=len(evaluation.scores),
    )
    return evaluation
