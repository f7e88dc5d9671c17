"""Review cycle query functions for cardreview.

Provides async functions for reading and mutating ReviewCycle rows. None of
these functions commit: the lifecycle manager runs several of them inside a
single transaction so a card transition is applied atomically. Commit is
handled by the caller.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

import structlog
from sqlalchemy import exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.board import BoardList, Card
from cardreview.database.models.review import Evaluation, ReviewCycle

logger = structlog.get_logger(__name__)


async def get_cycle(
    session: AsyncSession,
    cycle_id: UUID,
) -> ReviewCycle | None:
    """Retrieve a review cycle by ID, with its evaluations and scores."""
    stmt = select(ReviewCycle).where(ReviewCycle.id == cycle_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_open_cycle(
    session: AsyncSession,
    card_id: UUID,
) -> ReviewCycle | None:
    """Return the card's open cycle (closed_at IS NULL), most recent first."""
    stmt = (
        select(ReviewCycle)
        .where(ReviewCycle.card_id == card_id, ReviewCycle.closed_at.is_(None))
        .order_by(ReviewCycle.cycle_number.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_latest_cycle(
    session: AsyncSession,
    card_id: UUID,
) -> ReviewCycle | None:
    """Return the card's cycle with the highest cycle number."""
    stmt = (
        select(ReviewCycle)
        .where(ReviewCycle.card_id == card_id)
        .order_by(ReviewCycle.cycle_number.desc())
        .limit(1)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_max_cycle_number(
    session: AsyncSession,
    card_id: UUID,
) -> int:
    """Return the highest cycle number used by the card, 0 if none."""
    stmt = select(func.coalesce(func.max(ReviewCycle.cycle_number), 0)).where(
        ReviewCycle.card_id == card_id
    )
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def create_cycle(
    session: AsyncSession,
    card_id: UUID,
    cycle_number: int,
    opened_at: datetime,
) -> ReviewCycle:
    """Insert a new open cycle.

    Raises:
        sqlalchemy.exc.IntegrityError: If the card already has an open cycle
            or the cycle number is taken (a concurrent transition won).
    """
    cycle = ReviewCycle(
        card_id=card_id,
        cycle_number=cycle_number,
        opened_at=opened_at,
        closed_at=None,
        is_final=False,
        locked_at=None,
    )
    session.add(cycle)
    await session.flush()

    logger.debug(
        "review_cycle_inserted",
        cycle_id=str(cycle.id),
        card_id=str(card_id),
        cycle_number=cycle_number,
    )
    return cycle


async def close_cycle(
    session: AsyncSession,
    cycle: ReviewCycle,
    closed_at: datetime,
) -> ReviewCycle:
    """Set closed_at on an open cycle."""
    cycle.closed_at = closed_at
    await session.flush()
    return cycle


async def delete_cycle(
    session: AsyncSession,
    cycle: ReviewCycle,
) -> None:
    """Physically delete a cycle row."""
    await session.delete(cycle)
    await session.flush()


async def count_evaluations(
    session: AsyncSession,
    cycle_id: UUID,
) -> int:
    """Count evaluations submitted for a cycle."""
    stmt = select(func.count(Evaluation.id)).where(Evaluation.review_cycle_id == cycle_id)
    result = await session.execute(stmt)
    return int(result.scalar_one())


async def clear_final_flags(
    session: AsyncSession,
    card_id: UUID,
) -> None:
    """Clear is_final on every cycle of the card."""
    stmt = (
        update(ReviewCycle)
        .where(ReviewCycle.card_id == card_id)
        .values(is_final=False)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(stmt)


async def mark_cycle_final(
    session: AsyncSession,
    cycle_id: UUID,
) -> None:
    """Set is_final on one cycle."""
    stmt = (
        update(ReviewCycle)
        .where(ReviewCycle.id == cycle_id)
        .values(is_final=True)
        .execution_options(synchronize_session="fetch")
    )
    await session.execute(stmt)


async def lock_unlocked_cycles(
    session: AsyncSession,
    card_id: UUID,
    locked_at: datetime,
) -> int:
    """Set locked_at on every cycle of the card that is not locked yet.

    Returns:
        Number of cycles locked.
    """
    stmt = (
        update(ReviewCycle)
        .where(ReviewCycle.card_id == card_id, ReviewCycle.locked_at.is_(None))
        .values(locked_at=locked_at)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount or 0


async def unlock_cycles(
    session: AsyncSession,
    card_id: UUID,
) -> int:
    """Clear is_final and locked_at on every cycle of the card.

    Returns:
        Number of cycles touched.
    """
    stmt = (
        update(ReviewCycle)
        .where(ReviewCycle.card_id == card_id)
        .values(is_final=False, locked_at=None)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount or 0


async def close_open_cycles(
    session: AsyncSession,
    card_id: UUID,
    closed_at: datetime,
) -> int:
    """Set closed_at on any open cycle of the card.

    Returns:
        Number of cycles closed.
    """
    stmt = (
        update(ReviewCycle)
        .where(ReviewCycle.card_id == card_id, ReviewCycle.closed_at.is_(None))
        .values(closed_at=closed_at)
        .execution_options(synchronize_session="fetch")
    )
    result = await session.execute(stmt)
    return result.rowcount or 0


async def list_cycles_for_card(
    session: AsyncSession,
    card_id: UUID,
) -> list[ReviewCycle]:
    """List a card's cycles in cycle number order."""
    stmt = (
        select(ReviewCycle)
        .where(ReviewCycle.card_id == card_id)
        .order_by(ReviewCycle.cycle_number.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_final_cycles_for_board(
    session: AsyncSession,
    board_id: UUID,
) -> list[ReviewCycle]:
    """List the final, locked cycles of a board's live cards.

    Ordered by lock time so trend buckets come out chronologically.
    """
    stmt = (
        select(ReviewCycle)
        .join(Card, Card.id == ReviewCycle.card_id)
        .join(BoardList, BoardList.id == Card.list_id)
        .where(
            BoardList.board_id == board_id,
            Card.archived_at.is_(None),
            ReviewCycle.is_final.is_(True),
            ReviewCycle.locked_at.is_not(None),
        )
        .order_by(ReviewCycle.locked_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_final_cycles_for_cards(
    session: AsyncSession,
    card_ids: list[UUID],
) -> list[ReviewCycle]:
    """List the final cycle of each of the given cards (if any)."""
    if not card_ids:
        return []
    stmt = select(ReviewCycle).where(
        ReviewCycle.is_final.is_(True),
        ReviewCycle.card_id.in_(set(card_ids)),
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_unreviewed_cycles(
    session: AsyncSession,
    reviewer_id: UUID,
) -> list[ReviewCycle]:
    """List unlocked cycles of live cards the reviewer has not evaluated yet."""
    already_evaluated = exists().where(
        Evaluation.review_cycle_id == ReviewCycle.id,
        Evaluation.reviewer_id == reviewer_id,
    )
    stmt = (
        select(ReviewCycle)
        .join(Card, Card.id == ReviewCycle.card_id)
        .where(
            ReviewCycle.locked_at.is_(None),
            Card.archived_at.is_(None),
            ~already_evaluated,
        )
        .order_by(ReviewCycle.opened_at.desc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
