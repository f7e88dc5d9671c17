"""Board and card lookup query functions for cardreview.

Read-only access to the board layer's tables.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.board import Board, BoardList, Card


async def get_board(
    session: AsyncSession,
    board_id: UUID,
) -> Board | None:
    """Retrieve a board by ID."""
    stmt = select(Board).where(Board.id == board_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_card(
    session: AsyncSession,
    card_id: UUID,
    include_archived: bool = False,
) -> Card | None:
    """Retrieve a card with its list.

    Args:
        session: Active async database session.
        card_id: UUID of the card.
        include_archived: If False, archived cards are treated as missing.
    """
    stmt = select(Card).where(Card.id == card_id)
    if not include_archived:
        stmt = stmt.where(Card.archived_at.is_(None))
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_done_cards(
    session: AsyncSession,
    board_id: UUID,
    done_phase: str,
) -> list[Card]:
    """List the live cards of a board sitting in a done-phase list."""
    stmt = (
        select(Card)
        .join(BoardList, BoardList.id == Card.list_id)
        .where(
            BoardList.board_id == board_id,
            BoardList.phase == done_phase,
            Card.archived_at.is_(None),
        )
        .order_by(Card.created_at.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_cards_by_ids(
    session: AsyncSession,
    card_ids: list[UUID],
) -> dict[UUID, Card]:
    """Map card ids to cards, archived ones included; unknown ids are absent."""
    if not card_ids:
        return {}
    stmt = select(Card).where(Card.id.in_(set(card_ids)))
    result = await session.execute(stmt)
    return {card.id: card for card in result.scalars().all()}
