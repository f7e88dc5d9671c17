"""Review cycle lifecycle for card moves between board lists.

A card move is classified into four independent signals:

    entered_review      to a review list from a non-review list
    left_review         from a review list to a non-review list
    moved_to_done       to a done list from a non-done list
    reopened_from_done  from a done list to a non-done list

and each signal drives one mutation of the card's review cycles:

    entered_review      open a cycle (no-op if one is already open)
    left_review         close the open cycle, or delete it when it is
                        transient (younger than the window, no evaluations)
    moved_to_done       mark the latest cycle final and lock all cycles
    reopened_from_done  clear the final flag and unlock all cycles

The signals are not exclusive; a single move can, for example, leave review
and reach done at once. All mutations of one move run in one transaction.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.config import ReviewConfig
from cardreview.database.models.base import ensure_utc
from cardreview.database.queries.board import get_card
from cardreview.database.queries.cycle import (
    clear_final_flags,
    close_cycle,
    close_open_cycles,
    count_evaluations,
    create_cycle,
    delete_cycle,
    get_latest_cycle,
    get_max_cycle_number,
    get_open_cycle,
    lock_unlocked_cycles,
    mark_cycle_final,
    unlock_cycles,
)
from cardreview.errors import NotFoundError, TransitionFailedError
from cardreview.logging import bind_card_context
from cardreview.review.classifier import (
    ListClassificationPolicy,
    ListContext,
    extract_review_list_ids,
    is_done_list,
    is_review_list,
)

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


class CardTransitionEvent(BaseModel):
    """A card moved from one board list to another.

    Attributes:
        card_id: Card that moved.
        from_list: List the card left.
        to_list: List the card entered.
        board_settings: The board's settings mapping (may carry reviewListIds).
        now: Time of the move; the current UTC time when omitted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    card_id: UUID
    from_list: ListContext
    to_list: ListContext
    board_settings: Any = None
    now: datetime | None = None


class TransitionResult(BaseModel):
    """What a card move changed."""

    entered_review: bool = False
    left_review: bool = False
    moved_to_done: bool = False
    reopened_from_done: bool = False
    cycle_opened: bool = False
    cycle_closed: bool = False
    cycle_deleted_as_transient: bool = False
    card_locked: bool = False
    card_unlocked: bool = False
    final_cycle_id: UUID | None = Field(default=None)


def classify_transition(
    event: CardTransitionEvent,
    policy: ListClassificationPolicy,
) -> TransitionResult:
    """Compute the four move signals without touching the store."""
    review_list_ids = extract_review_list_ids(event.board_settings)

    from_review = is_review_list(event.from_list, review_list_ids, policy)
    to_review = is_review_list(event.to_list, review_list_ids, policy)
    from_done = is_done_list(event.from_list, policy)
    to_done = is_done_list(event.to_list, policy)

    return TransitionResult(
        entered_review=to_review and not from_review,
        left_review=from_review and not to_review,
        moved_to_done=to_done and not from_done,
        reopened_from_done=from_done and not to_done,
    )


async def _open_cycle(session: AsyncSession, card_id: UUID, now: datetime) -> UUID | None:
    if await get_open_cycle(session, card_id) is not None:
        return None
    cycle_number = await get_max_cycle_number(session, card_id) + 1
    cycle = await create_cycle(session, card_id, cycle_number, now)
    logger.info(
        "review_cycle_opened",
        card_id=str(card_id),
        cycle_id=str(cycle.id),
        cycle_number=cycle_number,
    )
    return cycle.id


async def _close_cycle(
    session: AsyncSession,
    card_id: UUID,
    now: datetime,
    transient_window: timedelta,
) -> tuple[bool, bool]:
    """Close the open cycle. Returns (closed, deleted_as_transient)."""
    cycle = await get_open_cycle(session, card_id)
    if cycle is None:
        return False, False

    age = now - ensure_utc(cycle.opened_at)
    if age < transient_window and await count_evaluations(session, cycle.id) == 0:
        cycle_id = cycle.id
        await delete_cycle(session, cycle)
        logger.info(
            "review_cycle_discarded_transient",
            card_id=str(card_id),
            cycle_id=str(cycle_id),
            age_ms=int(age.total_seconds() * 1000),
        )
        return False, True

    await close_cycle(session, cycle, now)
    logger.info("review_cycle_closed", card_id=str(card_id), cycle_id=str(cycle.id))
    return True, False


async def _finalize_and_lock(session: AsyncSession, card_id: UUID, now: datetime) -> UUID | None:
    await clear_final_flags(session, card_id)
    latest = await get_latest_cycle(session, card_id)
    if latest is not None:
        await mark_cycle_final(session, latest.id)
    locked = await lock_unlocked_cycles(session, card_id, now)
    logger.info(
        "review_cycles_locked",
        card_id=str(card_id),
        final_cycle_id=str(latest.id) if latest else None,
        locked_count=locked,
    )
    return latest.id if latest else None


async def apply_card_list_transition(
    session: AsyncSession,
    event: CardTransitionEvent,
    config: ReviewConfig | None = None,
) -> TransitionResult:
    """Apply a card move on a caller-owned transaction.

    Only flushes; the caller commits or rolls back.

    Raises:
        NotFoundError: If the card does not exist.
        sqlalchemy.exc.IntegrityError: If a concurrent move opened a cycle
            for the same card first.
    """
    config = config or ReviewConfig()
    policy = ListClassificationPolicy.from_config(config)
    now = ensure_utc(event.now or datetime.now(timezone.utc))

    result = classify_transition(event, policy)
    if not (
        result.entered_review
        or result.left_review
        or result.moved_to_done
        or result.reopened_from_done
    ):
        return result

    if await get_card(session, event.card_id, include_archived=True) is None:
        raise NotFoundError("Card", event.card_id)

    if result.entered_review:
        result.cycle_opened = await _open_cycle(session, event.card_id, now) is not None

    if result.left_review:
        window = timedelta(milliseconds=config.transient_window_ms)
        closed, deleted = await _close_cycle(session, event.card_id, now, window)
        result.cycle_closed = closed
        result.cycle_deleted_as_transient = deleted

    if result.moved_to_done:
        result.final_cycle_id = await _finalize_and_lock(session, event.card_id, now)
        result.card_locked = True

    if result.reopened_from_done:
        touched = await unlock_cycles(session, event.card_id)
        result.card_unlocked = True
        logger.info("review_cycles_unlocked", card_id=str(event.card_id), cycle_count=touched)

    return result


async def close_and_lock_card_cycles(
    session: AsyncSession,
    card_id: UUID,
    now: datetime | None = None,
) -> None:
    """Close any open cycle and lock every unlocked cycle of a card.

    Used when the board layer archives or force-completes a card. Only
    flushes; the caller commits.

    Raises:
        NotFoundError: If the card does not exist.
    """
    if await get_card(session, card_id, include_archived=True) is None:
        raise NotFoundError("Card", card_id)

    now = ensure_utc(now or datetime.now(timezone.utc))
    closed = await close_open_cycles(session, card_id, now)
    locked = await lock_unlocked_cycles(session, card_id, now)
    logger.info(
        "review_cycles_closed_and_locked",
        card_id=str(card_id),
        closed_count=closed,
        locked_count=locked,
    )


class ReviewCycleManager:
    """Runs card moves as retried units of work.

    Each move runs in its own session and transaction. A uniqueness conflict
    (two moves racing to open a cycle) or a transient store error rolls the
    transaction back and the whole move is retried; on the retry the losing
    move sees the winner's cycle and does nothing.

    Attributes:
        session_factory: Callable that produces new database sessions.
        config: Review engine configuration.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: ReviewConfig | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.config = config or ReviewConfig()
        self._logger = logger.bind(component="ReviewCycleManager")

    async def handle_transition(self, event: CardTransitionEvent) -> TransitionResult:
        """Apply a card move, retrying on store conflicts.

        Raises:
            NotFoundError: If the card does not exist.
            TransitionFailedError: If the move could not be committed.
        """
        # Pin the time so every attempt sees the same move.
        event = event.model_copy(update={"now": event.now or datetime.now(timezone.utc)})
        bind_card_context(str(event.card_id))

        max_attempts = self.config.transition_max_attempts
        last_error: SQLAlchemyError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        result = await apply_card_list_transition(session, event, self.config)
            except (IntegrityError, OperationalError) as e:
                last_error = e
                self._logger.warning(
                    "review_transition_conflict",
                    attempt=attempt,
                    max_attempts=max_attempts,
                    error=str(e.orig) if e.orig is not None else str(e),
                )
                continue
            except SQLAlchemyError as e:
                self._logger.exception("review_transition_store_error", attempt=attempt)
                raise TransitionFailedError(event.card_id, attempt, str(e)) from e

            self._logger.info(
                "review_transition_applied",
                attempt=attempt,
                **result.model_dump(mode="json"),
            )
            return result

        self._logger.error("review_transition_failed", attempts=max_attempts)
        raise TransitionFailedError(
            event.card_id,
            max_attempts,
            str(last_error) if last_error is not None else None,
        ) from last_error

    async def close_and_lock(self, card_id: UUID, now: datetime | None = None) -> None:
        """Close and lock a card's cycles in their own transaction."""
        bind_card_context(str(card_id))
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await close_and_lock_card_cycles(session, card_id, now)
        except SQLAlchemyError as e:
            self._logger.exception("review_close_and_lock_failed")
            raise TransitionFailedError(card_id, 1, str(e)) from e
