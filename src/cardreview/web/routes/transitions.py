"""Card transition endpoint for cardreview.

Called by the board layer after a card has moved between lists. The caller
is trusted infrastructure, so no user gate applies.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Response

from cardreview.logging import get_logger
from cardreview.review.lifecycle import CardTransitionEvent, ReviewCycleManager, TransitionResult
from cardreview.web.dependencies import get_cycle_manager

logger = get_logger(__name__)


def create_transitions_router() -> APIRouter:
    """Create router for card move events.

    Routes:
        POST /transitions - Apply a card move to the card's review cycles
        POST /transitions/cards/{card_id}/close-and-lock - Close and lock a
            card's cycles when it is archived or force-completed
    """
    router = APIRouter(prefix="/transitions", tags=["transitions"])

    @router.post("", response_model=TransitionResult)
    async def handle_transition(
        event: CardTransitionEvent,
        manager: ReviewCycleManager = Depends(get_cycle_manager),  # noqa: B008
    ) -> TransitionResult:
        result = await manager.handle_transition(event)
        logger.debug(
            "transition_endpoint_completed",
            card_id=str(event.card_id),
            cycle_opened=result.cycle_opened,
            card_locked=result.card_locked,
        )
        return result

    @router.post("/cards/{card_id}/close-and-lock", status_code=204)
    async def close_and_lock(
        card_id: UUID,
        manager: ReviewCycleManager = Depends(get_cycle_manager),  # noqa: B008
    ) -> Response:
        await manager.close_and_lock(card_id)
        return Response(status_code=204)

    return router
