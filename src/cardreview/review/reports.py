"""Quality report reads: cycle summaries, card quality and project summaries.

Loads cycles, dimensions and reviewer roles, runs the access gate and hands
everything to the pure builders in cardreview.review.summary. Aggregate
reads see every active dimension regardless of the caller's roles.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.config import ReviewConfig
from cardreview.database.models.review import ReviewCycle
from cardreview.database.queries.board import get_board, get_card, list_done_cards
from cardreview.database.queries.cycle import (
    get_cycle,
    list_cycles_for_card,
    list_final_cycles_for_board,
    list_final_cycles_for_cards,
)
from cardreview.database.queries.dimension import list_dimensions
from cardreview.errors import NotFoundError
from cardreview.review.access import (
    get_quality_access_context,
    get_reviewer_roles_by_user_ids,
    require_non_viewer_quality_access,
    require_quality_summary_access,
)
from cardreview.review.aggregation import to_rounded
from cardreview.review.evaluations import DimensionInfo
from cardreview.review.roles import RoleHintTable, role_hint_table_from_config
from cardreview.review.summary import (
    CardFinalQuality,
    CycleAggregateSummary,
    ProjectQualitySummary,
    build_cycle_aggregate_summary,
    build_final_quality_by_card,
    build_project_quality_summary,
)

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


class CardInfo(BaseModel):
    id: UUID
    title: str
    board_id: UUID
    list_id: UUID
    list_name: str
    list_phase: str | None = None


class CycleReport(BaseModel):
    card: CardInfo
    summary: CycleAggregateSummary


class CardQualityReport(BaseModel):
    """Every cycle of a card, plus its latest and final cycle."""

    card: CardInfo
    dimensions: list[DimensionInfo] = Field(default_factory=list)
    latest_cycle: CycleAggregateSummary | None = None
    final_cycle: CycleAggregateSummary | None = None
    cycles: list[CycleAggregateSummary] = Field(default_factory=list)


class QualityReportService:
    """Read-only quality reports on behalf of an authenticated user.

    Attributes:
        session_factory: Callable that produces new database sessions.
        config: Review engine configuration.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        config: ReviewConfig | None = None,
        role_table: RoleHintTable | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.config = config or ReviewConfig()
        self.role_table = role_table or role_hint_table_from_config(self.config)

    async def _summarize(
        self,
        session: AsyncSession,
        cycles: Iterable[ReviewCycle],
    ) -> list[CycleAggregateSummary]:
        cycles = list(cycles)
        dimensions = await list_dimensions(session, active_only=True)
        reviewer_ids = [e.reviewer_id for cycle in cycles for e in cycle.evaluations]
        roles = await get_reviewer_roles_by_user_ids(session, reviewer_ids, self.role_table)
        return [
            build_cycle_aggregate_summary(
                cycle,
                dimensions,
                reviewer_roles_by_user_id=roles,
                divergence_threshold=self.config.divergence_threshold,
            ).rounded()
            for cycle in cycles
        ]

    async def _card_info(
        self,
        session: AsyncSession,
        card_id: UUID,
        include_archived: bool,
    ) -> CardInfo:
        card = await get_card(session, card_id, include_archived=include_archived)
        if card is None:
            raise NotFoundError("Card", card_id)
        return CardInfo(
            id=card.id,
            title=card.title,
            board_id=card.board_list.board_id,
            list_id=card.board_list.id,
            list_name=card.board_list.name,
            list_phase=card.board_list.phase,
        )

    async def get_cycle_summary(self, user_id: UUID, cycle_id: UUID) -> CycleReport:
        """Aggregate summary of one cycle (non-viewers only)."""
        async with self.session_factory() as session:
            ctx = await get_quality_access_context(session, user_id, self.role_table)
            require_non_viewer_quality_access(ctx)

            cycle = await get_cycle(session, cycle_id)
            if cycle is None:
                raise NotFoundError("Review cycle", cycle_id)
            card = await self._card_info(session, cycle.card_id, include_archived=True)
            (summary,) = await self._summarize(session, [cycle])

        logger.debug("cycle_summary_built", cycle_id=str(cycle_id), user_id=str(user_id))
        return CycleReport(card=card, summary=summary)

    async def get_card_quality(self, user_id: UUID, card_id: UUID) -> CardQualityReport:
        """All cycle summaries of a live card (non-viewers only)."""
        async with self.session_factory() as session:
            ctx = await get_quality_access_context(session, user_id, self.role_table)
            require_non_viewer_quality_access(ctx)

            card = await self._card_info(session, card_id, include_archived=False)
            dimensions = await list_dimensions(session, active_only=True)
            summaries = await self._summarize(
                session, await list_cycles_for_card(session, card_id)
            )

        return CardQualityReport(
            card=card,
            dimensions=[
                DimensionInfo(
                    id=d.id, name=d.name, description=d.description, position=d.position
                )
                for d in dimensions
            ],
            latest_cycle=summaries[-1] if summaries else None,
            final_cycle=next((s for s in summaries if s.is_final), None),
            cycles=summaries,
        )

    async def get_project_summary(self, user_id: UUID, board_id: UUID) -> ProjectQualitySummary:
        """Quality summary of one board (evaluator roles only)."""
        async with self.session_factory() as session:
            ctx = await get_quality_access_context(session, user_id, self.role_table)
            require_quality_summary_access(ctx)

            board = await get_board(session, board_id)
            if board is None:
                raise NotFoundError("Project", board_id)

            dimensions = await list_dimensions(session, active_only=True)
            done_cards = await list_done_cards(session, board_id, self.config.done_phase)
            final_cycles = await list_final_cycles_for_board(session, board_id)

            summary = build_project_quality_summary(
                board,
                done_cards,
                final_cycles,
                dimensions,
                high_churn_threshold=self.config.high_churn_threshold,
            )

        logger.info(
            "project_quality_summary_built",
            board_id=str(board_id),
            user_id=str(user_id),
            finalized_card_count=summary.totals.finalized_card_count,
        )
        return summary

    async def get_final_quality_by_card(
        self,
        user_id: UUID,
        card_ids: list[UUID],
    ) -> dict[UUID, CardFinalQuality]:
        """Overall quality of each card's final cycle (non-viewers only).

        Cards without a final cycle are left out of the mapping.
        """
        async with self.session_factory() as session:
            ctx = await get_quality_access_context(session, user_id, self.role_table)
            require_non_viewer_quality_access(ctx)
            cycles = await list_final_cycles_for_cards(session, card_ids)

        return {
            card_id: quality.model_copy(
                update={"overall_average": to_rounded(quality.overall_average)}
            )
            for card_id, quality in build_final_quality_by_card(cycles).items()
        }
