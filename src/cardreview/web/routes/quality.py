"""Quality report endpoints for cards, projects and the caller's pending work."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query

from cardreview.review.evaluations import EvaluationService, PendingEvaluation
from cardreview.review.reports import CardQualityReport, QualityReportService
from cardreview.review.summary import CardFinalQuality, ProjectQualitySummary
from cardreview.web.dependencies import (
    get_current_user_id,
    get_evaluation_service,
    get_report_service,
)


def create_quality_router() -> APIRouter:
    """Create router for quality reads.

    Routes:
        GET /cards/{card_id}/quality - Every cycle summary of a card
        GET /cards/final-quality - Final cycle quality of several cards
        GET /projects/{project_id}/quality-summary - Board-wide quality summary
        GET /me/pending-evaluations - Cycles the caller still has to evaluate
    """
    router = APIRouter(tags=["quality"])

    @router.get("/cards/{card_id}/quality", response_model=CardQualityReport)
    async def get_card_quality(
        card_id: UUID,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: QualityReportService = Depends(get_report_service),  # noqa: B008
    ) -> CardQualityReport:
        return await service.get_card_quality(user_id, card_id)

    @router.get("/cards/final-quality", response_model=dict[UUID, CardFinalQuality])
    async def get_final_quality_by_card(
        card_ids: list[UUID] = Query(alias="cardId"),  # noqa: B008
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: QualityReportService = Depends(get_report_service),  # noqa: B008
    ) -> dict[UUID, CardFinalQuality]:
        return await service.get_final_quality_by_card(user_id, card_ids)

    @router.get(
        "/projects/{project_id}/quality-summary",
        response_model=ProjectQualitySummary,
    )
    async def get_project_quality_summary(
        project_id: UUID,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: QualityReportService = Depends(get_report_service),  # noqa: B008
    ) -> ProjectQualitySummary:
        return await service.get_project_summary(user_id, project_id)

    @router.get("/me/pending-evaluations", response_model=list[PendingEvaluation])
    async def list_pending_evaluations(
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: EvaluationService = Depends(get_evaluation_service),  # noqa: B008
    ) -> list[PendingEvaluation]:
        return await service.list_pending_evaluations(user_id)

    return router
