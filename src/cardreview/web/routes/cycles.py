"""Review cycle endpoints: evaluation form, submission and cycle summary."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from cardreview.review.evaluations import EvaluationForm, EvaluationReceipt, EvaluationService
from cardreview.review.reports import CycleReport, QualityReportService
from cardreview.web.dependencies import (
    get_current_user_id,
    get_evaluation_service,
    get_report_service,
)


class EvaluationSubmission(BaseModel):
    """Request body for submitting scores.

    ``scores`` stays loosely typed so malformed entries reach the payload
    parser and come back with its specific messages.
    """

    scores: Any = None


def create_cycles_router() -> APIRouter:
    """Create router for review cycle endpoints.

    Routes:
        GET /cycles/{cycle_id}/evaluation - Evaluation form for the caller
        PUT /cycles/{cycle_id}/evaluation - Create or replace the caller's scores
        GET /cycles/{cycle_id}/summary - Aggregate summary of the cycle
    """
    router = APIRouter(prefix="/cycles", tags=["cycles"])

    @router.get("/{cycle_id}/evaluation", response_model=EvaluationForm)
    async def get_evaluation_form(
        cycle_id: UUID,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: EvaluationService = Depends(get_evaluation_service),  # noqa: B008
    ) -> EvaluationForm:
        return await service.get_evaluation_form(user_id, cycle_id)

    @router.put("/{cycle_id}/evaluation", response_model=EvaluationReceipt)
    async def submit_evaluation(
        cycle_id: UUID,
        body: EvaluationSubmission,
        response: Response,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: EvaluationService = Depends(get_evaluation_service),  # noqa: B008
    ) -> EvaluationReceipt:
        """Submit scores; 201 when the evaluation was created, 200 when replaced."""
        receipt = await service.submit_evaluation(user_id, cycle_id, body.scores)
        response.status_code = 201 if receipt.created else 200
        return receipt

    @router.get("/{cycle_id}/summary", response_model=CycleReport)
    async def get_cycle_summary(
        cycle_id: UUID,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: QualityReportService = Depends(get_report_service),  # noqa: B008
    ) -> CycleReport:
        return await service.get_cycle_summary(user_id, cycle_id)

    return router
