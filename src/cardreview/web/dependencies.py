"""FastAPI dependencies shared by the cardreview routers.

Services are built per request from the session factory and configuration
stored on app.state by the lifespan handler.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID

from fastapi import Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.config import CardReviewConfig
from cardreview.review.dimensions import DimensionService
from cardreview.review.evaluations import EvaluationService
from cardreview.review.lifecycle import ReviewCycleManager
from cardreview.review.reports import QualityReportService

USER_ID_HEADER = "X-User-Id"


def get_session_factory(request: Request) -> Callable[[], AsyncSession]:
    """Extract session factory from FastAPI app state."""
    return request.app.state.session_factory


def get_config(request: Request) -> CardReviewConfig:
    return request.app.state.config


def get_current_user_id(
    x_user_id: str | None = Header(default=None, alias=USER_ID_HEADER),
) -> UUID:
    """The authenticated caller, as passed by the upstream auth layer.

    Raises:
        HTTPException: 401 if the header is missing or not a UUID.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail=f"{USER_ID_HEADER} header required")
    try:
        return UUID(x_user_id.strip())
    except ValueError:
        raise HTTPException(status_code=401, detail=f"Invalid {USER_ID_HEADER} header")


def get_cycle_manager(request: Request) -> ReviewCycleManager:
    return ReviewCycleManager(get_session_factory(request), get_config(request).review)


def get_evaluation_service(request: Request) -> EvaluationService:
    return EvaluationService(get_session_factory(request), get_config(request).review)


def get_dimension_service(request: Request) -> DimensionService:
    return DimensionService(get_session_factory(request), get_config(request).review)


def get_report_service(request: Request) -> QualityReportService:
    return QualityReportService(get_session_factory(request), get_config(request).review)
