"""Health check endpoints for cardreview.

- GET /health/       liveness
- GET /health/ready  readiness: the database answers queries against the
                     review schema
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview import __version__
from cardreview.database.models.review import ReviewCycle
from cardreview.logging import get_logger
from cardreview.web.dependencies import get_session_factory

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    """Health check response model.

    Attributes:
        status: Current health status ("ok")
        version: Running package version
    """

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model.

    Attributes:
        status: Current readiness status ("ok", "unhealthy")
        database: Database status ("connected", "disconnected")
    """

    status: str
    database: str


def create_health_router() -> APIRouter:
    """Create health check router with endpoints."""
    router = APIRouter(prefix="/health", tags=["health"])

    @router.get("/", response_model=HealthResponse)
    async def health() -> dict[str, Any]:
        return {"status": "ok", "version": __version__}

    @router.get("/ready", response_model=ReadinessResponse)
    async def readiness(
        session_factory: Callable[[], AsyncSession] = Depends(get_session_factory),  # noqa: B008
    ) -> dict[str, Any]:
        """Readiness check: run a trivial query against the review_cycles table."""
        try:
            async with session_factory() as session:
                await session.execute(select(ReviewCycle.id).limit(1))
        except SQLAlchemyError as exc:
            logger.warning("readiness_check_failed", error=str(exc))
            return {"status": "unhealthy", "database": "disconnected"}

        logger.debug("readiness_check_passed", database="connected")
        return {"status": "ok", "database": "connected"}

    return router
