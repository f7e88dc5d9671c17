"""FastAPI route definitions for the cardreview API.

This module contains route handlers for card transitions, review cycles,
quality reports, dimension configuration and health checks.
"""

from __future__ import annotations

from cardreview.web.routes.cycles import EvaluationSubmission, create_cycles_router
from cardreview.web.routes.dimensions import (
    DimensionAudienceUpdate,
    DimensionCreate,
    DimensionReorder,
    create_dimensions_router,
)
from cardreview.web.routes.health import (
    HealthResponse,
    ReadinessResponse,
    create_health_router,
)
from cardreview.web.routes.quality import create_quality_router
from cardreview.web.routes.transitions import create_transitions_router

__all__ = [
    # Cycles
    "EvaluationSubmission",
    "create_cycles_router",
    # Dimensions
    "DimensionAudienceUpdate",
    "DimensionCreate",
    "DimensionReorder",
    "create_dimensions_router",
    # Health
    "HealthResponse",
    "ReadinessResponse",
    "create_health_router",
    # Quality
    "create_quality_router",
    # Transitions
    "create_transitions_router",
]
