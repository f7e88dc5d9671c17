"""Review dimension configuration endpoints for cardreview.

Listing is open to non-viewers; every other route requires SUPER_ADMIN.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field

from cardreview.review.dimensions import DimensionService, DimensionView
from cardreview.web.dependencies import get_current_user_id, get_dimension_service


class DimensionCreate(BaseModel):
    """Request schema for creating a dimension."""

    name: Any = None
    description: Any = None
    audience: Any = "BOTH"


class DimensionAudienceUpdate(BaseModel):
    audience: Any = None


class DimensionReorder(BaseModel):
    dimension_ids: Any = Field(default=None, alias="dimensionIds")

    model_config = {"populate_by_name": True}


def create_dimensions_router() -> APIRouter:
    """Create router for dimension configuration.

    Routes:
        GET /dimensions - List dimensions in display order
        POST /dimensions - Create a dimension
        PUT /dimensions/reorder - Renumber every dimension
        PATCH /dimensions/{dimension_id} - Update name, description or is_active
        PUT /dimensions/{dimension_id}/audience - Set LEAD, PO or BOTH
        DELETE /dimensions/{dimension_id} - Deactivate (or ?hard=true to remove)
    """
    router = APIRouter(prefix="/dimensions", tags=["dimensions"])

    @router.get("", response_model=list[DimensionView])
    async def list_dimensions(
        include_inactive: bool = False,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> list[DimensionView]:
        return await service.list_dimensions(user_id, include_inactive=include_inactive)

    @router.post("", response_model=DimensionView, status_code=201)
    async def create_dimension(
        body: DimensionCreate,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> DimensionView:
        return await service.create_dimension(
            user_id, body.name, description=body.description, audience=body.audience
        )

    @router.put("/reorder", response_model=list[DimensionView])
    async def reorder_dimensions(
        body: DimensionReorder,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> list[DimensionView]:
        return await service.reorder(user_id, body.dimension_ids)

    @router.patch("/{dimension_id}", response_model=DimensionView)
    async def update_dimension(
        dimension_id: UUID,
        body: dict[str, Any],
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> DimensionView:
        changes = dict(body)
        if "isActive" in changes and "is_active" not in changes:
            changes["is_active"] = changes.pop("isActive")
        return await service.update_dimension(user_id, dimension_id, changes)

    @router.put("/{dimension_id}/audience", response_model=DimensionView)
    async def set_dimension_audience(
        dimension_id: UUID,
        body: DimensionAudienceUpdate,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> DimensionView:
        return await service.set_audience(user_id, dimension_id, body.audience)

    @router.delete("/{dimension_id}", status_code=204)
    async def delete_dimension(
        dimension_id: UUID,
        hard: bool = False,
        user_id: UUID = Depends(get_current_user_id),  # noqa: B008
        service: DimensionService = Depends(get_dimension_service),  # noqa: B008
    ) -> Response:
        await service.delete(user_id, dimension_id, hard=hard)
        return Response(status_code=204)

    return router
