"""Review dimension catalog management.

Any non-viewer may list dimensions; every mutation requires SUPER_ADMIN.
A dimension's audience (LEAD, PO or BOTH) is stored as evaluator role
restrictions; BOTH is stored as the LEAD and PRODUCT_OWNER pair.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.config import ReviewConfig
from cardreview.database.models.review import EvaluatorRole, ReviewDimension
from cardreview.database.queries.dimension import (
    create_dimension,
    delete_dimension,
    get_dimension,
    get_next_position,
    list_dimensions,
    reorder_dimensions,
    set_dimension_roles,
    update_dimension,
)
from cardreview.errors import NotFoundError, ReviewValidationError
from cardreview.review.access import (
    QualityAccessContext,
    get_quality_access_context,
    require_non_viewer_quality_access,
    require_super_admin_access,
)
from cardreview.review.roles import RoleHintTable, role_hint_table_from_config

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]


class DimensionAudience(str, Enum):
    """Which evaluators a dimension is meant for."""

    LEAD = "LEAD"
    PRODUCT_OWNER = "PO"
    BOTH = "BOTH"


_AUDIENCE_ALIASES = {
    "LEAD": DimensionAudience.LEAD,
    "PO": DimensionAudience.PRODUCT_OWNER,
    "PRODUCT_OWNER": DimensionAudience.PRODUCT_OWNER,
    "BOTH": DimensionAudience.BOTH,
}


def parse_audience(value: Any) -> DimensionAudience | None:
    """Parse an audience label; ``PO`` and ``PRODUCT_OWNER`` both mean PO."""
    if isinstance(value, DimensionAudience):
        return value
    if not isinstance(value, str):
        return None
    return _AUDIENCE_ALIASES.get(value.strip().upper())


def roles_for_audience(audience: DimensionAudience) -> frozenset[EvaluatorRole]:
    if audience == DimensionAudience.LEAD:
        return frozenset({EvaluatorRole.LEAD})
    if audience == DimensionAudience.PRODUCT_OWNER:
        return frozenset({EvaluatorRole.PRODUCT_OWNER})
    return frozenset({EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER})


def audience_from_roles(roles: Iterable[EvaluatorRole]) -> DimensionAudience:
    """Audience matching stored restrictions; unrestricted reads as BOTH."""
    role_set = set(roles)
    has_lead = EvaluatorRole.LEAD in role_set
    has_po = EvaluatorRole.PRODUCT_OWNER in role_set
    if has_lead and not has_po:
        return DimensionAudience.LEAD
    if has_po and not has_lead:
        return DimensionAudience.PRODUCT_OWNER
    return DimensionAudience.BOTH


class DimensionView(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    position: int
    is_active: bool
    audience: DimensionAudience
    roles: list[EvaluatorRole]

    @classmethod
    def from_orm_dimension(cls, dimension: ReviewDimension) -> DimensionView:
        roles = dimension.evaluator_roles
        return cls(
            id=dimension.id,
            name=dimension.name,
            description=dimension.description,
            position=dimension.position,
            is_active=dimension.is_active,
            audience=audience_from_roles(roles),
            roles=sorted(roles, key=lambda r: r.value),
        )


def _clean_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ReviewValidationError("Dimension name is required")
    return value.strip()


def _clean_description(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ReviewValidationError("Dimension description must be a string")
    return value.strip() or None


def _require_audience(value: Any) -> DimensionAudience:
    audience = parse_audience(value)
    if audience is None:
        raise ReviewValidationError("audience must be one of LEAD, PO, BOTH")
    return audience


def _clean_updates(changes: dict[str, Any]) -> dict[str, Any]:
    updates: dict[str, Any] = {}
    if "name" in changes:
        updates["name"] = _clean_name(changes["name"])
    if "description" in changes:
        updates["description"] = _clean_description(changes["description"])
    if "is_active" in changes:
        if not isinstance(changes["is_active"], bool):
            raise ReviewValidationError("is_active must be a boolean")
        updates["is_active"] = changes["is_active"]
    if not updates:
        raise ReviewValidationError("No valid fields to update")
    return updates


def _parse_reorder_ids(raw: Any, existing: Iterable[UUID]) -> list[UUID]:
    if not isinstance(raw, list) or not raw:
        raise ReviewValidationError("dimensionIds must be a non-empty array")

    ordered: list[UUID] = []
    for entry in raw:
        if isinstance(entry, UUID):
            ordered.append(entry)
            continue
        if not isinstance(entry, str) or not entry.strip():
            raise ReviewValidationError("dimensionIds must contain non-empty ids")
        try:
            ordered.append(uuid.UUID(entry.strip()))
        except ValueError as e:
            raise ReviewValidationError(f"Unknown dimension id: {entry}") from e

    if len(set(ordered)) != len(ordered):
        raise ReviewValidationError("dimensionIds must not contain duplicates")

    known = set(existing)
    unknown = [dimension_id for dimension_id in ordered if dimension_id not in known]
    if unknown:
        raise ReviewValidationError(f"Unknown dimension id: {unknown[0]}")
    if len(ordered) != len(known):
        raise ReviewValidationError("dimensionIds must include every dimension exactly once")
    return ordered


class DimensionService:
    """Dimension catalog operations on behalf of an authenticated user.

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
        self._logger = logger.bind(component="DimensionService")

    async def _super_admin(self, session: AsyncSession, user_id: UUID) -> QualityAccessContext:
        ctx = await get_quality_access_context(session, user_id, self.role_table)
        return require_super_admin_access(ctx)

    async def _load(self, session: AsyncSession, dimension_id: UUID) -> ReviewDimension:
        dimension = await get_dimension(session, dimension_id)
        if dimension is None:
            raise NotFoundError("Review dimension", dimension_id)
        return dimension

    async def list_dimensions(
        self,
        user_id: UUID,
        include_inactive: bool = False,
    ) -> list[DimensionView]:
        """List the catalog in display order (non-viewers only)."""
        async with self.session_factory() as session:
            ctx = await get_quality_access_context(session, user_id, self.role_table)
            require_non_viewer_quality_access(ctx)
            dimensions = await list_dimensions(session, active_only=not include_inactive)
            return [DimensionView.from_orm_dimension(d) for d in dimensions]

    async def create_dimension(
        self,
        user_id: UUID,
        name: Any,
        description: Any = None,
        audience: Any = DimensionAudience.BOTH,
    ) -> DimensionView:
        """Append a new active dimension after the current last one.

        The caller is checked before the payload.
        """
        async with self.session_factory() as session:
            async with session.begin():
                await self._super_admin(session, user_id)
                clean_name = _clean_name(name)
                clean_description = _clean_description(description)
                parsed_audience = _require_audience(audience)
                position = await get_next_position(session)
                dimension = await create_dimension(
                    session,
                    name=clean_name,
                    description=clean_description,
                    position=position,
                    roles=roles_for_audience(parsed_audience),
                )
                view = DimensionView.from_orm_dimension(dimension)

        self._logger.info("dimension_created", dimension_id=str(view.id), user_id=str(user_id))
        return view

    async def update_dimension(
        self,
        user_id: UUID,
        dimension_id: UUID,
        changes: dict[str, Any],
    ) -> DimensionView:
        """Change name, description or is_active; at least one is required."""
        async with self.session_factory() as session:
            async with session.begin():
                await self._super_admin(session, user_id)
                updates = _clean_updates(changes)
                dimension = await self._load(session, dimension_id)
                dimension = await update_dimension(session, dimension, updates)
                view = DimensionView.from_orm_dimension(dimension)

        self._logger.info(
            "dimension_updated",
            dimension_id=str(dimension_id),
            user_id=str(user_id),
            fields=sorted(updates),
        )
        return view

    async def set_audience(
        self,
        user_id: UUID,
        dimension_id: UUID,
        audience: Any,
    ) -> DimensionView:
        async with self.session_factory() as session:
            async with session.begin():
                await self._super_admin(session, user_id)
                parsed_audience = _require_audience(audience)
                dimension = await self._load(session, dimension_id)
                dimension = await set_dimension_roles(
                    session, dimension, roles_for_audience(parsed_audience)
                )
                view = DimensionView.from_orm_dimension(dimension)

        self._logger.info(
            "dimension_audience_set",
            dimension_id=str(dimension_id),
            user_id=str(user_id),
            audience=parsed_audience.value,
        )
        return view

    async def reorder(self, user_id: UUID, raw_ids: Any) -> list[DimensionView]:
        """Renumber positions 0..n-1 in the given order.

        The list must name every dimension (active or not) exactly once.
        """
        async with self.session_factory() as session:
            async with session.begin():
                await self._super_admin(session, user_id)
                existing = await list_dimensions(session)
                ordered = _parse_reorder_ids(raw_ids, (d.id for d in existing))
                dimensions = await reorder_dimensions(session, ordered)
                views = [DimensionView.from_orm_dimension(d) for d in dimensions]

        self._logger.info("dimensions_reordered", user_id=str(user_id), count=len(views))
        return views

    async def delete(self, user_id: UUID, dimension_id: UUID, hard: bool = False) -> None:
        """Deactivate a dimension, or remove it with its scores when ``hard``."""
        async with self.session_factory() as session:
            async with session.begin():
                await self._super_admin(session, user_id)
                dimension = await self._load(session, dimension_id)
                if hard:
                    await delete_dimension(session, dimension)
                else:
                    await update_dimension(session, dimension, {"is_active": False})

        self._logger.info(
            "dimension_deleted",
            dimension_id=str(dimension_id),
            user_id=str(user_id),
            hard=hard,
        )
