"""Review dimension query functions for cardreview.

Provides async functions for the dimension catalog and its role
restrictions. Commit is handled by the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.review import DimensionRole, EvaluatorRole, ReviewDimension

logger = structlog.get_logger(__name__)


async def list_dimensions(
    session: AsyncSession,
    active_only: bool = False,
) -> list[ReviewDimension]:
    """List dimensions in display order.

    Args:
        session: Active async database session.
        active_only: If True, skip deactivated dimensions.
    """
    stmt = select(ReviewDimension)
    if active_only:
        stmt = stmt.where(ReviewDimension.is_active.is_(True))
    stmt = stmt.order_by(ReviewDimension.position.asc(), ReviewDimension.name.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_dimension(
    session: AsyncSession,
    dimension_id: UUID,
) -> ReviewDimension | None:
    """Retrieve a dimension by ID."""
    stmt = select(ReviewDimension).where(ReviewDimension.id == dimension_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_next_position(session: AsyncSession) -> int:
    """Return the position after the current last dimension (0 when empty)."""
    stmt = select(func.max(ReviewDimension.position))
    result = await session.execute(stmt)
    current = result.scalar_one_or_none()
    return 0 if current is None else int(current) + 1


async def create_dimension(
    session: AsyncSession,
    name: str,
    description: str | None,
    position: int,
    roles: Iterable[EvaluatorRole],
    is_active: bool = True,
) -> ReviewDimension:
    """Insert a dimension together with its role restrictions."""
    dimension = ReviewDimension(
        name=name,
        description=description,
        position=position,
        is_active=is_active,
        role_links=[DimensionRole(role=role) for role in sorted(set(roles), key=lambda r: r.value)],
    )
    session.add(dimension)
    await session.flush()
    await session.refresh(dimension)

    logger.info(
        "review_dimension_created",
        dimension_id=str(dimension.id),
        name=name,
        position=position,
        roles=[role.value for role in dimension.evaluator_roles],
    )
    return dimension


async def update_dimension(
    session: AsyncSession,
    dimension: ReviewDimension,
    updates: dict[str, Any],
) -> ReviewDimension:
    """Apply column updates (name, description, is_active) to a dimension."""
    for field, value in updates.items():
        setattr(dimension, field, value)
    await session.flush()

    logger.info(
        "review_dimension_updated",
        dimension_id=str(dimension.id),
        fields=sorted(updates),
    )
    return dimension


async def set_dimension_roles(
    session: AsyncSession,
    dimension: ReviewDimension,
    roles: Iterable[EvaluatorRole],
) -> ReviewDimension:
    """Replace the dimension's role restrictions."""
    dimension.role_links.clear()
    await session.flush()

    for role in sorted(set(roles), key=lambda r: r.value):
        dimension.role_links.append(DimensionRole(role=role))
    await session.flush()

    logger.info(
        "review_dimension_roles_set",
        dimension_id=str(dimension.id),
        roles=[role.value for role in dimension.evaluator_roles],
    )
    return dimension


async def reorder_dimensions(
    session: AsyncSession,
    ordered_ids: list[UUID],
) -> list[ReviewDimension]:
    """Assign positions 0..n-1 following ordered_ids.

    Callers validate that ordered_ids covers every dimension exactly once.
    """
    dimensions = {dimension.id: dimension for dimension in await list_dimensions(session)}
    for position, dimension_id in enumerate(ordered_ids):
        dimensions[dimension_id].position = position
    await session.flush()

    logger.info("review_dimensions_reordered", count=len(ordered_ids))
    return [dimensions[dimension_id] for dimension_id in ordered_ids]


async def delete_dimension(
    session: AsyncSession,
    dimension: ReviewDimension,
) -> None:
    """Hard-delete a dimension; its roles and scores cascade."""
    await session.delete(dimension)
    await session.flush()

    logger.info("review_dimension_deleted", dimension_id=str(dimension.id))
