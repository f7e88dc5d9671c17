"""User lookup query functions for cardreview.

Users and their company roles are owned by the board layer; the review
engine only reads them to resolve permissions and evaluator roles.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.user import CompanyRole, User, UserCompanyRole


async def get_user(
    session: AsyncSession,
    user_id: UUID,
) -> User | None:
    """Retrieve a user with their company roles."""
    stmt = select(User).where(User.id == user_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_role_names_by_user_ids(
    session: AsyncSession,
    user_ids: Iterable[UUID],
) -> dict[UUID, list[str]]:
    """Map each user id to their company role names.

    Users without any company role map to an empty list.
    """
    unique_ids = {user_id for user_id in user_ids if user_id is not None}
    if not unique_ids:
        return {}

    stmt = (
        select(UserCompanyRole.user_id, CompanyRole.name)
        .join(CompanyRole, CompanyRole.id == UserCompanyRole.company_role_id)
        .where(UserCompanyRole.user_id.in_(unique_ids))
    )
    result = await session.execute(stmt)

    names: dict[UUID, list[str]] = {user_id: [] for user_id in unique_ids}
    for user_id, role_name in result.all():
        names[user_id].append(role_name)
    return names
