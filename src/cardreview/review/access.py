"""Access gating for quality data.

Two independent predicates protect evaluation data: the caller's board
permission level and the caller's evaluator roles. Each gate checks exactly
one of them, and denial messages say which one failed so clients can tell
"not a rater" apart from "no permission".
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from uuid import UUID

import structlog
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.database.models.review import EvaluatorRole, ReviewDimension
from cardreview.database.models.user import PermissionLevel
from cardreview.database.queries.user import get_role_names_by_user_ids, get_user
from cardreview.errors import AccessDenialReason, AccessDeniedError, NotFoundError
from cardreview.review.roles import DEFAULT_ROLE_HINT_TABLE, RoleHintTable, resolve_evaluator_roles

logger = structlog.get_logger(__name__)

VIEWER_BLOCKED_MESSAGE = "Viewer users cannot access quality scores"
SUMMARY_ROLE_REQUIRED_MESSAGE = (
    "Lead, PO, or Head of Department role required to view quality summaries"
)
EVALUATOR_ROLE_REQUIRED_MESSAGE = (
    "Lead, PO, or Head of Department role required to submit evaluations"
)
SUPER_ADMIN_REQUIRED_MESSAGE = "Super Admin access required"


class QualityAccessContext(BaseModel):
    """Who is asking, as far as the access gates care.

    Attributes:
        user_id: Authenticated caller.
        permission: Board permission level.
        evaluator_roles: Roles derived from the caller's company role names.
    """

    model_config = ConfigDict(frozen=True)

    user_id: UUID
    permission: PermissionLevel
    evaluator_roles: frozenset[EvaluatorRole] = frozenset()


async def get_quality_access_context(
    session: AsyncSession,
    user_id: UUID,
    role_table: RoleHintTable = DEFAULT_ROLE_HINT_TABLE,
) -> QualityAccessContext:
    """Load the caller's permission and evaluator roles.

    Raises:
        NotFoundError: If the user does not exist.
    """
    user = await get_user(session, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return QualityAccessContext(
        user_id=user.id,
        permission=user.permission,
        evaluator_roles=resolve_evaluator_roles(user.role_names, role_table),
    )


def _deny(
    ctx: QualityAccessContext,
    reason: AccessDenialReason,
    message: str,
) -> AccessDeniedError:
    logger.info(
        "quality_access_denied",
        user_id=str(ctx.user_id),
        reason=reason.value,
        permission=ctx.permission.value,
    )
    return AccessDeniedError(reason, message)


def require_non_viewer_quality_access(ctx: QualityAccessContext) -> QualityAccessContext:
    """Allow any permission level above VIEWER; roles are not consulted."""
    if ctx.permission == PermissionLevel.VIEWER:
        raise _deny(ctx, AccessDenialReason.VIEWER_BLOCKED, VIEWER_BLOCKED_MESSAGE)
    return ctx


def has_quality_summary_access(evaluator_roles: Iterable[EvaluatorRole]) -> bool:
    return len(frozenset(evaluator_roles)) > 0


def require_quality_summary_access(ctx: QualityAccessContext) -> QualityAccessContext:
    """Allow holders of at least one evaluator role; permission is not consulted."""
    if not has_quality_summary_access(ctx.evaluator_roles):
        raise _deny(ctx, AccessDenialReason.ROLE_REQUIRED, SUMMARY_ROLE_REQUIRED_MESSAGE)
    return ctx


def require_evaluator_access(ctx: QualityAccessContext) -> QualityAccessContext:
    """Allow holders of at least one evaluator role; permission is not consulted."""
    if not has_quality_summary_access(ctx.evaluator_roles):
        raise _deny(ctx, AccessDenialReason.ROLE_REQUIRED, EVALUATOR_ROLE_REQUIRED_MESSAGE)
    return ctx


def require_super_admin_access(ctx: QualityAccessContext) -> QualityAccessContext:
    """Allow SUPER_ADMIN only; roles are not consulted."""
    if ctx.permission != PermissionLevel.SUPER_ADMIN:
        raise _deny(
            ctx, AccessDenialReason.SUPER_ADMIN_REQUIRED, SUPER_ADMIN_REQUIRED_MESSAGE
        )
    return ctx


def is_dimension_visible(
    dimension_roles: Iterable[EvaluatorRole],
    evaluator_roles: Iterable[EvaluatorRole] | None,
) -> bool:
    """Whether an evaluator with the given roles sees a dimension.

    ``evaluator_roles=None`` means no viewer filter applies. Unrestricted
    dimensions are visible to everyone; HEAD_OF_DEPARTMENT sees everything.
    """
    if evaluator_roles is None:
        return True
    viewer_roles = set(evaluator_roles)
    if EvaluatorRole.HEAD_OF_DEPARTMENT in viewer_roles:
        return True
    restricted_to = set(dimension_roles)
    if not restricted_to:
        return True
    return bool(restricted_to & viewer_roles)


def filter_visible_dimensions(
    dimensions: Sequence[ReviewDimension],
    evaluator_roles: Iterable[EvaluatorRole] | None,
) -> list[ReviewDimension]:
    """Keep the dimensions visible to the given roles, preserving order."""
    roles = None if evaluator_roles is None else frozenset(evaluator_roles)
    return [
        dimension
        for dimension in dimensions
        if is_dimension_visible(dimension.evaluator_roles, roles)
    ]


async def get_reviewer_roles_by_user_ids(
    session: AsyncSession,
    user_ids: Iterable[UUID],
    role_table: RoleHintTable = DEFAULT_ROLE_HINT_TABLE,
) -> dict[UUID, frozenset[EvaluatorRole]]:
    """Resolve evaluator roles for many users in one query."""
    role_names = await get_role_names_by_user_ids(session, user_ids)
    return {
        user_id: resolve_evaluator_roles(names, role_table)
        for user_id, names in role_names.items()
    }
