"""Error taxonomy for the review engine.

Every failure the engine reports to its callers is a ReviewEngineError
subclass carrying an ErrorKind. The web layer maps kinds to HTTP status
codes in one place; pure classifier and aggregation helpers never raise
these for malformed data, they return None or skip the entry instead.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Coarse error categories surfaced to API callers."""

    NOT_FOUND = "not_found"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class AccessDenialReason(str, Enum):
    """Why the access gate refused a request.

    Reasons:
        VIEWER_BLOCKED: Viewer-level users cannot see quality data.
        ROLE_REQUIRED: The caller holds no evaluator role.
        SUPER_ADMIN_REQUIRED: Only super admins may manage dimensions.
        CYCLE_LOCKED: The card is finished and its scores are immutable.
    """

    VIEWER_BLOCKED = "viewer_blocked"
    ROLE_REQUIRED = "role_required"
    SUPER_ADMIN_REQUIRED = "super_admin_required"
    CYCLE_LOCKED = "cycle_locked"


class ReviewEngineError(Exception):
    """Base class for review engine errors.

    Attributes:
        kind: Error category used to pick the HTTP status.
        message: User-safe description of the failure.
    """

    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NotFoundError(ReviewEngineError):
    """A referenced user, card, cycle, project or dimension does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, identifier: object | None = None) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} not found")


class AccessDeniedError(ReviewEngineError):
    """The access gate refused the request.

    Attributes:
        reason: Specific denial reason so clients can explain the refusal.
    """

    kind = ErrorKind.FORBIDDEN

    def __init__(self, reason: AccessDenialReason, message: str) -> None:
        self.reason = reason
        super().__init__(message)


class ReviewValidationError(ReviewEngineError):
    """Malformed score, audience, payload or configuration input."""

    kind = ErrorKind.VALIDATION


class CycleConflictError(ReviewEngineError):
    """A concurrent writer won a uniqueness race; the unit of work is retried."""

    kind = ErrorKind.CONFLICT


class TransitionFailedError(ReviewEngineError):
    """A card transition could not be committed; nothing was persisted.

    Attributes:
        card_id: Card whose transition failed.
        attempts: Number of attempts made before giving up.
    """

    kind = ErrorKind.INTERNAL

    def __init__(self, card_id: object, attempts: int, cause: str | None = None) -> None:
        self.card_id = card_id
        self.attempts = attempts
        msg = f"Review transition for card {card_id} failed after {attempts} attempt(s)"
        if cause:
            msg += f": {cause}"
        super().__init__(msg)
