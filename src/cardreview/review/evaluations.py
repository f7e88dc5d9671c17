"""Evaluation submission for review cycles.

An evaluator scores the dimensions visible to their roles on one cycle. A
reviewer holds at most one evaluation per cycle; submitting again replaces
its scores (last write wins). Locked cycles reject submissions.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

import structlog
from pydantic import BaseModel, Field
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardreview.config import ReviewConfig
from cardreview.database.models.base import ensure_utc
from cardreview.database.models.review import (
    Evaluation,
    EvaluatorRole,
    ReviewCycle,
    ReviewDimension,
    ScoreValue,
)
from cardreview.database.queries.board import get_card, get_cards_by_ids
from cardreview.database.queries.cycle import get_cycle, list_unreviewed_cycles
from cardreview.database.queries.dimension import list_dimensions
from cardreview.database.queries.evaluation import (
    create_evaluation,
    get_evaluation,
    replace_scores,
)
from cardreview.errors import (
    AccessDenialReason,
    AccessDeniedError,
    CycleConflictError,
    NotFoundError,
    ReviewValidationError,
)
from cardreview.review.access import (
    QualityAccessContext,
    filter_visible_dimensions,
    get_quality_access_context,
    require_evaluator_access,
)
from cardreview.review.roles import RoleHintTable, role_hint_table_from_config

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[], AsyncSession]

CYCLE_LOCKED_MESSAGE = "Card is completed. Evaluations are locked"
NO_ELIGIBLE_DIMENSIONS_MESSAGE = (
    "No eligible review dimensions are configured for this card and evaluator role"
)

ParsedScores = list[tuple[UUID, ScoreValue]]


# ---------------------------------------------------------------------------
# Payload parsing
# ---------------------------------------------------------------------------


def parse_score_value(value: Any) -> ScoreValue | None:
    """Parse a score label, ignoring case and surrounding whitespace."""
    if not isinstance(value, str):
        return None
    try:
        return ScoreValue(value.strip().upper())
    except ValueError:
        return None


def _parse_dimension_id(entry: Mapping[str, Any]) -> UUID | None:
    raw = entry.get("dimension_id", entry.get("dimensionId"))
    if isinstance(raw, UUID):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return uuid.UUID(raw.strip())
    except ValueError:
        return None


def parse_scores_payload(raw: Any) -> ParsedScores:
    """Validate a raw list of ``{dimension_id, score}`` entries.

    ``dimensionId`` is accepted as an alias of ``dimension_id``.

    Raises:
        ReviewValidationError: On the first malformed entry.
    """
    if not isinstance(raw, list) or not raw:
        raise ReviewValidationError("scores must be a non-empty array")

    parsed: ParsedScores = []
    seen: set[UUID] = set()
    for entry in raw:
        if not isinstance(entry, Mapping):
            raise ReviewValidationError("Each score entry must be an object")

        dimension_id = _parse_dimension_id(entry)
        if dimension_id is None:
            raise ReviewValidationError("Each score entry requires a valid dimensionId")
        if dimension_id in seen:
            raise ReviewValidationError(
                f"Duplicate dimensionId in scores payload: {dimension_id}"
            )

        score = parse_score_value(entry.get("score"))
        if score is None:
            raise ReviewValidationError(f"Invalid score value for dimension {dimension_id}")

        seen.add(dimension_id)
        parsed.append((dimension_id, score))
    return parsed


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class DimensionInfo(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    position: int


class ScoreEntry(BaseModel):
    dimension_id: UUID
    score: ScoreValue


class SubmittedEvaluation(BaseModel):
    id: UUID
    review_cycle_id: UUID
    reviewer_id: UUID
    submitted_at: datetime
    scores: list[ScoreEntry] = Field(default_factory=list)

    @classmethod
    def from_orm_evaluation(cls, evaluation: Evaluation) -> SubmittedEvaluation:
        return cls(
            id=evaluation.id,
            review_cycle_id=evaluation.review_cycle_id,
            reviewer_id=evaluation.reviewer_id,
            submitted_at=ensure_utc(evaluation.submitted_at),
            scores=[
                ScoreEntry(dimension_id=score.dimension_id, score=score.score)
                for score in evaluation.scores
            ],
        )


class EvaluationForm(BaseModel):
    """What an evaluator needs to fill in (or revise) their evaluation."""

    cycle_id: UUID
    cycle_number: int
    locked_at: datetime | None
    card_id: UUID
    card_title: str
    board_id: UUID
    evaluator_roles: list[EvaluatorRole]
    can_edit: bool
    existing_evaluation: SubmittedEvaluation | None = None
    dimensions: list[DimensionInfo] = Field(default_factory=list)


class EvaluationReceipt(BaseModel):
    """Outcome of a submission."""

    evaluation: SubmittedEvaluation
    cycle_number: int
    card_id: UUID
    card_title: str
    score_count: int
    created: bool


class PendingEvaluation(BaseModel):
    cycle_id: UUID
    cycle_number: int
    opened_at: datetime
    card_id: UUID
    card_title: str
    board_id: UUID
    eligible_dimension_count: int


def _dimension_info(dimensions: list[ReviewDimension]) -> list[DimensionInfo]:
    return [
        DimensionInfo(
            id=dimension.id,
            name=dimension.name,
            description=dimension.description,
            position=dimension.position,
        )
        for dimension in sorted(dimensions, key=lambda d: d.position)
    ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EvaluationService:
    """Reads and writes evaluations on behalf of an authenticated user.

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
        self._logger = logger.bind(component="EvaluationService")

    async def _evaluator(self, session: AsyncSession, user_id: UUID) -> QualityAccessContext:
        ctx = await get_quality_access_context(session, user_id, self.role_table)
        return require_evaluator_access(ctx)

    async def _eligible_dimensions(
        self,
        session: AsyncSession,
        ctx: QualityAccessContext,
    ) -> list[ReviewDimension]:
        active = await list_dimensions(session, active_only=True)
        return filter_visible_dimensions(active, ctx.evaluator_roles)

    async def _load_cycle(self, session: AsyncSession, cycle_id: UUID) -> ReviewCycle:
        cycle = await get_cycle(session, cycle_id)
        if cycle is None:
            raise NotFoundError("Review cycle", cycle_id)
        return cycle

    async def get_evaluation_form(self, user_id: UUID, cycle_id: UUID) -> EvaluationForm:
        """Eligible dimensions and the caller's existing evaluation for a cycle.

        Raises:
            NotFoundError: If the user, cycle or card does not exist.
            AccessDeniedError: If the caller holds no evaluator role.
        """
        async with self.session_factory() as session:
            ctx = await self._evaluator(session, user_id)
            cycle = await self._load_cycle(session, cycle_id)
            card = await get_card(session, cycle.card_id, include_archived=True)
            if card is None:
                raise NotFoundError("Card", cycle.card_id)
            eligible = await self._eligible_dimensions(session, ctx)
            existing = await get_evaluation(session, cycle.id, user_id)

            return EvaluationForm(
                cycle_id=cycle.id,
                cycle_number=cycle.cycle_number,
                locked_at=ensure_utc(cycle.locked_at) if cycle.locked_at else None,
                card_id=card.id,
                card_title=card.title,
                board_id=card.board_list.board_id,
                evaluator_roles=sorted(ctx.evaluator_roles, key=lambda r: r.value),
                can_edit=cycle.locked_at is None and bool(eligible),
                existing_evaluation=(
                    SubmittedEvaluation.from_orm_evaluation(existing) if existing else None
                ),
                dimensions=_dimension_info(eligible),
            )

    async def submit_evaluation(
        self,
        user_id: UUID,
        cycle_id: UUID,
        raw_scores: Any,
        now: datetime | None = None,
    ) -> EvaluationReceipt:
        """Create or replace the caller's evaluation of a cycle.

        Checks run in order: evaluator role, payload shape, cycle exists,
        cycle unlocked, caller has eligible dimensions, every scored
        dimension is eligible. A concurrent first submission by the same
        reviewer is absorbed by retrying once as a replacement.

        Raises:
            AccessDeniedError: No evaluator role, or the cycle is locked.
            ReviewValidationError: Malformed payload or ineligible dimension.
            NotFoundError: Unknown user, cycle or card.
            CycleConflictError: The retry lost a race as well.
        """
        now = ensure_utc(now or datetime.now(timezone.utc))

        try:
            receipt = await self._submit_once(user_id, cycle_id, raw_scores, now)
        except IntegrityError:
            self._logger.warning(
                "evaluation_submit_conflict",
                cycle_id=str(cycle_id),
                reviewer_id=str(user_id),
            )
            try:
                receipt = await self._submit_once(user_id, cycle_id, raw_scores, now)
            except IntegrityError as e:
                raise CycleConflictError(
                    "Evaluation was changed concurrently; please resubmit"
                ) from e

        self._logger.info(
            "evaluation_submitted",
            cycle_id=str(cycle_id),
            reviewer_id=str(user_id),
            evaluation_id=str(receipt.evaluation.id),
            score_count=receipt.score_count,
            created=receipt.created,
        )
        return receipt

    async def _submit_once(
        self,
        user_id: UUID,
        cycle_id: UUID,
        raw_scores: Any,
        now: datetime,
    ) -> EvaluationReceipt:
        async with self.session_factory() as session:
            async with session.begin():
                return await self._submit(session, user_id, cycle_id, raw_scores, now)

    async def _submit(
        self,
        session: AsyncSession,
        user_id: UUID,
        cycle_id: UUID,
        raw_scores: Any,
        now: datetime,
    ) -> EvaluationReceipt:
        ctx = await self._evaluator(session, user_id)
        parsed = parse_scores_payload(raw_scores)

        cycle = await self._load_cycle(session, cycle_id)
        if cycle.locked_at is not None:
            self._logger.info(
                "evaluation_rejected_locked", cycle_id=str(cycle_id), reviewer_id=str(user_id)
            )
            raise AccessDeniedError(AccessDenialReason.CYCLE_LOCKED, CYCLE_LOCKED_MESSAGE)

        eligible = await self._eligible_dimensions(session, ctx)
        if not eligible:
            raise ReviewValidationError(NO_ELIGIBLE_DIMENSIONS_MESSAGE)

        eligible_ids = {dimension.id for dimension in eligible}
        for dimension_id, _ in parsed:
            if dimension_id not in eligible_ids:
                raise ReviewValidationError(
                    f"Dimension {dimension_id} is not eligible for this evaluator on this card"
                )

        card = await get_card(session, cycle.card_id, include_archived=True)
        if card is None:
            raise NotFoundError("Card", cycle.card_id)

        existing = await get_evaluation(session, cycle.id, user_id)
        if existing is None:
            evaluation = await create_evaluation(session, cycle.id, user_id, parsed, now)
        else:
            evaluation = await replace_scores(session, existing, parsed, now)

        return EvaluationReceipt(
            evaluation=SubmittedEvaluation.from_orm_evaluation(evaluation),
            cycle_number=cycle.cycle_number,
            card_id=card.id,
            card_title=card.title,
            score_count=len(parsed),
            created=existing is None,
        )

    async def list_pending_evaluations(self, user_id: UUID) -> list[PendingEvaluation]:
        """Unlocked cycles on live cards the caller still has to evaluate.

        Empty when the caller has no eligible dimension at all.
        """
        async with self.session_factory() as session:
            ctx = await self._evaluator(session, user_id)
            eligible = await self._eligible_dimensions(session, ctx)
            if not eligible:
                return []

            cycles = await list_unreviewed_cycles(session, user_id)
            cards = await get_cards_by_ids(session, [cycle.card_id for cycle in cycles])

            pending = []
            for cycle in cycles:
                card = cards.get(cycle.card_id)
                if card is None:
                    continue
                pending.append(
                    PendingEvaluation(
                        cycle_id=cycle.id,
                        cycle_number=cycle.cycle_number,
                        opened_at=ensure_utc(cycle.opened_at),
                        card_id=card.id,
                        card_title=card.title,
                        board_id=card.board_list.board_id,
                        eligible_dimension_count=len(eligible),
                    )
                )
            return pending
