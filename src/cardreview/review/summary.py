"""Quality summary builders.

Pure functions turning loaded review cycles into report models:

- build_cycle_aggregate_summary: one cycle, per-dimension averages and
  cross-role divergence flags.
- build_project_quality_summary: one board's finalized cards, with tier
  distribution, per-dimension rollups, churn metrics and a weekly trend.
- build_final_quality_by_card: card id to the quality of its final cycle.

Builders never touch the database; callers load cycles (evaluations and
scores come along through selectin relationships) and pass them in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timedelta
from uuid import UUID

from pydantic import BaseModel, Field

from cardreview.database.models.base import ensure_utc
from cardreview.database.models.board import Board, Card
from cardreview.database.models.review import (
    EvaluatorRole,
    ReviewCycle,
    ReviewDimension,
    ScoreValue,
)
from cardreview.review.aggregation import (
    ConfidenceLevel,
    QualityTier,
    ScoreInput,
    aggregate_dimension_scores,
    compute_overall_average,
    confidence_from_sample_size,
    quality_tier_from_average,
    score_label_from_average,
    score_to_numeric,
    to_rounded,
)
from cardreview.review.divergence import (
    DEFAULT_DIVERGENCE_THRESHOLD,
    RoleDimensionAverage,
    calculate_pairwise_divergence,
)

DEFAULT_HIGH_CHURN_THRESHOLD = 3


# ---------------------------------------------------------------------------
# Report models
# ---------------------------------------------------------------------------


class DimensionSummary(BaseModel):
    """Aggregate of one dimension within a cycle or a project."""

    dimension_id: UUID
    name: str
    description: str | None = None
    position: int
    average: float | None
    score_label: ScoreValue | None
    count: int
    confidence: ConfidenceLevel


class CycleDivergenceFlag(BaseModel):
    """A divergence flag carrying the dimension's display name."""

    dimension_id: UUID
    dimension_name: str
    role_a: EvaluatorRole
    role_b: EvaluatorRole
    average_a: float
    average_b: float
    difference: float


class CycleAggregateSummary(BaseModel):
    """Everything a reader needs to judge one review cycle."""

    cycle_id: UUID
    card_id: UUID
    cycle_number: int
    opened_at: datetime
    closed_at: datetime | None
    is_final: bool
    locked_at: datetime | None
    evaluations_count: int
    dimensions: list[DimensionSummary] = Field(default_factory=list)
    overall_average: float | None
    quality_tier: QualityTier
    divergence_flags: list[CycleDivergenceFlag] = Field(default_factory=list)

    def rounded(self, digits: int = 2) -> CycleAggregateSummary:
        """Copy with every average and difference rounded for display."""
        return self.model_copy(
            update={
                "overall_average": to_rounded(self.overall_average, digits),
                "dimensions": [
                    d.model_copy(update={"average": to_rounded(d.average, digits)})
                    for d in self.dimensions
                ],
                "divergence_flags": [
                    f.model_copy(
                        update={
                            "average_a": to_rounded(f.average_a, digits),
                            "average_b": to_rounded(f.average_b, digits),
                            "difference": to_rounded(f.difference, digits),
                        }
                    )
                    for f in self.divergence_flags
                ],
            }
        )


class CardFinalQuality(BaseModel):
    overall_average: float | None
    quality_tier: QualityTier


class ProjectTotals(BaseModel):
    done_card_count: int
    finalized_card_count: int
    overall_average: float | None
    overall_quality_tier: QualityTier


class WeeklyTrendPoint(BaseModel):
    """Quality of the cycles finalized in one ISO week (keyed by its Monday)."""

    week_start: str
    average_quality: float | None
    sample_size: int
    tier_counts: dict[QualityTier, int]


class IterationMetrics(BaseModel):
    average_cycles_to_done: float | None
    high_churn_threshold: int
    high_churn_count: int
    high_churn_rate: float | None


class ProjectQualitySummary(BaseModel):
    """Quality report of one board (project). Numbers are rounded to 2 digits."""

    project_id: UUID
    project_name: str
    totals: ProjectTotals
    tier_distribution: dict[QualityTier, int]
    trend: list[WeeklyTrendPoint] = Field(default_factory=list)
    per_dimension: list[DimensionSummary] = Field(default_factory=list)
    iteration_metrics: IterationMetrics


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _empty_tier_counts() -> dict[QualityTier, int]:
    return {tier: 0 for tier in QualityTier}


def _flatten_scores(cycle: ReviewCycle) -> list[ScoreInput]:
    return [
        ScoreInput(dimension_id=score.dimension_id, score=score.score)
        for evaluation in cycle.evaluations
        for score in evaluation.scores
    ]


def _dimension_summaries(
    dimensions: Iterable[ReviewDimension],
    scores: Iterable[ScoreInput],
) -> list[DimensionSummary]:
    aggregates = {agg.dimension_id: agg for agg in aggregate_dimension_scores(scores)}
    summaries = []
    for dimension in sorted(dimensions, key=lambda d: d.position):
        aggregate = aggregates.get(dimension.id)
        average = aggregate.average if aggregate else None
        count = aggregate.count if aggregate else 0
        summaries.append(
            DimensionSummary(
                dimension_id=dimension.id,
                name=dimension.name,
                description=dimension.description,
                position=dimension.position,
                average=average,
                score_label=score_label_from_average(average),
                count=count,
                confidence=confidence_from_sample_size(count),
            )
        )
    return summaries


def _role_dimension_averages(
    cycle: ReviewCycle,
    reviewer_roles_by_user_id: Mapping[UUID, Iterable[EvaluatorRole]],
) -> list[RoleDimensionAverage]:
    # A reviewer holding several roles contributes to each of them.
    buckets: dict[tuple[UUID, EvaluatorRole], list[int]] = {}
    for evaluation in cycle.evaluations:
        roles = reviewer_roles_by_user_id.get(evaluation.reviewer_id, ())
        for score in evaluation.scores:
            numeric = score_to_numeric(score.score)
            if numeric is None:
                continue
            for role in roles:
                buckets.setdefault((score.dimension_id, role), []).append(numeric)

    return [
        RoleDimensionAverage(
            dimension_id=dimension_id,
            role=role,
            average=sum(values) / len(values),
            count=len(values),
        )
        for (dimension_id, role), values in buckets.items()
    ]


def week_start_key(value: datetime) -> str:
    """ISO date of the Monday (UTC) of the week containing ``value``."""
    day = ensure_utc(value).date()
    return (day - timedelta(days=day.weekday())).isoformat()


def finalized_at(cycle: ReviewCycle) -> datetime:
    """When a final cycle was finalized: lock time, else close, else open."""
    return ensure_utc(cycle.locked_at or cycle.closed_at or cycle.opened_at)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def build_cycle_aggregate_summary(
    cycle: ReviewCycle,
    dimensions: Sequence[ReviewDimension],
    reviewer_roles_by_user_id: Mapping[UUID, Iterable[EvaluatorRole]] | None = None,
    divergence_threshold: float = DEFAULT_DIVERGENCE_THRESHOLD,
) -> CycleAggregateSummary:
    """Summarize one cycle over the given dimensions.

    Args:
        cycle: Cycle with its evaluations and scores loaded.
        dimensions: Dimensions to report, in any order; output follows
            their position. Scores for other dimensions are ignored except
            in divergence detection.
        reviewer_roles_by_user_id: Evaluator roles of each reviewer; without
            it no divergence flags are raised.
        divergence_threshold: Minimum gap between two role averages to flag.
    """
    dimension_summaries = _dimension_summaries(dimensions, _flatten_scores(cycle))
    overall_average = compute_overall_average(d.average for d in dimension_summaries)

    names = {dimension.id: dimension.name for dimension in dimensions}
    flags = calculate_pairwise_divergence(
        _role_dimension_averages(cycle, reviewer_roles_by_user_id or {}),
        threshold=divergence_threshold,
    )

    return CycleAggregateSummary(
        cycle_id=cycle.id,
        card_id=cycle.card_id,
        cycle_number=cycle.cycle_number,
        opened_at=ensure_utc(cycle.opened_at),
        closed_at=ensure_utc(cycle.closed_at) if cycle.closed_at else None,
        is_final=cycle.is_final,
        locked_at=ensure_utc(cycle.locked_at) if cycle.locked_at else None,
        evaluations_count=len(cycle.evaluations),
        dimensions=dimension_summaries,
        overall_average=overall_average,
        quality_tier=quality_tier_from_average(overall_average),
        divergence_flags=[
            CycleDivergenceFlag(
                dimension_id=flag.dimension_id,
                dimension_name=names.get(flag.dimension_id, str(flag.dimension_id)),
                role_a=flag.role_a,
                role_b=flag.role_b,
                average_a=flag.average_a,
                average_b=flag.average_b,
                difference=flag.difference,
            )
            for flag in flags
        ],
    )


def build_final_quality_by_card(cycles: Iterable[ReviewCycle]) -> dict[UUID, CardFinalQuality]:
    """Map card ids to the overall quality of their final cycle.

    Every scored dimension counts, active or not. Non-final cycles are
    skipped.
    """
    by_card: dict[UUID, CardFinalQuality] = {}
    for cycle in cycles:
        if not cycle.is_final:
            continue
        averages = [agg.average for agg in aggregate_dimension_scores(_flatten_scores(cycle))]
        overall = compute_overall_average(averages)
        by_card[cycle.card_id] = CardFinalQuality(
            overall_average=overall,
            quality_tier=quality_tier_from_average(overall),
        )
    return by_card


def _weekly_trend(
    finalized: Sequence[tuple[ReviewCycle, CycleAggregateSummary]],
) -> list[WeeklyTrendPoint]:
    buckets: dict[str, tuple[list[float], dict[QualityTier, int]]] = {}
    for cycle, summary in finalized:
        averages, tiers = buckets.setdefault(
            week_start_key(finalized_at(cycle)), ([], _empty_tier_counts())
        )
        if summary.overall_average is not None:
            averages.append(summary.overall_average)
        tiers[summary.quality_tier] += 1

    return [
        WeeklyTrendPoint(
            week_start=week,
            average_quality=to_rounded(compute_overall_average(averages)),
            sample_size=len(averages),
            tier_counts=tiers,
        )
        for week, (averages, tiers) in sorted(buckets.items())
    ]


def build_project_quality_summary(
    board: Board,
    done_cards: Sequence[Card],
    final_cycles: Sequence[ReviewCycle],
    dimensions: Sequence[ReviewDimension],
    high_churn_threshold: int = DEFAULT_HIGH_CHURN_THRESHOLD,
) -> ProjectQualitySummary:
    """Summarize the quality of one board's finished work.

    Args:
        board: The board reported as the project.
        done_cards: Live cards sitting in a done list.
        final_cycles: Final, locked cycles of the board's live cards.
        dimensions: Active dimensions, reported even when never scored.
        high_churn_threshold: Cycle count at or above which a card churned.
    """
    summaries = [
        (cycle, build_cycle_aggregate_summary(cycle, dimensions)) for cycle in final_cycles
    ]

    tier_by_card = {summary.card_id: summary.quality_tier for _, summary in summaries}
    tier_distribution = _empty_tier_counts()
    for card in done_cards:
        tier_distribution[tier_by_card.get(card.id, QualityTier.UNSCORED)] += 1

    all_scores = [score for cycle in final_cycles for score in _flatten_scores(cycle)]
    per_dimension = [
        summary.model_copy(update={"average": to_rounded(summary.average)})
        for summary in _dimension_summaries(dimensions, all_scores)
    ]

    overall_average = compute_overall_average(s.overall_average for _, s in summaries)
    finalized_count = len(summaries)
    total_cycles = sum(s.cycle_number for _, s in summaries)
    high_churn_count = sum(1 for _, s in summaries if s.cycle_number >= high_churn_threshold)

    return ProjectQualitySummary(
        project_id=board.id,
        project_name=board.name,
        totals=ProjectTotals(
            done_card_count=len(done_cards),
            finalized_card_count=finalized_count,
            overall_average=to_rounded(overall_average),
            overall_quality_tier=quality_tier_from_average(overall_average),
        ),
        tier_distribution=tier_distribution,
        trend=_weekly_trend(summaries),
        per_dimension=per_dimension,
        iteration_metrics=IterationMetrics(
            average_cycles_to_done=(
                to_rounded(total_cycles / finalized_count) if finalized_count else None
            ),
            high_churn_threshold=high_churn_threshold,
            high_churn_count=high_churn_count,
            high_churn_rate=(
                to_rounded(high_churn_count / finalized_count * 100) if finalized_count else None
            ),
        ),
    )
