"""Unit tests for the quality summary builders.

Builders are pure, so these tests feed them transient ORM objects rather
than rows loaded from a database.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import UUID, uuid4

import pytest

from cardreview.database.models import (
    Board,
    Card,
    DimensionScore,
    Evaluation,
    EvaluatorRole,
    ReviewCycle,
    ReviewDimension,
    ScoreValue,
)
from cardreview.review.aggregation import ConfidenceLevel, QualityTier
from cardreview.review.summary import (
    build_cycle_aggregate_summary,
    build_final_quality_by_card,
    build_project_quality_summary,
    finalized_at,
    week_start_key,
)

OPENED = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def make_dimension(name: str, position: int) -> ReviewDimension:
    return ReviewDimension(
        id=uuid4(), name=name, description=None, position=position, is_active=True
    )


def make_evaluation(reviewer_id: UUID, scores: dict[UUID, ScoreValue]) -> Evaluation:
    return Evaluation(
        id=uuid4(),
        reviewer_id=reviewer_id,
        submitted_at=OPENED,
        scores=[
            DimensionScore(id=uuid4(), dimension_id=dimension_id, score=score)
            for dimension_id, score in scores.items()
        ],
    )


def make_cycle(
    card_id: UUID,
    evaluations: list[Evaluation],
    cycle_number: int = 1,
    is_final: bool = False,
    locked_at: datetime | None = None,
    closed_at: datetime | None = None,
) -> ReviewCycle:
    return ReviewCycle(
        id=uuid4(),
        card_id=card_id,
        cycle_number=cycle_number,
        opened_at=OPENED,
        closed_at=closed_at,
        is_final=is_final,
        locked_at=locked_at,
        evaluations=evaluations,
    )


@pytest.fixture
def dimensions() -> list[ReviewDimension]:
    # Deliberately out of position order
    return [make_dimension("Craft", 1), make_dimension("Clarity", 0), make_dimension("Scope", 2)]


class TestCycleAggregateSummary:
    """Test build_cycle_aggregate_summary."""

    def test_per_dimension_averages(self, dimensions: list[ReviewDimension]) -> None:
        craft, clarity, scope = dimensions
        lead_id, po_id = uuid4(), uuid4()
        cycle = make_cycle(
            uuid4(),
            [
                make_evaluation(lead_id, {clarity.id: ScoreValue.HIGH, craft.id: ScoreValue.LOW}),
                make_evaluation(
                    po_id,
                    {clarity.id: ScoreValue.LOW, craft.id: ScoreValue.NOT_APPLICABLE},
                ),
            ],
        )

        summary = build_cycle_aggregate_summary(cycle, dimensions)

        assert [d.name for d in summary.dimensions] == ["Clarity", "Craft", "Scope"]
        by_name = {d.name: d for d in summary.dimensions}
        assert by_name["Clarity"].average == 2.0
        assert by_name["Clarity"].count == 2
        assert by_name["Clarity"].score_label == ScoreValue.MEDIUM
        assert by_name["Craft"].average == 1.0
        assert by_name["Craft"].count == 1
        assert by_name["Craft"].score_label == ScoreValue.LOW
        assert by_name["Scope"].average is None
        assert by_name["Scope"].count == 0
        assert by_name["Scope"].confidence == ConfidenceLevel.RED

        assert summary.overall_average == 1.5
        assert summary.quality_tier == QualityTier.MEDIUM
        assert summary.evaluations_count == 2
        assert summary.divergence_flags == []
        assert scope.id in {d.dimension_id for d in summary.dimensions}

    def test_divergence_with_reviewer_roles(self, dimensions: list[ReviewDimension]) -> None:
        craft, clarity, _ = dimensions
        lead_id, po_id = uuid4(), uuid4()
        cycle = make_cycle(
            uuid4(),
            [
                make_evaluation(lead_id, {clarity.id: ScoreValue.HIGH, craft.id: ScoreValue.LOW}),
                make_evaluation(
                    po_id,
                    {clarity.id: ScoreValue.LOW, craft.id: ScoreValue.NOT_APPLICABLE},
                ),
            ],
        )
        roles = {
            lead_id: frozenset({EvaluatorRole.LEAD}),
            po_id: frozenset({EvaluatorRole.PRODUCT_OWNER}),
        }

        summary = build_cycle_aggregate_summary(cycle, dimensions, roles)

        assert len(summary.divergence_flags) == 1
        flag = summary.divergence_flags[0]
        assert flag.dimension_name == "Clarity"
        assert (flag.role_a, flag.role_b) == (EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER)
        assert flag.difference == 2.0

    def test_reviewer_with_two_roles_counts_for_both(
        self, dimensions: list[ReviewDimension]
    ) -> None:
        _, clarity, _ = dimensions
        both_id, head_id = uuid4(), uuid4()
        cycle = make_cycle(
            uuid4(),
            [
                make_evaluation(both_id, {clarity.id: ScoreValue.HIGH}),
                make_evaluation(head_id, {clarity.id: ScoreValue.LOW}),
            ],
        )
        roles = {
            both_id: frozenset({EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER}),
            head_id: frozenset({EvaluatorRole.HEAD_OF_DEPARTMENT}),
        }

        summary = build_cycle_aggregate_summary(cycle, dimensions, roles)

        pairs = [(f.role_a, f.role_b) for f in summary.divergence_flags]
        assert pairs == [
            (EvaluatorRole.LEAD, EvaluatorRole.HEAD_OF_DEPARTMENT),
            (EvaluatorRole.PRODUCT_OWNER, EvaluatorRole.HEAD_OF_DEPARTMENT),
        ]

    def test_unscored_cycle(self, dimensions: list[ReviewDimension]) -> None:
        summary = build_cycle_aggregate_summary(make_cycle(uuid4(), []), dimensions)

        assert summary.overall_average is None
        assert summary.quality_tier == QualityTier.UNSCORED
        assert summary.evaluations_count == 0

    def test_rounded_copy(self, dimensions: list[ReviewDimension]) -> None:
        _, clarity, _ = dimensions
        cycle = make_cycle(
            uuid4(),
            [
                make_evaluation(uuid4(), {clarity.id: ScoreValue.HIGH}),
                make_evaluation(uuid4(), {clarity.id: ScoreValue.MEDIUM}),
                make_evaluation(uuid4(), {clarity.id: ScoreValue.MEDIUM}),
            ],
        )

        summary = build_cycle_aggregate_summary(cycle, dimensions)
        rounded = summary.rounded()

        assert summary.overall_average == pytest.approx(7 / 3)
        assert rounded.overall_average == 2.33
        assert rounded.dimensions[0].average == 2.33
        assert rounded.quality_tier == summary.quality_tier


class TestFinalQualityByCard:
    def test_only_final_cycles_count(self) -> None:
        dim_id = uuid4()
        card_a, card_b = uuid4(), uuid4()
        cycles = [
            make_cycle(
                card_a, [make_evaluation(uuid4(), {dim_id: ScoreValue.HIGH})], is_final=True
            ),
            make_cycle(card_b, [make_evaluation(uuid4(), {dim_id: ScoreValue.LOW})]),
        ]

        by_card = build_final_quality_by_card(cycles)

        assert set(by_card) == {card_a}
        assert by_card[card_a].overall_average == 3.0
        assert by_card[card_a].quality_tier == QualityTier.HIGH


class TestProjectQualitySummary:
    def test_board_summary(self) -> None:
        clarity = make_dimension("Clarity", 0)
        board = Board(id=uuid4(), name="Atlas", settings=None)
        cards = [Card(id=uuid4(), list_id=uuid4(), title=f"Card {i}") for i in range(3)]
        first_week = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)
        second_week = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        final_cycles = [
            make_cycle(
                cards[0].id,
                [make_evaluation(uuid4(), {clarity.id: ScoreValue.HIGH})],
                cycle_number=1,
                is_final=True,
                locked_at=first_week,
            ),
            make_cycle(
                cards[1].id,
                [make_evaluation(uuid4(), {clarity.id: ScoreValue.LOW})],
                cycle_number=3,
                is_final=True,
                locked_at=second_week,
            ),
        ]

        summary = build_project_quality_summary(board, cards, final_cycles, [clarity])

        assert summary.project_id == board.id
        assert summary.project_name == "Atlas"
        assert summary.totals.done_card_count == 3
        assert summary.totals.finalized_card_count == 2
        assert summary.totals.overall_average == 2.0
        assert summary.totals.overall_quality_tier == QualityTier.MEDIUM

        assert summary.tier_distribution == {
            QualityTier.HIGH: 1,
            QualityTier.MEDIUM: 0,
            QualityTier.LOW: 1,
            QualityTier.UNSCORED: 1,
        }

        assert [p.week_start for p in summary.trend] == ["2026-03-02", "2026-03-09"]
        assert summary.trend[0].average_quality == 3.0
        assert summary.trend[0].sample_size == 1
        assert summary.trend[0].tier_counts[QualityTier.HIGH] == 1
        assert summary.trend[1].tier_counts[QualityTier.LOW] == 1

        assert len(summary.per_dimension) == 1
        assert summary.per_dimension[0].average == 2.0
        assert summary.per_dimension[0].count == 2

        metrics = summary.iteration_metrics
        assert metrics.average_cycles_to_done == 2.0
        assert metrics.high_churn_threshold == 3
        assert metrics.high_churn_count == 1
        assert metrics.high_churn_rate == 50.0

    def test_empty_board(self) -> None:
        board = Board(id=uuid4(), name="Empty", settings=None)

        summary = build_project_quality_summary(board, [], [], [make_dimension("Clarity", 0)])

        assert summary.totals.done_card_count == 0
        assert summary.totals.overall_average is None
        assert summary.totals.overall_quality_tier == QualityTier.UNSCORED
        assert summary.trend == []
        assert summary.per_dimension[0].average is None
        assert summary.iteration_metrics.average_cycles_to_done is None
        assert summary.iteration_metrics.high_churn_rate is None


class TestWeekHelpers:
    def test_week_start_key_is_monday(self) -> None:
        sunday_night = datetime(2026, 3, 8, 23, 0, tzinfo=timezone.utc)

        assert week_start_key(sunday_night) == "2026-03-02"
        assert week_start_key(datetime(2026, 3, 9, 0, 0)) == "2026-03-09"

    def test_week_start_key_converts_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))

        assert week_start_key(datetime(2026, 3, 9, 1, 0, tzinfo=plus_two)) == "2026-03-02"

    def test_finalized_at_fallbacks(self) -> None:
        locked = OPENED + timedelta(days=3)
        closed = OPENED + timedelta(days=1)

        assert finalized_at(make_cycle(uuid4(), [], locked_at=locked, closed_at=closed)) == locked
        assert finalized_at(make_cycle(uuid4(), [], closed_at=closed)) == closed
        assert finalized_at(make_cycle(uuid4(), [])) == OPENED
