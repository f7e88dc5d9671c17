"""Review engine for cardreview.

This package implements the review-cycle lifecycle of kanban cards and the
aggregation of reviewer scores into quality reports: list classification,
evaluator role resolution, cycle transitions, evaluation submission,
dimension configuration, divergence detection and summary building.
"""

from cardreview.review.aggregation import (
    ConfidenceLevel,
    QualityTier,
    aggregate_dimension_scores,
    compute_overall_average,
    confidence_from_sample_size,
    quality_tier_from_average,
    score_to_numeric,
)
from cardreview.review.classifier import (
    ListClassificationPolicy,
    ListContext,
    extract_review_list_ids,
    is_done_list,
    is_review_list,
)
from cardreview.review.dimensions import DimensionAudience, DimensionService
from cardreview.review.divergence import DivergenceFlag, calculate_pairwise_divergence
from cardreview.review.evaluations import EvaluationService, parse_scores_payload
from cardreview.review.lifecycle import (
    CardTransitionEvent,
    ReviewCycleManager,
    TransitionResult,
    apply_card_list_transition,
    close_and_lock_card_cycles,
)
from cardreview.review.reports import QualityReportService
from cardreview.review.roles import build_role_hint_table, resolve_evaluator_roles
from cardreview.review.summary import (
    CycleAggregateSummary,
    ProjectQualitySummary,
    build_cycle_aggregate_summary,
    build_final_quality_by_card,
    build_project_quality_summary,
)

__all__ = [
    "CardTransitionEvent",
    "ConfidenceLevel",
    "CycleAggregateSummary",
    "DimensionAudience",
    "DimensionService",
    "DivergenceFlag",
    "EvaluationService",
    "ListClassificationPolicy",
    "ListContext",
    "ProjectQualitySummary",
    "QualityReportService",
    "QualityTier",
    "ReviewCycleManager",
    "TransitionResult",
    "aggregate_dimension_scores",
    "apply_card_list_transition",
    "build_cycle_aggregate_summary",
    "build_final_quality_by_card",
    "build_project_quality_summary",
    "build_role_hint_table",
    "calculate_pairwise_divergence",
    "close_and_lock_card_cycles",
    "compute_overall_average",
    "confidence_from_sample_size",
    "extract_review_list_ids",
    "is_done_list",
    "is_review_list",
    "parse_scores_payload",
    "quality_tier_from_average",
    "resolve_evaluator_roles",
    "score_to_numeric",
]
