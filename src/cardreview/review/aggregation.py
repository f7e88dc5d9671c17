"""Score aggregation helpers.

Ordinal scores map to 1 (LOW), 2 (MEDIUM) and 3 (HIGH). NOT_APPLICABLE and
unrecognized values carry no number and are left out of every average.
Nothing in this module raises on malformed input.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from cardreview.database.models.review import ScoreValue

_NUMERIC_SCORES: dict[ScoreValue, int] = {
    ScoreValue.LOW: 1,
    ScoreValue.MEDIUM: 2,
    ScoreValue.HIGH: 3,
}

AMBER_MIN_SAMPLES = 5
GREEN_MIN_SAMPLES = 20

HIGH_TIER_MIN = 2.5
MEDIUM_TIER_MIN = 1.5


class ConfidenceLevel(str, Enum):
    """Trust in an average, by sample size."""

    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


class QualityTier(str, Enum):
    """Bucket of an overall average."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    UNSCORED = "UNSCORED"


class ScoreInput(BaseModel):
    """A single dimension score taken from an evaluation."""

    dimension_id: UUID
    score: Any


class DimensionAggregate(BaseModel):
    """Average of one dimension's numeric scores."""

    dimension_id: UUID
    average: float | None
    count: int
    confidence: ConfidenceLevel


def score_to_numeric(score: Any) -> int | None:
    """Map a score to 1..3, or None when it carries no number."""
    try:
        value = ScoreValue(score)
    except ValueError:
        return None
    return _NUMERIC_SCORES.get(value)


def confidence_from_sample_size(count: int) -> ConfidenceLevel:
    if count >= GREEN_MIN_SAMPLES:
        return ConfidenceLevel.GREEN
    if count >= AMBER_MIN_SAMPLES:
        return ConfidenceLevel.AMBER
    return ConfidenceLevel.RED


def aggregate_dimension_scores(scores: Iterable[ScoreInput]) -> list[DimensionAggregate]:
    """Group scores by dimension and average the numeric ones.

    Dimensions are returned in first-seen order. A dimension seen only with
    non-numeric scores is still reported, with average None and count 0.
    """
    buckets: dict[UUID, list[int]] = {}
    for entry in scores:
        values = buckets.setdefault(entry.dimension_id, [])
        numeric = score_to_numeric(entry.score)
        if numeric is not None:
            values.append(numeric)

    return [
        DimensionAggregate(
            dimension_id=dimension_id,
            average=sum(values) / len(values) if values else None,
            count=len(values),
            confidence=confidence_from_sample_size(len(values)),
        )
        for dimension_id, values in buckets.items()
    ]


def compute_overall_average(averages: Iterable[float | None]) -> float | None:
    """Mean of the non-null averages, None when there are none."""
    usable = [value for value in averages if value is not None]
    if not usable:
        return None
    return sum(usable) / len(usable)


def quality_tier_from_average(average: float | None) -> QualityTier:
    if average is None:
        return QualityTier.UNSCORED
    if average >= HIGH_TIER_MIN:
        return QualityTier.HIGH
    if average >= MEDIUM_TIER_MIN:
        return QualityTier.MEDIUM
    return QualityTier.LOW


def score_label_from_average(average: float | None) -> ScoreValue | None:
    """Nearest ordinal label of an average, for display."""
    if average is None:
        return None
    if average >= HIGH_TIER_MIN:
        return ScoreValue.HIGH
    if average >= MEDIUM_TIER_MIN:
        return ScoreValue.MEDIUM
    return ScoreValue.LOW


def to_rounded(value: float | None, digits: int = 2) -> float | None:
    if value is None:
        return None
    return round(value, digits)
