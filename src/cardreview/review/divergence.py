"""Cross-role divergence detection.

Flags dimensions where two evaluator roles disagree by at least a threshold
on the 1-3 scale. Role pairs are compared in a fixed order so flags come out
deterministically.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from pydantic import BaseModel

from cardreview.database.models.review import EvaluatorRole

DEFAULT_DIVERGENCE_THRESHOLD = 2.0

DIVERGENCE_PAIRS: tuple[tuple[EvaluatorRole, EvaluatorRole], ...] = (
    (EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER),
    (EvaluatorRole.LEAD, EvaluatorRole.HEAD_OF_DEPARTMENT),
    (EvaluatorRole.PRODUCT_OWNER, EvaluatorRole.HEAD_OF_DEPARTMENT),
)


class RoleDimensionAverage(BaseModel):
    """Average of the scores one role gave one dimension."""

    dimension_id: UUID
    role: EvaluatorRole
    average: float | None
    count: int


class DivergenceFlag(BaseModel):
    """Two roles disagreeing on one dimension."""

    dimension_id: UUID
    role_a: EvaluatorRole
    role_b: EvaluatorRole
    average_a: float
    average_b: float
    difference: float


def calculate_pairwise_divergence(
    role_averages: Iterable[RoleDimensionAverage],
    threshold: float = DEFAULT_DIVERGENCE_THRESHOLD,
) -> list[DivergenceFlag]:
    """Compare role averages per dimension and flag large gaps.

    Entries with a null average or no samples are ignored. A flag is raised
    when ``|average_a - average_b| >= threshold``. Dimensions are reported in
    first-seen order, pairs in DIVERGENCE_PAIRS order.
    """
    by_dimension: dict[UUID, dict[EvaluatorRole, float]] = {}
    for entry in role_averages:
        if entry.average is None or entry.count <= 0:
            continue
        by_dimension.setdefault(entry.dimension_id, {})[entry.role] = entry.average

    flags: list[DivergenceFlag] = []
    for dimension_id, averages in by_dimension.items():
        for role_a, role_b in DIVERGENCE_PAIRS:
            if role_a not in averages or role_b not in averages:
                continue
            difference = abs(averages[role_a] - averages[role_b])
            if difference < threshold:
                continue
            flags.append(
                DivergenceFlag(
                    dimension_id=dimension_id,
                    role_a=role_a,
                    role_b=role_b,
                    average_a=averages[role_a],
                    average_b=averages[role_b],
                    difference=difference,
                )
            )
    return flags
