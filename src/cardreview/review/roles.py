"""Evaluator role resolution from free-text company role names.

Company roles are free text ("Lead Artist", "PO.", "Head_of_Art"). Each name
is normalized and run through an ordered table of RoleHintRule entries; the
union of matched roles is the user's evaluator role set.

Rules are evaluated in table order. A matching short-circuit rule stops the
remaining rules for that name, so "Head of Art Lead" yields only
HEAD_OF_DEPARTMENT. Other rules are independent: "PO Lead" yields both
PRODUCT_OWNER and LEAD.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict

from cardreview.config import ReviewConfig
from cardreview.database.models.review import EvaluatorRole
from cardreview.errors import ReviewValidationError

_SEPARATORS = re.compile(r"[\s_-]+")


def normalize_role_name(value: str) -> str:
    """Trim, lower-case and collapse whitespace, ``_`` and ``-`` runs to one space."""
    return _SEPARATORS.sub(" ", value.strip().lower())


class RoleHintRule(BaseModel):
    """One row of the role hint table.

    Attributes:
        role: Role granted when the rule matches.
        contains: Fragments matched anywhere in the normalized name.
        exact: Names matched exactly.
        prefixes: Leading fragments (``"lead "``).
        suffixes: Trailing fragments (``" lead"``).
        strip_periods: Also compare ``exact`` against the name without periods.
        short_circuit: Skip the remaining rules for this name on a match.
    """

    model_config = ConfigDict(frozen=True)

    role: EvaluatorRole
    contains: tuple[str, ...] = ()
    exact: tuple[str, ...] = ()
    prefixes: tuple[str, ...] = ()
    suffixes: tuple[str, ...] = ()
    strip_periods: bool = False
    short_circuit: bool = False

    def matches(self, normalized: str) -> bool:
        if any(fragment in normalized for fragment in self.contains):
            return True
        if normalized in self.exact:
            return True
        if self.strip_periods and normalized.replace(".", "") in self.exact:
            return True
        if any(normalized.startswith(prefix) for prefix in self.prefixes):
            return True
        return any(normalized.endswith(suffix) for suffix in self.suffixes)


RoleHintTable = tuple[RoleHintRule, ...]


def _clean_hints(hints: Iterable[str], label: str) -> tuple[str, ...]:
    cleaned = tuple(normalize_role_name(hint) for hint in hints)
    if not cleaned or any(not hint for hint in cleaned):
        raise ReviewValidationError(f"{label} role hints must be non-empty strings")
    return cleaned


def build_role_hint_table(
    head_of_department_hints: Iterable[str] = ("head of art", "headofart"),
    product_owner_hints: Iterable[str] = ("po", "product owner"),
    lead_hints: Iterable[str] = ("lead",),
) -> RoleHintTable:
    """Build the rule table from hint lists.

    Raises:
        ReviewValidationError: If a hint list is empty or holds a blank hint.
    """
    head = _clean_hints(head_of_department_hints, "Head of department")
    product_owner = _clean_hints(product_owner_hints, "Product owner")
    lead = _clean_hints(lead_hints, "Lead")

    return (
        RoleHintRule(
            role=EvaluatorRole.HEAD_OF_DEPARTMENT,
            contains=head,
            exact=("head art",),
            short_circuit=True,
        ),
        RoleHintRule(
            role=EvaluatorRole.PRODUCT_OWNER,
            contains=product_owner,
            exact=product_owner,
            strip_periods=True,
        ),
        RoleHintRule(
            role=EvaluatorRole.LEAD,
            exact=lead,
            prefixes=tuple(f"{hint} " for hint in lead),
            suffixes=tuple(f" {hint}" for hint in lead),
        ),
    )


def role_hint_table_from_config(config: ReviewConfig) -> RoleHintTable:
    """Build the rule table from the review section of the configuration."""
    return build_role_hint_table(
        head_of_department_hints=config.head_of_department_hints,
        product_owner_hints=config.product_owner_hints,
        lead_hints=config.lead_hints,
    )


DEFAULT_ROLE_HINT_TABLE = build_role_hint_table()


def resolve_evaluator_roles(
    role_names: Iterable[str],
    table: RoleHintTable = DEFAULT_ROLE_HINT_TABLE,
) -> frozenset[EvaluatorRole]:
    """Derive the evaluator role set from a user's company role names.

    Example:
        >>> sorted(r.value for r in resolve_evaluator_roles(["Lead Artist", "PO."]))
        ['LEAD', 'PRODUCT_OWNER']
    """
    roles: set[EvaluatorRole] = set()
    for name in role_names:
        if not isinstance(name, str):
            continue
        normalized = normalize_role_name(name)
        if not normalized:
            continue
        for rule in table:
            if rule.matches(normalized):
                roles.add(rule.role)
                if rule.short_circuit:
                    break
    return frozenset(roles)
