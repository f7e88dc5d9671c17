"""Board list classification for the review engine.

Decides whether a board list is a review list or a done list. Boards may
configure an explicit set of review list ids in their settings
(``reviewListIds``); without it, list names are matched against hint
fragments held by a ListClassificationPolicy.

All functions here are pure and never raise on malformed board data.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from cardreview.config import ReviewConfig

REVIEW_LIST_IDS_KEY = "reviewListIds"


class ListContext(BaseModel):
    """The parts of a board list the classifier looks at.

    Accepts the board layer's camelCase keys (``viewType``) as well as
    field names.

    Attributes:
        id: List identifier.
        name: List name as shown on the board.
        phase: Optional phase tag; the done phase marks a done list.
        view_type: Board view the list belongs to.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str = ""
    phase: str | None = None
    view_type: str = "TASKS"


class ListClassificationPolicy(BaseModel):
    """Name hints and tags used when a board has no explicit configuration.

    Attributes:
        review_name_hints: Lower-case fragments marking a review list.
        done_name_hints: Lower-case fragments marking a done list.
        done_phase: Phase tag of done lists.
        tasks_view_type: View type of task-tracking lists; lists of any other
            view type are never review or done lists.
    """

    model_config = ConfigDict(frozen=True)

    review_name_hints: frozenset[str] = Field(default=frozenset({"review"}))
    done_name_hints: frozenset[str] = Field(
        default=frozenset({"done", "complete", "completed", "finished"})
    )
    done_phase: str = "DONE"
    tasks_view_type: str = "TASKS"

    @classmethod
    def from_config(cls, config: ReviewConfig) -> ListClassificationPolicy:
        """Build a policy from the review section of the configuration."""
        return cls(
            review_name_hints=frozenset(config.review_list_name_hints),
            done_name_hints=frozenset(config.done_list_name_hints),
            done_phase=config.done_phase,
            tasks_view_type=config.tasks_view_type,
        )


DEFAULT_POLICY = ListClassificationPolicy()


def _name_contains_any(name: str | None, hints: Iterable[str]) -> bool:
    lowered = (name or "").lower()
    return any(hint in lowered for hint in hints)


def _is_task_list(board_list: ListContext, policy: ListClassificationPolicy) -> bool:
    return board_list.view_type == policy.tasks_view_type


def is_review_list(
    board_list: ListContext,
    review_list_ids: set[str] | frozenset[str] | None = None,
    policy: ListClassificationPolicy = DEFAULT_POLICY,
) -> bool:
    """Whether cards in this list are under review.

    A non-empty ``review_list_ids`` decides exclusively by membership; the
    name hints are only consulted when the board configures none.
    """
    if not _is_task_list(board_list, policy):
        return False
    if review_list_ids:
        return board_list.id in review_list_ids
    return _name_contains_any(board_list.name, policy.review_name_hints)


def is_done_list(
    board_list: ListContext,
    policy: ListClassificationPolicy = DEFAULT_POLICY,
) -> bool:
    """Whether cards in this list are finished."""
    if not _is_task_list(board_list, policy):
        return False
    if board_list.phase == policy.done_phase:
        return True
    return _name_contains_any(board_list.name, policy.done_name_hints)


def extract_review_list_ids(board_settings: Any) -> frozenset[str]:
    """Read the explicit review list ids from a board's settings.

    Anything that is not a mapping with a list under ``reviewListIds``
    yields an empty set; non-string entries are skipped.
    """
    if not isinstance(board_settings, Mapping):
        return frozenset()
    raw = board_settings.get(REVIEW_LIST_IDS_KEY)
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(entry for entry in raw if isinstance(entry, str) and entry)
