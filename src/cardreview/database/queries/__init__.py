"""Database query functions for cardreview.

This module provides async query functions for the review engine:
- Review cycle lifecycle mutations and lookups
- Evaluation upserts
- Review dimension catalog management
- Read-only board, card and user lookups

None of them commit; the calling service owns the transaction.
"""

from cardreview.database.queries.board import (
    get_board,
    get_card,
    get_cards_by_ids,
    list_done_cards,
)
from cardreview.database.queries.cycle import (
    clear_final_flags,
    close_cycle,
    close_open_cycles,
    count_evaluations,
    create_cycle,
    delete_cycle,
    get_cycle,
    get_latest_cycle,
    get_max_cycle_number,
    get_open_cycle,
    list_cycles_for_card,
    list_final_cycles_for_board,
    list_final_cycles_for_cards,
    list_unreviewed_cycles,
    lock_unlocked_cycles,
    mark_cycle_final,
    unlock_cycles,
)
from cardreview.database.queries.dimension import (
    create_dimension,
    delete_dimension,
    get_dimension,
    get_next_position,
    list_dimensions,
    reorder_dimensions,
    set_dimension_roles,
    update_dimension,
)
from cardreview.database.queries.evaluation import (
    create_evaluation,
    get_evaluation,
    replace_scores,
)
from cardreview.database.queries.user import get_role_names_by_user_ids, get_user

__all__ = [
    # Board queries
    "get_board",
    "get_card",
    "get_cards_by_ids",
    "list_done_cards",
    # Cycle queries
    "get_cycle",
    "get_open_cycle",
    "get_latest_cycle",
    "get_max_cycle_number",
    "create_cycle",
    "close_cycle",
    "delete_cycle",
    "count_evaluations",
    "clear_final_flags",
    "mark_cycle_final",
    "lock_unlocked_cycles",
    "unlock_cycles",
    "close_open_cycles",
    "list_cycles_for_card",
    "list_final_cycles_for_board",
    "list_final_cycles_for_cards",
    "list_unreviewed_cycles",
    # Dimension queries
    "list_dimensions",
    "get_dimension",
    "get_next_position",
    "create_dimension",
    "update_dimension",
    "set_dimension_roles",
    "reorder_dimensions",
    "delete_dimension",
    # Evaluation queries
    "get_evaluation",
    "create_evaluation",
    "replace_scores",
    # User queries
    "get_user",
    "get_role_names_by_user_ids",
]
