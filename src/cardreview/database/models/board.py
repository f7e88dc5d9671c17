"""Board, list and card models for cardreview.

These tables belong to the board management layer. The review engine maps
them read-only so it can resolve a card's board, list classification and
archive state; it never creates or mutates them outside of tests and
development seeding.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cardreview.database.models.base import Base, JSONType, TimestampMixin


class Board(TimestampMixin, Base):
    """A kanban board (also reported as a "project" in quality summaries).

    Attributes:
        name: Board display name.
        settings: Free-form board settings. ``reviewListIds`` (a list of list
            ids) overrides name-based review list detection.
    """

    __tablename__ = "boards"

    name: Mapped[str] = mapped_column(Text, nullable=False)
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)


class BoardList(TimestampMixin, Base):
    """A column of a board.

    Attributes:
        board_id: Owning board.
        name: Column name, used by the name-hint classification fallback.
        phase: Optional phase tag (``DONE`` marks a done list).
        view_type: Board view the list belongs to; only ``TASKS`` lists take
            part in review and done classification.
    """

    __tablename__ = "board_lists"

    board_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("boards.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phase: Mapped[str | None] = mapped_column(Text, nullable=True)
    view_type: Mapped[str] = mapped_column(Text, nullable=False, default="TASKS")

    board: Mapped[Board] = relationship("Board", lazy="selectin")


class Card(TimestampMixin, Base):
    """A task card sitting in one board list.

    Attributes:
        list_id: Current list of the card.
        title: Card title.
        archived_at: Set when the card is archived; archived cards are left
            out of quality summaries.
    """

    __tablename__ = "cards"

    list_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("board_lists.id"), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    board_list: Mapped[BoardList] = relationship("BoardList", lazy="selectin")
