"""Pytest fixtures for integration tests.

Provides async database fixtures backed by a file SQLite database (aiosqlite)
in the test's temporary directory. The production system uses PostgreSQL;
SQLite honours the partial unique index on open cycles and, with the
foreign key pragma enabled by get_engine, the cascading deletes.

The ``world`` fixture seeds a small board with review and done lists, one
card, users for every permission level and evaluator role, and three review
dimensions with different audiences.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncGenerator
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from cardreview.config import CardReviewConfig, DatabaseConfig, ReviewConfig
from cardreview.database.connection import get_engine, get_session_factory
from cardreview.database.models import (
    Base,
    Board,
    BoardList,
    Card,
    CompanyRole,
    EvaluatorRole,
    PermissionLevel,
    User,
    UserCompanyRole,
)
from cardreview.database.queries.dimension import create_dimension
from cardreview.review.classifier import ListContext
from cardreview.review.lifecycle import CardTransitionEvent
from cardreview.web.app import create_app

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@dataclass
class SeededWorld:
    """Identifiers of the rows seeded by the ``world`` fixture."""

    board_id: UUID
    backlog: ListContext
    in_progress: ListContext
    review: ListContext
    done: ListContext
    card_id: UUID
    users: dict[str, UUID] = field(default_factory=dict)
    dimensions: dict[str, UUID] = field(default_factory=dict)
    done_list_id: UUID | None = None

    def move(
        self,
        from_list: ListContext,
        to_list: ListContext,
        now: datetime,
        card_id: UUID | None = None,
    ) -> CardTransitionEvent:
        return CardTransitionEvent(
            card_id=card_id or self.card_id,
            from_list=from_list,
            to_list=to_list,
            now=now,
        )


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def review_config() -> ReviewConfig:
    return ReviewConfig()


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite async engine with all tables.

    Yields:
        Configured AsyncEngine instance.
    """
    test_engine = get_engine(DatabaseConfig(url=f"sqlite+aiosqlite:///{tmp_path / 'review.db'}"))

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for query-level tests, rolled back afterwards."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def add_user(
    session: AsyncSession,
    name: str,
    permission: PermissionLevel,
    role_names: list[str] | None = None,
) -> User:
    user = User(name=name, permission=permission)
    session.add(user)
    await session.flush()
    for role_name in role_names or []:
        role = CompanyRole(name=role_name)
        session.add(role)
        await session.flush()
        session.add(UserCompanyRole(user_id=user.id, company_role_id=role.id))
    await session.flush()
    return user


async def add_card(session: AsyncSession, list_id: UUID, title: str) -> Card:
    card = Card(list_id=list_id, title=title)
    session.add(card)
    await session.flush()
    return card


async def place_card(
    session_factory: async_sessionmaker[AsyncSession],
    card_id: UUID,
    list_context: ListContext,
) -> None:
    """Move the card row the way the board layer does before it reports a move."""
    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(Card).where(Card.id == card_id).values(list_id=UUID(list_context.id))
            )


@pytest_asyncio.fixture
async def world(session_factory: async_sessionmaker[AsyncSession]) -> SeededWorld:
    """Seed a board, one card, users and dimensions."""
    async with session_factory() as session:
        async with session.begin():
            board = Board(name="Atlas")
            session.add(board)
            await session.flush()

            lists = {}
            for key, name, phase in [
                ("backlog", "Backlog", None),
                ("in_progress", "In Progress", None),
                ("review", "Review", None),
                ("done", "Done", "DONE"),
            ]:
                board_list = BoardList(board_id=board.id, name=name, phase=phase, view_type="TASKS")
                session.add(board_list)
                await session.flush()
                lists[key] = board_list

            card = await add_card(session, lists["in_progress"].id, "Hero portrait")

            users = {
                "lead": await add_user(session, "Lee", PermissionLevel.MEMBER, ["Lead Artist"]),
                "po": await add_user(session, "Pat", PermissionLevel.MEMBER, ["Product Owner"]),
                "head": await add_user(session, "Hana", PermissionLevel.ADMIN, ["Head of Art"]),
                "member": await add_user(session, "Max", PermissionLevel.MEMBER, ["Animator"]),
                "viewer": await add_user(session, "Val", PermissionLevel.VIEWER, ["Art Lead"]),
                "admin": await add_user(session, "Ada", PermissionLevel.SUPER_ADMIN),
            }

            clarity = await create_dimension(
                session,
                name="Clarity",
                description="Reads well at a glance",
                position=0,
                roles=frozenset({EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER}),
            )
            craft = await create_dimension(
                session,
                name="Craft",
                description=None,
                position=1,
                roles=frozenset({EvaluatorRole.LEAD}),
            )
            scope = await create_dimension(
                session,
                name="Scope",
                description=None,
                position=2,
                roles=frozenset({EvaluatorRole.PRODUCT_OWNER}),
            )

            def ctx(board_list: BoardList) -> ListContext:
                return ListContext(
                    id=str(board_list.id),
                    name=board_list.name,
                    phase=board_list.phase,
                    view_type=board_list.view_type,
                )

            return SeededWorld(
                board_id=board.id,
                backlog=ctx(lists["backlog"]),
                in_progress=ctx(lists["in_progress"]),
                review=ctx(lists["review"]),
                done=ctx(lists["done"]),
                card_id=card.id,
                users={key: user.id for key, user in users.items()},
                dimensions={"clarity": clarity.id, "craft": craft.id, "scope": scope.id},
                done_list_id=lists["done"].id,
            )


@pytest_asyncio.fixture
async def app_client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app wired to the test database."""
    app = create_app(CardReviewConfig())
    app.state.session_factory = session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
