"""Integration tests for the review dimension catalog."""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardreview.database.models import DimensionScore, EvaluatorRole
from cardreview.database.queries.cycle import get_open_cycle
from cardreview.database.queries.dimension import get_dimension
from cardreview.errors import (
    AccessDenialReason,
    AccessDeniedError,
    NotFoundError,
    ReviewValidationError,
)
from cardreview.review.dimensions import DimensionAudience, DimensionService
from cardreview.review.evaluations import EvaluationService
from cardreview.review.lifecycle import ReviewCycleManager

from .conftest import T0, SeededWorld


@pytest.fixture
def service(session_factory: async_sessionmaker[AsyncSession]) -> DimensionService:
    return DimensionService(session_factory)


class TestListDimensions:
    @pytest.mark.asyncio
    async def test_member_sees_catalog_in_order(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        views = await service.list_dimensions(world.users["member"])

        assert [v.name for v in views] == ["Clarity", "Craft", "Scope"]
        assert [v.audience for v in views] == [
            DimensionAudience.BOTH,
            DimensionAudience.LEAD,
            DimensionAudience.PRODUCT_OWNER,
        ]
        assert views[0].roles == [EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER]

    @pytest.mark.asyncio
    async def test_viewer_blocked(self, service: DimensionService, world: SeededWorld) -> None:
        with pytest.raises(AccessDeniedError) as exc_info:
            await service.list_dimensions(world.users["viewer"])

        assert exc_info.value.reason == AccessDenialReason.VIEWER_BLOCKED

    @pytest.mark.asyncio
    async def test_inactive_hidden_unless_requested(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        await service.delete(world.users["admin"], world.dimensions["craft"])

        active = await service.list_dimensions(world.users["member"])
        everything = await service.list_dimensions(world.users["member"], include_inactive=True)

        assert [v.name for v in active] == ["Clarity", "Scope"]
        assert [v.name for v in everything] == ["Clarity", "Craft", "Scope"]
        assert everything[1].is_active is False


class TestCreateDimension:
    @pytest.mark.asyncio
    async def test_appends_after_last(self, service: DimensionService, world: SeededWorld) -> None:
        view = await service.create_dimension(
            world.users["admin"], "  Readability ", description="Can players parse it?"
        )

        assert view.name == "Readability"
        assert view.position == 3
        assert view.is_active is True
        assert view.audience == DimensionAudience.BOTH
        assert view.description == "Can players parse it?"

    @pytest.mark.asyncio
    async def test_audience_po_alias(self, service: DimensionService, world: SeededWorld) -> None:
        view = await service.create_dimension(world.users["admin"], "Fit", audience="po")

        assert view.audience == DimensionAudience.PRODUCT_OWNER
        assert view.roles == [EvaluatorRole.PRODUCT_OWNER]

    @pytest.mark.asyncio
    async def test_requires_super_admin(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        with pytest.raises(AccessDeniedError) as exc_info:
            await service.create_dimension(world.users["head"], "Polish")

        assert exc_info.value.reason == AccessDenialReason.SUPER_ADMIN_REQUIRED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("name", "audience", "message"),
        [
            ("", "BOTH", "Dimension name is required"),
            (42, "BOTH", "Dimension name is required"),
            ("Polish", "EVERYONE", "audience must be one of LEAD, PO, BOTH"),
        ],
    )
    async def test_invalid_input(
        self,
        service: DimensionService,
        world: SeededWorld,
        name: object,
        audience: str,
        message: str,
    ) -> None:
        with pytest.raises(ReviewValidationError, match=message):
            await service.create_dimension(world.users["admin"], name, audience=audience)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user", ["member", "head"])
    async def test_permission_checked_before_payload(
        self, service: DimensionService, world: SeededWorld, user: str
    ) -> None:
        caller = world.users[user]
        craft = world.dimensions["craft"]

        with pytest.raises(AccessDeniedError) as create_info:
            await service.create_dimension(caller, "   ", audience="EVERYONE")
        with pytest.raises(AccessDeniedError) as update_info:
            await service.update_dimension(caller, craft, {"is_active": "no"})
        with pytest.raises(AccessDeniedError) as audience_info:
            await service.set_audience(caller, craft, 7)

        for info in (create_info, update_info, audience_info):
            assert info.value.reason == AccessDenialReason.SUPER_ADMIN_REQUIRED


class TestUpdateDimension:
    @pytest.mark.asyncio
    async def test_rename_and_describe(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        view = await service.update_dimension(
            world.users["admin"],
            world.dimensions["craft"],
            {"name": "Craftsmanship", "description": "  "},
        )

        assert view.name == "Craftsmanship"
        assert view.description is None
        assert view.position == 1

    @pytest.mark.asyncio
    async def test_no_fields(self, service: DimensionService, world: SeededWorld) -> None:
        with pytest.raises(ReviewValidationError, match="No valid fields to update"):
            await service.update_dimension(
                world.users["admin"], world.dimensions["craft"], {"color": "red"}
            )

    @pytest.mark.asyncio
    async def test_is_active_must_be_bool(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        with pytest.raises(ReviewValidationError, match="is_active must be a boolean"):
            await service.update_dimension(
                world.users["admin"], world.dimensions["craft"], {"is_active": "no"}
            )

    @pytest.mark.asyncio
    async def test_unknown_dimension(self, service: DimensionService, world: SeededWorld) -> None:
        with pytest.raises(NotFoundError, match="Review dimension not found"):
            await service.update_dimension(world.users["admin"], uuid4(), {"name": "X"})

    @pytest.mark.asyncio
    async def test_set_audience(self, service: DimensionService, world: SeededWorld) -> None:
        view = await service.set_audience(world.users["admin"], world.dimensions["craft"], "BOTH")

        assert view.audience == DimensionAudience.BOTH
        assert view.roles == [EvaluatorRole.LEAD, EvaluatorRole.PRODUCT_OWNER]

        view = await service.set_audience(world.users["admin"], world.dimensions["craft"], "PO")

        assert view.roles == [EvaluatorRole.PRODUCT_OWNER]


class TestReorder:
    @pytest.mark.asyncio
    async def test_full_reorder(self, service: DimensionService, world: SeededWorld) -> None:
        dims = world.dimensions
        order = [str(dims["scope"]), str(dims["clarity"]), str(dims["craft"])]

        views = await service.reorder(world.users["admin"], order)

        assert [(v.name, v.position) for v in views] == [
            ("Scope", 0),
            ("Clarity", 1),
            ("Craft", 2),
        ]
        listed = await service.list_dimensions(world.users["member"])
        assert [v.name for v in listed] == ["Scope", "Clarity", "Craft"]

    @pytest.mark.asyncio
    async def test_must_include_inactive(
        self, service: DimensionService, world: SeededWorld
    ) -> None:
        dims = world.dimensions
        await service.delete(world.users["admin"], dims["craft"])

        with pytest.raises(ReviewValidationError, match="every dimension exactly once"):
            await service.reorder(world.users["admin"], [str(dims["scope"]), str(dims["clarity"])])

    @pytest.mark.asyncio
    async def test_unknown_id(self, service: DimensionService, world: SeededWorld) -> None:
        stranger = uuid4()
        ids = [str(d) for d in world.dimensions.values()] + [str(stranger)]

        with pytest.raises(ReviewValidationError, match=f"Unknown dimension id: {stranger}"):
            await service.reorder(world.users["admin"], ids)


class TestDeleteDimension:
    @pytest.mark.asyncio
    async def test_soft_delete_keeps_row(
        self,
        service: DimensionService,
        world: SeededWorld,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await service.delete(world.users["admin"], world.dimensions["scope"])

        async with session_factory() as session:
            dimension = await get_dimension(session, world.dimensions["scope"])
            assert dimension is not None
            assert dimension.is_active is False

    @pytest.mark.asyncio
    async def test_hard_delete_removes_scores(
        self,
        service: DimensionService,
        world: SeededWorld,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await ReviewCycleManager(session_factory).handle_transition(
            world.move(world.in_progress, world.review, T0)
        )
        async with session_factory() as session:
            cycle = await get_open_cycle(session, world.card_id)
        await EvaluationService(session_factory).submit_evaluation(
            world.users["po"],
            cycle.id,
            [
                {"dimensionId": str(world.dimensions["scope"]), "score": "LOW"},
                {"dimensionId": str(world.dimensions["clarity"]), "score": "HIGH"},
            ],
            now=T0 + timedelta(minutes=5),
        )

        await service.delete(world.users["admin"], world.dimensions["scope"], hard=True)

        async with session_factory() as session:
            assert await get_dimension(session, world.dimensions["scope"]) is None
            remaining = await session.scalar(select(func.count()).select_from(DimensionScore))
            assert remaining == 1

    @pytest.mark.asyncio
    async def test_unknown_dimension(self, service: DimensionService, world: SeededWorld) -> None:
        with pytest.raises(NotFoundError):
            await service.delete(world.users["admin"], uuid4())
