"""End-to-end tests of the HTTP API against a seeded SQLite database."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cardreview.review.classifier import ListContext

from .conftest import T0, SeededWorld, place_card


def as_user(user_id: UUID) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


def transition_body(
    card_id: UUID,
    from_list: ListContext,
    to_list: ListContext,
    now: datetime,
) -> dict[str, Any]:
    return {
        "card_id": str(card_id),
        "from_list": from_list.model_dump(),
        "to_list": to_list.model_dump(),
        "now": now.isoformat(),
    }


async def post_move(
    client: AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    world: SeededWorld,
    from_list: ListContext,
    to_list: ListContext,
    now: datetime,
) -> dict[str, Any]:
    await place_card(session_factory, world.card_id, to_list)
    response = await client.post(
        "/transitions", json=transition_body(world.card_id, from_list, to_list, now)
    )
    assert response.status_code == 200
    return response.json()


class TestReviewFlow:
    """A card goes through review, gets scored and is finished."""

    @pytest.mark.asyncio
    async def test_full_review_flow(
        self,
        app_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        world: SeededWorld,
    ) -> None:
        opened = await post_move(
            app_client, session_factory, world, world.in_progress, world.review, T0
        )
        assert opened["entered_review"] is True
        assert opened["cycle_opened"] is True

        pending = await app_client.get(
            "/me/pending-evaluations", headers=as_user(world.users["lead"])
        )
        assert pending.status_code == 200
        (item,) = pending.json()
        cycle_id = item["cycle_id"]
        assert item["eligible_dimension_count"] == 2

        form = await app_client.get(
            f"/cycles/{cycle_id}/evaluation", headers=as_user(world.users["lead"])
        )
        assert form.status_code == 200
        assert [d["name"] for d in form.json()["dimensions"]] == ["Clarity", "Craft"]
        assert form.json()["can_edit"] is True

        clarity = str(world.dimensions["clarity"])
        created = await app_client.put(
            f"/cycles/{cycle_id}/evaluation",
            json={"scores": [{"dimensionId": clarity, "score": "HIGH"}]},
            headers=as_user(world.users["lead"]),
        )
        assert created.status_code == 201
        assert created.json()["created"] is True

        replaced = await app_client.put(
            f"/cycles/{cycle_id}/evaluation",
            json={"scores": [{"dimensionId": clarity, "score": "MEDIUM"}]},
            headers=as_user(world.users["lead"]),
        )
        assert replaced.status_code == 200
        assert replaced.json()["created"] is False

        await app_client.put(
            f"/cycles/{cycle_id}/evaluation",
            json={"scores": [{"dimensionId": clarity, "score": "LOW"}]},
            headers=as_user(world.users["po"]),
        )

        summary = await app_client.get(
            f"/cycles/{cycle_id}/summary", headers=as_user(world.users["member"])
        )
        assert summary.status_code == 200
        body = summary.json()["summary"]
        assert body["evaluations_count"] == 2
        assert body["overall_average"] == 1.5
        assert body["divergence_flags"] == []

        done = await post_move(
            app_client,
            session_factory,
            world,
            world.review,
            world.done,
            T0 + timedelta(hours=1),
        )
        assert done["card_locked"] is True
        assert done["final_cycle_id"] == cycle_id

        locked = await app_client.put(
            f"/cycles/{cycle_id}/evaluation",
            json={"scores": [{"dimensionId": clarity, "score": "HIGH"}]},
            headers=as_user(world.users["lead"]),
        )
        assert locked.status_code == 403
        assert locked.json() == {
            "detail": "Card is completed. Evaluations are locked",
            "code": "cycle_locked",
        }

        quality = await app_client.get(
            f"/cards/{world.card_id}/quality", headers=as_user(world.users["head"])
        )
        assert quality.status_code == 200
        assert quality.json()["final_cycle"]["cycle_id"] == cycle_id

        project = await app_client.get(
            f"/projects/{world.board_id}/quality-summary", headers=as_user(world.users["po"])
        )
        assert project.status_code == 200
        totals = project.json()["totals"]
        assert totals["done_card_count"] == 1
        assert totals["finalized_card_count"] == 1
        assert totals["overall_average"] == 1.5

        final = await app_client.get(
            "/cards/final-quality",
            params={"cardId": [str(world.card_id)]},
            headers=as_user(world.users["lead"]),
        )
        assert final.status_code == 200
        assert final.json()[str(world.card_id)] == {
            "overall_average": 1.5,
            "quality_tier": "MEDIUM",
        }

    @pytest.mark.asyncio
    async def test_close_and_lock(
        self,
        app_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        world: SeededWorld,
    ) -> None:
        await post_move(app_client, session_factory, world, world.in_progress, world.review, T0)

        response = await app_client.post(f"/transitions/cards/{world.card_id}/close-and-lock")
        assert response.status_code == 204

        pending = await app_client.get(
            "/me/pending-evaluations", headers=as_user(world.users["lead"])
        )
        assert pending.json() == []

        missing = await app_client.post(f"/transitions/cards/{uuid4()}/close-and-lock")
        assert missing.status_code == 404


class TestTransitionPayload:
    """The board layer posts moves with camelCase keys."""

    @pytest.mark.asyncio
    async def test_camel_case_event(
        self,
        app_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        world: SeededWorld,
    ) -> None:
        await place_card(session_factory, world.card_id, world.review)
        response = await app_client.post(
            "/transitions",
            json={
                "cardId": str(world.card_id),
                "fromList": world.in_progress.model_dump(by_alias=True),
                "toList": world.review.model_dump(by_alias=True),
                "boardSettings": {},
                "now": T0.isoformat(),
            },
        )

        assert response.status_code == 200
        assert response.json()["cycle_opened"] is True

    @pytest.mark.asyncio
    async def test_camel_case_view_type_is_honoured(
        self, app_client: AsyncClient, world: SeededWorld
    ) -> None:
        planning_review = {
            "id": world.review.id,
            "name": "Review",
            "phase": None,
            "viewType": "PLANNING",
        }
        response = await app_client.post(
            "/transitions",
            json={
                "cardId": str(world.card_id),
                "fromList": world.in_progress.model_dump(by_alias=True),
                "toList": planning_review,
                "now": T0.isoformat(),
            },
        )

        assert response.status_code == 200
        assert response.json()["entered_review"] is False
        assert response.json()["cycle_opened"] is False


class TestErrorResponses:
    @pytest.mark.asyncio
    async def test_unknown_cycle(self, app_client: AsyncClient, world: SeededWorld) -> None:
        response = await app_client.get(
            f"/cycles/{uuid4()}/summary", headers=as_user(world.users["lead"])
        )

        assert response.status_code == 404
        assert response.json() == {"detail": "Review cycle not found", "code": "not_found"}

    @pytest.mark.asyncio
    async def test_unknown_user(self, app_client: AsyncClient, world: SeededWorld) -> None:
        response = await app_client.get("/dimensions", headers=as_user(uuid4()))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_viewer_blocked(self, app_client: AsyncClient, world: SeededWorld) -> None:
        response = await app_client.get("/dimensions", headers=as_user(world.users["viewer"]))

        assert response.status_code == 403
        assert response.json()["code"] == "viewer_blocked"

    @pytest.mark.asyncio
    async def test_malformed_scores(
        self,
        app_client: AsyncClient,
        session_factory: async_sessionmaker[AsyncSession],
        world: SeededWorld,
    ) -> None:
        await post_move(app_client, session_factory, world, world.in_progress, world.review, T0)
        pending = await app_client.get(
            "/me/pending-evaluations", headers=as_user(world.users["lead"])
        )
        cycle_id = pending.json()[0]["cycle_id"]

        response = await app_client.put(
            f"/cycles/{cycle_id}/evaluation",
            json={"scores": [{"dimensionId": "nope", "score": "HIGH"}]},
            headers=as_user(world.users["lead"]),
        )

        assert response.status_code == 422
        assert response.json() == {
            "detail": "Each score entry requires a valid dimensionId",
            "code": "validation",
        }


class TestDimensionEndpoints:
    @pytest.mark.asyncio
    async def test_manage_catalog(self, app_client: AsyncClient, world: SeededWorld) -> None:
        admin = as_user(world.users["admin"])

        created = await app_client.post(
            "/dimensions", json={"name": "Readability", "audience": "LEAD"}, headers=admin
        )
        assert created.status_code == 201
        readability = created.json()
        assert readability["position"] == 3
        assert readability["audience"] == "LEAD"

        ids = [readability["id"]] + [str(d) for d in world.dimensions.values()]
        reordered = await app_client.put(
            "/dimensions/reorder", json={"dimensionIds": ids}, headers=admin
        )
        assert reordered.status_code == 200
        assert [d["name"] for d in reordered.json()] == ["Readability", "Clarity", "Craft", "Scope"]

        patched = await app_client.patch(
            f"/dimensions/{readability['id']}", json={"isActive": False}, headers=admin
        )
        assert patched.status_code == 200
        assert patched.json()["is_active"] is False

        audience = await app_client.put(
            f"/dimensions/{readability['id']}/audience", json={"audience": "PO"}, headers=admin
        )
        assert audience.status_code == 200
        assert audience.json()["audience"] == "PO"

        listed = await app_client.get(
            "/dimensions", params={"include_inactive": "true"}, headers=as_user(world.users["lead"])
        )
        assert [d["name"] for d in listed.json()][0] == "Readability"

        deleted = await app_client.delete(
            f"/dimensions/{readability['id']}", params={"hard": "true"}, headers=admin
        )
        assert deleted.status_code == 204

        gone = await app_client.patch(
            f"/dimensions/{readability['id']}", json={"name": "Again"}, headers=admin
        )
        assert gone.status_code == 404

    @pytest.mark.asyncio
    async def test_mutations_require_super_admin(
        self, app_client: AsyncClient, world: SeededWorld
    ) -> None:
        response = await app_client.post(
            "/dimensions", json={"name": "Polish"}, headers=as_user(world.users["head"])
        )

        assert response.status_code == 403
        assert response.json()["code"] == "super_admin_required"

        malformed = await app_client.post(
            "/dimensions", json={"name": ""}, headers=as_user(world.users["member"])
        )

        assert malformed.status_code == 403
        assert malformed.json() == {
            "detail": "Super Admin access required",
            "code": "super_admin_required",
        }

    @pytest.mark.asyncio
    async def test_missing_identity(self, app_client: AsyncClient, world: SeededWorld) -> None:
        response = await app_client.get("/me/pending-evaluations")

        assert response.status_code == 401
