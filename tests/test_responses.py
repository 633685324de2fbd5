from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import false
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from taskmarket.db_models import Response
from taskmarket.errors import Conflict
from taskmarket.services import responses as responses_service
from tests.conftest import hdr, register_user, respond


@pytest.mark.asyncio
async def test_response_lifecycle_scenario(market, open_task):
    """Respond, duplicate, close, close again, respond to the closed task."""
    c = market["client"]
    task_url = f"/api/tasks/{open_task['id']}"

    created = await respond(c, market["performer"]["token"], open_task["id"], price=5000)
    assert created["price"] == 5000

    resp = await c.post(
        f"{task_url}/responses",
        headers=hdr(market["performer"]["token"]),
        json={"message": "Trying a second time here."},
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "you have already responded to this task"

    resp = await c.patch(f"{task_url}/close", headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 200
    assert resp.json()["status"] == "CLOSED"

    resp = await c.patch(f"{task_url}/close", headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 409
    assert resp.json()["error"] == "task already closed"

    newcomer = await register_user(c, "newcomer")
    resp = await c.post(
        f"{task_url}/responses",
        headers=hdr(newcomer["token"]),
        json={"message": "Is this still available?"},
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "cannot respond to a closed task"


@pytest.mark.asyncio
async def test_cannot_respond_to_own_task(market, open_task):
    resp = await market["client"].post(
        f"/api/tasks/{open_task['id']}/responses",
        headers=hdr(market["seller"]["token"]),
        json={"message": "Responding to myself."},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "cannot respond to own task"


@pytest.mark.asyncio
async def test_respond_to_missing_task(market):
    resp = await market["client"].post(
        "/api/tasks/tk_missing/responses",
        headers=hdr(market["performer"]["token"]),
        json={"message": "Hello there, anyone?"},
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "task not found"


@pytest.mark.asyncio
async def test_negative_price_rejected(market, open_task):
    resp = await market["client"].post(
        f"/api/tasks/{open_task['id']}/responses",
        headers=hdr(market["performer"]["token"]),
        json={"message": "I will pay you instead.", "price": -100},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "price must be a positive number"


@pytest.mark.asyncio
async def test_past_deadline_rejected(market, open_task):
    yesterday = (datetime.now(UTC) - timedelta(days=1)).isoformat()
    resp = await market["client"].post(
        f"/api/tasks/{open_task['id']}/responses",
        headers=hdr(market["performer"]["token"]),
        json={"message": "Already done, honestly.", "deadline": yesterday},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "deadline must be in the future"


@pytest.mark.asyncio
async def test_short_message_rejected(market, open_task):
    resp = await market["client"].post(
        f"/api/tasks/{open_task['id']}/responses",
        headers=hdr(market["performer"]["token"]),
        json={"message": "Hi"},
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_response_notifies_task_owner(market, open_task):
    c = market["client"]
    await respond(c, market["performer"]["token"], open_task["id"])

    resp = await c.get(
        "/api/notifications", headers=hdr(market["seller"]["token"]), params={"role": "SELLER"}
    )
    notes = resp.json()["notifications"]
    assert notes[0]["type"] == "NEW_RESPONSE"
    assert notes[0]["link"] == f"/tasks/{open_task['id']}"


@pytest.mark.asyncio
async def test_response_visible_to_author_and_owner_only(market, open_task):
    c = market["client"]
    created = await respond(c, market["performer"]["token"], open_task["id"])
    url = f"/api/responses/{created['id']}"

    resp = await c.get(url, headers=hdr(market["performer"]["token"]))
    assert resp.status_code == 200
    assert resp.json()["task"]["id"] == open_task["id"]

    resp = await c.get(url, headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 200

    resp = await c.get(url, headers=hdr(market["other"]["token"]))
    assert resp.status_code == 403
    assert resp.json()["error"] == "insufficient rights to view response"

    resp = await c.get("/api/responses/rs_missing", headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_response_by_author(market, open_task):
    c = market["client"]
    created = await respond(c, market["performer"]["token"], open_task["id"])

    resp = await c.patch(
        f"/api/responses/{created['id']}",
        headers=hdr(market["performer"]["token"]),
        json={"price": 4500},
    )
    assert resp.status_code == 200
    assert resp.json()["price"] == 4500
    assert resp.json()["message"] == created["message"]


@pytest.mark.asyncio
async def test_update_response_rejected_after_close(market, open_task):
    c = market["client"]
    created = await respond(c, market["performer"]["token"], open_task["id"], price=5000)
    await c.patch(f"/api/tasks/{open_task['id']}/close", headers=hdr(market["seller"]["token"]))

    resp = await c.patch(
        f"/api/responses/{created['id']}",
        headers=hdr(market["performer"]["token"]),
        json={"price": 1},
    )
    assert resp.status_code == 409
    assert resp.json()["error"] == "cannot update a response on a closed task"

    resp = await c.get(
        f"/api/responses/{created['id']}", headers=hdr(market["performer"]["token"])
    )
    assert resp.json()["price"] == 5000


@pytest.mark.asyncio
async def test_update_response_forbidden_for_task_owner(market, open_task):
    c = market["client"]
    created = await respond(c, market["performer"]["token"], open_task["id"])
    resp = await c.patch(
        f"/api/responses/{created['id']}",
        headers=hdr(market["seller"]["token"]),
        json={"price": 1},
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_delete_response(market, open_task):
    c = market["client"]
    created = await respond(c, market["performer"]["token"], open_task["id"])
    url = f"/api/responses/{created['id']}"

    resp = await c.delete(url, headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 403

    resp = await c.delete(url, headers=hdr(market["performer"]["token"]))
    assert resp.status_code == 200

    # Deleting frees the slot for a fresh response
    await respond(c, market["performer"]["token"], open_task["id"])


@pytest.mark.asyncio
async def test_my_responses_include_task_summary(market, open_task):
    c = market["client"]
    await respond(c, market["performer"]["token"], open_task["id"])

    resp = await c.get("/api/responses/my", headers=hdr(market["performer"]["token"]))
    assert resp.status_code == 200
    data = resp.json()
    assert data["pagination"]["total"] == 1
    [item] = data["responses"]
    assert item["task"]["title"] == open_task["title"]
    assert item["task"]["user"]["id"] == market["seller"]["id"]


@pytest.mark.asyncio
async def test_unique_index_rejects_second_response_row(market, open_task):
    async with market["db"]() as session:
        session.add(
            Response(
                id="rs_dup",
                task_id=open_task["id"],
                user_id=market["performer"]["id"],
                message="Row written behind the service's back",
            )
        )
        await session.commit()

        session.add(
            Response(
                id="rs_dup2",
                task_id=open_task["id"],
                user_id=market["performer"]["id"],
                message="Second row for the same pair",
            )
        )
        with pytest.raises(IntegrityError):
            await session.commit()


@pytest.mark.asyncio
async def test_concurrent_duplicate_response_maps_to_conflict(market, open_task, monkeypatch):
    """When the pre-check misses a racing insert, the unique index still wins."""
    performer_id = market["performer"]["id"]
    await respond(market["client"], market["performer"]["token"], open_task["id"])

    # Make the existence pre-check see nothing, as if the other insert had not landed yet
    monkeypatch.setattr(
        responses_service, "select", lambda *cols: select(*cols).where(false())
    )

    async with market["db"]() as session:
        with pytest.raises(Conflict, match="already responded"):
            await responses_service.create_response(
                session, open_task["id"], performer_id, "Racing second response here."
            )

    monkeypatch.undo()
    async with market["db"]() as session:
        result = await session.execute(
            select(Response).where(
                Response.task_id == open_task["id"], Response.user_id == performer_id
            )
        )
        assert len(result.scalars().all()) == 1
