import pytest

from tests.conftest import approve_task, create_category, hdr, post_task, respond


@pytest.mark.asyncio
async def test_create_task_starts_open_and_pending(market):
    c = market["client"]
    cat = market["category"]
    task = await post_task(c, market["seller"]["token"], cat["id"], tag_ids=cat["tags"])

    assert task["status"] == "OPEN"
    assert task["moderation_status"] == "PENDING"
    assert task["user_id"] == market["seller"]["id"]
    assert {t["id"] for t in task["tags"]} == set(cat["tags"])
    assert task["category"]["id"] == cat["id"]
    assert task["response_count"] == 0


@pytest.mark.asyncio
async def test_create_task_notifies_owner_about_moderation(market):
    c = market["client"]
    seller = market["seller"]
    await post_task(c, seller["token"], market["category"]["id"])

    resp = await c.get("/api/notifications", headers=hdr(seller["token"]))
    types = [n["type"] for n in resp.json()["notifications"]]
    assert types == ["TASK_PENDING_MODERATION"]


@pytest.mark.asyncio
async def test_create_task_unknown_category(market):
    c = market["client"]
    resp = await c.post(
        "/api/tasks",
        headers=hdr(market["seller"]["token"]),
        json={
            "marketplace": "OZON",
            "category_id": "ct_missing",
            "title": "Some task",
            "description": "Long enough description",
        },
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "category not found"


@pytest.mark.asyncio
async def test_create_task_rejects_unknown_or_foreign_tags(market):
    c = market["client"]
    other = await create_category(market["db"], name="Advertising", tags=("Bloggers",))
    token = market["seller"]["token"]
    base = {
        "marketplace": "WB",
        "category_id": market["category"]["id"],
        "title": "Some task",
        "description": "Long enough description",
    }

    resp = await c.post("/api/tasks", headers=hdr(token), json={**base, "tag_ids": ["tg_nope"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "one or more tags not found"

    resp = await c.post("/api/tasks", headers=hdr(token), json={**base, "tag_ids": other["tags"]})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_task_requires_auth(market):
    resp = await market["client"].post("/api/tasks", json={})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_public_listing_only_shows_approved(market):
    c = market["client"]
    token = market["seller"]["token"]
    cat_id = market["category"]["id"]
    pending = await post_task(c, token, cat_id, title="Pending task")
    approved = await post_task(c, token, cat_id, title="Approved task")
    await approve_task(c, market["admin"]["token"], approved["id"])

    resp = await c.get("/api/tasks")
    assert resp.status_code == 200
    data = resp.json()
    assert [t["id"] for t in data["tasks"]] == [approved["id"]]
    assert data["total"] == 1
    assert data["page"] == 1

    resp = await c.get("/api/tasks/my", headers=hdr(token))
    assert {t["id"] for t in resp.json()["tasks"]} == {pending["id"], approved["id"]}


@pytest.mark.asyncio
async def test_listing_filters_and_sorting(market):
    c = market["client"]
    token = market["seller"]["token"]
    admin = market["admin"]["token"]
    cat = market["category"]

    cheap = await post_task(c, token, cat["id"], budget=1000, tag_ids=[cat["tags"][0]])
    pricey = await post_task(c, token, cat["id"], budget=9000, marketplace="OZON")
    for task in (cheap, pricey):
        await approve_task(c, admin, task["id"])

    resp = await c.get("/api/tasks", params={"marketplace": "OZON"})
    assert [t["id"] for t in resp.json()["tasks"]] == [pricey["id"]]

    resp = await c.get("/api/tasks", params={"tag_ids": cat["tags"][0]})
    assert [t["id"] for t in resp.json()["tasks"]] == [cheap["id"]]

    resp = await c.get("/api/tasks", params={"budget_min": 2000})
    assert [t["id"] for t in resp.json()["tasks"]] == [pricey["id"]]

    resp = await c.get("/api/tasks", params={"sort_by": "budget", "sort_order": "asc"})
    assert [t["id"] for t in resp.json()["tasks"]] == [cheap["id"], pricey["id"]]

    resp = await c.get("/api/tasks", params={"limit": 1, "page": 2, "sort_by": "budget"})
    data = resp.json()
    assert [t["id"] for t in data["tasks"]] == [cheap["id"]]
    assert data["total_pages"] == 2


@pytest.mark.asyncio
async def test_listing_rejects_bad_filters(market):
    resp = await market["client"].get("/api/tasks", params={"sort_by": "title"})
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_pending_task_visible_only_to_owner_and_admin(market):
    c = market["client"]
    task = await post_task(c, market["seller"]["token"], market["category"]["id"])
    url = f"/api/tasks/{task['id']}"

    assert (await c.get(url)).status_code == 404
    assert (await c.get(url, headers=hdr(market["performer"]["token"]))).status_code == 404
    assert (await c.get(url, headers=hdr(market["seller"]["token"]))).status_code == 200
    assert (await c.get(url, headers=hdr(market["admin"]["token"]))).status_code == 200

    await approve_task(c, market["admin"]["token"], task["id"])
    assert (await c.get(url)).status_code == 200


@pytest.mark.asyncio
async def test_update_task_requires_owner(market, open_task):
    resp = await market["client"].patch(
        f"/api/tasks/{open_task['id']}",
        headers=hdr(market["performer"]["token"]),
        json={"title": "Hijacked"},
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "insufficient rights to update task"


@pytest.mark.asyncio
async def test_update_task_missing(market):
    resp = await market["client"].patch(
        "/api/tasks/tk_missing", headers=hdr(market["seller"]["token"]), json={"title": "New"}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_task_is_partial_and_resets_moderation(market, open_task):
    c = market["client"]
    resp = await c.patch(
        f"/api/tasks/{open_task['id']}",
        headers=hdr(market["seller"]["token"]),
        json={"budget": 7000},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["budget"] == 7000
    assert data["title"] == open_task["title"]
    assert data["moderation_status"] == "PENDING"

    resp = await c.get(
        f"/api/admin/tasks/{open_task['id']}/history", headers=hdr(market["admin"]["token"])
    )
    latest = resp.json()["history"][0]
    assert latest["changed_fields"] == ["budget"]
    assert latest["changes"]["budget"] == {"old": 5000, "new": 7000}


@pytest.mark.asyncio
async def test_update_task_without_changes_keeps_approval(market, open_task):
    resp = await market["client"].patch(
        f"/api/tasks/{open_task['id']}",
        headers=hdr(market["seller"]["token"]),
        json={"title": open_task["title"]},
    )
    assert resp.status_code == 200
    assert resp.json()["moderation_status"] == "APPROVED"


@pytest.mark.asyncio
async def test_update_task_replaces_tags(market, open_task):
    tags = market["category"]["tags"]
    resp = await market["client"].patch(
        f"/api/tasks/{open_task['id']}",
        headers=hdr(market["seller"]["token"]),
        json={"tag_ids": [tags[1]]},
    )
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()["tags"]] == [tags[1]]


@pytest.mark.asyncio
async def test_close_task_twice_conflicts(market, open_task):
    c = market["client"]
    url = f"/api/tasks/{open_task['id']}/close"
    token = market["seller"]["token"]

    resp = await c.patch(url, headers=hdr(token))
    assert resp.status_code == 200
    assert resp.json()["status"] == "CLOSED"

    resp = await c.patch(url, headers=hdr(token))
    assert resp.status_code == 409
    assert resp.json()["error"] == "task already closed"


@pytest.mark.asyncio
async def test_close_task_requires_owner(market, open_task):
    resp = await market["client"].patch(
        f"/api/tasks/{open_task['id']}/close", headers=hdr(market["performer"]["token"])
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_close_task_notifies_responders(market, open_task):
    c = market["client"]
    await respond(c, market["performer"]["token"], open_task["id"])
    await c.patch(f"/api/tasks/{open_task['id']}/close", headers=hdr(market["seller"]["token"]))

    resp = await c.get("/api/notifications", headers=hdr(market["performer"]["token"]))
    notes = resp.json()["notifications"]
    assert [n["type"] for n in notes] == ["TASK_CLOSED"]
    assert notes[0]["role"] == "PERFORMER"


@pytest.mark.asyncio
async def test_delete_task_by_owner_cascades(market, open_task):
    c = market["client"]
    response = await respond(c, market["performer"]["token"], open_task["id"])
    await c.post(
        f"/api/responses/{response['id']}/replies",
        headers=hdr(market["seller"]["token"]),
        json={"message": "Thanks"},
    )

    resp = await c.delete(f"/api/tasks/{open_task['id']}", headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 200

    resp = await c.get(f"/api/tasks/{open_task['id']}", headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 404
    resp = await c.get(
        f"/api/responses/{response['id']}", headers=hdr(market["performer"]["token"])
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_task_forbidden_for_others(market, open_task):
    resp = await market["client"].delete(
        f"/api/tasks/{open_task['id']}", headers=hdr(market["performer"]["token"])
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "insufficient rights to delete task"


@pytest.mark.asyncio
async def test_admin_delete_notifies_owner(market, open_task):
    c = market["client"]
    resp = await c.delete(f"/api/tasks/{open_task['id']}", headers=hdr(market["admin"]["token"]))
    assert resp.status_code == 200

    resp = await c.get("/api/notifications", headers=hdr(market["seller"]["token"]))
    types = [n["type"] for n in resp.json()["notifications"]]
    assert types[0] == "TASK_DELETED_BY_ADMIN"


@pytest.mark.asyncio
async def test_task_responses_only_for_owner(market, open_task):
    c = market["client"]
    await respond(c, market["performer"]["token"], open_task["id"])
    url = f"/api/tasks/{open_task['id']}/responses"

    resp = await c.get(url, headers=hdr(market["performer"]["token"]))
    assert resp.status_code == 403
    assert resp.json()["error"] == "insufficient rights to view responses"

    resp = await c.get(url, headers=hdr(market["seller"]["token"]))
    assert resp.status_code == 200
    [response] = resp.json()["responses"]
    assert response["user"]["username"] == "performer"
    assert "email" not in response["user"]
    assert response["replies"] == []


@pytest.mark.asyncio
async def test_my_response_lookup(market, open_task):
    c = market["client"]
    url = f"/api/tasks/{open_task['id']}/my-response"

    resp = await c.get(url, headers=hdr(market["performer"]["token"]))
    assert resp.json() == {"response": None}

    created = await respond(c, market["performer"]["token"], open_task["id"])
    resp = await c.get(url, headers=hdr(market["performer"]["token"]))
    assert resp.json()["response"]["id"] == created["id"]
