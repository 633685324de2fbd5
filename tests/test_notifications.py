import pytest

from taskmarket.db_models import User, UserRole
from taskmarket.errors import NotFound
from taskmarket.services.notifications import (
    NOTIFICATION_LIMIT,
    create_notification,
    get_unread_notification_count,
    get_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)
from tests.conftest import hdr, register_user


async def _add_user(session, uid: str) -> None:
    session.add(User(id=uid, email=f"{uid}@example.com", username=uid, password_hash="x"))
    await session.commit()


async def _notify(session, uid: str, n: int = 1, role: UserRole = UserRole.SELLER) -> list[dict]:
    return [
        await create_notification(session, uid, role, "TEST", f"Title {i}", f"Message {i}")
        for i in range(n)
    ]


@pytest.mark.asyncio
async def test_list_is_capped_and_newest_first(db):
    async with db() as session:
        await _add_user(session, "us_a")
        await _notify(session, "us_a", NOTIFICATION_LIMIT + 5)

        rows = await get_user_notifications(session, "us_a")
        assert len(rows) == NOTIFICATION_LIMIT == 50
        stamps = [r["created_at"] for r in rows]
        assert stamps == sorted(stamps, reverse=True)
        assert rows[0]["title"] == f"Title {NOTIFICATION_LIMIT + 4}"


@pytest.mark.asyncio
async def test_empty_link_is_stored_as_none(db):
    async with db() as session:
        await _add_user(session, "us_a")
        note = await create_notification(session, "us_a", UserRole.SELLER, "T", "t", "m", link="")
        assert note["link"] is None
        assert note["read"] is False


@pytest.mark.asyncio
async def test_role_and_unread_filters(db):
    async with db() as session:
        await _add_user(session, "us_a")
        [seller_note] = await _notify(session, "us_a", 1, UserRole.SELLER)
        await _notify(session, "us_a", 2, UserRole.PERFORMER)
        await mark_notification_as_read(session, seller_note["id"], "us_a")

        assert len(await get_user_notifications(session, "us_a", role=UserRole.PERFORMER)) == 2
        assert len(await get_user_notifications(session, "us_a", unread_only=True)) == 2
        assert await get_unread_notification_count(session, "us_a") == 2
        assert await get_unread_notification_count(session, "us_a", role=UserRole.SELLER) == 0


@pytest.mark.asyncio
async def test_mark_read_of_someone_elses_notification_is_not_found(db):
    async with db() as session:
        await _add_user(session, "us_a")
        await _add_user(session, "us_b")
        [note] = await _notify(session, "us_a")

        with pytest.raises(NotFound, match="notification not found"):
            await mark_notification_as_read(session, note["id"], "us_b")

        updated = await mark_notification_as_read(session, note["id"], "us_a")
        assert updated["read"] is True


@pytest.mark.asyncio
async def test_mark_all_read_returns_count(db):
    async with db() as session:
        await _add_user(session, "us_a")
        await _notify(session, "us_a", 3, UserRole.SELLER)
        await _notify(session, "us_a", 2, UserRole.PERFORMER)

        assert await mark_all_notifications_as_read(session, "us_a", role=UserRole.SELLER) == 3
        assert await mark_all_notifications_as_read(session, "us_a") == 2
        assert await mark_all_notifications_as_read(session, "us_a") == 0


@pytest.mark.asyncio
async def test_notification_routes(client, db):
    alice = await register_user(client, "alice")
    bob = await register_user(client, "bob")
    async with db() as session:
        [note] = await _notify(session, alice["id"])

    resp = await client.get("/api/notifications", headers=hdr(alice["token"]))
    assert resp.status_code == 200
    assert resp.json()["unread_count"] == 1

    resp = await client.patch(f"/api/notifications/{note['id']}/read", headers=hdr(bob["token"]))
    assert resp.status_code == 404

    resp = await client.patch(
        f"/api/notifications/{note['id']}/read", headers=hdr(alice["token"])
    )
    assert resp.status_code == 200
    assert resp.json()["read"] is True

    resp = await client.patch("/api/notifications/read-all", headers=hdr(alice["token"]))
    assert resp.json() == {"count": 0}
