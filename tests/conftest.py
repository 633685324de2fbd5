"""Test fixtures with in-memory SQLite via SQLModel."""

from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from taskmarket.database import get_db_session
from taskmarket.db_models import (  # noqa: F401 — register tables
    Ad,
    Category,
    Notification,
    Reply,
    Response,
    Tag,
    Task,
    TaskModerationHistory,
    TaskTag,
    User,
    UserTag,
)
from taskmarket.ids import category_id, tag_id
from taskmarket.main import app
from taskmarket.rate_limit import limiter
from taskmarket.services.users import ensure_admin

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite://", echo=False, connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)  # type: ignore[call-overload]

    async def override_get_db_session():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    limiter.enabled = False

    yield factory

    app.dependency_overrides.clear()
    await engine.dispose()


@pytest.fixture
async def client(db):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def hdr(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register_user(client: AsyncClient, username: str) -> dict:
    """Helper: register a user, return {"id", "token", "refresh_token"}."""
    resp = await client.post(
        "/api/auth/register",
        json={
            "email": f"{username}@example.com",
            "password": "password123",
            "username": username,
            "name": username.title(),
        },
    )
    assert resp.status_code == 201, resp.text
    data = resp.json()
    return {
        "id": data["user"]["id"],
        "token": data["access_token"],
        "refresh_token": data["refresh_token"],
    }


async def create_category(db, name: str = "Content", tags: tuple[str, ...] = ("Photos", "Video")):
    """Insert a category with tags directly. Returns {"id", "tags": [tag ids]}."""
    async with db() as session:
        category = Category(id=category_id(), name=name)
        session.add(category)
        tag_ids = []
        for tag_name in tags:
            tag = Tag(id=tag_id(), name=tag_name, category_id=category.id)
            session.add(tag)
            tag_ids.append(tag.id)
        await session.commit()
    return {"id": category.id, "tags": tag_ids}


async def post_task(client: AsyncClient, token: str, category_id: str, **overrides) -> dict:
    body = {
        "marketplace": "WB",
        "category_id": category_id,
        "title": "Optimise product cards",
        "description": "Rewrite titles and descriptions for 20 product cards.",
        "budget": 5000,
    }
    body.update(overrides)
    resp = await client.post("/api/tasks", headers=hdr(token), json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def approve_task(client: AsyncClient, admin_token: str, task_id: str) -> dict:
    resp = await client.post(
        f"/api/admin/tasks/{task_id}/moderate",
        headers=hdr(admin_token),
        json={"action": "APPROVE"},
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


async def respond(client: AsyncClient, token: str, task_id: str, **overrides) -> dict:
    body = {"message": "I can do this within a week.", "price": 5000}
    body.update(overrides)
    resp = await client.post(f"/api/tasks/{task_id}/responses", headers=hdr(token), json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.fixture
async def admin(client, db):
    async with db() as session:
        await ensure_admin(session, ADMIN_EMAIL, ADMIN_PASSWORD)
    resp = await client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    )
    assert resp.status_code == 200
    data = resp.json()
    return {"id": data["user"]["id"], "token": data["access_token"]}


@pytest.fixture
async def market(client, db, admin):
    """A category with tags, an admin, a seller and two performers."""
    return {
        "client": client,
        "db": db,
        "category": await create_category(db),
        "admin": admin,
        "seller": await register_user(client, "seller"),
        "performer": await register_user(client, "performer"),
        "other": await register_user(client, "other"),
    }


@pytest.fixture
async def open_task(market):
    """An approved, open task owned by the seller."""
    c = market["client"]
    task = await post_task(c, market["seller"]["token"], market["category"]["id"])
    await approve_task(c, market["admin"]["token"], task["id"])
    return task
