"""User accounts: registration, login, profiles, profile tags, performer search."""

from __future__ import annotations

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.auth import (
    REFRESH,
    generate_token_pair,
    hash_password,
    verify_password,
    verify_token,
)
from taskmarket.db_models import (
    Category,
    Response,
    Tag,
    Task,
    TaskStatus,
    User,
    UserRole,
    UserTag,
)
from taskmarket.effects import FileDeletion, Outcome
from taskmarket.errors import Conflict, InvalidInput, NotFound, Unauthenticated
from taskmarket.files import AVATARS, check_uploads, is_managed_url, owned_prefix
from taskmarket.ids import user_id as make_user_id
from taskmarket.permissions import Identity
from taskmarket.utils import isoformat, pagination

PROFILE_FIELDS = (
    "name",
    "username",
    "avatar_url",
    "description",
    "price_from",
    "telegram",
    "whatsapp",
    "email_contact",
    "role",
)


def _identity(user: User) -> Identity:
    return Identity(user_id=user.id, role=user.role, email=user.email)


def user_to_profile(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "name": user.name,
        "role": user.role.value,
        "avatar_url": user.avatar_url,
        "description": user.description,
        "price_from": user.price_from,
        "telegram": user.telegram,
        "whatsapp": user.whatsapp,
        "email_contact": user.email_contact,
        "created_at": isoformat(user.created_at),
    }


def user_to_public(user: User) -> dict:
    """Fields safe to attach to tasks and responses seen by other users."""
    return {
        "id": user.id,
        "username": user.username,
        "name": user.name,
        "avatar_url": user.avatar_url,
        "description": user.description,
        "price_from": user.price_from,
    }


def _auth_result(user: User) -> dict:
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role.value,
        },
        **generate_token_pair(_identity(user)),
    }


async def _get_user_or_404(session: AsyncSession, uid: str) -> User:
    user = await session.get(User, uid)
    if not user:
        raise NotFound("user not found")
    return user


# ---------------------------------------------------------------------------
# Registration & login
# ---------------------------------------------------------------------------


async def _commit_unique(session: AsyncSession, message: str) -> None:
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise Conflict(message) from None


async def register_user(
    session: AsyncSession,
    email: str,
    password: str,
    username: str,
    name: str | None = None,
    role: UserRole = UserRole.BOTH,
) -> dict:
    """Register a new user. New accounts act as both seller and performer."""
    email = email.lower()
    existing = await session.execute(select(User.id).where(User.email == email))
    if existing.first():
        raise Conflict("a user with this email already exists")

    existing = await session.execute(select(User.id).where(User.username == username))
    if existing.first():
        raise Conflict("a user with this username already exists")

    user = User(
        id=make_user_id(),
        email=email,
        username=username,
        password_hash=hash_password(password),
        name=name,
        role=role,
    )
    session.add(user)
    await _commit_unique(session, "a user with this email or username already exists")
    return _auth_result(user)


async def login_user(session: AsyncSession, email: str, password: str) -> dict:
    result = await session.execute(select(User).where(User.email == email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthenticated("invalid email or password")
    return _auth_result(user)


async def refresh_tokens(session: AsyncSession, refresh_token: str) -> dict:
    identity = verify_token(refresh_token, token_type=REFRESH)
    if identity is None:
        raise Unauthenticated("invalid refresh token")

    # Re-read the user so role changes and deletions take effect
    user = await session.get(User, identity.user_id)
    if not user:
        raise Unauthenticated("invalid refresh token")
    return generate_token_pair(_identity(user))


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------


async def get_user_profile(session: AsyncSession, uid: str) -> dict:
    return user_to_profile(await _get_user_or_404(session, uid))


async def update_user_profile(session: AsyncSession, uid: str, patch: dict) -> Outcome:
    user = await _get_user_or_404(session, uid)

    if patch.get("username") is not None and patch["username"] != user.username:
        taken = await session.execute(
            select(User.id).where(User.username == patch["username"], User.id != uid)
        )
        if taken.first():
            raise Conflict("a user with this username already exists")

    effects = []
    if "avatar_url" in patch:
        new_avatar = patch["avatar_url"] or None
        own_avatars = owned_prefix(AVATARS, uid)
        if new_avatar:
            check_uploads([new_avatar], own_avatars)
        if new_avatar != user.avatar_url and is_managed_url(user.avatar_url, own_avatars):
            effects.append(FileDeletion(user.avatar_url))
        user.avatar_url = new_avatar

    for key in PROFILE_FIELDS:
        if key == "avatar_url" or key not in patch:
            continue
        value = patch[key]
        if value is None and key in ("username", "role"):
            continue
        if key == "role":
            value = UserRole(value)
        setattr(user, key, value)

    session.add(user)
    await _commit_unique(session, "a user with this username already exists")
    return Outcome(user_to_profile(user), effects)


# ---------------------------------------------------------------------------
# Profile tags
# ---------------------------------------------------------------------------


async def get_user_tags(session: AsyncSession, uid: str) -> list[dict]:
    await _get_user_or_404(session, uid)
    result = await session.execute(
        select(Tag, Category)
        .join(UserTag, UserTag.tag_id == Tag.id)
        .join(Category, Tag.category_id == Category.id)
        .where(UserTag.user_id == uid)
        .order_by(Tag.name.asc())
    )
    return [
        {"id": tag.id, "name": tag.name, "category": {"id": cat.id, "name": cat.name}}
        for tag, cat in result.all()
    ]


async def add_tags_to_user(session: AsyncSession, uid: str, tag_ids: list[str]) -> list[dict]:
    await _get_user_or_404(session, uid)

    wanted = list(dict.fromkeys(tag_ids))
    found = await session.execute(select(Tag.id).where(Tag.id.in_(wanted)))
    if len({row[0] for row in found.fetchall()}) != len(wanted):
        raise InvalidInput("one or more tags not found")

    linked = await session.execute(
        select(UserTag.tag_id).where(UserTag.user_id == uid, UserTag.tag_id.in_(wanted))
    )
    already = {row[0] for row in linked.fetchall()}
    for tid in (t for t in wanted if t not in already):
        session.add(UserTag(user_id=uid, tag_id=tid))
    await session.commit()

    return await get_user_tags(session, uid)


async def remove_tag_from_user(session: AsyncSession, uid: str, tag_id: str) -> None:
    link = await session.get(UserTag, (uid, tag_id))
    if not link:
        raise NotFound("tag not found in user profile")
    await session.delete(link)
    await session.commit()


# ---------------------------------------------------------------------------
# Performer search & stats
# ---------------------------------------------------------------------------


async def get_performers(
    session: AsyncSession,
    tag_ids: list[str] | None = None,
    category_ids: list[str] | None = None,
    price_from: int | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    query = select(User).where(User.role.in_([UserRole.PERFORMER, UserRole.BOTH]))

    if price_from is not None:
        query = query.where(User.price_from >= price_from)

    if search:
        term = f"%{search}%"
        query = query.where(or_(User.name.ilike(term), User.description.ilike(term)))

    tag_conditions = []
    if tag_ids:
        tag_conditions.append(UserTag.tag_id.in_(tag_ids))
    if category_ids:
        tag_conditions.append(
            UserTag.tag_id.in_(select(Tag.id).where(Tag.category_id.in_(category_ids)))
        )
    if tag_conditions:
        query = query.where(User.id.in_(select(UserTag.user_id).where(or_(*tag_conditions))))

    count_result = await session.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar_one()

    result = await session.execute(
        query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    users = list(result.scalars().all())

    performers = []
    for user in users:
        profile = user_to_profile(user)
        profile.pop("email")
        profile["tags"] = await get_user_tags(session, user.id)
        performers.append(profile)

    return {
        "performers": performers,
        "pagination": pagination(page, limit, total),
    }


async def _count(session: AsyncSession, query) -> int:
    result = await session.execute(select(func.count()).select_from(query.subquery()))
    return result.scalar_one()


async def get_user_stats(session: AsyncSession, uid: str) -> dict:
    await _get_user_or_404(session, uid)

    own_tasks = select(Task.id).where(Task.user_id == uid)
    spent = await session.execute(
        select(func.coalesce(func.sum(Task.budget), 0)).where(
            Task.user_id == uid, Task.status == TaskStatus.CLOSED
        )
    )

    return {
        "seller": {
            "active_tasks": await _count(
                session, select(Task.id).where(Task.user_id == uid, Task.status == TaskStatus.OPEN)
            ),
            "total_tasks": await _count(session, own_tasks),
            "total_responses": await _count(
                session, select(Response.id).where(Response.task_id.in_(own_tasks))
            ),
            "total_spent": spent.scalar_one(),
        },
        "executor": {
            "active_projects": await _count(
                session,
                select(Response.id)
                .join(Task, Response.task_id == Task.id)
                .where(Response.user_id == uid, Task.status == TaskStatus.OPEN),
            ),
            "total_responses": await _count(
                session, select(Response.id).where(Response.user_id == uid)
            ),
        },
    }


async def ensure_admin(session: AsyncSession, email: str, password: str) -> bool:
    """Create the admin account if it does not exist. Returns True if created."""
    existing = await session.execute(select(User.id).where(User.email == email.lower()))
    if existing.first():
        return False
    session.add(
        User(
            id=make_user_id(),
            email=email.lower(),
            username="admin",
            password_hash=hash_password(password),
            name="Administrator",
            role=UserRole.ADMIN,
        )
    )
    await session.commit()
    return True
