"""Per-user notifications: creation, listing and read state."""

from __future__ import annotations

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.db_models import Notification, UserRole
from taskmarket.errors import NotFound
from taskmarket.ids import notification_id

# Hard cap on rows returned by get_user_notifications
NOTIFICATION_LIMIT = 50


def _notification_to_dict(n: Notification) -> dict:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "role": n.role.value if isinstance(n.role, UserRole) else n.role,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "link": n.link,
        "read": n.read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


async def create_notification(
    session: AsyncSession,
    user_id: str,
    role: UserRole,
    type: str,
    title: str,
    message: str,
    link: str | None = None,
) -> dict:
    notification = Notification(
        id=notification_id(),
        user_id=user_id,
        role=role,
        type=type,
        title=title,
        message=message,
        link=link or None,
    )
    session.add(notification)
    await session.commit()
    return _notification_to_dict(notification)


async def get_user_notifications(
    session: AsyncSession,
    user_id: str,
    role: UserRole | None = None,
    unread_only: bool = False,
) -> list[dict]:
    """Newest notifications first, never more than NOTIFICATION_LIMIT."""
    query = select(Notification).where(Notification.user_id == user_id)
    if role:
        query = query.where(Notification.role == role)
    if unread_only:
        query = query.where(Notification.read == False)  # noqa: E712
    query = query.order_by(Notification.created_at.desc()).limit(NOTIFICATION_LIMIT)

    result = await session.execute(query)
    return [_notification_to_dict(n) for n in result.scalars().all()]


async def get_unread_notification_count(
    session: AsyncSession, user_id: str, role: UserRole | None = None
) -> int:
    query = (
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read == False)  # noqa: E712
    )
    if role:
        query = query.where(Notification.role == role)
    result = await session.execute(query)
    return result.scalar_one()


async def mark_notification_as_read(
    session: AsyncSession, notification_id: str, user_id: str
) -> dict:
    result = await session.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFound("notification not found")

    notification.read = True
    session.add(notification)
    await session.commit()
    return _notification_to_dict(notification)


async def mark_all_notifications_as_read(
    session: AsyncSession, user_id: str, role: UserRole | None = None
) -> int:
    """Bulk-mark unread notifications as read. Returns the number updated."""
    stmt = update(Notification).where(
        Notification.user_id == user_id,
        Notification.read == False,  # noqa: E712
    )
    if role:
        stmt = stmt.where(Notification.role == role)
    result = await session.execute(stmt.values(read=True))
    await session.commit()
    return result.rowcount
