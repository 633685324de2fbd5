"""Notification inbox routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from taskmarket.auth import AuthUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.db_models import UserRole
from taskmarket.models import ErrorResponse, MarkAllReadResponse, NotificationsListResponse
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.notifications import (
    get_unread_notification_count,
    get_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)

router = APIRouter(prefix="/api/notifications")


@router.get("", response_model=NotificationsListResponse)
@limiter.limit(settings.rate_limit_read)
async def list_notifications(
    request: Request,
    user: Identity = AuthUser,
    session=Depends(get_db_session),
    role: UserRole | None = None,
    unread_only: bool = False,
):
    return NotificationsListResponse(
        notifications=await get_user_notifications(
            session, user.user_id, role=role, unread_only=unread_only
        ),
        unread_count=await get_unread_notification_count(session, user.user_id, role=role),
    )


@router.patch("/read-all", response_model=MarkAllReadResponse)
@limiter.limit(settings.rate_limit_write)
async def read_all(
    request: Request,
    user: Identity = AuthUser,
    session=Depends(get_db_session),
    role: UserRole | None = None,
):
    count = await mark_all_notifications_as_read(session, user.user_id, role=role)
    return MarkAllReadResponse(count=count)


@router.patch("/{notification_id}/read", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def read_one(
    request: Request,
    notification_id: str,
    user: Identity = AuthUser,
    session=Depends(get_db_session),
):
    return await mark_notification_as_read(session, notification_id, user.user_id)
