"""Admin routes: moderation queue, task history, stats and the full ad list."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from taskmarket.api.common import finish, parse_body
from taskmarket.auth import AdminUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import ErrorResponse, ModerateRequest
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.ads import get_all_ads
from taskmarket.services.tasks import (
    get_admin_stats,
    get_pending_tasks,
    get_task_history,
    moderate_task,
)

router = APIRouter(
    prefix="/api/admin",
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


@router.get("/ads")
@limiter.limit(settings.rate_limit_read)
async def all_ads(request: Request, admin: Identity = AdminUser, session=Depends(get_db_session)):
    return {"ads": await get_all_ads(session)}


@router.get("/stats")
@limiter.limit(settings.rate_limit_read)
async def stats(request: Request, admin: Identity = AdminUser, session=Depends(get_db_session)):
    return await get_admin_stats(session)


@router.get("/tasks/pending")
@limiter.limit(settings.rate_limit_read)
async def pending_tasks(
    request: Request,
    admin: Identity = AdminUser,
    session=Depends(get_db_session),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    return await get_pending_tasks(session, page=page, limit=limit)


@router.get("/tasks/{task_id}/history", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def task_history(
    request: Request, task_id: str, admin: Identity = AdminUser, session=Depends(get_db_session)
):
    return {"history": await get_task_history(session, task_id)}


@router.post(
    "/tasks/{task_id}/moderate",
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def moderate(
    request: Request, task_id: str, admin: Identity = AdminUser, session=Depends(get_db_session)
):
    """Approve or reject a task waiting for moderation."""
    req = await parse_body(request, ModerateRequest)
    outcome = await moderate_task(session, task_id, admin.user_id, req.action, req.comment)
    return await finish(session, outcome)
