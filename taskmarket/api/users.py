"""Profile, profile tag and performer routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from taskmarket.api.common import finish, parse_body, split_ids, task_filters_from_query
from taskmarket.auth import AuthUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import AddTagsRequest, ErrorResponse, ProfileUpdateRequest
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.tasks import get_user_tasks
from taskmarket.services.users import (
    add_tags_to_user,
    get_performers,
    get_user_profile,
    get_user_stats,
    get_user_tags,
    remove_tag_from_user,
    update_user_profile,
)

router = APIRouter(prefix="/api/users")


@router.get("/me", responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def me(request: Request, user: Identity = AuthUser, session=Depends(get_db_session)):
    return await get_user_profile(session, user.user_id)


@router.patch("/me", responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def update_me(
    request: Request, user: Identity = AuthUser, session=Depends(get_db_session)
):
    req = await parse_body(request, ProfileUpdateRequest)
    outcome = await update_user_profile(session, user.user_id, req.model_dump(exclude_unset=True))
    return await finish(session, outcome)


@router.get("/me/stats")
@limiter.limit(settings.rate_limit_read)
async def my_stats(request: Request, user: Identity = AuthUser, session=Depends(get_db_session)):
    return await get_user_stats(session, user.user_id)


@router.get("/me/tags")
@limiter.limit(settings.rate_limit_read)
async def my_tags(request: Request, user: Identity = AuthUser, session=Depends(get_db_session)):
    return {"tags": await get_user_tags(session, user.user_id)}


@router.post("/me/tags", responses={400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def add_my_tags(
    request: Request, user: Identity = AuthUser, session=Depends(get_db_session)
):
    req = await parse_body(request, AddTagsRequest)
    return {"tags": await add_tags_to_user(session, user.user_id, req.tag_ids)}


@router.delete("/me/tags/{tag_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def remove_my_tag(
    request: Request, tag_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    await remove_tag_from_user(session, user.user_id, tag_id)
    return {"ok": True}


@router.get("/performers")
@limiter.limit(settings.rate_limit_read)
async def performers(
    request: Request,
    session=Depends(get_db_session),
    tag_ids: str | None = None,
    category_ids: str | None = None,
    price_from: int | None = Query(None, ge=0),
    search: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    """Users who take on work, filterable by profile tags and price."""
    return await get_performers(
        session,
        tag_ids=split_ids(tag_ids),
        category_ids=split_ids(category_ids),
        price_from=price_from,
        search=search,
        page=page,
        limit=limit,
    )


@router.get("/{user_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def public_profile(request: Request, user_id: str, session=Depends(get_db_session)):
    profile = await get_user_profile(session, user_id)
    profile.pop("email")
    return profile


@router.get("/{user_id}/tags", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def public_tags(request: Request, user_id: str, session=Depends(get_db_session)):
    return {"tags": await get_user_tags(session, user_id)}


@router.get("/{user_id}/tasks", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def user_tasks(
    request: Request, user_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    """A user's tasks, filtered like the public listing."""
    return await get_user_tasks(session, user_id, user, task_filters_from_query(request))
