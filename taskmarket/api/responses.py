"""Response and reply routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from taskmarket.api.common import finish, parse_body
from taskmarket.auth import AuthUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import ErrorResponse, ReplyCreateRequest, ResponseUpdateRequest
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.replies import create_reply, delete_reply
from taskmarket.services.responses import (
    delete_response,
    get_my_responses,
    get_response_by_id,
    update_response,
)

router = APIRouter()

_NOT_ALLOWED = {403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}


@router.get("/api/responses/my")
@limiter.limit(settings.rate_limit_read)
async def my_responses(
    request: Request,
    user: Identity = AuthUser,
    session=Depends(get_db_session),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.default_page_size, ge=1, le=settings.max_page_size),
):
    return await get_my_responses(session, user.user_id, page=page, limit=limit)


@router.get("/api/responses/{response_id}", responses=_NOT_ALLOWED)
@limiter.limit(settings.rate_limit_read)
async def get_response(
    request: Request, response_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    return await get_response_by_id(session, response_id, user.user_id)


@router.patch("/api/responses/{response_id}", responses=_NOT_ALLOWED)
@limiter.limit(settings.rate_limit_write)
async def edit_response(
    request: Request, response_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    req = await parse_body(request, ResponseUpdateRequest)
    return await update_response(
        session, response_id, user.user_id, req.model_dump(exclude_unset=True)
    )


@router.delete("/api/responses/{response_id}", responses=_NOT_ALLOWED)
@limiter.limit(settings.rate_limit_write)
async def remove_response(
    request: Request, response_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    await delete_response(session, response_id, user.user_id)
    return {"ok": True}


@router.post(
    "/api/responses/{response_id}/replies",
    status_code=201,
    responses={**_NOT_ALLOWED, 400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def reply(
    request: Request, response_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    """Reply to a response on one of your own open tasks."""
    req = await parse_body(request, ReplyCreateRequest)
    outcome = await create_reply(session, response_id, user.user_id, req.message)
    return await finish(session, outcome)


@router.delete("/api/replies/{reply_id}", responses=_NOT_ALLOWED)
@limiter.limit(settings.rate_limit_write)
async def remove_reply(
    request: Request, reply_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    await delete_reply(session, reply_id, user.user_id)
    return {"ok": True}
