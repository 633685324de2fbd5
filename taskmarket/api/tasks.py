"""Task lifecycle routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Request

from taskmarket.api.common import finish, parse_body, task_filters_from_query
from taskmarket.auth import AuthUser, OptionalUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import (
    ErrorResponse,
    ResponseCreateRequest,
    TaskCreateRequest,
    TaskUpdateRequest,
)
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.responses import create_response
from taskmarket.services.tasks import (
    close_task,
    create_task,
    delete_task,
    delete_task_image,
    get_my_response,
    get_my_tasks,
    get_task_by_id,
    get_task_responses,
    get_tasks,
    update_task,
)

router = APIRouter(prefix="/api/tasks")


@router.get("", responses={400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def list_tasks(request: Request, session=Depends(get_db_session)):
    """Browse published tasks. Filters come from the query string."""
    return await get_tasks(session, task_filters_from_query(request))


@router.post("", status_code=201, responses={400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def post_task(request: Request, user: Identity = AuthUser, session=Depends(get_db_session)):
    req = await parse_body(request, TaskCreateRequest)
    outcome = await create_task(
        session,
        user.user_id,
        marketplace=req.marketplace,
        category_id=req.category_id,
        title=req.title,
        description=req.description,
        budget=req.budget,
        budget_type=req.budget_type,
        tag_ids=req.tag_ids,
        created_in_mode=req.created_in_mode,
        images=req.images,
    )
    return await finish(session, outcome)


@router.get("/my")
@limiter.limit(settings.rate_limit_read)
async def my_tasks(request: Request, user: Identity = AuthUser, session=Depends(get_db_session)):
    return await get_my_tasks(session, user.user_id, task_filters_from_query(request))


@router.get("/{task_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def get_task(
    request: Request,
    task_id: str,
    user: Identity | None = OptionalUser,
    session=Depends(get_db_session),
):
    return await get_task_by_id(session, task_id, user)


@router.patch(
    "/{task_id}",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def edit_task(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    req = await parse_body(request, TaskUpdateRequest)
    outcome = await update_task(session, task_id, user.user_id, req.model_dump(exclude_unset=True))
    return await finish(session, outcome)


@router.delete(
    "/{task_id}", responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}}
)
@limiter.limit(settings.rate_limit_write)
async def remove_task(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    outcome = await delete_task(session, task_id, user)
    await finish(session, outcome)
    return {"ok": True}


@router.delete(
    "/{task_id}/images/{index}",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_write)
async def remove_image(
    request: Request,
    task_id: str,
    index: int = Path(ge=0),
    user: Identity = AuthUser,
    session=Depends(get_db_session),
):
    outcome = await delete_task_image(session, task_id, user.user_id, index)
    return await finish(session, outcome)


@router.patch(
    "/{task_id}/close",
    responses={
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def close(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    outcome = await close_task(session, task_id, user.user_id)
    return await finish(session, outcome)


@router.get(
    "/{task_id}/responses",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_read)
async def list_responses(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    """Responses to a task. Only its owner may see them."""
    return {"responses": await get_task_responses(session, task_id, user.user_id)}


@router.post(
    "/{task_id}/responses",
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
@limiter.limit(settings.rate_limit_write)
async def respond(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    req = await parse_body(request, ResponseCreateRequest)
    outcome = await create_response(
        session, task_id, user.user_id, req.message, price=req.price, deadline=req.deadline
    )
    return await finish(session, outcome)


@router.get("/{task_id}/my-response", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def my_response(
    request: Request, task_id: str, user: Identity = AuthUser, session=Depends(get_db_session)
):
    return {"response": await get_my_response(session, task_id, user.user_id)}
