"""Performer responses to tasks."""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.db_models import Category, Reply, Response, Task, TaskStatus, User, UserRole
from taskmarket.effects import NotificationRequest, Outcome
from taskmarket.errors import Conflict, Forbidden, InvalidInput, NotFound
from taskmarket.ids import response_id as make_response_id
from taskmarket.permissions import can_modify_response, can_view_response, is_task_owner
from taskmarket.services.replies import replies_for_responses
from taskmarket.services.users import user_to_public
from taskmarket.utils import as_utc, enum_value, isoformat, pagination

logger = logging.getLogger("taskmarket.responses")


def response_to_dict(
    response: Response,
    author: User | None = None,
    replies: list[dict] | None = None,
) -> dict:
    data = {
        "id": response.id,
        "task_id": response.task_id,
        "user_id": response.user_id,
        "message": response.message,
        "price": response.price,
        "deadline": isoformat(response.deadline),
        "created_at": isoformat(response.created_at),
        "updated_at": isoformat(response.updated_at),
    }
    if author is not None:
        data["user"] = user_to_public(author)
    if replies is not None:
        data["replies"] = replies
    return data


def _task_summary(task: Task, category: Category | None, owner: User | None) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "status": enum_value(task.status),
        "budget": task.budget,
        "budget_type": enum_value(task.budget_type),
        "category": {"id": category.id, "name": category.name} if category else None,
        "user": user_to_public(owner) if owner else None,
    }


def _validate_terms(price: int | None, deadline: datetime | None) -> None:
    if price is not None and price <= 0:
        raise InvalidInput("price must be a positive number")
    if deadline is not None and as_utc(deadline) <= datetime.now(UTC):
        raise InvalidInput("deadline must be in the future")


async def _get_response_or_404(session: AsyncSession, rid: str) -> Response:
    response = await session.get(Response, rid)
    if not response:
        raise NotFound("response not found")
    return response


async def create_response(
    session: AsyncSession,
    task_id: str,
    author_id: str,
    message: str,
    price: int | None = None,
    deadline: datetime | None = None,
) -> Outcome:
    """Respond to an open task. At most one response per performer per task."""
    task = await session.get(Task, task_id)
    if not task:
        raise NotFound("task not found")
    if is_task_owner(task, author_id):
        raise InvalidInput("cannot respond to own task")
    if task.status != TaskStatus.OPEN:
        raise Conflict("cannot respond to a closed task")

    existing = await session.execute(
        select(Response.id).where(Response.task_id == task_id, Response.user_id == author_id)
    )
    if existing.first():
        raise Conflict("you have already responded to this task")

    _validate_terms(price, deadline)

    response = Response(
        id=make_response_id(),
        task_id=task_id,
        user_id=author_id,
        message=message,
        price=price,
        deadline=deadline,
    )
    session.add(response)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent response from the same performer
        await session.rollback()
        raise Conflict("you have already responded to this task") from None

    author = await session.get(User, author_id)
    effects = [
        NotificationRequest(
            user_id=task.user_id,
            role=UserRole.SELLER,
            type="NEW_RESPONSE",
            title="New response",
            message=f'A performer responded to your task "{task.title}"',
            link=f"/tasks/{task.id}",
        )
    ]
    return Outcome(response_to_dict(response, author, []), effects)


async def get_response_by_id(session: AsyncSession, rid: str, requester_id: str) -> dict:
    response = await _get_response_or_404(session, rid)
    task = await session.get(Task, response.task_id)
    if not task or not can_view_response(response, task, requester_id):
        raise Forbidden("insufficient rights to view response")

    author = await session.get(User, response.user_id)
    replies = await replies_for_responses(session, [response.id])
    data = response_to_dict(response, author, replies[response.id])
    category = await session.get(Category, task.category_id)
    owner = await session.get(User, task.user_id)
    data["task"] = _task_summary(task, category, owner)
    return data


async def update_response(
    session: AsyncSession, rid: str, requester_id: str, patch: dict
) -> dict:
    """Edit a response while its task is still open."""
    response = await _get_response_or_404(session, rid)
    if not can_modify_response(response, requester_id):
        raise Forbidden("insufficient rights to update response")
    task = await session.get(Task, response.task_id)
    if task and task.status != TaskStatus.OPEN:
        raise Conflict("cannot update a response on a closed task")

    _validate_terms(patch.get("price"), patch.get("deadline"))

    if patch.get("message") is not None:
        response.message = patch["message"]
    for key in ("price", "deadline"):
        if key in patch:
            setattr(response, key, patch[key])
    response.updated_at = datetime.now(UTC)
    session.add(response)
    await session.commit()

    author = await session.get(User, response.user_id)
    return response_to_dict(response, author)


async def delete_response(session: AsyncSession, rid: str, requester_id: str) -> None:
    response = await _get_response_or_404(session, rid)
    if not can_modify_response(response, requester_id):
        raise Forbidden("insufficient rights to delete response")

    await session.execute(delete(Reply).where(Reply.response_id == rid))
    await session.delete(response)
    await session.commit()
    logger.info("Response %s deleted by its author", rid)


async def get_my_responses(
    session: AsyncSession, requester_id: str, page: int = 1, limit: int = 20
) -> dict:
    """The requester's responses, newest first, each with its task summary."""
    count = await session.execute(
        select(func.count()).select_from(Response).where(Response.user_id == requester_id)
    )
    total = count.scalar_one()

    result = await session.execute(
        select(Response, Task, Category, User)
        .join(Task, Response.task_id == Task.id)
        .join(Category, Task.category_id == Category.id, isouter=True)
        .join(User, Task.user_id == User.id, isouter=True)
        .where(Response.user_id == requester_id)
        .order_by(Response.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    rows = result.all()
    replies = await replies_for_responses(session, [r.id for r, *_ in rows])

    responses = []
    for response, task, category, owner in rows:
        data = response_to_dict(response, replies=replies[response.id])
        data["task"] = _task_summary(task, category, owner)
        responses.append(data)

    return {"responses": responses, "pagination": pagination(page, limit, total)}


async def get_responses_for_task(session: AsyncSession, task_id: str) -> list[dict]:
    """All responses to a task, newest first, with authors and reply threads."""
    result = await session.execute(
        select(Response, User)
        .join(User, Response.user_id == User.id, isouter=True)
        .where(Response.task_id == task_id)
        .order_by(Response.created_at.desc())
    )
    rows = result.all()
    replies = await replies_for_responses(session, [r.id for r, _ in rows])
    return [response_to_dict(r, author, replies[r.id]) for r, author in rows]


async def get_response_for_task_by_user(
    session: AsyncSession, task_id: str, user_id: str
) -> dict | None:
    result = await session.execute(
        select(Response).where(Response.task_id == task_id, Response.user_id == user_id)
    )
    response = result.scalar_one_or_none()
    if not response:
        return None
    replies = await replies_for_responses(session, [response.id])
    return response_to_dict(response, replies=replies[response.id])
