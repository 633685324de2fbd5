"""Owner replies to performer responses."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.db_models import Reply, Response, Task, TaskStatus, User, UserRole
from taskmarket.effects import NotificationRequest, Outcome
from taskmarket.errors import Conflict, Forbidden, InvalidInput, NotFound
from taskmarket.ids import reply_id as make_reply_id
from taskmarket.permissions import can_delete_reply, can_reply
from taskmarket.utils import isoformat

MAX_MESSAGE_LENGTH = 1000


def reply_to_dict(reply: Reply, author: User | None = None) -> dict:
    return {
        "id": reply.id,
        "response_id": reply.response_id,
        "user_id": reply.user_id,
        "message": reply.message,
        "created_at": isoformat(reply.created_at),
        "user": {"id": author.id, "name": author.name, "username": author.username}
        if author
        else None,
    }


async def replies_for_responses(
    session: AsyncSession, response_ids: list[str]
) -> dict[str, list[dict]]:
    """Replies grouped by response id, oldest first within each thread."""
    if not response_ids:
        return {}
    result = await session.execute(
        select(Reply, User)
        .join(User, Reply.user_id == User.id, isouter=True)
        .where(Reply.response_id.in_(response_ids))
        .order_by(Reply.created_at.asc())
    )
    grouped: dict[str, list[dict]] = {rid: [] for rid in response_ids}
    for reply, author in result.all():
        grouped[reply.response_id].append(reply_to_dict(reply, author))
    return grouped


async def _load_thread(session: AsyncSession, response_id: str) -> tuple[Response, Task]:
    response = await session.get(Response, response_id)
    if not response:
        raise NotFound("response not found")
    task = await session.get(Task, response.task_id)
    if not task:
        raise NotFound("response not found")
    return response, task


async def create_reply(
    session: AsyncSession, response_id: str, requester_id: str, message: str
) -> Outcome:
    """Reply to a response as the task owner.

    Only the owner of the task the response belongs to may reply, and only
    while the task is open. The response author is notified.
    """
    text = (message or "").strip()
    if not text:
        raise InvalidInput("message cannot be empty")
    if len(text) > MAX_MESSAGE_LENGTH:
        raise InvalidInput(f"message cannot exceed {MAX_MESSAGE_LENGTH} characters")

    response, task = await _load_thread(session, response_id)
    if not can_reply(task, requester_id):
        raise Forbidden("only the task owner may reply to responses")
    if task.status != TaskStatus.OPEN:
        raise Conflict("cannot reply to responses on a closed task")

    reply = Reply(
        id=make_reply_id(),
        response_id=response.id,
        user_id=requester_id,
        message=text,
    )
    session.add(reply)
    await session.commit()

    author = await session.get(User, requester_id)
    effects = [
        NotificationRequest(
            user_id=response.user_id,
            role=UserRole.PERFORMER,
            type="NEW_REPLY",
            title="New reply to your response",
            message=f'The task owner replied to your response on "{task.title}"',
            link=f"/tasks/{task.id}",
        )
    ]
    return Outcome(reply_to_dict(reply, author), effects)


async def delete_reply(session: AsyncSession, rid: str, requester_id: str) -> None:
    reply = await session.get(Reply, rid)
    if not reply:
        raise NotFound("reply not found")

    _, task = await _load_thread(session, reply.response_id)
    if not can_delete_reply(reply, task, requester_id):
        raise Forbidden("insufficient rights to delete reply")

    await session.delete(reply)
    await session.commit()
