"""Task lifecycle and moderation service."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from sqlalchemy import delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from taskmarket.config import settings
from taskmarket.db_models import (
    BudgetType,
    Category,
    CreatedInMode,
    Marketplace,
    ModerationStatus,
    Reply,
    Response,
    Tag,
    Task,
    TaskModerationHistory,
    TaskStatus,
    TaskTag,
    User,
    UserRole,
)
from taskmarket.effects import FileDeletion, NotificationRequest, Outcome
from taskmarket.errors import Conflict, Forbidden, InvalidInput, NotFound
from taskmarket.files import TASK_IMAGES, check_uploads, is_managed_url, owned_prefix
from taskmarket.ids import history_id as make_history_id
from taskmarket.ids import task_id as make_task_id
from taskmarket.models import TaskFilters
from taskmarket.permissions import (
    Identity,
    can_delete_task,
    can_modify_task,
    can_view_task,
    can_view_task_responses,
    is_task_owner,
)
from taskmarket.services.responses import (
    get_response_for_task_by_user,
    get_responses_for_task,
)
from taskmarket.services.users import user_to_public
from taskmarket.utils import enum_value, isoformat, pagination, safe_json_loads

logger = logging.getLogger("taskmarket.tasks")

# Fields tracked in moderation history snapshots
TRACKED_FIELDS = (
    "marketplace",
    "category_id",
    "title",
    "description",
    "budget",
    "budget_type",
    "tag_ids",
    "images",
)


def _owner_role(task: Task) -> UserRole:
    if task.created_in_mode == CreatedInMode.PERFORMER:
        return UserRole.PERFORMER
    return UserRole.SELLER


def _task_link(task: Task) -> str:
    return f"/tasks/{task.id}"


def _task_to_dict(
    task: Task,
    owner: User | None = None,
    category: Category | None = None,
    tags: list[dict] | None = None,
    response_count: int = 0,
) -> dict:
    return {
        "id": task.id,
        "user_id": task.user_id,
        "marketplace": enum_value(task.marketplace),
        "category_id": task.category_id,
        "title": task.title,
        "description": task.description,
        "budget": task.budget,
        "budget_type": enum_value(task.budget_type),
        "status": enum_value(task.status),
        "moderation_status": enum_value(task.moderation_status),
        "moderation_comment": task.moderation_comment,
        "moderated_at": isoformat(task.moderated_at),
        "created_in_mode": enum_value(task.created_in_mode),
        "images": safe_json_loads(task.images) or [],
        "created_at": isoformat(task.created_at),
        "updated_at": isoformat(task.updated_at),
        "user": user_to_public(owner) if owner else None,
        "category": {"id": category.id, "name": category.name} if category else None,
        "tags": tags or [],
        "response_count": response_count,
    }


async def _serialize_tasks(session: AsyncSession, tasks: list[Task]) -> list[dict]:
    """Attach owners, categories, tags and response counts in four queries."""
    if not tasks:
        return []
    task_ids = [t.id for t in tasks]

    owners_result = await session.execute(
        select(User).where(User.id.in_(list({t.user_id for t in tasks})))
    )
    owners = {u.id: u for u in owners_result.scalars().all()}

    categories_result = await session.execute(
        select(Category).where(Category.id.in_(list({t.category_id for t in tasks})))
    )
    categories = {c.id: c for c in categories_result.scalars().all()}

    tags_result = await session.execute(
        select(TaskTag.task_id, Tag)
        .join(Tag, TaskTag.tag_id == Tag.id)
        .where(TaskTag.task_id.in_(task_ids))
        .order_by(Tag.name.asc())
    )
    tags: dict[str, list[dict]] = {tid: [] for tid in task_ids}
    for tid, tag in tags_result.all():
        tags[tid].append({"id": tag.id, "name": tag.name})

    counts_result = await session.execute(
        select(Response.task_id, func.count())
        .where(Response.task_id.in_(task_ids))
        .group_by(Response.task_id)
    )
    counts = dict(counts_result.all())

    return [
        _task_to_dict(
            t,
            owner=owners.get(t.user_id),
            category=categories.get(t.category_id),
            tags=tags[t.id],
            response_count=counts.get(t.id, 0),
        )
        for t in tasks
    ]


async def _get_task_or_404(session: AsyncSession, tid: str) -> Task:
    task = await session.get(Task, tid)
    if not task:
        raise NotFound("task not found")
    return task


async def _require_category(session: AsyncSession, category_id: str) -> None:
    if not await session.get(Category, category_id):
        raise NotFound("category not found")


async def _validate_tags(session: AsyncSession, category_id: str, tag_ids: list[str]) -> list[str]:
    """Every tag must exist and belong to the task's category."""
    wanted = list(dict.fromkeys(tag_ids))
    if not wanted:
        return []
    result = await session.execute(
        select(Tag.id).where(Tag.id.in_(wanted), Tag.category_id == category_id)
    )
    if len(result.fetchall()) != len(wanted):
        raise InvalidInput("one or more tags not found")
    return wanted


async def _task_tag_ids(session: AsyncSession, tid: str) -> list[str]:
    result = await session.execute(select(TaskTag.tag_id).where(TaskTag.task_id == tid))
    return sorted(row[0] for row in result.fetchall())


def _snapshot(task: Task, tag_ids: list[str]) -> dict:
    return {
        "marketplace": enum_value(task.marketplace),
        "category_id": task.category_id,
        "title": task.title,
        "description": task.description,
        "budget": task.budget,
        "budget_type": enum_value(task.budget_type),
        "tag_ids": sorted(tag_ids),
        "images": safe_json_loads(task.images) or [],
    }


def _history_entry(
    task_id: str,
    changed: list[str],
    before: dict,
    after: dict,
    changed_by: str,
    reason: str | None = None,
) -> TaskModerationHistory:
    return TaskModerationHistory(
        id=make_history_id(),
        task_id=task_id,
        changed_fields=json.dumps(changed),
        previous_data=json.dumps({k: before.get(k) for k in changed}),
        new_data=json.dumps({k: after.get(k) for k in changed}),
        changed_by=changed_by,
        reason=reason,
    )


def _own_images(owner_id: str) -> str:
    return owned_prefix(TASK_IMAGES, owner_id)


def _pending_notice(task: Task) -> NotificationRequest:
    return NotificationRequest(
        user_id=task.user_id,
        role=_owner_role(task),
        type="TASK_PENDING_MODERATION",
        title="Task sent for moderation",
        message=f'Your task "{task.title}" is waiting for moderation',
        link=_task_link(task),
    )


# ---------------------------------------------------------------------------
# Create & read
# ---------------------------------------------------------------------------


async def create_task(
    session: AsyncSession,
    owner_id: str,
    marketplace: Marketplace,
    category_id: str,
    title: str,
    description: str,
    budget: int | None = None,
    budget_type: BudgetType = BudgetType.FIXED,
    tag_ids: list[str] | None = None,
    created_in_mode: CreatedInMode = CreatedInMode.SELLER,
    images: list[str] | None = None,
) -> Outcome:
    await _require_category(session, category_id)
    tag_ids = await _validate_tags(session, category_id, tag_ids or [])
    check_uploads(images or [], _own_images(owner_id))

    task = Task(
        id=make_task_id(),
        user_id=owner_id,
        marketplace=marketplace,
        category_id=category_id,
        title=title,
        description=description,
        budget=budget,
        budget_type=budget_type,
        status=TaskStatus.OPEN,
        moderation_status=ModerationStatus.PENDING,
        created_in_mode=created_in_mode,
        images=json.dumps(images) if images else None,
    )
    session.add(task)
    for tag in tag_ids:
        session.add(TaskTag(task_id=task.id, tag_id=tag))
    await session.commit()

    logger.info("Task %s created by %s", task.id, owner_id)
    [data] = await _serialize_tasks(session, [task])
    return Outcome(data, [_pending_notice(task)])


def _apply_filters(query, filters: TaskFilters):
    if filters.category_id:
        query = query.where(Task.category_id == filters.category_id)
    if filters.tag_ids:
        query = query.where(
            Task.id.in_(select(TaskTag.task_id).where(TaskTag.tag_id.in_(filters.tag_ids)))
        )
    if filters.marketplace:
        query = query.where(Task.marketplace == filters.marketplace)
    if filters.status:
        query = query.where(Task.status == filters.status)
    if filters.budget_min is not None:
        query = query.where(Task.budget >= filters.budget_min)
    if filters.budget_max is not None:
        query = query.where(Task.budget <= filters.budget_max)
    if filters.created_in_mode:
        query = query.where(Task.created_in_mode == filters.created_in_mode)
    return query


async def _list_tasks(session: AsyncSession, query, filters: TaskFilters) -> dict:
    query = _apply_filters(query, filters)
    limit = min(filters.limit, settings.max_page_size)

    count = await session.execute(select(func.count()).select_from(query.subquery()))
    total = count.scalar_one()

    column = Task.budget if filters.sort_by == "budget" else Task.created_at
    order = column.asc() if filters.sort_order == "asc" else column.desc()
    result = await session.execute(
        query.order_by(order, Task.id).offset((filters.page - 1) * limit).limit(limit)
    )
    tasks = await _serialize_tasks(session, list(result.scalars().all()))
    return {"tasks": tasks, **pagination(filters.page, limit, total)}


async def get_tasks(session: AsyncSession, filters: TaskFilters | None = None) -> dict:
    """Public listing: only tasks that passed moderation."""
    query = select(Task).where(Task.moderation_status == ModerationStatus.APPROVED)
    return await _list_tasks(session, query, filters or TaskFilters())


async def get_my_tasks(
    session: AsyncSession, owner_id: str, filters: TaskFilters | None = None
) -> dict:
    query = select(Task).where(Task.user_id == owner_id)
    return await _list_tasks(session, query, filters or TaskFilters())


async def get_user_tasks(
    session: AsyncSession, uid: str, viewer: Identity, filters: TaskFilters | None = None
) -> dict:
    """Tasks posted by one user. Unapproved ones are shown to their owner and admins only."""
    if not await session.get(User, uid):
        raise NotFound("user not found")
    query = select(Task).where(Task.user_id == uid)
    if not (viewer.is_admin or viewer.user_id == uid):
        query = query.where(Task.moderation_status == ModerationStatus.APPROVED)
    return await _list_tasks(session, query, filters or TaskFilters())


async def get_task_by_id(session: AsyncSession, tid: str, identity: Identity | None) -> dict:
    task = await session.get(Task, tid)
    if not task or not can_view_task(task, identity):
        raise NotFound("task not found")
    [data] = await _serialize_tasks(session, [task])
    return data


# ---------------------------------------------------------------------------
# Owner mutations
# ---------------------------------------------------------------------------


async def update_task(session: AsyncSession, tid: str, requester_id: str, patch: dict) -> Outcome:
    """Apply a partial edit. Any real change sends the task back to moderation."""
    task = await _get_task_or_404(session, tid)
    if not can_modify_task(task, requester_id):
        raise Forbidden("insufficient rights to update task")

    current_tags = await _task_tag_ids(session, tid)
    before = _snapshot(task, current_tags)

    category_id = patch.get("category_id") or task.category_id
    if category_id != task.category_id:
        await _require_category(session, category_id)

    new_tags = current_tags
    if patch.get("tag_ids") is not None:
        new_tags = await _validate_tags(session, category_id, patch["tag_ids"])
    elif category_id != task.category_id and current_tags:
        # Tags from the old category no longer apply
        result = await session.execute(
            select(Tag.id).where(Tag.id.in_(current_tags), Tag.category_id == category_id)
        )
        new_tags = [row[0] for row in result.fetchall()]

    task.category_id = category_id
    for key in ("marketplace", "title", "description", "budget_type"):
        if patch.get(key) is not None:
            setattr(task, key, patch[key])
    if "budget" in patch:
        task.budget = patch["budget"]

    effects = []
    if patch.get("images") is not None:
        own = _own_images(task.user_id)
        check_uploads(patch["images"], own)
        kept = set(patch["images"])
        effects.extend(
            FileDeletion(url)
            for url in before["images"]
            if url not in kept and is_managed_url(url, own)
        )
        task.images = json.dumps(patch["images"]) if patch["images"] else None

    after = _snapshot(task, new_tags)
    changed = [k for k in TRACKED_FIELDS if before[k] != after[k]]
    if not changed:
        [data] = await _serialize_tasks(session, [task])
        return Outcome(data, [])

    if set(new_tags) != set(current_tags):
        await session.execute(delete(TaskTag).where(TaskTag.task_id == tid))
        for tag in new_tags:
            session.add(TaskTag(task_id=tid, tag_id=tag))

    task.moderation_status = ModerationStatus.PENDING
    task.moderation_comment = None
    task.moderated_at = None
    task.moderated_by = None
    task.updated_at = datetime.now(UTC)
    session.add(task)
    session.add(_history_entry(tid, changed, before, after, requester_id))
    await session.commit()

    logger.info("Task %s edited (%s), back to moderation", tid, ", ".join(changed))
    [data] = await _serialize_tasks(session, [task])
    return Outcome(data, [*effects, _pending_notice(task)])


async def delete_task_image(
    session: AsyncSession, tid: str, requester_id: str, index: int
) -> Outcome:
    """Drop one image from a task by its position in the list."""
    task = await _get_task_or_404(session, tid)
    if not can_modify_task(task, requester_id):
        raise Forbidden("insufficient rights to delete image")

    images = safe_json_loads(task.images) or []
    if index < 0 or index >= len(images):
        raise NotFound("image not found")

    url = images.pop(index)
    task.images = json.dumps(images) if images else None
    task.updated_at = datetime.now(UTC)
    session.add(task)
    await session.commit()

    effects = [FileDeletion(url)] if is_managed_url(url, _own_images(task.user_id)) else []
    return Outcome({"images": images}, effects)


async def close_task(session: AsyncSession, tid: str, requester_id: str) -> Outcome:
    task = await _get_task_or_404(session, tid)
    if not can_modify_task(task, requester_id):
        raise Forbidden("insufficient rights to close task")
    if task.status == TaskStatus.CLOSED:
        raise Conflict("task already closed")

    task.status = TaskStatus.CLOSED
    task.updated_at = datetime.now(UTC)
    session.add(task)
    await session.commit()

    result = await session.execute(
        select(Response.user_id).where(Response.task_id == tid).distinct()
    )
    effects = [
        NotificationRequest(
            user_id=performer_id,
            role=UserRole.PERFORMER,
            type="TASK_CLOSED",
            title="Task closed",
            message=f'The task "{task.title}" you responded to has been closed',
            link=_task_link(task),
        )
        for performer_id in sorted(row[0] for row in result.fetchall())
    ]
    [data] = await _serialize_tasks(session, [task])
    return Outcome(data, effects)


async def delete_task(session: AsyncSession, tid: str, identity: Identity) -> Outcome:
    """Delete a task with its responses, replies, tag links and history."""
    task = await _get_task_or_404(session, tid)
    if not can_delete_task(task, identity):
        raise Forbidden("insufficient rights to delete task")

    own = _own_images(task.user_id)
    effects: list = [
        FileDeletion(url)
        for url in safe_json_loads(task.images) or []
        if is_managed_url(url, own)
    ]

    response_ids = select(Response.id).where(Response.task_id == tid)
    await session.execute(delete(Reply).where(Reply.response_id.in_(response_ids)))
    await session.execute(delete(Response).where(Response.task_id == tid))
    await session.execute(delete(TaskTag).where(TaskTag.task_id == tid))
    await session.execute(delete(TaskModerationHistory).where(TaskModerationHistory.task_id == tid))
    await session.delete(task)
    await session.commit()

    if not is_task_owner(task, identity.user_id):
        logger.info("Task %s deleted by admin %s", tid, identity.user_id)
        effects.append(
            NotificationRequest(
                user_id=task.user_id,
                role=_owner_role(task),
                type="TASK_DELETED_BY_ADMIN",
                title="Task deleted",
                message=f'Your task "{task.title}" was deleted by an administrator',
            )
        )
    return Outcome({"id": tid}, effects)


async def get_task_responses(session: AsyncSession, tid: str, requester_id: str) -> list[dict]:
    task = await _get_task_or_404(session, tid)
    if not can_view_task_responses(task, requester_id):
        raise Forbidden("insufficient rights to view responses")
    return await get_responses_for_task(session, tid)


async def get_my_response(session: AsyncSession, tid: str, requester_id: str) -> dict | None:
    await _get_task_or_404(session, tid)
    return await get_response_for_task_by_user(session, tid, requester_id)


# ---------------------------------------------------------------------------
# Moderation (admin)
# ---------------------------------------------------------------------------


async def moderate_task(
    session: AsyncSession,
    tid: str,
    admin_id: str,
    action: str,
    comment: str | None = None,
) -> Outcome:
    task = await _get_task_or_404(session, tid)
    if task.moderation_status != ModerationStatus.PENDING:
        raise Conflict("task already moderated")

    approved = action == "APPROVE"
    before = {"moderation_status": enum_value(task.moderation_status)}
    task.moderation_status = ModerationStatus.APPROVED if approved else ModerationStatus.REJECTED
    task.moderation_comment = comment
    task.moderated_at = datetime.now(UTC)
    task.moderated_by = admin_id
    session.add(task)
    session.add(
        _history_entry(
            tid,
            ["moderation_status"],
            before,
            {"moderation_status": enum_value(task.moderation_status)},
            admin_id,
            reason=comment,
        )
    )
    await session.commit()
    logger.info("Task %s %s by %s", tid, task.moderation_status.value.lower(), admin_id)

    if approved:
        notice = NotificationRequest(
            user_id=task.user_id,
            role=_owner_role(task),
            type="TASK_APPROVED",
            title="Task approved",
            message=f'Your task "{task.title}" passed moderation and is now published',
            link=_task_link(task),
        )
    else:
        reason = f": {comment}" if comment else ""
        notice = NotificationRequest(
            user_id=task.user_id,
            role=_owner_role(task),
            type="TASK_REJECTED",
            title="Task rejected",
            message=f'Your task "{task.title}" was rejected{reason}',
            link=_task_link(task),
        )
    [data] = await _serialize_tasks(session, [task])
    return Outcome(data, [notice])


async def get_pending_tasks(session: AsyncSession, page: int = 1, limit: int = 20) -> dict:
    query = select(Task).where(Task.moderation_status == ModerationStatus.PENDING)
    count = await session.execute(select(func.count()).select_from(query.subquery()))
    total = count.scalar_one()
    result = await session.execute(
        query.order_by(Task.created_at.desc()).offset((page - 1) * limit).limit(limit)
    )
    tasks = await _serialize_tasks(session, list(result.scalars().all()))
    return {"tasks": tasks, **pagination(page, limit, total)}


async def get_task_history(session: AsyncSession, tid: str) -> list[dict]:
    await _get_task_or_404(session, tid)
    result = await session.execute(
        select(TaskModerationHistory, User)
        .join(User, TaskModerationHistory.changed_by == User.id, isouter=True)
        .where(TaskModerationHistory.task_id == tid)
        .order_by(TaskModerationHistory.created_at.desc())
    )

    entries = []
    for entry, user in result.all():
        fields = safe_json_loads(entry.changed_fields) or []
        previous = safe_json_loads(entry.previous_data) or {}
        new = safe_json_loads(entry.new_data) or {}
        entries.append(
            {
                "id": entry.id,
                "task_id": entry.task_id,
                "changed_fields": fields,
                "changes": {f: {"old": previous.get(f), "new": new.get(f)} for f in fields},
                "changed_by": {"id": user.id, "name": user.name, "email": user.email}
                if user
                else {"id": entry.changed_by},
                "reason": entry.reason,
                "created_at": isoformat(entry.created_at),
            }
        )
    return entries


async def get_admin_stats(session: AsyncSession) -> dict:
    async def count(model, *conditions) -> int:
        query = select(func.count()).select_from(model)
        if conditions:
            query = query.where(*conditions)
        result = await session.execute(query)
        return result.scalar_one()

    return {
        "users": await count(User),
        "tasks": {
            "total": await count(Task),
            "pending": await count(Task, Task.moderation_status == ModerationStatus.PENDING),
            "approved": await count(Task, Task.moderation_status == ModerationStatus.APPROVED),
            "rejected": await count(Task, Task.moderation_status == ModerationStatus.REJECTED),
        },
        "responses": await count(Response),
        "categories": await count(Category),
    }
