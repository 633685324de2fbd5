"""Ownership and role predicates shared by every service.

Each predicate answers one question about one entity type. Services call
these instead of comparing owner ids inline, so the rules live in one place.
"""

from __future__ import annotations

from dataclasses import dataclass

from taskmarket.db_models import ModerationStatus, Reply, Response, Task, UserRole


@dataclass(frozen=True)
class Identity:
    """The authenticated caller, as attached by the auth layer."""

    user_id: str
    role: UserRole
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


def is_task_owner(task: Task, user_id: str | None) -> bool:
    return user_id is not None and task.user_id == user_id


def can_modify_task(task: Task, user_id: str | None) -> bool:
    return is_task_owner(task, user_id)


def can_delete_task(task: Task, identity: Identity) -> bool:
    return identity.is_admin or is_task_owner(task, identity.user_id)


def can_view_task(task: Task, identity: Identity | None) -> bool:
    if task.moderation_status == ModerationStatus.APPROVED:
        return True
    if identity is None:
        return False
    return identity.is_admin or is_task_owner(task, identity.user_id)


def can_view_task_responses(task: Task, user_id: str | None) -> bool:
    return is_task_owner(task, user_id)


def can_view_response(response: Response, task: Task, user_id: str | None) -> bool:
    return response.user_id == user_id or is_task_owner(task, user_id)


def can_modify_response(response: Response, user_id: str | None) -> bool:
    return user_id is not None and response.user_id == user_id


def can_reply(task: Task, user_id: str | None) -> bool:
    # Only the task owner, never the response author
    return is_task_owner(task, user_id)


def can_delete_reply(reply: Reply, task: Task, user_id: str | None) -> bool:
    return reply.user_id == user_id or is_task_owner(task, user_id)


def can_moderate(identity: Identity | None) -> bool:
    return identity is not None and identity.is_admin
