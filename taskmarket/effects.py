"""Pending side effects and their dispatcher.

Mutating services do not create notifications or delete files themselves.
They return an ``Outcome`` carrying the primary result plus the side effects
it implies; the API layer hands those to ``dispatch_effects`` once the
primary write has been committed. A failing side effect is logged and
dropped, it never fails the request that caused it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from taskmarket.db_models import UserRole
from taskmarket.files import delete_managed_file
from taskmarket.services.notifications import create_notification

logger = logging.getLogger("taskmarket.effects")


@dataclass(frozen=True)
class NotificationRequest:
    user_id: str
    role: UserRole
    type: str
    title: str
    message: str
    link: str | None = None


@dataclass(frozen=True)
class FileDeletion:
    url: str


SideEffect = NotificationRequest | FileDeletion


@dataclass
class Outcome:
    value: Any
    effects: list[SideEffect] = field(default_factory=list)


async def _run(session: AsyncSession, effect: SideEffect) -> None:
    if isinstance(effect, NotificationRequest):
        await create_notification(
            session,
            user_id=effect.user_id,
            role=effect.role,
            type=effect.type,
            title=effect.title,
            message=effect.message,
            link=effect.link,
        )
    elif isinstance(effect, FileDeletion):
        delete_managed_file(effect.url)
    else:
        raise TypeError(f"Unknown side effect: {effect!r}")


async def dispatch_effects(session: AsyncSession, effects: list[SideEffect]) -> int:
    """Execute effects in order. Returns how many succeeded."""
    done = 0
    for effect in effects:
        try:
            await _run(session, effect)
            done += 1
        except Exception:
            logger.exception("Side effect failed: %r", effect)
            await session.rollback()
    return done
