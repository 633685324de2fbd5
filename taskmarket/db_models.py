"""SQLModel table definitions for Taskmarket."""

from __future__ import annotations

import enum
from datetime import UTC, datetime

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


class UserRole(str, enum.Enum):
    SELLER = "SELLER"
    PERFORMER = "PERFORMER"
    BOTH = "BOTH"
    ADMIN = "ADMIN"


class TaskStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class ModerationStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class Marketplace(str, enum.Enum):
    WB = "WB"
    OZON = "OZON"


class BudgetType(str, enum.Enum):
    FIXED = "FIXED"
    NEGOTIABLE = "NEGOTIABLE"


class CreatedInMode(str, enum.Enum):
    SELLER = "SELLER"
    PERFORMER = "PERFORMER"


def _utcnow() -> datetime:
    return datetime.now(UTC)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    email: str = Field(unique=True, index=True)
    username: str = Field(unique=True, index=True)
    password_hash: str
    name: str | None = None
    role: UserRole = Field(default=UserRole.BOTH, index=True)
    avatar_url: str | None = None
    description: str | None = None
    price_from: int | None = None
    telegram: str | None = None
    whatsapp: str | None = None
    email_contact: str | None = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)


class Category(SQLModel, table=True):
    __tablename__ = "categories"

    id: str = Field(primary_key=True)
    name: str = Field(unique=True)


class Tag(SQLModel, table=True):
    __tablename__ = "tags"

    id: str = Field(primary_key=True)
    name: str
    category_id: str = Field(foreign_key="categories.id", index=True)


class UserTag(SQLModel, table=True):
    __tablename__ = "user_tags"

    user_id: str = Field(foreign_key="users.id", primary_key=True)
    tag_id: str = Field(foreign_key="tags.id", primary_key=True, index=True)


class Task(SQLModel, table=True):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_moderation_created_at", "moderation_status", "created_at"),
        Index("ix_tasks_user_created_at", "user_id", "created_at"),
    )

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    marketplace: Marketplace
    category_id: str = Field(foreign_key="categories.id", index=True)
    title: str
    description: str
    budget: int | None = None
    budget_type: BudgetType = Field(default=BudgetType.FIXED)
    status: TaskStatus = Field(default=TaskStatus.OPEN, index=True)
    moderation_status: ModerationStatus = Field(default=ModerationStatus.PENDING)
    moderation_comment: str | None = None
    moderated_at: datetime | None = None
    moderated_by: str | None = None
    created_in_mode: CreatedInMode = Field(default=CreatedInMode.SELLER)
    images: str | None = None  # JSON-encoded list of image URLs
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class TaskTag(SQLModel, table=True):
    __tablename__ = "task_tags"

    task_id: str = Field(foreign_key="tasks.id", primary_key=True)
    tag_id: str = Field(foreign_key="tags.id", primary_key=True, index=True)


class Response(SQLModel, table=True):
    __tablename__ = "responses"
    __table_args__ = (Index("ix_responses_task_user", "task_id", "user_id", unique=True),)

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    message: str
    price: int | None = None
    deadline: datetime | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class Reply(SQLModel, table=True):
    __tablename__ = "replies"

    id: str = Field(primary_key=True)
    response_id: str = Field(foreign_key="responses.id", index=True)
    user_id: str = Field(foreign_key="users.id")
    message: str
    created_at: datetime = Field(default_factory=_utcnow)


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id: str = Field(primary_key=True)
    user_id: str = Field(foreign_key="users.id", index=True)
    role: UserRole
    type: str
    title: str
    message: str
    link: str | None = None
    read: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class TaskModerationHistory(SQLModel, table=True):
    __tablename__ = "task_moderation_history"

    id: str = Field(primary_key=True)
    task_id: str = Field(foreign_key="tasks.id", index=True)
    changed_fields: str  # JSON-encoded list of field names
    previous_data: str  # JSON snapshot
    new_data: str  # JSON snapshot
    changed_by: str
    reason: str | None = None
    created_at: datetime = Field(default_factory=_utcnow, index=True)


class Ad(SQLModel, table=True):
    __tablename__ = "ads"

    id: str = Field(primary_key=True)
    image_url: str
    link: str | None = None
    position: int = Field(default=0, index=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
