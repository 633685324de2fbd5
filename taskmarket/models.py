"""Pydantic models for request/response schemas."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

from taskmarket.db_models import BudgetType, CreatedInMode, Marketplace, TaskStatus

_USERNAME_RE = re.compile(r"^[a-zA-Z0-9]+$")


def _validate_image_url(url: str) -> str:
    """Accept absolute http(s) URLs and site-relative paths."""
    if url.startswith(("http://", "https://")):
        return url
    if url.startswith("/") and len(url) > 1:
        if ".." in url.split("/") or "\\" in url:
            raise ValueError("Image path must not contain parent segments")
        return url
    raise ValueError("Invalid image URL")


class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Auth & users
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6, max_length=200)
    username: str = Field(min_length=3, max_length=50)
    name: str | None = Field(default=None, max_length=200)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not _USERNAME_RE.match(v):
            raise ValueError("Username may only contain latin letters and digits")
        return v

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v if len(v) >= 2 else None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=200)
    username: str | None = Field(default=None, min_length=3, max_length=50)
    avatar_url: str | None = Field(default=None, max_length=2000)
    description: str | None = Field(default=None, max_length=5000)
    price_from: int | None = Field(default=None, gt=0)
    telegram: str | None = Field(default=None, max_length=200)
    whatsapp: str | None = Field(default=None, max_length=200)
    email_contact: EmailStr | None = None
    role: Literal["SELLER", "PERFORMER", "BOTH"] | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        if v is not None and not _USERNAME_RE.match(v):
            raise ValueError("Username may only contain latin letters and digits")
        return v

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar_url(cls, v: str | None) -> str | None:
        if not v:
            return v
        return _validate_image_url(v)


class AddTagsRequest(BaseModel):
    tag_ids: list[str] = Field(min_length=1, max_length=50)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TaskCreateRequest(BaseModel):
    marketplace: Marketplace
    category_id: str = Field(min_length=1)
    title: str = Field(min_length=3, max_length=200)
    description: str = Field(min_length=10, max_length=50_000)
    budget: int | None = Field(default=None, gt=0)
    budget_type: BudgetType = BudgetType.FIXED
    tag_ids: list[str] | None = Field(default=None, max_length=20)
    created_in_mode: CreatedInMode = CreatedInMode.SELLER
    images: list[str] | None = Field(default=None, max_length=10)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [_validate_image_url(url) for url in v]


class TaskUpdateRequest(BaseModel):
    marketplace: Marketplace | None = None
    category_id: str | None = Field(default=None, min_length=1)
    title: str | None = Field(default=None, min_length=3, max_length=200)
    description: str | None = Field(default=None, min_length=10, max_length=50_000)
    budget: int | None = Field(default=None, gt=0)
    budget_type: BudgetType | None = None
    tag_ids: list[str] | None = Field(default=None, max_length=20)
    images: list[str] | None = Field(default=None, max_length=10)

    @field_validator("images")
    @classmethod
    def validate_images(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [_validate_image_url(url) for url in v]


class TaskFilters(BaseModel):
    category_id: str | None = None
    tag_ids: list[str] | None = None
    marketplace: Marketplace | None = None
    status: TaskStatus | None = None
    budget_min: int | None = Field(default=None, ge=0)
    budget_max: int | None = Field(default=None, ge=0)
    created_in_mode: CreatedInMode | None = None
    sort_by: Literal["created_at", "budget"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class ModerateRequest(BaseModel):
    action: Literal["APPROVE", "REJECT"]
    comment: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Responses & replies
# ---------------------------------------------------------------------------


class ResponseCreateRequest(BaseModel):
    message: str = Field(min_length=10, max_length=10_000)
    price: int | None = None
    deadline: datetime | None = None


class ResponseUpdateRequest(BaseModel):
    message: str | None = Field(default=None, min_length=10, max_length=10_000)
    price: int | None = None
    deadline: datetime | None = None


class ReplyCreateRequest(BaseModel):
    # Length rules are enforced by the reply service itself
    message: str


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class NotificationsListResponse(BaseModel):
    notifications: list[dict]
    unread_count: int


class MarkAllReadResponse(BaseModel):
    count: int


# ---------------------------------------------------------------------------
# Ads
# ---------------------------------------------------------------------------


class AdCreateRequest(BaseModel):
    image_url: str = Field(min_length=1, max_length=2000)
    link: str = Field(min_length=1, max_length=2000)
    position: int | None = Field(default=None, ge=0)
    is_active: bool = True

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: str) -> str:
        return _validate_image_url(v)


class AdUpdateRequest(BaseModel):
    image_url: str | None = Field(default=None, min_length=1, max_length=2000)
    link: str | None = Field(default=None, max_length=2000)
    position: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _validate_image_url(v)

    @field_validator("link")
    @classmethod
    def empty_link_is_none(cls, v: str | None) -> str | None:
        return v or None
