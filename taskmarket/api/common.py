"""Helpers shared by the route modules."""

from __future__ import annotations

import json
from typing import TypeVar

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from taskmarket.config import settings
from taskmarket.effects import Outcome, dispatch_effects
from taskmarket.errors import InvalidInput
from taskmarket.models import TaskFilters

M = TypeVar("M", bound=BaseModel)


async def parse_body(request: Request, model: type[M]) -> M:
    """Read the JSON body and validate it against ``model``."""
    raw = await request.body()
    try:
        body = json.loads(raw) if raw else {}
    except ValueError:
        raise InvalidInput("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return validate(model, body)


def validate(model: type[M], data: dict) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False)) from None


def split_ids(value: str | None) -> list[str] | None:
    """Comma-separated id list from a query parameter."""
    if not value:
        return None
    ids = [v.strip() for v in value.split(",") if v.strip()]
    return ids or None


_TASK_FILTER_PARAMS = (
    "category_id",
    "marketplace",
    "status",
    "budget_min",
    "budget_max",
    "created_in_mode",
    "sort_by",
    "sort_order",
    "page",
    "limit",
)


def task_filters_from_query(request: Request) -> TaskFilters:
    params = request.query_params
    data: dict = {key: params[key] for key in _TASK_FILTER_PARAMS if params.get(key)}
    data.setdefault("limit", settings.default_page_size)
    tag_ids = split_ids(params.get("tag_ids"))
    if tag_ids:
        data["tag_ids"] = tag_ids
    return validate(TaskFilters, data)


async def finish(session: AsyncSession, outcome: Outcome):
    """Run the outcome's side effects and return its value."""
    await dispatch_effects(session, outcome.effects)
    return outcome.value
