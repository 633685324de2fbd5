"""Category and tag lookups."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.errors import NotFound
from taskmarket.models import ErrorResponse
from taskmarket.rate_limit import limiter
from taskmarket.services.catalog import get_categories, get_category_by_id, get_tag_by_id, get_tags

router = APIRouter(prefix="/api")


@router.get("/categories")
@limiter.limit(settings.rate_limit_read)
async def categories(request: Request, session=Depends(get_db_session)):
    return {"categories": await get_categories(session)}


@router.get("/categories/{category_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def category(request: Request, category_id: str, session=Depends(get_db_session)):
    found = await get_category_by_id(session, category_id)
    if not found:
        raise NotFound("category not found")
    return found


@router.get("/tags")
@limiter.limit(settings.rate_limit_read)
async def tags(request: Request, session=Depends(get_db_session), category_id: str | None = None):
    return {"tags": await get_tags(session, category_id=category_id)}


@router.get("/tags/{tag_id}", responses={404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_read)
async def tag(request: Request, tag_id: str, session=Depends(get_db_session)):
    found = await get_tag_by_id(session, tag_id)
    if not found:
        raise NotFound("tag not found")
    return found
