"""Ad block routes. Listing is public, changes are admin-only."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from taskmarket.api.common import finish, parse_body
from taskmarket.auth import AdminUser
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import AdCreateRequest, AdUpdateRequest, ErrorResponse
from taskmarket.permissions import Identity
from taskmarket.rate_limit import limiter
from taskmarket.services.ads import create_ad, delete_ad, get_active_ads, update_ad

router = APIRouter(prefix="/api/ads")

_ADMIN_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


@router.get("")
@limiter.limit(settings.rate_limit_read)
async def active_ads(request: Request, session=Depends(get_db_session)):
    return {"ads": await get_active_ads(session)}


@router.post("", status_code=201, responses={**_ADMIN_ERRORS, 400: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def add_ad(request: Request, admin: Identity = AdminUser, session=Depends(get_db_session)):
    req = await parse_body(request, AdCreateRequest)
    return await create_ad(
        session, req.image_url, req.link, position=req.position, is_active=req.is_active
    )


@router.patch("/{ad_id}", responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def edit_ad(
    request: Request, ad_id: str, admin: Identity = AdminUser, session=Depends(get_db_session)
):
    req = await parse_body(request, AdUpdateRequest)
    outcome = await update_ad(session, ad_id, req.model_dump(exclude_unset=True))
    return await finish(session, outcome)


@router.delete("/{ad_id}", responses={**_ADMIN_ERRORS, 404: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_write)
async def remove_ad(
    request: Request, ad_id: str, admin: Identity = AdminUser, session=Depends(get_db_session)
):
    outcome = await delete_ad(session, ad_id)
    await finish(session, outcome)
    return {"ok": True}
