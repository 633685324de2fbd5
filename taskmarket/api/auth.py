"""Registration, login and token refresh."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from taskmarket.api.common import parse_body
from taskmarket.config import settings
from taskmarket.database import get_db_session
from taskmarket.models import ErrorResponse, LoginRequest, RefreshRequest, RegisterRequest
from taskmarket.rate_limit import limiter
from taskmarket.services.users import login_user, refresh_tokens, register_user

router = APIRouter(prefix="/api/auth")


@router.post(
    "/register",
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
@limiter.limit(settings.rate_limit_auth)
async def register(request: Request, session=Depends(get_db_session)):
    req = await parse_body(request, RegisterRequest)
    return await register_user(
        session, str(req.email), req.password, username=req.username, name=req.name
    )


@router.post("/login", responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_auth)
async def login(request: Request, session=Depends(get_db_session)):
    req = await parse_body(request, LoginRequest)
    return await login_user(session, str(req.email), req.password)


@router.post("/refresh", responses={401: {"model": ErrorResponse}})
@limiter.limit(settings.rate_limit_auth)
async def refresh(request: Request, session=Depends(get_db_session)):
    req = await parse_body(request, RefreshRequest)
    return await refresh_tokens(session, req.refresh_token)
