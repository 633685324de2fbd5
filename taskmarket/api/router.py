"""Mount all API routes."""

from fastapi import APIRouter

from taskmarket.api.admin import router as admin_router
from taskmarket.api.ads import router as ads_router
from taskmarket.api.auth import router as auth_router
from taskmarket.api.catalog import router as catalog_router
from taskmarket.api.notifications import router as notifications_router
from taskmarket.api.responses import router as responses_router
from taskmarket.api.tasks import router as tasks_router
from taskmarket.api.users import router as users_router

api_router = APIRouter()
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(tasks_router, tags=["tasks"])
api_router.include_router(responses_router, tags=["responses"])
api_router.include_router(notifications_router, tags=["notifications"])
api_router.include_router(ads_router, tags=["ads"])
api_router.include_router(catalog_router, tags=["catalog"])
api_router.include_router(admin_router, tags=["admin"])
