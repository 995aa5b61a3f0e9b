"""API endpoints module."""

from fastapi import APIRouter

from promptminder.api.admin import router as admin_router
from promptminder.api.config import router as config_router
from promptminder.api.invitations import router as invitations_router

api_router = APIRouter(prefix="/api")

api_router.include_router(admin_router)
api_router.include_router(invitations_router)
api_router.include_router(config_router)

__all__ = ["api_router"]
