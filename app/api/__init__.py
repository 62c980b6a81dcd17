"""HTTP routes."""

from fastapi import APIRouter

from app.api import auth, health, proxy

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(proxy.router, tags=["proxy"])
