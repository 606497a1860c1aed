"""Aggregates all v1 API routers into a single router."""

from fastapi import APIRouter

from i2v.api.v1.admin import router as admin_router
from i2v.api.v1.auth import router as auth_router
from i2v.api.v1.entries import quota_router
from i2v.api.v1.entries import router as entries_router
from i2v.api.v1.health import router as health_router
from i2v.api.v1.webhooks import router as webhooks_router
from i2v.api.v1.worker import router as worker_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(admin_router)
v1_router.include_router(auth_router)
v1_router.include_router(entries_router)
v1_router.include_router(quota_router)
v1_router.include_router(health_router)
v1_router.include_router(webhooks_router)
v1_router.include_router(worker_router)
