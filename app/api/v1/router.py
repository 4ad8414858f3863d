"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from app.api.v1.health import router as health_router
from app.api.v1.upload import router as upload_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])

# The browser page talks to /upload, /status/{id}, /download/{id} at root
upload_router_root = APIRouter()
upload_router_root.include_router(upload_router, tags=["upload"])
