"""Health check endpoint."""

import platform
import sys

from fastapi import APIRouter

router = APIRouter()

# Set by main.py during lifespan
_manager = None


def set_manager(manager):
    global _manager
    _manager = manager


@router.get("/health")
async def health_check():
    """Service health and job counts per status."""
    jobs = _manager.store.counts() if _manager is not None else {}
    return {
        "status": "healthy" if _manager is not None else "starting",
        "jobs": jobs,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
