"""
Health check endpoints.
"""

import os
import shutil
import time
from pathlib import Path

from fastapi import APIRouter, Depends

from api.deps import get_layout
from config.settings import settings
from core.storybook import StorageLayout

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "version": API_VERSION,
        "timestamp": time.time()
    }


@router.get("/api/health/detailed")
async def detailed_health_check(layout: StorageLayout = Depends(get_layout)):
    """
    Detailed health check.

    Returns:
    - Writability of every uploads sub-directory
    - Whether poppler (pdftoppm) is on PATH; without it histoires are
      generated without preview images
    """
    directories = {
        directory.name: directory.is_dir() and os.access(directory, os.W_OK)
        for directory in layout.all_dirs()
    }
    poppler = _poppler_available()

    status = "healthy" if all(directories.values()) else "unhealthy"
    if status == "healthy" and not poppler:
        status = "degraded"

    return {
        "status": status,
        "timestamp": time.time(),
        "components": {
            "storage": directories,
            "rasterizer": "available" if poppler else "unavailable",
        },
    }


def _poppler_available() -> bool:
    if settings.poppler_path:
        return any(Path(settings.poppler_path).glob("pdftoppm*"))
    return shutil.which("pdftoppm") is not None
