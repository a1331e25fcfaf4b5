#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
FastAPI Web Server - REST API for the storybook service.

Thin orchestration shell: app creation, middleware, exception mapping,
router includes, static mount for generated files.

Usage:
    uvicorn api.main:app --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware
from pathlib import Path
import asyncio
import sys
import os
from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging_config import get_logger
logger = get_logger(__name__)

from config.settings import settings as _settings
from core.storybook import (
    GenerationError,
    ImageProcessingError,
    InvalidVariablesError,
    RasterizationError,
    ResourceNotFoundError,
    StorybookError,
    TemplateNotAvailableError,
    TemplatePdfError,
    ToolchainError,
    VariablesValidationError,
)

from api.rate_limiter import limiter
from api.routes.health import router as health_router, API_VERSION
from api.routes.templates import router as templates_router
from api.routes.histoires import router as histoires_router

# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Storybook API",
    description="Personalized storybooks: PDF templates filled with a child's name, age and photos",
    version=API_VERSION
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# CORS middleware: origins from settings (env var) or dev defaults
ALLOWED_ORIGINS = _settings.get_cors_origins()
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

app.add_middleware(SecurityHeadersMiddleware)

# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(VariablesValidationError)
async def variables_validation_handler(request: Request, exc: VariablesValidationError):
    report = exc.report
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Variables validation failed",
            "errors": report.messages(),
            **report.to_dict(),
        },
    )


@app.exception_handler(InvalidVariablesError)
@app.exception_handler(TemplateNotAvailableError)
@app.exception_handler(TemplatePdfError)
@app.exception_handler(ImageProcessingError)
async def bad_request_handler(request: Request, exc: StorybookError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(GenerationError)
async def generation_error_handler(request: Request, exc: GenerationError):
    logger.error(f"Generation failed at {exc.stage}: {exc.cause or exc}")
    return JSONResponse(
        status_code=500,
        content={"detail": "Failed to generate histoire", "stage": exc.stage},
    )


@app.exception_handler(ToolchainError)
async def toolchain_error_handler(request: Request, exc: ToolchainError):
    logger.warning(f"Rasterization toolchain unavailable: {exc}")
    return JSONResponse(status_code=503, content={"detail": "Preview rendering is unavailable"})


@app.exception_handler(RasterizationError)
@app.exception_handler(StorybookError)
async def storybook_error_handler(request: Request, exc: StorybookError):
    logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"detail": "Internal error"})

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(templates_router)
app.include_router(histoires_router)

# Generated previews, PDFs and uploaded images: /uploads/<dir>/<file>
_settings.uploads_dir.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=str(_settings.uploads_dir)), name="uploads")

# =============================================================================
# Startup / Shutdown Events
# =============================================================================

@app.on_event("startup")
async def startup_storage():
    """Create the uploads tree."""
    from api.deps import get_layout
    layout = get_layout()
    logger.info(f"Startup: uploads directory {layout.uploads_dir}")


@app.on_event("startup")
async def startup_cleanup_scheduler():
    """Start periodic file cleanup (every 6 hours)."""
    async def _cleanup_loop():
        from core.services.file_cleanup import FileCleanupService
        from api.deps import get_layout, get_store
        while True:
            await asyncio.sleep(6 * 3600)
            try:
                svc = FileCleanupService(layout=get_layout(), store=get_store())
                result = await asyncio.to_thread(svc.run_cleanup)
                logger.info(f"Scheduled cleanup: {result}")
            except Exception as e:
                logger.error(f"Scheduled cleanup failed: {e}")

    asyncio.create_task(_cleanup_loop())


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
