#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Settings - Centralized configuration management
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings


# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings"""

    # ========== Server ==========
    # Security mode: development | production
    security_mode: str = "development"

    # CORS origins (comma-separated in env, parsed to list)
    cors_origins: str = ""  # Empty = use default dev origins
    rate_limit: str = "60/minute"
    # PDF composition and rasterization endpoints
    generation_rate_limit: str = "10/minute"

    # ========== Uploads ==========
    max_image_upload_mb: int = 5
    max_template_upload_mb: int = 50

    # ========== PDF Rendering ==========
    # Fallback page size (A4 in points) for templates analysed without dimensions
    default_page_width: float = 595.0
    default_page_height: float = 842.0
    base_font: str = "Helvetica"
    min_font_size: float = 12.0

    # ========== Preview Rasterization ==========
    preview_max_width: int = 1200
    preview_max_height: int = 900
    preview_dpi: int = 200
    rasterize_timeout_seconds: int = 120
    # Poppler binaries for pdf2image (None = use PATH)
    poppler_path: Optional[str] = None

    # ========== Cleanup / Retention ==========
    temp_preview_retention_hours: int = 24
    cleanup_temp_max_age_hours: int = 24
    cleanup_preview_retention_days: int = 30

    # ========== Database ==========
    database_backend: str = "sqlite"
    database_dir: Path = BASE_DIR / "data"

    # ========== Directories ==========
    uploads_dir: Path = BASE_DIR / "uploads"
    logs_dir: Path = BASE_DIR / "data" / "logs"

    class Config:
        env_file = str(BASE_DIR / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env that aren't defined in model

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        for dir_path in [self.uploads_dir, self.database_dir, self.logs_dir]:
            dir_path.mkdir(exist_ok=True, parents=True)

    # Derived upload sub-directories. Public URLs map 1:1 onto these.
    @property
    def temp_images_dir(self) -> Path:
        return self.uploads_dir / "temp-images"

    @property
    def histoires_images_dir(self) -> Path:
        return self.uploads_dir / "histoires-images"

    @property
    def previews_dir(self) -> Path:
        return self.uploads_dir / "previews"

    @property
    def temp_previews_dir(self) -> Path:
        return self.uploads_dir / "temp-previews"

    @property
    def pdfs_dir(self) -> Path:
        return self.uploads_dir / "pdfs"

    def get_cors_origins(self) -> list:
        """Get CORS origins as a list. Falls back to dev defaults if empty."""
        if self.cors_origins:
            return [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        if self.security_mode == "production":
            raise ValueError(
                "CORS_ORIGINS must be explicitly set in production! "
                "Example: CORS_ORIGINS=https://yourdomain.com"
            )
        # Dev defaults
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4200",
            "http://127.0.0.1:4200",
        ]


# Global settings instance
settings = Settings()
