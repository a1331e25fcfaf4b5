#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Rate limiting for the storybook API.

PDF composition and preview rasterization are the expensive endpoints;
they get their own, lower limit on top of the global default.

Usage:
    from api.rate_limiter import limiter, rate_limit_config

    @router.post("/generate")
    @limiter.limit(rate_limit_config.get_limit("generate"))
    async def generate(request: Request):
        ...
"""

import os
from dataclasses import dataclass, field
from typing import Dict

from slowapi import Limiter
from slowapi.util import get_remote_address

from config.settings import settings


@dataclass
class RateLimitConfig:
    """
    Limits by endpoint category, as "count/period" strings.

    RATE_LIMIT_<CATEGORY> overrides a category, RATE_LIMIT the fallback.
    """

    defaults: Dict[str, str] = field(default_factory=lambda: {
        # Compose a PDF and rasterize previews
        "generate": settings.generation_rate_limit,
        "preview": settings.generation_rate_limit,
        "default": settings.rate_limit,
    })

    env_overrides: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        for key in self.defaults.keys():
            if env_value := os.getenv(f"RATE_LIMIT_{key.upper()}"):
                self.env_overrides[key] = env_value

        if global_limit := os.getenv("RATE_LIMIT"):
            self.env_overrides["default"] = global_limit

    def get_limit(self, endpoint: str) -> str:
        if endpoint in self.env_overrides:
            return self.env_overrides[endpoint]
        if endpoint in self.defaults:
            return self.defaults[endpoint]
        return self.env_overrides.get("default", self.defaults["default"])


rate_limit_config = RateLimitConfig()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[rate_limit_config.get_limit("default")],
)
